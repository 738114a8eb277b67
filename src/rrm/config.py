from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os
import sys

from rrm.domain.errors import ValidationError


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path
    exports_dir: Path


@dataclass(frozen=True)
class StoreSettings:
    backend: str = "sqlite"
    url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 10.0


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "RetailReceivablesManager") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    exports = base / "exports"
    db = base / "receivables.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)
    exports.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs, exports_dir=exports)


def get_store_settings(env: Optional[dict] = None) -> StoreSettings:
    env = os.environ if env is None else env
    backend = (env.get("RRM_STORE_BACKEND") or "sqlite").strip().lower()
    if backend not in ("sqlite", "rest"):
        raise ValidationError(f"Unknown store backend: {backend}", field="RRM_STORE_BACKEND")

    raw_timeout = (env.get("RRM_HTTP_TIMEOUT") or "").strip()
    try:
        timeout = float(raw_timeout) if raw_timeout else 10.0
    except ValueError as e:
        raise ValidationError(f"Invalid HTTP timeout: {raw_timeout}", field="RRM_HTTP_TIMEOUT") from e

    settings = StoreSettings(
        backend=backend,
        url=(env.get("RRM_STORE_URL") or "").strip() or None,
        api_key=(env.get("RRM_STORE_KEY") or "").strip() or None,
        timeout=timeout,
    )
    if settings.backend == "rest" and not (settings.url and settings.api_key):
        raise ValidationError("RRM_STORE_URL and RRM_STORE_KEY are required for the rest backend.",
                              field="RRM_STORE_URL")
    return settings
