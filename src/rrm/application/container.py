from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rrm.config import StoreSettings, get_store_settings
from rrm.repositories.contracts import LedgerStore
from rrm.repositories.rest_store import RestStore
from rrm.repositories.sqlite_repo import SqliteRepository
from rrm.services.catalog_service import CatalogService
from rrm.services.events import InvalidationBus
from rrm.services.ledger_service import LedgerService
from rrm.services.reconciler import ViewReconciler
from rrm.services.reporting_service import ReportingService

log = logging.getLogger("rrm.app")


@dataclass(frozen=True)
class AppContainer:
    store: LedgerStore
    bus: InvalidationBus
    catalog: CatalogService
    ledger: LedgerService
    reconciler: ViewReconciler
    reporting: ReportingService

    def close(self) -> None:
        self.store.close()


def _open_store(db_path: Optional[Path | str], settings: StoreSettings) -> LedgerStore:
    if settings.backend == "rest":
        log.info("store_opened backend=rest url=%s", settings.url)
        return RestStore(settings.url, settings.api_key, timeout=settings.timeout)
    if db_path is None:
        raise ValueError("db_path is required for the sqlite backend.")
    repo = SqliteRepository(db_path)
    repo.init_db()
    log.info("store_opened backend=sqlite db=%s", db_path)
    return repo


def build_container(
    db_path: Optional[Path | str] = None,
    settings: Optional[StoreSettings] = None,
    store: Optional[LedgerStore] = None,
) -> AppContainer:
    if store is None:
        store = _open_store(db_path, settings or get_store_settings())

    bus = InvalidationBus()
    reconciler = ViewReconciler(store, bus)

    return AppContainer(
        store=store,
        bus=bus,
        catalog=CatalogService(store, bus),
        ledger=LedgerService(store, bus),
        reconciler=reconciler,
        reporting=ReportingService(store, reconciler),
    )
