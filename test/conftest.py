import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def seed_catalog(container, cost: float = 200.0, supplier_code: str = "7"):
    """One supplier, one client and one unsold product; returns their ids."""
    supplier_id = container.catalog.add_supplier("Malhas Sul", code=supplier_code)
    client_id = container.catalog.add_client("Joana Prado")
    product_id = container.catalog.add_product(supplier_id, "Vestido longo", cost, "2025-01-02", code="V01")
    return supplier_id, client_id, product_id


@pytest.fixture
def container(tmp_path: Path):
    from rrm.application.container import build_container
    from rrm.config import StoreSettings

    c = build_container(tmp_path / "ledger.db", settings=StoreSettings(backend="sqlite"))
    yield c
    c.close()


@pytest.fixture
def events(container):
    """Every event published on the container's bus, in order."""
    from rrm.services.events import LedgerEvent

    seen = []
    for event in LedgerEvent:
        container.bus.subscribe(event, seen.append)
    return seen
