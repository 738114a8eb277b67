from pathlib import Path

import pytest
from openpyxl import load_workbook

from conftest import seed_catalog
from rrm.domain.errors import NotFoundError, ValidationError
from rrm.services.events import LedgerEvent
from rrm.services.plan_builder import InstallmentSlot


def _sell(container, product_id, client_id, price, sale_date, due="2025-02-10"):
    container.ledger.register_or_replace_sale(product_id, client_id, price, sale_date, [InstallmentSlot(price, due)])


def test_catalog_validates_input(container):
    with pytest.raises(ValidationError):
        container.catalog.add_supplier("   ")
    with pytest.raises(ValidationError):
        container.catalog.add_client("")
    supplier_id = container.catalog.add_supplier("Malhas Sul")
    with pytest.raises(ValidationError) as exc:
        container.catalog.add_product(supplier_id, "Vestido", 0, "2025-01-02")
    assert exc.value.field == "entry_cost"
    with pytest.raises(ValidationError) as exc:
        container.catalog.add_product(supplier_id, "Vestido", 10, "ontem")
    assert exc.value.field == "entry_date"
    with pytest.raises(NotFoundError):
        container.catalog.add_product(999, "Vestido", 10, "2025-01-02")
    for cost in ("nan", "inf", float("nan")):
        with pytest.raises(ValidationError) as exc:
            container.catalog.add_product(supplier_id, "Vestido", cost, "2025-01-02")
        assert exc.value.field == "entry_cost"


def test_unsold_products_of_a_supplier(container):
    supplier_id, client_id, sold_id = seed_catalog(container)
    unsold_id = container.catalog.add_product(supplier_id, "Saia", "80,50", "02/01/2025")
    _sell(container, sold_id, client_id, 300, "2025-01-05")

    unsold = container.catalog.unsold_products(supplier_id)
    assert [p.id for p in unsold] == [unsold_id]
    assert unsold[0].entry_cost == 80.5
    assert unsold[0].entry_date == "2025-01-02"


def test_deleting_a_sold_product_removes_its_installments(container, events):
    _, client_id, product_id = seed_catalog(container)
    _sell(container, product_id, client_id, 300, "2025-01-05")
    assert container.reconciler.receivables_calendar() != []
    events.clear()

    container.catalog.delete_product(product_id)

    assert container.store.get_product(product_id) is None
    assert container.store.list_installments(product_id) == []
    assert events == [LedgerEvent.SUPPLIER_PAYMENT_CHANGED, LedgerEvent.SALE_CHANGED]
    assert container.reconciler.receivables_calendar() == []
    assert container.reconciler.supplier_ledger() == []
    with pytest.raises(NotFoundError):
        container.catalog.delete_product(product_id)


def test_month_totals_and_sales_by_supplier(container):
    supplier_id, client_id, first = seed_catalog(container, cost=200.0)
    second = container.catalog.add_product(supplier_id, "Saia", 50, "2025-01-02")
    other = container.catalog.add_supplier("Acessórios Ltda", code="3")
    third = container.catalog.add_product(other, "Cinto", 20, "2025-01-02")
    _sell(container, first, client_id, 450, "2025-01-05")
    _sell(container, second, client_id, 90, "2025-01-31")
    _sell(container, third, client_id, 40, "2025-02-01")

    totals = container.reporting.month_sales_totals(1, 2025)
    assert totals.sales_count == 2
    assert totals.total_entry == 250.0
    assert totals.total_sale == 540.0
    assert totals.profit == 290.0

    groups = container.reporting.sales_by_supplier(1, 2025)
    assert [(g.supplier_label, g.sales_count, g.total_sale) for g in groups] == [("Malhas Sul", 2, 540.0)]
    assert [g.supplier_label for g in container.reporting.sales_by_supplier(2, 2025)] == ["Acessórios Ltda"]

    with pytest.raises(ValidationError):
        container.reporting.month_sales_totals(13, 2025)


def test_export_views_excel(container, tmp_path: Path):
    _, client_id, product_id = seed_catalog(container)
    _sell(container, product_id, client_id, 300, "2025-01-05")
    container.reconciler.refresh_all()

    out = tmp_path / "views.xlsx"
    container.reporting.export_views_excel(str(out))

    wb = load_workbook(out)
    assert wb.sheetnames == ["Monthly Summary", "Receivables", "Suppliers"]
    assert wb["Monthly Summary"]["A2"].value == "Janeiro/2025"
    assert wb["Receivables"]["A2"].value == "10/02/2025"
    assert wb["Receivables"]["D2"].value == 300
    assert wb["Suppliers"]["B2"].value == "7 - Malhas Sul"
    assert wb["Suppliers"]["G2"].value == "pending"
