from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date

from dateutil.relativedelta import relativedelta
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from rrm.domain.errors import ValidationError
from rrm.domain.models import Product
from rrm.services.view_mapping import UNKNOWN_SUPPLIER, sort_text


@dataclass(frozen=True)
class MonthSalesTotals:
    sales_count: int
    total_entry: float
    total_sale: float
    profit: float


@dataclass(frozen=True)
class SupplierSales:
    supplier_label: str
    sales_count: int
    total_sale: float
    products: tuple[Product, ...]


def _month_window(month: int, year: int) -> tuple[str, str]:
    try:
        start = date(int(year), int(month), 1)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid month: {month}/{year}", field="month") from e
    return start.isoformat(), (start + relativedelta(months=+1)).isoformat()


class ReportingService:
    def __init__(self, store, reconciler=None):
        self.store = store
        self.reconciler = reconciler

    def month_sales_totals(self, month: int, year: int) -> MonthSalesTotals:
        start_iso, end_iso = _month_window(month, year)
        products = self.store.list_sold_products_between(start_iso, end_iso)
        total_entry = round(sum(float(p.entry_cost) for p in products), 2)
        total_sale = round(sum(float(p.sale_price or 0) for p in products), 2)
        return MonthSalesTotals(
            sales_count=len(products),
            total_entry=total_entry,
            total_sale=total_sale,
            profit=round(total_sale - total_entry, 2),
        )

    def sales_by_supplier(self, month: int, year: int) -> list[SupplierSales]:
        start_iso, end_iso = _month_window(month, year)
        products = self.store.list_sold_products_between(start_iso, end_iso)
        names = {s.id: s.name for s in self.store.list_suppliers()}

        grouped: dict = defaultdict(list)
        for p in products:
            grouped[p.supplier_id].append(p)

        out = [
            SupplierSales(
                supplier_label=names.get(supplier_id) or UNKNOWN_SUPPLIER,
                sales_count=len(items),
                total_sale=round(sum(float(p.sale_price or 0) for p in items), 2),
                products=tuple(items),
            )
            for supplier_id, items in grouped.items()
        ]
        out.sort(key=lambda s: sort_text(s.supplier_label))
        return out

    def export_views_excel(self, path: str) -> None:
        if self.reconciler is None:
            raise ValidationError("No views are available to export.")
        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, end_col: int):
            if ws.max_row < 2:
                return
            tab = Table(displayName=name, ref=f"A1:{get_column_letter(end_col)}{ws.max_row}")
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        # -------- 1) Monthly summary --------
        ws = wb.active
        ws.title = "Monthly Summary"
        ws.append(["Month", "Received", "Entry Cost", "Profit"])
        bold_row(ws, 1)
        for row in self.reconciler.monthly_summary():
            ws.append([row.period_label, row.total_received, row.total_entry_cost, row.profit])
            for col in "BCD":
                money(ws[f"{col}{ws.max_row}"])
        ws.freeze_panes = "A2"
        set_widths(ws, {"A": 20, "B": 16, "C": 16, "D": 16})
        add_table(ws, "MonthlySummary", 4)

        # -------- 2) Receivables calendar --------
        ws2 = wb.create_sheet("Receivables")
        ws2.append(["Due Date", "Forecast", "Received", "Outstanding"])
        bold_row(ws2, 1)
        for row in self.reconciler.receivables_calendar():
            ws2.append([
                row.date_label, row.total_forecast, row.total_received,
                round(row.total_forecast - row.total_received, 2),
            ])
            for col in "BCD":
                money(ws2[f"{col}{ws2.max_row}"])
        ws2.freeze_panes = "A2"
        set_widths(ws2, {"A": 16, "B": 16, "C": 16, "D": 16})
        add_table(ws2, "ReceivablesCalendar", 4)

        # -------- 3) Supplier ledger --------
        ws3 = wb.create_sheet("Suppliers")
        ws3.append(["Code", "Supplier", "Paid", "Pending", "Product", "Entry Cost", "Status", "Paid On"])
        bold_row(ws3, 1)
        for row in self.reconciler.supplier_ledger():
            details = row.product_detail or (None,)
            for d in details:
                ws3.append([
                    row.code or "", row.supplier_label, row.sum_paid, row.sum_pending,
                    d.product_label if d else "",
                    d.entry_cost if d else None,
                    d.bucket if d else "",
                    (d.paid_date or "") if d else "",
                ])
                for col in "CDF":
                    money(ws3[f"{col}{ws3.max_row}"])
        ws3.freeze_panes = "A2"
        set_widths(ws3, {"A": 10, "B": 30, "C": 14, "D": 14, "E": 34, "F": 14, "G": 10, "H": 14})
        add_table(ws3, "SupplierLedger", 8)

        wb.save(path)
