from __future__ import annotations

import logging
from datetime import date

from rrm.application.container import build_container
from rrm.config import get_app_paths
from rrm.logging_config import setup_logging
from rrm.services.reconciler import View


def main() -> None:
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO)

    container = build_container(paths.db_path)
    try:
        container.reconciler.refresh_all()
        for view in View:
            error = container.reconciler.last_error(view)
            if error:
                print(f"{view.value}: unavailable ({error})")

        print("Monthly summary")
        for row in container.reconciler.monthly_summary():
            print(f"  {row.period_label:<16} received {row.total_received:>12,.2f}  profit {row.profit:>12,.2f}")

        print("Receivables")
        for row in container.reconciler.receivables_calendar():
            print(f"  {row.date_label:<16} forecast {row.total_forecast:>12,.2f}  received {row.total_received:>12,.2f}")

        print("Suppliers")
        for row in container.reconciler.supplier_ledger():
            print(f"  {row.supplier_label:<30} paid {row.sum_paid:>12,.2f}  pending {row.sum_pending:>12,.2f}")

        today = date.today()
        totals = container.reporting.month_sales_totals(today.month, today.year)
        print(f"This month: {totals.sales_count} sales, {totals.total_sale:,.2f} sold, profit {totals.profit:,.2f}")
    finally:
        container.close()


if __name__ == "__main__":
    main()
