from .models import (
    Supplier,
    Client,
    SupplierPayment,
    Product,
    Installment,
    MonthlySummaryRow,
    CalendarRow,
    CalendarDetail,
    SupplierLedgerRow,
    SupplierProductDetail,
)
from .errors import ValidationError, NotFoundError, StoreError, PartialWriteError

__all__ = [
    "Supplier",
    "Client",
    "SupplierPayment",
    "Product",
    "Installment",
    "MonthlySummaryRow",
    "CalendarRow",
    "CalendarDetail",
    "SupplierLedgerRow",
    "SupplierProductDetail",
    "ValidationError",
    "NotFoundError",
    "StoreError",
    "PartialWriteError",
]
