from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Union

# SQLite hands out integers, the remote store hands out UUID strings.
RecordId = Union[int, str]


@dataclass(frozen=True)
class Supplier:
    id: RecordId
    name: str
    code: Optional[str] = None
    tax_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class Client:
    id: RecordId
    name: str
    tax_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class SupplierPayment:
    paid: bool = False
    paid_date: Optional[str] = None


@dataclass(frozen=True)
class Product:
    id: RecordId
    supplier_id: RecordId
    description: str
    entry_cost: float
    entry_date: str
    code: Optional[str] = None
    sold: bool = False
    client_id: Optional[RecordId] = None
    sale_price: Optional[float] = None
    sale_date: Optional[str] = None
    installment_count: Optional[int] = None
    supplier_payment: SupplierPayment = field(default_factory=SupplierPayment)

    @property
    def label(self) -> str:
        return f"{self.code} - {self.description}" if self.code else self.description


@dataclass(frozen=True)
class Installment:
    id: RecordId
    product_id: RecordId
    client_id: RecordId
    supplier_id: RecordId
    number: int
    amount: float
    due_date: str
    received: bool = False


@dataclass(frozen=True)
class NewInstallment:
    number: int
    amount: float
    due_date: str
    received: bool = False


@dataclass(frozen=True)
class NormalizedDate:
    sort_key: int
    display_label: str
    canonical_key: Optional[str] = None


# ---------- Derived view rows ----------

@dataclass(frozen=True)
class MonthlySummaryRow:
    period_key: Optional[str]
    period_label: str
    sort_key: int
    total_received: float
    total_entry_cost: float
    profit: float


@dataclass(frozen=True)
class CalendarRow:
    date_key: Optional[str]
    date_label: str
    sort_key: int
    total_forecast: float
    total_received: float


@dataclass(frozen=True)
class CalendarDetail:
    installment_id: RecordId
    product_id: Optional[RecordId]
    number: int
    amount: float
    due_date: str
    received: bool
    product_label: str
    client_name: str


@dataclass(frozen=True)
class SupplierProductDetail:
    product_label: str
    entry_cost: float
    paid: bool
    paid_date: Optional[str]
    bucket: str  # "paid" | "pending"


@dataclass(frozen=True)
class SupplierLedgerRow:
    supplier_label: str
    code: Optional[str]
    sum_paid: float
    sum_pending: float
    product_detail: tuple[SupplierProductDetail, ...] = ()


# ---------- Chart geometry ----------

@dataclass(frozen=True)
class ChartPoint:
    x: int
    y: int
    value: float
    label: str


@dataclass(frozen=True)
class LineSeries:
    name: str
    points: tuple[ChartPoint, ...]


@dataclass(frozen=True)
class Bar:
    label: str
    x0: int
    x1: int
    baseline: int
    forecast_top: int
    received_top: int
