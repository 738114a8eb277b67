from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Union

from dateutil.relativedelta import relativedelta

from rrm.domain.amounts import parse_amount
from rrm.domain.dates import normalize
from rrm.domain.errors import ValidationError
from rrm.domain.models import NewInstallment, RecordId

MAX_INSTALLMENTS = 3

# Form values arrive as typed text ("" when untouched) or as numbers.
Amount = Union[float, int, str]


@dataclass(frozen=True)
class InstallmentSlot:
    amount: Amount = ""
    due_date: str = ""
    received: bool = False


@dataclass(frozen=True)
class SaleDraft:
    product_id: Optional[RecordId]
    client_id: Optional[RecordId]
    sale_price: Amount
    sale_date: str
    slots: list[InstallmentSlot] = field(default_factory=list)


@dataclass(frozen=True)
class ValidatedSale:
    product_id: RecordId
    client_id: Optional[RecordId]
    sale_price: float
    sale_date: str
    installments: tuple[NewInstallment, ...]


def _check_count(installment_count: int) -> int:
    try:
        count = int(installment_count)
    except (TypeError, ValueError) as e:
        raise ValidationError("Installment count must be a number.", field="installment_count") from e
    if not 1 <= count <= MAX_INSTALLMENTS:
        raise ValidationError(
            f"Installment count must be between 1 and {MAX_INSTALLMENTS}.", field="installment_count"
        )
    return count


def resize_plan(prior: Iterable[InstallmentSlot], installment_count: int) -> list[InstallmentSlot]:
    """Positions that still exist keep their values; extra positions start empty.

    Values dropped by shrinking are gone for good: growing again yields empty slots.
    """
    count = _check_count(installment_count)
    kept = list(prior)[:count]
    return kept + [InstallmentSlot() for _ in range(count - len(kept))]


def build_plan(
    total_amount: Amount,
    sale_date: str,
    installment_count: int,
    prior: Optional[Iterable[InstallmentSlot]] = None,
) -> list[InstallmentSlot]:
    """Slot layout depends only on the count; amounts and dates are entered per slot."""
    return resize_plan(prior or [], installment_count)


def plan_from_installments(installments) -> list[InstallmentSlot]:
    """Editable slots for an already registered sale."""
    return [
        InstallmentSlot(amount=it.amount, due_date=it.due_date, received=it.received)
        for it in sorted(installments, key=lambda it: it.number)
    ]


def suggest_schedule(total_amount: float, sale_date: str, installment_count: int) -> list[InstallmentSlot]:
    """Even split, remainder cents on the last slot, monthly due dates after the sale."""
    count = _check_count(installment_count)
    start = _parse_canonical(sale_date, "sale_date")
    total = round(float(total_amount), 2)
    base = round(total / count, 2)

    slots: list[InstallmentSlot] = []
    allotted = 0.0
    for i in range(1, count + 1):
        amount = round(total - allotted, 2) if i == count else base
        allotted += amount
        due = date.fromisoformat(start) + relativedelta(months=+i)
        slots.append(InstallmentSlot(amount=amount, due_date=due.isoformat()))
    return slots


def _parse_amount(value: Amount, field_name: str, label: str) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{label} is required.", field=field_name)
    amount = parse_amount(value)
    if amount is None:
        raise ValidationError(f"{label} must be a number.", field=field_name)
    if amount <= 0:
        raise ValidationError(f"{label} must be > 0.", field=field_name)
    return round(amount, 2)


def _parse_canonical(value: str, field_name: str) -> str:
    if not value:
        raise ValidationError("Date is required.", field=field_name)
    key = normalize(value, 0).canonical_key
    if key is None:
        raise ValidationError(f"Invalid date: {value}", field=field_name)
    return key


def validate_sale(draft: SaleDraft, require_client: bool = True) -> ValidatedSale:
    """Check a sale draft before any write and return the values to store.

    The installment amounts are not required to add up to the sale price.
    """
    if not draft.product_id:
        raise ValidationError("Product is required.", field="product_id")
    if require_client and not draft.client_id:
        raise ValidationError("Client is required.", field="client_id")
    sale_price = _parse_amount(draft.sale_price, "sale_price", "Sale price")
    sale_date = _parse_canonical(draft.sale_date, "sale_date")

    if not draft.slots:
        raise ValidationError("At least one installment is required.", field="installments")
    _check_count(len(draft.slots))

    out: list[NewInstallment] = []
    for number, slot in enumerate(draft.slots, start=1):
        prefix = f"installments[{number}]"
        amount = _parse_amount(slot.amount, f"{prefix}.amount", f"Installment {number} amount")
        due = _parse_canonical(slot.due_date, f"{prefix}.due_date")
        out.append(NewInstallment(number=number, amount=amount, due_date=due, received=bool(slot.received)))
    return ValidatedSale(
        product_id=draft.product_id,
        client_id=draft.client_id,
        sale_price=sale_price,
        sale_date=sale_date,
        installments=tuple(out),
    )

