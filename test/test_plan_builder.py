import pytest

from rrm.domain.errors import ValidationError
from rrm.domain.models import Installment
from rrm.services.plan_builder import (
    InstallmentSlot,
    SaleDraft,
    build_plan,
    plan_from_installments,
    resize_plan,
    suggest_schedule,
    validate_sale,
)


def _slots(*amounts):
    return [InstallmentSlot(amount=a, due_date=f"2025-0{i + 1}-10") for i, a in enumerate(amounts)]


def test_shrinking_then_growing_does_not_restore_dropped_values():
    plan = _slots(10, 20, 30)
    plan = resize_plan(plan, 2)
    assert [s.amount for s in plan] == [10, 20]

    plan = resize_plan(plan, 3)
    assert [s.amount for s in plan] == [10, 20, ""]
    assert plan[2] == InstallmentSlot()


def test_build_plan_starts_with_empty_slots():
    plan = build_plan(300, "2025-01-01", 2)
    assert plan == [InstallmentSlot(), InstallmentSlot()]


@pytest.mark.parametrize("count", [0, 4, -1, "x"])
def test_installment_count_must_be_between_one_and_three(count):
    with pytest.raises(ValidationError) as exc:
        resize_plan([], count)
    assert exc.value.field == "installment_count"


def test_suggested_schedule_splits_evenly_and_clamps_month_ends():
    slots = suggest_schedule(100, "2025-01-31", 3)
    assert [s.amount for s in slots] == [33.33, 33.33, 33.34]
    assert [s.due_date for s in slots] == ["2025-02-28", "2025-03-31", "2025-04-30"]
    assert round(sum(s.amount for s in slots), 2) == 100


def test_plan_from_installments_orders_by_number():
    installments = [
        Installment(id=2, product_id=1, client_id=1, supplier_id=1, number=2, amount=50.0, due_date="2025-02-10"),
        Installment(id=1, product_id=1, client_id=1, supplier_id=1, number=1, amount=40.0, due_date="2025-01-10",
                    received=True),
    ]
    plan = plan_from_installments(installments)
    assert [s.amount for s in plan] == [40.0, 50.0]
    assert plan[0].received is True


def test_validate_sale_returns_canonical_values():
    sale = validate_sale(SaleDraft(
        product_id=1,
        client_id=2,
        sale_price="450,00",
        sale_date="05/01/2025",
        slots=[InstallmentSlot("150", "10/01/2025"), InstallmentSlot(150.0, "2025-02-10", received=True)],
    ))
    assert sale.sale_price == 450.0
    assert sale.sale_date == "2025-01-05"
    assert [(i.number, i.amount, i.due_date, i.received) for i in sale.installments] == [
        (1, 150.0, "2025-01-10", False),
        (2, 150.0, "2025-02-10", True),
    ]


def test_installment_sum_does_not_have_to_match_sale_price():
    sale = validate_sale(SaleDraft(1, 2, 450, "2025-01-05", _slots(100, 100)))
    assert sum(i.amount for i in sale.installments) == 200


@pytest.mark.parametrize(
    "slots, field",
    [
        ([InstallmentSlot("", "2025-01-10")], "installments[1].amount"),
        ([InstallmentSlot("abc", "2025-01-10")], "installments[1].amount"),
        ([InstallmentSlot("nan", "2025-01-10")], "installments[1].amount"),
        ([InstallmentSlot("inf", "2025-01-10")], "installments[1].amount"),
        ([InstallmentSlot(float("inf"), "2025-01-10")], "installments[1].amount"),
        ([InstallmentSlot(10, "2025-01-10"), InstallmentSlot(0, "2025-02-10")], "installments[2].amount"),
        ([InstallmentSlot(10, "2025-01-10"), InstallmentSlot(10, "")], "installments[2].due_date"),
        ([InstallmentSlot(10, "31/02/2025")], "installments[1].due_date"),
        ([], "installments"),
    ],
)
def test_validate_sale_points_at_the_bad_field(slots, field):
    with pytest.raises(ValidationError) as exc:
        validate_sale(SaleDraft(1, 2, 100, "2025-01-05", slots))
    assert exc.value.field == field


def test_validate_sale_requires_client_and_positive_price():
    with pytest.raises(ValidationError, match="Client is required"):
        validate_sale(SaleDraft(1, None, 100, "2025-01-05", _slots(100)))
    with pytest.raises(ValidationError, match="Sale price must be > 0"):
        validate_sale(SaleDraft(1, 2, -5, "2025-01-05", _slots(100)))


@pytest.mark.parametrize("price", ["nan", "inf", "-inf", float("nan")])
def test_sale_price_must_be_a_finite_number(price):
    with pytest.raises(ValidationError) as exc:
        validate_sale(SaleDraft(1, 2, price, "2025-01-05", _slots(100)))
    assert exc.value.field == "sale_price"


def test_amounts_accept_thousands_separators():
    sale = validate_sale(SaleDraft(1, 2, "R$ 1.234,56", "2025-01-05", [InstallmentSlot("1.200", "2025-02-05")]))
    assert sale.sale_price == 1234.56
    assert sale.installments[0].amount == 1200.0
