import pytest

from rrm.domain.models import CalendarRow, MonthlySummaryRow
from rrm.services.view_mapping import (
    UNKNOWN_PRODUCT,
    UNKNOWN_SUPPLIER,
    bar_geometry,
    classify_product,
    line_geometry,
    map_calendar_details,
    map_calendar_rows,
    map_monthly_rows,
    map_supplier_rows,
    resolve_date_column,
    to_amount,
)


@pytest.mark.parametrize(
    "raw, expected",
    [("1.234,56", 1234.56), ("R$ 80,50", 80.5), ("99.9", 99.9), (12, 12.0), (None, 0.0), ("abc", 0.0),
     ("nan", 0.0), ("inf", 0.0), (True, 0.0), ("1.234", 1234.0), ("12.345.678", 12345678.0), (1.234, 1.234)],
)
def test_to_amount_reads_local_and_garbled_values(raw, expected):
    assert to_amount(raw) == expected


def test_monthly_rows_are_sorted_and_profit_defaults_to_received_minus_cost():
    rows = map_monthly_rows([
        {"mes": 3, "total_recebido": "1.234,56", "total_entrada": 1000},
        {"month": 1, "recebido": 10, "custo": 20, "lucro": 5},
    ])
    assert [r.period_label for r in rows] == ["Janeiro", "Março"]
    assert rows[0].profit == 5.0
    assert rows[1].profit == 234.56
    assert rows[1].period_key == "3"


def test_unreadable_month_keeps_feed_position():
    rows = map_monthly_rows([
        {"mes": "2025-02", "total_recebido": 1},
        {"mes": "sem data", "total_recebido": 2},
        "not a row",
    ])
    assert [r.period_label for r in rows] == ["sem data", "Fevereiro/2025"]


def test_line_geometry_uses_one_scale_for_all_series():
    rows = [
        MonthlySummaryRow("2025-01", "Janeiro/2025", 202501, 100.0, 50.0, 50.0),
        MonthlySummaryRow("2025-02", "Fevereiro/2025", 202502, 0.0, 0.0, 0.0),
    ]
    received, entry_cost, profit = line_geometry(rows, width=1100, height=200)
    assert [p.x for p in received.points] == [40, 1060]
    assert received.points[0].y == 40
    assert entry_cost.points[0].y == profit.points[0].y == 105
    assert received.points[1].y == 170


def test_line_geometry_handles_empty_and_all_zero_rows():
    assert [s.points for s in line_geometry([])] == [(), (), ()]
    zero = [MonthlySummaryRow(None, "Janeiro", 1, 0.0, 0.0, 0.0)]
    assert {p.y for s in line_geometry(zero) for p in s.points} == {170}


def test_date_column_prefers_known_names_then_date_like_names():
    assert resolve_date_column({"data": "2025-01-01", "data_vencimento": "2025-01-10"}) == "data_vencimento"
    assert resolve_date_column({"total_dia": 5, "dt_venc": "2025-01-10"}) == "dt_venc"
    assert resolve_date_column({"total": 5}) is None


def test_calendar_rows_sort_by_date_with_labels():
    rows = map_calendar_rows([
        {"data_vencimento": "2025-03-10", "total_previsto": 150, "total_recebido": 0},
        {"vencimento": "10/01/2025", "total_previsto": "150,00", "recebido": 150},
    ])
    assert [r.date_key for r in rows] == ["2025-01-10", "2025-03-10"]
    assert rows[0].date_label == "10/01/2025"
    assert rows[0].total_received == 150.0


def test_bar_geometry_shares_the_largest_value():
    rows = [
        CalendarRow("2025-01-10", "10/01/2025", 20250110, 200.0, 100.0),
        CalendarRow("2025-02-10", "10/02/2025", 20250210, 100.0, 0.0),
    ]
    first, second = bar_geometry(rows, width=560, height=200)
    assert first.forecast_top == 40
    assert first.received_top == 105
    assert second.forecast_top == 105
    assert second.received_top == second.baseline == 170
    assert first.x1 < second.x0


def test_details_sort_unreceived_first_and_ignore_accents():
    details = map_calendar_details([
        {"installment_id": 1, "received": 1, "cliente_nome": "Ana"},
        {"installment_id": 2, "received": 0, "cliente_nome": "bruno"},
        {"installment_id": 3, "received": 0, "cliente_nome": "Álvaro", "produto": "Saia", "cod_produto": "S1"},
    ])
    assert [d.installment_id for d in details] == [3, 2, 1]
    assert details[0].product_label == "S1 - Saia"
    assert details[1].product_label == UNKNOWN_PRODUCT


@pytest.mark.parametrize(
    "detail, bucket, cost",
    [
        ({"valor_pago": 50, "pago": False, "valor_entrada": 50}, "paid", 50.0),
        ({"valor_pendente": 30, "pago": True}, "pending", 30.0),
        ({"valor_pago": 0, "valor_pendente": 20}, "pending", 20.0),
        ({"pago": "sim", "valor_entrada": 10}, "paid", 10.0),
        ({"pago": 0, "valor_entrada": "garbage"}, "pending", 0.0),
    ],
)
def test_product_bucket_rule(detail, bucket, cost):
    p = classify_product(detail)
    assert p.bucket == bucket
    assert p.paid is (bucket == "paid")
    assert p.entry_cost == cost


def test_supplier_rows_sort_numeric_codes_first_then_text_then_missing():
    rows = map_supplier_rows([
        {"fornecedor_id": 1, "cod_fornecedor": "b", "fornecedor": "Beta"},
        {"fornecedor_id": 2, "cod_fornecedor": "10", "fornecedor": "Dez"},
        {"fornecedor_id": 3, "fornecedor": "Sem código"},
        {"fornecedor_id": 4, "cod_fornecedor": "2", "fornecedor": "Dois"},
        {"fornecedor_id": 5, "cod_fornecedor": "A", "fornecedor": "Alfa"},
    ])
    assert [r.code for r in rows] == ["2", "10", "A", "b", None]
    assert rows[0].supplier_label == "2 - Dois"


def test_supplier_rows_group_details_and_fall_back_to_row_totals():
    rows = map_supplier_rows([
        {"fornecedor_id": 1, "cod_fornecedor": "1", "fornecedor": "Malhas",
         "produtos": '[{"produto": "Vestido", "valor_entrada": 200, "pago": 1}]'},
        {"fornecedor_id": 1, "produtos": {"produto": "Saia", "valor_entrada": 80, "pago": 0}},
        {"fornecedor_id": 2, "cod_fornecedor": "2", "produtos": "{broken", "total_pago": "15", "total_pendente": 5},
    ])
    malhas, unknown = rows
    assert (malhas.sum_paid, malhas.sum_pending) == (200.0, 80.0)
    assert [d.product_label for d in malhas.product_detail] == ["Vestido", "Saia"]
    assert unknown.supplier_label == f"2 - {UNKNOWN_SUPPLIER}"
    assert (unknown.sum_paid, unknown.sum_pending) == (15.0, 5.0)
    assert unknown.product_detail == ()
