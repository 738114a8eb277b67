"""Turn loosely-typed aggregate feed rows into sorted view rows and chart geometry.

Nothing here raises on a malformed row: unknown shapes degrade to zero
amounts, placeholder labels or the normalizer's fallback ordering.
"""
from __future__ import annotations

import json
import re
import unicodedata
from typing import Any, Iterable, Optional, Sequence

from rrm.domain.amounts import parse_amount
from rrm.domain.dates import normalize
from rrm.domain.models import (
    Bar,
    CalendarDetail,
    CalendarRow,
    ChartPoint,
    LineSeries,
    MonthlySummaryRow,
    SupplierLedgerRow,
    SupplierProductDetail,
)
from rrm.repositories.contracts import FeedRow

MONTH_KEYS = ("mes", "month", "periodo", "period", "mes_ano", "ano_mes")
RECEIVED_KEYS = ("total_recebido", "total_received", "recebido", "received", "valor_recebido")
ENTRY_COST_KEYS = ("total_entrada", "total_entry_cost", "valor_entrada", "entry_cost", "custo")
PROFIT_KEYS = ("lucro", "profit", "total_lucro")

DATE_KEYS = (
    "data_vencimento",
    "data_recebimento",
    "due_date",
    "vencimento",
    "data",
    "date",
    "dia",
)
FORECAST_KEYS = ("total_previsto", "total_forecast", "previsto", "forecast", "total_parcelas", "total")

SUPPLIER_ID_KEYS = ("fornecedor_id", "supplier_id")
SUPPLIER_CODE_KEYS = ("cod_fornecedor", "supplier_code", "code", "codigo")
SUPPLIER_NAME_KEYS = ("fornecedor", "fornecedor_nome", "nome", "supplier", "supplier_name", "name")
DETAIL_KEYS = ("produtos", "products", "detalhes", "details", "product_detail")
ROW_PAID_KEYS = ("total_pago", "sum_paid", "pago_total")
ROW_PENDING_KEYS = ("total_pendente", "sum_pending", "pendente_total")

PRODUCT_NAME_KEYS = ("produto", "product", "descricao", "description", "nome")
PRODUCT_CODE_KEYS = ("cod_produto", "product_code", "codigo", "code")
PRODUCT_COST_KEYS = ("valor_entrada", "entry_cost", "custo", "valor")
PAID_AMOUNT_KEYS = ("valor_pago", "paid_amount", "amount_paid")
PENDING_AMOUNT_KEYS = ("valor_pendente", "pending_amount", "amount_pending")
PAID_FLAG_KEYS = ("pago", "paid", "supplier_paid", "pago_fornecedor")
PAID_DATE_KEYS = ("data_pagamento", "paid_date", "supplier_paid_date")

CLIENT_NAME_KEYS = ("cliente_nome", "cliente", "client_name", "client", "nome_cliente")

_DATE_NAME_RE = re.compile(r"(data|date|dia|venc|due)", re.IGNORECASE)
_AMOUNT_NAME_RE = re.compile(r"(total|valor|amount|soma|sum|qtd|count|quant)", re.IGNORECASE)
_NUMERIC_CODE_RE = re.compile(r"^-?\d+(?:[.,]\d+)?$")

UNKNOWN_SUPPLIER = "Fornecedor desconhecido"
UNKNOWN_PRODUCT = "Produto sem descrição"
UNKNOWN_CLIENT = "-"


# ---------- defensive field access ----------

def pick(row: dict, keys: Sequence[str]) -> Any:
    for key in keys:
        if key in row and row[key] is not None:
            return row[key]
    return None


def to_amount(value: Any) -> float:
    amount = parse_amount(value)
    return 0.0 if amount is None else amount


def to_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "t", "yes", "sim", "s", "pago")
    return bool(value)


def text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def sort_text(value: str) -> str:
    """Accent- and case-insensitive sort key (``Álvaro`` sorts with ``alvaro``)."""
    decomposed = unicodedata.normalize("NFKD", value or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


# ---------- monthly summary ----------

def map_monthly_rows(rows: Iterable[FeedRow]) -> list[MonthlySummaryRow]:
    out: list[tuple[int, int, MonthlySummaryRow]] = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            continue
        raw_period = pick(row, MONTH_KEYS)
        nd = normalize(raw_period, index)
        received = to_amount(pick(row, RECEIVED_KEYS))
        cost = to_amount(pick(row, ENTRY_COST_KEYS))
        raw_profit = pick(row, PROFIT_KEYS)
        profit = to_amount(raw_profit) if raw_profit is not None else received - cost
        out.append((nd.sort_key, index, MonthlySummaryRow(
            period_key=nd.canonical_key or text_or_none(raw_period),
            period_label=nd.display_label,
            sort_key=nd.sort_key,
            total_received=round(received, 2),
            total_entry_cost=round(cost, 2),
            profit=round(profit, 2),
        )))
    out.sort(key=lambda t: (t[0], t[1]))
    return [r for _, _, r in out]


def line_geometry(rows: Sequence[MonthlySummaryRow], width: int = 1100, height: int = 200,
                  pad_x: int = 40, pad_top: int = 40, pad_bottom: int = 30) -> list[LineSeries]:
    """Three series on one shared scale so the lines are comparable."""
    metrics = (
        ("received", lambda r: r.total_received),
        ("entry_cost", lambda r: r.total_entry_cost),
        ("profit", lambda r: r.profit),
    )
    if not rows:
        return [LineSeries(name=name, points=()) for name, _ in metrics]

    maxv = max([1.0] + [getter(r) for r in rows for _, getter in metrics])
    plot_h = height - pad_top - pad_bottom
    step = (width - 2 * pad_x) / max(len(rows) - 1, 1)
    series = []
    for name, getter in metrics:
        points = []
        for i, r in enumerate(rows):
            v = getter(r)
            x = pad_x + int(i * step)
            y = height - pad_bottom - int(v * plot_h / maxv)
            points.append(ChartPoint(x=x, y=y, value=v, label=r.period_label))
        series.append(LineSeries(name=name, points=tuple(points)))
    return series


# ---------- receivables calendar ----------

def resolve_date_column(row: dict) -> Optional[str]:
    for key in DATE_KEYS:
        if key in row and row[key] is not None:
            return key
    for key in row:
        if _DATE_NAME_RE.search(str(key)) and not _AMOUNT_NAME_RE.search(str(key)) and row[key] is not None:
            return key
    return None


def map_calendar_rows(rows: Iterable[FeedRow]) -> list[CalendarRow]:
    out: list[tuple[int, int, CalendarRow]] = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            continue
        column = resolve_date_column(row)
        nd = normalize(row.get(column) if column else None, index)
        out.append((nd.sort_key, index, CalendarRow(
            date_key=nd.canonical_key,
            date_label=nd.display_label,
            sort_key=nd.sort_key,
            total_forecast=round(to_amount(pick(row, FORECAST_KEYS)), 2),
            total_received=round(to_amount(pick(row, RECEIVED_KEYS)), 2),
        )))
    out.sort(key=lambda t: (t[0], t[1]))
    return [r for _, _, r in out]


def bar_geometry(rows: Sequence[CalendarRow], width: int = 560, height: int = 200,
                 pad_x: int = 24, pad_top: int = 40, pad_bottom: int = 30, gap: int = 8) -> list[Bar]:
    """Forecast and received bars drawn over each other against one shared maximum."""
    if not rows:
        return []
    maxv = max([1.0] + [max(r.total_forecast, r.total_received) for r in rows])
    plot_h = height - pad_top - pad_bottom
    bw = max(24, (width - 2 * pad_x) // len(rows))
    baseline = height - pad_bottom
    bars = []
    for i, r in enumerate(rows):
        x0 = pad_x + i * bw
        bars.append(Bar(
            label=r.date_label,
            x0=x0,
            x1=x0 + bw - gap,
            baseline=baseline,
            forecast_top=baseline - int(r.total_forecast * plot_h / maxv),
            received_top=baseline - int(r.total_received * plot_h / maxv),
        ))
    return bars


def map_calendar_details(rows: Iterable[FeedRow]) -> list[CalendarDetail]:
    """Unreceived installments first, then by client name."""
    details = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        name = text_or_none(pick(row, PRODUCT_NAME_KEYS)) or UNKNOWN_PRODUCT
        code = text_or_none(pick(row, PRODUCT_CODE_KEYS))
        number = int(to_amount(pick(row, ("number", "numero_parcela", "parcela"))))
        details.append(CalendarDetail(
            installment_id=pick(row, ("installment_id", "id", "parcela_id")),
            product_id=pick(row, ("product_id", "produto_id")),
            number=number,
            amount=round(to_amount(pick(row, ("amount", "valor_parcela", "valor"))), 2),
            due_date=str(pick(row, ("due_date", "data_vencimento", "data_recebimento")) or ""),
            received=to_flag(pick(row, ("received", "recebido"))),
            product_label=f"{code} - {name}" if code else name,
            client_name=text_or_none(pick(row, CLIENT_NAME_KEYS)) or UNKNOWN_CLIENT,
        ))
    details.sort(key=lambda d: (d.received, sort_text(d.client_name)))
    return details


# ---------- supplier ledger ----------

def _detail_list(value: Any) -> list[dict]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        return []
    return [d for d in value if isinstance(d, dict)]


def classify_product(detail: dict) -> SupplierProductDetail:
    """Explicit paid/pending amounts decide the bucket; the paid flag is the fallback."""
    name = text_or_none(pick(detail, PRODUCT_NAME_KEYS)) or UNKNOWN_PRODUCT
    code = text_or_none(pick(detail, PRODUCT_CODE_KEYS))
    cost = to_amount(pick(detail, PRODUCT_COST_KEYS))
    paid_amount = pick(detail, PAID_AMOUNT_KEYS)
    pending_amount = pick(detail, PENDING_AMOUNT_KEYS)

    if paid_amount is not None:
        paid = to_amount(paid_amount) > 0
    elif pending_amount is not None:
        paid = to_amount(pending_amount) <= 0
    else:
        paid = to_flag(pick(detail, PAID_FLAG_KEYS))
    if not cost:
        cost = to_amount(paid_amount if paid else pending_amount)

    return SupplierProductDetail(
        product_label=f"{code} - {name}" if code else name,
        entry_cost=round(cost, 2),
        paid=paid,
        paid_date=text_or_none(pick(detail, PAID_DATE_KEYS)),
        bucket="paid" if paid else "pending",
    )


def _code_sort_key(row: SupplierLedgerRow) -> tuple:
    code = (row.code or "").strip()
    if _NUMERIC_CODE_RE.match(code):
        return (0, float(code.replace(",", ".")), "", sort_text(row.supplier_label))
    if code:
        return (1, 0.0, sort_text(code), sort_text(row.supplier_label))
    return (2, 0.0, "", sort_text(row.supplier_label))


def map_supplier_rows(rows: Iterable[FeedRow]) -> list[SupplierLedgerRow]:
    groups: dict[str, dict] = {}
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            continue
        code = text_or_none(pick(row, SUPPLIER_CODE_KEYS))
        name = text_or_none(pick(row, SUPPLIER_NAME_KEYS))
        supplier_id = pick(row, SUPPLIER_ID_KEYS)
        if supplier_id is not None:
            key = str(supplier_id)
        elif code or name:
            key = f"{code}|{name}"
        else:
            key = f"#{index}"

        group = groups.setdefault(key, {"code": code, "name": name, "details": [], "paid": 0.0, "pending": 0.0})
        group["code"] = group["code"] or code
        group["name"] = group["name"] or name
        details = [classify_product(d) for d in _detail_list(pick(row, DETAIL_KEYS))]
        if details:
            group["details"].extend(details)
        else:
            group["paid"] += to_amount(pick(row, ROW_PAID_KEYS))
            group["pending"] += to_amount(pick(row, ROW_PENDING_KEYS))

    out = []
    for group in groups.values():
        details = group["details"]
        sum_paid = group["paid"] + sum(d.entry_cost for d in details if d.bucket == "paid")
        sum_pending = group["pending"] + sum(d.entry_cost for d in details if d.bucket == "pending")
        name = group["name"] or UNKNOWN_SUPPLIER
        code = group["code"]
        out.append(SupplierLedgerRow(
            supplier_label=f"{code} - {name}" if code else name,
            code=code,
            sum_paid=round(sum_paid, 2),
            sum_pending=round(sum_pending, 2),
            product_detail=tuple(details),
        ))
    out.sort(key=_code_sort_key)
    return out
