"""Normalization of the date-like values found in aggregate feed rows.

Feeds disagree on how they spell dates: a bare month number, an ISO date
(sometimes with a time part), a Brazilian ``DD/MM/YYYY`` string, a ``DD/MM``
string without year, or free text. ``normalize`` maps all of them onto a
``NormalizedDate`` whose ``sort_key`` orders chronologically within a feed.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser

from rrm.domain.models import NormalizedDate

MONTH_NAMES = (
    "Janeiro",
    "Fevereiro",
    "Março",
    "Abril",
    "Maio",
    "Junho",
    "Julho",
    "Agosto",
    "Setembro",
    "Outubro",
    "Novembro",
    "Dezembro",
)

_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")
_BR_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_BR_SHORT_RE = re.compile(r"^(\d{2})/(\d{2})$")


def _as_month(raw: object) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        if not raw.is_integer():
            return None
        value = int(raw)
    elif isinstance(raw, str) and raw.strip().isdigit():
        value = int(raw.strip())
    else:
        return None
    return value if 1 <= value <= 12 else None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _canonical(d: date) -> NormalizedDate:
    return NormalizedDate(
        sort_key=d.year * 10000 + d.month * 100 + d.day,
        display_label=d.strftime("%d/%m/%Y"),
        canonical_key=d.isoformat(),
    )


def _parse_generic(text: str) -> Optional[datetime]:
    if not text or text.isdigit():
        return None
    try:
        return date_parser.parse(text, dayfirst=True, default=datetime(2000, 1, 1))
    except (ValueError, OverflowError, TypeError):
        return None


def normalize(raw: object, fallback_index: int, today: Optional[date] = None) -> NormalizedDate:
    month = _as_month(raw)
    if month is not None:
        return NormalizedDate(sort_key=month, display_label=MONTH_NAMES[month - 1])

    if isinstance(raw, datetime):
        return _canonical(raw.date())
    if isinstance(raw, date):
        return _canonical(raw)

    text = raw.strip() if isinstance(raw, str) else ""

    m = _ISO_RE.match(text)
    if m:
        d = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if d:
            return _canonical(d)

    m = _BR_RE.match(text)
    if m:
        d = _safe_date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
        if d:
            return _canonical(d)

    m = _BR_SHORT_RE.match(text)
    if m:
        year = (today or date.today()).year
        day, month_num = int(m.group(1)), int(m.group(2))
        # 2000 is a leap year, so 29/02 is accepted whatever the current year
        if _safe_date(2000, month_num, day):
            return NormalizedDate(
                sort_key=year * 10000 + month_num * 100 + day,
                display_label=f"{text}/{year}",
            )

    parsed = _parse_generic(text)
    if parsed is not None:
        return NormalizedDate(
            sort_key=parsed.year * 100 + parsed.month,
            display_label=f"{MONTH_NAMES[parsed.month - 1]}/{parsed.year}",
        )

    return NormalizedDate(sort_key=fallback_index, display_label=str(raw))
