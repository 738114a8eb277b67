"""Money values as they are typed in the shop: ``150``, ``80,50``, ``R$ 1.234,56``."""
from __future__ import annotations

import math
import re
from typing import Any, Optional

# "1.234" or "12.345.678": dots grouping thousands, no decimal part
_THOUSANDS_RE = re.compile(r"^-?\d{1,3}(?:\.\d{3})+$")


def parse_amount(value: Any) -> Optional[float]:
    """Return the amount as a finite float, or None when it cannot be read."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip().replace("R$", "").replace(" ", "")
        if "," in text:
            text = text.replace(".", "").replace(",", ".")
        elif _THOUSANDS_RE.match(text):
            text = text.replace(".", "")
        value = text
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    return amount if math.isfinite(amount) else None
