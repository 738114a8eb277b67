from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Callable

log = logging.getLogger(__name__)


class LedgerEvent(str, Enum):
    INSTALLMENTS_CHANGED = "installmentsChanged"
    SUPPLIER_PAYMENT_CHANGED = "supplierPaymentChanged"
    SALE_CHANGED = "saleChanged"


Handler = Callable[[LedgerEvent], None]


class InvalidationBus:
    """Synchronous fan-out of ledger events to the views that depend on them."""

    def __init__(self):
        self._handlers: dict[LedgerEvent, list[Handler]] = defaultdict(list)

    def subscribe(self, event: LedgerEvent, handler: Handler) -> None:
        self._handlers[LedgerEvent(event)].append(handler)

    def publish(self, event: LedgerEvent) -> None:
        event = LedgerEvent(event)
        handlers = list(self._handlers.get(event, ()))
        log.info("event_published event=%s handlers=%s", event.value, len(handlers))
        for handler in handlers:
            handler(event)
