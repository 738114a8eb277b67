from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Union

from rrm.domain.errors import StoreError, ValidationError
from rrm.domain.models import Bar, CalendarDetail, CalendarRow, LineSeries
from rrm.repositories.contracts import AggregateFeeds, FeedRow
from rrm.services.events import InvalidationBus, LedgerEvent
from rrm.services.view_mapping import (
    bar_geometry,
    line_geometry,
    map_calendar_details,
    map_calendar_rows,
    map_monthly_rows,
    map_supplier_rows,
)

log = logging.getLogger("rrm.views")


class View(str, Enum):
    MONTHLY_SUMMARY = "monthly_summary"
    RECEIVABLES_CALENDAR = "receivables_calendar"
    SUPPLIER_LEDGER = "supplier_ledger"


# Which views go stale after which write.
REFRESH_MATRIX: dict[LedgerEvent, tuple[View, ...]] = {
    LedgerEvent.INSTALLMENTS_CHANGED: (View.RECEIVABLES_CALENDAR, View.MONTHLY_SUMMARY),
    LedgerEvent.SALE_CHANGED: (View.RECEIVABLES_CALENDAR, View.MONTHLY_SUMMARY),
    LedgerEvent.SUPPLIER_PAYMENT_CHANGED: (View.SUPPLIER_LEDGER,),
}


class ViewReconciler:
    """Keeps the three derived views in line with the store.

    A refresh always re-reads the whole feed. Every request for a view gets a
    sequence number, and a response older than the last one applied to that
    view is dropped, so a slow stale read never overwrites a fresher one.
    A failed read keeps the previous series and records the store's message.
    """

    def __init__(self, feeds: AggregateFeeds, bus: Optional[InvalidationBus] = None):
        self.feeds = feeds
        self._lock = threading.Lock()
        self._fetchers: dict[View, tuple[Callable[[], list[FeedRow]], Callable]] = {
            View.MONTHLY_SUMMARY: (feeds.monthly_summary_feed, map_monthly_rows),
            View.RECEIVABLES_CALENDAR: (feeds.receivables_feed, map_calendar_rows),
            View.SUPPLIER_LEDGER: (feeds.supplier_payment_feed, map_supplier_rows),
        }
        self._issued = {view: 0 for view in View}
        self._applied = {view: 0 for view in View}
        self._series: dict[View, list] = {view: [] for view in View}
        self._errors: dict[View, Optional[str]] = {view: None for view in View}
        if bus is not None:
            self.attach(bus)

    def attach(self, bus: InvalidationBus) -> None:
        for event in REFRESH_MATRIX:
            bus.subscribe(event, self._on_event)

    def _on_event(self, event: LedgerEvent) -> None:
        for view in REFRESH_MATRIX[LedgerEvent(event)]:
            self.refresh(view)

    def refresh(self, view: Union[View, str]) -> bool:
        view = View(view)
        with self._lock:
            self._issued[view] += 1
            token = self._issued[view]

        fetch, mapper = self._fetchers[view]
        try:
            rows = fetch()
        except StoreError as e:
            with self._lock:
                if token > self._applied[view]:
                    self._errors[view] = str(e)
            log.warning("view_refresh_failed view=%s token=%s error=%s", view.value, token, e)
            return False

        series = mapper(rows or [])
        with self._lock:
            if token <= self._applied[view]:
                log.info(
                    "view_response_discarded view=%s token=%s applied=%s",
                    view.value, token, self._applied[view],
                )
                return False
            self._applied[view] = token
            self._series[view] = series
            self._errors[view] = None
        log.info("view_refreshed view=%s token=%s rows=%s", view.value, token, len(series))
        return True

    def refresh_all(self) -> dict[View, bool]:
        return {view: self.refresh(view) for view in View}

    def series(self, view: Union[View, str]) -> list:
        with self._lock:
            return list(self._series[View(view)])

    def last_error(self, view: Union[View, str]) -> Optional[str]:
        with self._lock:
            return self._errors[View(view)]

    def monthly_summary(self):
        return self.series(View.MONTHLY_SUMMARY)

    def receivables_calendar(self):
        return self.series(View.RECEIVABLES_CALENDAR)

    def supplier_ledger(self):
        return self.series(View.SUPPLIER_LEDGER)

    def monthly_chart(self, width: int = 1100, height: int = 200) -> list[LineSeries]:
        return line_geometry(self.monthly_summary(), width=width, height=height)

    def calendar_chart(self, width: int = 560, height: int = 200) -> list[Bar]:
        return bar_geometry(self.receivables_calendar(), width=width, height=height)

    def calendar_details(self, selection: Union[CalendarRow, str, None]) -> list[CalendarDetail]:
        """Installments due on the selected day, queried by canonical key."""
        date_key = selection.date_key if isinstance(selection, CalendarRow) else selection
        if not date_key:
            raise ValidationError("This calendar entry has no exact date to look up.", field="date_key")
        return map_calendar_details(self.feeds.installments_due_on(date_key))
