from .events import InvalidationBus, LedgerEvent
from .catalog_service import CatalogService
from .ledger_service import LedgerService
from .reconciler import REFRESH_MATRIX, View, ViewReconciler
from .reporting_service import ReportingService

__all__ = [
    "InvalidationBus",
    "LedgerEvent",
    "CatalogService",
    "LedgerService",
    "REFRESH_MATRIX",
    "View",
    "ViewReconciler",
    "ReportingService",
]
