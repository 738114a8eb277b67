from __future__ import annotations

import logging
from typing import Optional

from rrm.domain.amounts import parse_amount
from rrm.domain.dates import normalize
from rrm.domain.errors import NotFoundError, ValidationError
from rrm.domain.models import Client, Product, RecordId, Supplier
from rrm.services.events import InvalidationBus, LedgerEvent

log = logging.getLogger("rrm.ledger")


class CatalogService:
    def __init__(self, store, bus: Optional[InvalidationBus] = None):
        self.store = store
        self.bus = bus

    def _publish(self, *events: LedgerEvent) -> None:
        if self.bus is None:
            return
        for event in events:
            self.bus.publish(event)

    def list_suppliers(self) -> list[Supplier]:
        return self.store.list_suppliers()

    def add_supplier(self, name: str, code: Optional[str] = None, tax_id: Optional[str] = None,
                     phone: Optional[str] = None, email: Optional[str] = None) -> RecordId:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Supplier name is required.", field="name")
        code = (code or "").strip() or None
        return self.store.add_supplier(name, code, tax_id, phone, email)

    def list_clients(self) -> list[Client]:
        return self.store.list_clients()

    def add_client(self, name: str, tax_id: Optional[str] = None, phone: Optional[str] = None,
                   email: Optional[str] = None) -> RecordId:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Client name is required.", field="name")
        return self.store.add_client(name, tax_id, phone, email)

    def add_product(self, supplier_id: RecordId, description: str, entry_cost: float, entry_date: str,
                    code: Optional[str] = None) -> RecordId:
        description = (description or "").strip()
        if not description:
            raise ValidationError("Description is required.", field="description")
        cost = parse_amount(entry_cost)
        if cost is None:
            raise ValidationError("Entry cost must be a number.", field="entry_cost")
        if cost <= 0:
            raise ValidationError("Entry cost must be > 0.", field="entry_cost")
        entry_key = normalize(entry_date, 0).canonical_key if entry_date else None
        if entry_key is None:
            raise ValidationError(f"Invalid entry date: {entry_date}", field="entry_date")
        if self.store.get_supplier(supplier_id) is None:
            raise NotFoundError("Supplier not found.")

        product_id = self.store.add_product(supplier_id, description, round(cost, 2), entry_key,
                                            (code or "").strip() or None)
        log.info("product_added product_id=%s supplier_id=%s cost=%.2f", product_id, supplier_id, cost)
        # A new unpaid product raises the supplier's pending balance.
        self._publish(LedgerEvent.SUPPLIER_PAYMENT_CHANGED)
        return product_id

    def unsold_products(self, supplier_id: RecordId) -> list[Product]:
        return self.store.list_products(supplier_id=supplier_id, sold=False)

    def delete_product(self, product_id: RecordId) -> None:
        product = self.store.get_product(product_id)
        if not product:
            raise NotFoundError("Product not found.")
        if not self.store.delete_product(product_id):
            raise NotFoundError("Product not found.")
        log.info("product_deleted product_id=%s sold=%s", product_id, product.sold)
        events = [LedgerEvent.SUPPLIER_PAYMENT_CHANGED]
        if product.sold:
            events.append(LedgerEvent.SALE_CHANGED)
        self._publish(*events)
