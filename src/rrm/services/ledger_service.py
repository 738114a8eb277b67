from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from rrm.domain.dates import normalize
from rrm.domain.errors import NotFoundError, PartialWriteError, StoreError, ValidationError
from rrm.domain.models import RecordId
from rrm.repositories.contracts import LedgerStore
from rrm.services.events import InvalidationBus, LedgerEvent
from rrm.services.plan_builder import InstallmentSlot, SaleDraft, validate_sale

log = logging.getLogger("rrm.ledger")


class LedgerService:
    """Writes that change receivables or supplier balances.

    Every successful write publishes one invalidation event; failed writes
    publish nothing and re-raise, so the views keep what they last showed.
    """

    def __init__(self, store: LedgerStore, bus: InvalidationBus):
        self.store = store
        self.bus = bus

    def register_or_replace_sale(
        self,
        product_id: RecordId,
        client_id: RecordId,
        sale_price,
        sale_date: str,
        installments: Iterable[InstallmentSlot],
    ) -> list[RecordId]:
        sale = validate_sale(SaleDraft(
            product_id=product_id,
            client_id=client_id,
            sale_price=sale_price,
            sale_date=sale_date,
            slots=list(installments),
        ))

        product = self.store.get_product(sale.product_id)
        if product is None:
            raise NotFoundError("Product not found.")

        updated = self.store.mark_product_sold(
            sale.product_id, sale.client_id, sale.sale_price, sale.sale_date, len(sale.installments)
        )
        if not updated:
            raise NotFoundError("Product not found.")

        # The product row is already committed as sold, so any failure from here on is partial.
        if self.store.supports_transactions:
            try:
                ids = self.store.replace_installments(sale.product_id, sale.client_id, sale.installments)
            except StoreError as e:
                raise self._partial_write(sale.product_id, "replace_installments", e) from e
        else:
            ids = self._replace_in_two_steps(sale.product_id, sale.client_id, sale.installments)

        log.info(
            "sale_registered product_id=%s client_id=%s price=%.2f installments=%s",
            sale.product_id, sale.client_id, sale.sale_price, len(ids),
        )
        self.bus.publish(LedgerEvent.SALE_CHANGED)
        return ids

    def _replace_in_two_steps(self, product_id: RecordId, client_id: RecordId, installments) -> list[RecordId]:
        try:
            self.store.delete_installments_for_product(product_id)
        except StoreError as e:
            raise self._partial_write(product_id, "delete_installments", e) from e
        try:
            return self.store.insert_installments(product_id, client_id, installments)
        except StoreError as e:
            raise self._partial_write(product_id, "insert_installments", e) from e

    @staticmethod
    def _partial_write(product_id: RecordId, step: str, error: StoreError) -> PartialWriteError:
        log.error("sale_partial_write product_id=%s step=%s error=%s", product_id, step, error)
        return PartialWriteError(
            f"Sale saved but installments were not updated for product {product_id} ({step}): {error}",
            product_id=product_id,
            step=step,
        )

    def register_sale_for_new_client(
        self,
        product_id: RecordId,
        client_name: str,
        sale_price,
        sale_date: str,
        installments: Iterable[InstallmentSlot],
        client_tax_id: Optional[str] = None,
        client_phone: Optional[str] = None,
        client_email: Optional[str] = None,
    ) -> RecordId:
        name = (client_name or "").strip()
        if not name:
            raise ValidationError("Client name is required.", field="client_name")
        slots = list(installments)
        # Check the form before creating the client so a bad draft leaves no orphan client.
        validate_sale(SaleDraft(product_id, None, sale_price, sale_date, slots), require_client=False)
        client_id = self.store.add_client(name, client_tax_id, client_phone, client_email)
        self.register_or_replace_sale(product_id, client_id, sale_price, sale_date, slots)
        return client_id

    def toggle_installment_received(self, installment_id: RecordId, received: bool) -> None:
        if not self.store.set_installment_received(installment_id, bool(received)):
            raise NotFoundError("Installment not found.")
        log.info("installment_received installment_id=%s received=%s", installment_id, bool(received))
        self.bus.publish(LedgerEvent.INSTALLMENTS_CHANGED)

    def toggle_supplier_payment(self, product_id: RecordId, paid: bool, paid_date: Optional[str] = None) -> None:
        if paid and paid_date:
            paid_date = normalize(paid_date, 0).canonical_key
            if paid_date is None:
                raise ValidationError("Invalid payment date.", field="paid_date")
        elif paid:
            paid_date = date.today().isoformat()
        else:
            paid_date = None
        if not self.store.set_supplier_payment(product_id, bool(paid), paid_date):
            raise NotFoundError("Product not found.")
        log.info("supplier_payment product_id=%s paid=%s paid_date=%s", product_id, bool(paid), paid_date)
        self.bus.publish(LedgerEvent.SUPPLIER_PAYMENT_CHANGED)
