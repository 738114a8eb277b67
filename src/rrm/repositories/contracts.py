from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol

from rrm.domain.models import Client, Installment, NewInstallment, Product, RecordId, Supplier

# Aggregate feeds hand back loosely-typed rows; strict records are built by the reconciler.
FeedRow = dict[str, Any]


class SupplierRepository(Protocol):
    def add_supplier(self, name: str, code: Optional[str] = None, tax_id: Optional[str] = None,
                     phone: Optional[str] = None, email: Optional[str] = None) -> RecordId: ...
    def list_suppliers(self) -> list[Supplier]: ...
    def get_supplier(self, supplier_id: RecordId) -> Optional[Supplier]: ...


class ClientRepository(Protocol):
    def add_client(self, name: str, tax_id: Optional[str] = None, phone: Optional[str] = None,
                   email: Optional[str] = None) -> RecordId: ...
    def list_clients(self) -> list[Client]: ...
    def get_client(self, client_id: RecordId) -> Optional[Client]: ...


class ProductRepository(Protocol):
    def add_product(self, supplier_id: RecordId, description: str, entry_cost: float, entry_date: str,
                    code: Optional[str] = None) -> RecordId: ...
    def get_product(self, product_id: RecordId) -> Optional[Product]: ...
    def list_products(self, supplier_id: Optional[RecordId] = None, sold: Optional[bool] = None) -> list[Product]: ...
    def list_sold_products_between(self, start_iso: str, end_iso: str) -> list[Product]: ...
    def mark_product_sold(self, product_id: RecordId, client_id: RecordId, sale_price: float, sale_date: str,
                          installment_count: int) -> bool: ...
    def set_supplier_payment(self, product_id: RecordId, paid: bool, paid_date: Optional[str]) -> bool: ...
    def delete_product(self, product_id: RecordId) -> bool: ...


class InstallmentRepository(Protocol):
    supports_transactions: bool

    def list_installments(self, product_id: RecordId) -> list[Installment]: ...
    def delete_installments_for_product(self, product_id: RecordId) -> int: ...
    def insert_installments(self, product_id: RecordId, client_id: RecordId,
                            installments: Iterable[NewInstallment]) -> list[RecordId]: ...
    def set_installment_received(self, installment_id: RecordId, received: bool) -> bool: ...


class TransactionalInstallmentRepository(InstallmentRepository, Protocol):
    """Stores with supports_transactions = True also replace a plan in one transaction."""

    def replace_installments(self, product_id: RecordId, client_id: RecordId,
                             installments: Iterable[NewInstallment]) -> list[RecordId]: ...


class AggregateFeeds(Protocol):
    def monthly_summary_feed(self) -> list[FeedRow]: ...
    def receivables_feed(self) -> list[FeedRow]: ...
    def supplier_payment_feed(self) -> list[FeedRow]: ...
    def installments_due_on(self, date_key: str) -> list[FeedRow]: ...


class LedgerStore(SupplierRepository, ClientRepository, ProductRepository, InstallmentRepository,
                  AggregateFeeds, Protocol):
    def close(self) -> None: ...
