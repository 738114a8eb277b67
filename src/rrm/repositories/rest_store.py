from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import requests

from rrm.domain.errors import StoreError
from rrm.domain.models import Client, Installment, NewInstallment, Product, RecordId, Supplier, SupplierPayment
from rrm.repositories.contracts import FeedRow

log = logging.getLogger("rrm.store")


class RestStore:
    """PostgREST-style remote store (tables and read-only views under ``/rest/v1``).

    Every call is an independent HTTP statement. There is no way to group a
    delete and an insert into one transaction, so ``supports_transactions`` is
    False and the ledger service runs the replacement as two calls.
    """

    supports_transactions = False

    MONTHLY_VIEW = "vw_monthly_summary"
    RECEIVABLES_VIEW = "vw_receivables_calendar"
    SUPPLIER_VIEW = "vw_supplier_payments"

    def __init__(self, base_url: str, api_key: str, timeout: float = 10, session: Any = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def close(self) -> None:
        self.session.close()

    def _request(self, method: str, path: str, params: Optional[dict] = None, json: Any = None,
                 returning: bool = False) -> Any:
        headers = dict(self.headers)
        if returning:
            headers["Prefer"] = "return=representation"
        url = f"{self.base_url}/rest/v1/{path}"
        try:
            r = self.session.request(method, url, params=params, json=json, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            log.error("store_request_failed method=%s path=%s error=%s", method, path, e)
            raise StoreError(str(e)) from e

        if not r.ok:
            message = self._error_message(r)
            log.error("store_rejected method=%s path=%s status=%s message=%s", method, path, r.status_code, message)
            raise StoreError(message)

        if not r.content:
            return []
        try:
            return r.json()
        except ValueError as e:
            raise StoreError(f"Invalid JSON from store: {e}") from e

    @staticmethod
    def _error_message(r) -> str:
        try:
            data = r.json()
        except ValueError:
            return r.text or f"HTTP {r.status_code}"
        if isinstance(data, dict):
            return str(data.get("message") or data.get("error") or data)
        return str(data)

    # ---------- Suppliers ----------
    def add_supplier(self, name: str, code: Optional[str] = None, tax_id: Optional[str] = None,
                     phone: Optional[str] = None, email: Optional[str] = None) -> RecordId:
        rows = self._request(
            "POST", "suppliers", returning=True,
            json={"name": name, "code": code, "tax_id": tax_id, "phone": phone, "email": email},
        )
        return rows[0]["id"]

    def list_suppliers(self) -> list[Supplier]:
        rows = self._request("GET", "suppliers", params={"select": "*", "order": "name.asc"})
        return [self._supplier(r) for r in rows]

    def get_supplier(self, supplier_id: RecordId) -> Optional[Supplier]:
        rows = self._request("GET", "suppliers", params={"select": "*", "id": f"eq.{supplier_id}"})
        return self._supplier(rows[0]) if rows else None

    @staticmethod
    def _supplier(r: dict) -> Supplier:
        return Supplier(id=r["id"], name=r["name"], code=r.get("code"), tax_id=r.get("tax_id"),
                        phone=r.get("phone"), email=r.get("email"))

    # ---------- Clients ----------
    def add_client(self, name: str, tax_id: Optional[str] = None, phone: Optional[str] = None,
                   email: Optional[str] = None) -> RecordId:
        rows = self._request(
            "POST", "clients", returning=True,
            json={"name": name, "tax_id": tax_id, "phone": phone, "email": email},
        )
        return rows[0]["id"]

    def list_clients(self) -> list[Client]:
        rows = self._request("GET", "clients", params={"select": "*", "order": "name.asc"})
        return [self._client(r) for r in rows]

    def get_client(self, client_id: RecordId) -> Optional[Client]:
        rows = self._request("GET", "clients", params={"select": "*", "id": f"eq.{client_id}"})
        return self._client(rows[0]) if rows else None

    @staticmethod
    def _client(r: dict) -> Client:
        return Client(id=r["id"], name=r["name"], tax_id=r.get("tax_id"), phone=r.get("phone"), email=r.get("email"))

    # ---------- Products ----------
    @staticmethod
    def _product(r: dict) -> Product:
        sale_price = r.get("sale_price")
        count = r.get("installment_count")
        return Product(
            id=r["id"],
            supplier_id=r["supplier_id"],
            description=str(r["description"]),
            entry_cost=float(r["entry_cost"]),
            entry_date=str(r["entry_date"]),
            code=r.get("code"),
            sold=bool(r.get("sold")),
            client_id=r.get("client_id"),
            sale_price=float(sale_price) if sale_price is not None else None,
            sale_date=r.get("sale_date"),
            installment_count=int(count) if count is not None else None,
            supplier_payment=SupplierPayment(
                paid=bool(r.get("supplier_paid")),
                paid_date=r.get("supplier_paid_date"),
            ),
        )

    def add_product(self, supplier_id: RecordId, description: str, entry_cost: float, entry_date: str,
                    code: Optional[str] = None) -> RecordId:
        rows = self._request(
            "POST", "products", returning=True,
            json={
                "supplier_id": supplier_id,
                "description": description,
                "entry_cost": float(entry_cost),
                "entry_date": entry_date,
                "code": code,
                "sold": False,
            },
        )
        return rows[0]["id"]

    def get_product(self, product_id: RecordId) -> Optional[Product]:
        rows = self._request("GET", "products", params={"select": "*", "id": f"eq.{product_id}"})
        return self._product(rows[0]) if rows else None

    def list_products(self, supplier_id: Optional[RecordId] = None, sold: Optional[bool] = None) -> list[Product]:
        params = {"select": "*", "order": "entry_date.desc"}
        if supplier_id is not None:
            params["supplier_id"] = f"eq.{supplier_id}"
        if sold is not None:
            params["sold"] = f"eq.{'true' if sold else 'false'}"
        return [self._product(r) for r in self._request("GET", "products", params=params)]

    def list_sold_products_between(self, start_iso: str, end_iso: str) -> list[Product]:
        # A repeated column filter needs a list of tuples for requests to keep both values.
        params = [
            ("select", "*"),
            ("sold", "eq.true"),
            ("sale_date", f"gte.{start_iso}"),
            ("sale_date", f"lt.{end_iso}"),
            ("order", "sale_date.desc"),
        ]
        return [self._product(r) for r in self._request("GET", "products", params=params)]

    def mark_product_sold(self, product_id: RecordId, client_id: RecordId, sale_price: float, sale_date: str,
                          installment_count: int) -> bool:
        rows = self._request(
            "PATCH", "products", params={"id": f"eq.{product_id}"}, returning=True,
            json={
                "sold": True,
                "client_id": client_id,
                "sale_price": float(sale_price),
                "sale_date": sale_date,
                "installment_count": int(installment_count),
            },
        )
        return bool(rows)

    def set_supplier_payment(self, product_id: RecordId, paid: bool, paid_date: Optional[str]) -> bool:
        rows = self._request(
            "PATCH", "products", params={"id": f"eq.{product_id}"}, returning=True,
            json={"supplier_paid": bool(paid), "supplier_paid_date": paid_date},
        )
        return bool(rows)

    def delete_product(self, product_id: RecordId) -> bool:
        rows = self._request("DELETE", "products", params={"id": f"eq.{product_id}"}, returning=True)
        return bool(rows)

    # ---------- Installments ----------
    def list_installments(self, product_id: RecordId) -> list[Installment]:
        rows = self._request(
            "GET", "installments",
            params={"select": "*", "product_id": f"eq.{product_id}", "order": "number.asc"},
        )
        return [
            Installment(
                id=r["id"],
                product_id=r["product_id"],
                client_id=r["client_id"],
                supplier_id=r["supplier_id"],
                number=int(r["number"]),
                amount=float(r["amount"]),
                due_date=str(r["due_date"]),
                received=bool(r.get("received")),
            )
            for r in rows
        ]

    def delete_installments_for_product(self, product_id: RecordId) -> int:
        rows = self._request("DELETE", "installments", params={"product_id": f"eq.{product_id}"}, returning=True)
        return len(rows)

    def insert_installments(self, product_id: RecordId, client_id: RecordId,
                            installments: Iterable[NewInstallment]) -> list[RecordId]:
        product = self.get_product(product_id)
        if product is None:
            raise StoreError(f"Product not found: {product_id}")
        payload = [
            {
                "product_id": product_id,
                "client_id": client_id,
                "supplier_id": product.supplier_id,
                "number": int(it.number),
                "amount": float(it.amount),
                "due_date": it.due_date,
                "received": bool(it.received),
            }
            for it in installments
        ]
        if not payload:
            return []
        rows = self._request("POST", "installments", json=payload, returning=True)
        return [r["id"] for r in rows]

    def set_installment_received(self, installment_id: RecordId, received: bool) -> bool:
        rows = self._request(
            "PATCH", "installments", params={"id": f"eq.{installment_id}"}, returning=True,
            json={"received": bool(received)},
        )
        return bool(rows)

    # ---------- Aggregate feeds ----------
    def monthly_summary_feed(self) -> list[FeedRow]:
        return list(self._request("GET", self.MONTHLY_VIEW, params={"select": "*"}))

    def receivables_feed(self) -> list[FeedRow]:
        return list(self._request("GET", self.RECEIVABLES_VIEW, params={"select": "*"}))

    def supplier_payment_feed(self) -> list[FeedRow]:
        return list(self._request("GET", self.SUPPLIER_VIEW, params={"select": "*"}))

    def installments_due_on(self, date_key: str) -> list[FeedRow]:
        rows = self._request(
            "GET", "installments",
            params={
                "select": "id,product_id,number,amount,due_date,received,products(description,code),clients(name)",
                "due_date": f"eq.{date_key}",
            },
        )
        out: list[FeedRow] = []
        for r in rows:
            product = r.get("products") or {}
            client = r.get("clients") or {}
            out.append({
                "installment_id": r.get("id"),
                "product_id": r.get("product_id"),
                "number": r.get("number"),
                "amount": r.get("amount"),
                "due_date": r.get("due_date"),
                "received": r.get("received"),
                "produto": product.get("description"),
                "cod_produto": product.get("code"),
                "cliente_nome": client.get("name"),
            })
        return out
