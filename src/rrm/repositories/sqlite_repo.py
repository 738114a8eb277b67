from __future__ import annotations

import logging
import shutil
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from rrm.domain.errors import StoreError
from rrm.domain.models import Client, Installment, NewInstallment, Product, Supplier, SupplierPayment
from rrm.repositories.contracts import FeedRow

log = logging.getLogger("rrm.store")

_PRODUCT_COLUMNS = """
    id, supplier_id, description, entry_cost, entry_date, code, sold, client_id,
    sale_price, sale_date, installment_count, supplier_paid, supplier_paid_date
"""


class SqliteRepository:
    supports_transactions = True

    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def _tx(self) -> Iterator[sqlite3.Cursor]:
        conn = self._conn()
        conn.row_factory = sqlite3.Row
        cur = conn.cursor()
        try:
            yield cur
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            log.error("store_error db=%s error=%s", self.db_path, exc)
            raise StoreError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def close(self) -> None:
        """Connections are opened per call, so there is nothing held open."""
        return None

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_base),
                (2, self._migration_v2_supplier_payment),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_base(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS suppliers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            code TEXT,
            name TEXT NOT NULL,
            tax_id TEXT,
            phone TEXT,
            email TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS clients (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            tax_id TEXT,
            phone TEXT,
            email TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            supplier_id INTEGER NOT NULL,
            code TEXT,
            description TEXT NOT NULL,
            entry_cost REAL NOT NULL CHECK(entry_cost > 0),
            entry_date TEXT NOT NULL,
            sold INTEGER NOT NULL DEFAULT 0 CHECK(sold IN (0,1)),
            client_id INTEGER,
            sale_price REAL,
            sale_date TEXT,
            installment_count INTEGER,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY(supplier_id) REFERENCES suppliers(id),
            FOREIGN KEY(client_id) REFERENCES clients(id),
            CHECK(
                (sold = 0 AND client_id IS NULL AND sale_price IS NULL
                    AND sale_date IS NULL AND installment_count IS NULL)
                OR
                (sold = 1 AND client_id IS NOT NULL AND sale_price IS NOT NULL
                    AND sale_date IS NOT NULL AND installment_count >= 1)
            )
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS installments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            product_id INTEGER NOT NULL,
            client_id INTEGER NOT NULL,
            supplier_id INTEGER NOT NULL,
            number INTEGER NOT NULL CHECK(number >= 1),
            amount REAL NOT NULL CHECK(amount > 0),
            due_date TEXT NOT NULL,
            received INTEGER NOT NULL DEFAULT 0 CHECK(received IN (0,1)),
            FOREIGN KEY(product_id) REFERENCES products(id) ON DELETE CASCADE,
            FOREIGN KEY(client_id) REFERENCES clients(id),
            FOREIGN KEY(supplier_id) REFERENCES suppliers(id),
            UNIQUE(product_id, number)
        )
        """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_installments_due_date ON installments(due_date)")

    def _migration_v2_supplier_payment(self, cur: sqlite3.Cursor) -> None:
        self._add_column_if_missing(cur, "products", "supplier_paid", "INTEGER NOT NULL DEFAULT 0")
        self._add_column_if_missing(cur, "products", "supplier_paid_date", "TEXT")

    def _add_column_if_missing(self, cur: sqlite3.Cursor, table: str, column: str, definition: str) -> None:
        cur.execute(f"PRAGMA table_info({table})")
        cols = {str(r[1]) for r in cur.fetchall()}
        if column in cols:
            return
        cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")

    # ---------- Suppliers ----------
    def add_supplier(self, name: str, code: Optional[str] = None, tax_id: Optional[str] = None,
                     phone: Optional[str] = None, email: Optional[str] = None) -> int:
        with self._tx() as cur:
            cur.execute(
                """
                INSERT INTO suppliers (name, code, tax_id, phone, email)
                VALUES (?, ?, ?, ?, ?)
                """,
                (name, code, tax_id, phone, email),
            )
            return int(cur.lastrowid)

    def list_suppliers(self) -> list[Supplier]:
        with self._tx() as cur:
            cur.execute("SELECT id, name, code, tax_id, phone, email FROM suppliers ORDER BY name")
            rows = cur.fetchall()
        return [Supplier(*tuple(r)) for r in rows]

    def get_supplier(self, supplier_id: int) -> Optional[Supplier]:
        with self._tx() as cur:
            cur.execute("SELECT id, name, code, tax_id, phone, email FROM suppliers WHERE id=?", (int(supplier_id),))
            r = cur.fetchone()
        return Supplier(*tuple(r)) if r else None

    # ---------- Clients ----------
    def add_client(self, name: str, tax_id: Optional[str] = None, phone: Optional[str] = None,
                   email: Optional[str] = None) -> int:
        with self._tx() as cur:
            cur.execute(
                "INSERT INTO clients (name, tax_id, phone, email) VALUES (?, ?, ?, ?)",
                (name, tax_id, phone, email),
            )
            return int(cur.lastrowid)

    def list_clients(self) -> list[Client]:
        with self._tx() as cur:
            cur.execute("SELECT id, name, tax_id, phone, email FROM clients ORDER BY name")
            rows = cur.fetchall()
        return [Client(*tuple(r)) for r in rows]

    def get_client(self, client_id: int) -> Optional[Client]:
        with self._tx() as cur:
            cur.execute("SELECT id, name, tax_id, phone, email FROM clients WHERE id=?", (int(client_id),))
            r = cur.fetchone()
        return Client(*tuple(r)) if r else None

    # ---------- Products ----------
    @staticmethod
    def _product(r: sqlite3.Row) -> Product:
        return Product(
            id=int(r["id"]),
            supplier_id=int(r["supplier_id"]),
            description=str(r["description"]),
            entry_cost=float(r["entry_cost"]),
            entry_date=str(r["entry_date"]),
            code=r["code"],
            sold=bool(r["sold"]),
            client_id=(int(r["client_id"]) if r["client_id"] is not None else None),
            sale_price=(float(r["sale_price"]) if r["sale_price"] is not None else None),
            sale_date=r["sale_date"],
            installment_count=(int(r["installment_count"]) if r["installment_count"] is not None else None),
            supplier_payment=SupplierPayment(paid=bool(r["supplier_paid"]), paid_date=r["supplier_paid_date"]),
        )

    def add_product(self, supplier_id: int, description: str, entry_cost: float, entry_date: str,
                    code: Optional[str] = None) -> int:
        with self._tx() as cur:
            cur.execute(
                """
                INSERT INTO products (supplier_id, description, entry_cost, entry_date, code)
                VALUES (?, ?, ?, ?, ?)
                """,
                (int(supplier_id), description, float(entry_cost), entry_date, code),
            )
            return int(cur.lastrowid)

    def get_product(self, product_id: int) -> Optional[Product]:
        with self._tx() as cur:
            cur.execute(f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id=?", (int(product_id),))
            r = cur.fetchone()
        return self._product(r) if r else None

    def list_products(self, supplier_id: Optional[int] = None, sold: Optional[bool] = None) -> list[Product]:
        clauses, params = [], []
        if supplier_id is not None:
            clauses.append("supplier_id = ?")
            params.append(int(supplier_id))
        if sold is not None:
            clauses.append("sold = ?")
            params.append(1 if sold else 0)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._tx() as cur:
            cur.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products {where} ORDER BY entry_date DESC, id DESC",
                params,
            )
            rows = cur.fetchall()
        return [self._product(r) for r in rows]

    def list_sold_products_between(self, start_iso: str, end_iso: str) -> list[Product]:
        with self._tx() as cur:
            cur.execute(
                f"""
                SELECT {_PRODUCT_COLUMNS}
                FROM products
                WHERE sold = 1 AND sale_date >= ? AND sale_date < ?
                ORDER BY sale_date DESC, id DESC
                """,
                (start_iso, end_iso),
            )
            rows = cur.fetchall()
        return [self._product(r) for r in rows]

    def mark_product_sold(self, product_id: int, client_id: int, sale_price: float, sale_date: str,
                          installment_count: int) -> bool:
        with self._tx() as cur:
            cur.execute(
                """
                UPDATE products
                SET sold=1, client_id=?, sale_price=?, sale_date=?, installment_count=?
                WHERE id=?
                """,
                (int(client_id), float(sale_price), sale_date, int(installment_count), int(product_id)),
            )
            return cur.rowcount > 0

    def set_supplier_payment(self, product_id: int, paid: bool, paid_date: Optional[str]) -> bool:
        with self._tx() as cur:
            cur.execute(
                "UPDATE products SET supplier_paid=?, supplier_paid_date=? WHERE id=?",
                (1 if paid else 0, paid_date, int(product_id)),
            )
            return cur.rowcount > 0

    def delete_product(self, product_id: int) -> bool:
        with self._tx() as cur:
            cur.execute("DELETE FROM products WHERE id=?", (int(product_id),))
            return cur.rowcount > 0

    # ---------- Installments ----------
    def list_installments(self, product_id: int) -> list[Installment]:
        with self._tx() as cur:
            cur.execute(
                """
                SELECT id, product_id, client_id, supplier_id, number, amount, due_date, received
                FROM installments
                WHERE product_id=?
                ORDER BY number
                """,
                (int(product_id),),
            )
            rows = cur.fetchall()
        return [
            Installment(
                id=int(r["id"]),
                product_id=int(r["product_id"]),
                client_id=int(r["client_id"]),
                supplier_id=int(r["supplier_id"]),
                number=int(r["number"]),
                amount=float(r["amount"]),
                due_date=str(r["due_date"]),
                received=bool(r["received"]),
            )
            for r in rows
        ]

    def _insert_installments(self, cur: sqlite3.Cursor, product_id: int, client_id: int,
                             installments: Iterable[NewInstallment]) -> list[int]:
        cur.execute("SELECT supplier_id FROM products WHERE id=?", (int(product_id),))
        row = cur.fetchone()
        if not row:
            raise StoreError(f"Product not found: {product_id}")
        supplier_id = int(row[0])

        ids: list[int] = []
        for it in installments:
            cur.execute(
                """
                INSERT INTO installments (product_id, client_id, supplier_id, number, amount, due_date, received)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (int(product_id), int(client_id), supplier_id, int(it.number), float(it.amount), it.due_date,
                 1 if it.received else 0),
            )
            ids.append(int(cur.lastrowid))
        return ids

    def delete_installments_for_product(self, product_id: int) -> int:
        with self._tx() as cur:
            cur.execute("DELETE FROM installments WHERE product_id=?", (int(product_id),))
            return int(cur.rowcount)

    def insert_installments(self, product_id: int, client_id: int,
                            installments: Iterable[NewInstallment]) -> list[int]:
        with self._tx() as cur:
            return self._insert_installments(cur, product_id, client_id, installments)

    def replace_installments(self, product_id: int, client_id: int,
                             installments: Iterable[NewInstallment]) -> list[int]:
        with self._tx() as cur:
            cur.execute("DELETE FROM installments WHERE product_id=?", (int(product_id),))
            return self._insert_installments(cur, product_id, client_id, installments)

    def set_installment_received(self, installment_id: int, received: bool) -> bool:
        with self._tx() as cur:
            cur.execute(
                "UPDATE installments SET received=? WHERE id=?",
                (1 if received else 0, int(installment_id)),
            )
            return cur.rowcount > 0

    # ---------- Aggregate feeds ----------
    def monthly_summary_feed(self) -> list[FeedRow]:
        with self._tx() as cur:
            cur.execute(
                """
                WITH months AS (
                    SELECT substr(due_date, 1, 7) AS ym FROM installments
                    UNION
                    SELECT substr(sale_date, 1, 7) FROM products WHERE sold = 1
                ),
                received AS (
                    SELECT substr(due_date, 1, 7) AS ym, SUM(amount) AS total
                    FROM installments WHERE received = 1
                    GROUP BY ym
                ),
                costs AS (
                    SELECT substr(sale_date, 1, 7) AS ym, SUM(entry_cost) AS total
                    FROM products WHERE sold = 1
                    GROUP BY ym
                )
                SELECT m.ym AS mes,
                       COALESCE(r.total, 0) AS total_recebido,
                       COALESCE(c.total, 0) AS total_entrada,
                       COALESCE(r.total, 0) - COALESCE(c.total, 0) AS lucro
                FROM months m
                LEFT JOIN received r ON r.ym = m.ym
                LEFT JOIN costs c ON c.ym = m.ym
                WHERE m.ym IS NOT NULL
                """
            )
            return [dict(r) for r in cur.fetchall()]

    def receivables_feed(self) -> list[FeedRow]:
        with self._tx() as cur:
            cur.execute(
                """
                SELECT due_date AS data_vencimento,
                       SUM(amount) AS total_previsto,
                       SUM(CASE WHEN received = 1 THEN amount ELSE 0 END) AS total_recebido,
                       COUNT(*) AS qtd_parcelas
                FROM installments
                GROUP BY due_date
                """
            )
            return [dict(r) for r in cur.fetchall()]

    def supplier_payment_feed(self) -> list[FeedRow]:
        with self._tx() as cur:
            cur.execute(
                """
                SELECT s.id AS fornecedor_id,
                       s.code AS cod_fornecedor,
                       s.name AS fornecedor,
                       SUM(CASE WHEN p.supplier_paid = 1 THEN p.entry_cost ELSE 0 END) AS total_pago,
                       SUM(CASE WHEN p.supplier_paid = 0 THEN p.entry_cost ELSE 0 END) AS total_pendente,
                       json_group_array(json_object(
                           'produto', p.description,
                           'cod_produto', p.code,
                           'valor_entrada', p.entry_cost,
                           'pago', p.supplier_paid,
                           'data_pagamento', p.supplier_paid_date
                       )) AS produtos
                FROM suppliers s
                JOIN products p ON p.supplier_id = s.id
                GROUP BY s.id
                """
            )
            return [dict(r) for r in cur.fetchall()]

    def installments_due_on(self, date_key: str) -> list[FeedRow]:
        with self._tx() as cur:
            cur.execute(
                """
                SELECT i.id AS installment_id, i.product_id, i.number, i.amount, i.due_date, i.received,
                       p.description AS produto, p.code AS cod_produto,
                       c.name AS cliente_nome
                FROM installments i
                JOIN products p ON p.id = i.product_id
                LEFT JOIN clients c ON c.id = i.client_id
                WHERE i.due_date = ?
                """,
                (date_key,),
            )
            return [dict(r) for r in cur.fetchall()]
