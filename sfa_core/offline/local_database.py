# =============================================================================
# sfa_core/offline/local_database.py
# Local SQLite Cache for Offline Operations
# =============================================================================
"""
LocalDatabase - SQLite-based device cache of server state.

Features:
- Automatic schema creation
- Insert-or-replace upserts keyed by a fixed row id (dashboard)
  or by item code (products)
- Local catalog queries (search, filters, sorting, paging)
- DataFrame export (pandas) for reporting
- Thread-local connections
"""

from __future__ import annotations
import sqlite3
import threading
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence
from contextlib import contextmanager
import logging

import pandas as pd

from sfa_core.errors import LocalStoreError
from sfa_core.models import DashboardSnapshot, ProductPage, ProductRecord

logger = logging.getLogger(__name__)


# The dashboard table holds a single conventional row
DASHBOARD_ROW_ID = 1

# Sort keys accepted by query_products, backend name -> column
SORTABLE_COLUMNS = {
    "itemCode": "item_code",
    "item_code": "item_code",
    "description": "description",
    "price": "price",
    "qty": "qty",
    "category": "category",
    "subCategory": "sub_category",
    "sub_category": "sub_category",
}


class LocalDatabase:
    """
    Local SQLite database for offline data storage.

    Holds the latest dashboard snapshot, the product catalog and a few
    key/value settings such as the cached login profile.
    """

    DEFAULT_DB_PATH = Path("local_data") / "sfa_app.db"

    SCHEMA = {
        "dashboard": """
            CREATE TABLE IF NOT EXISTS dashboard (
                id INTEGER PRIMARY KEY,
                data TEXT NOT NULL,
                updated_at TEXT
            )
        """,
        "products": """
            CREATE TABLE IF NOT EXISTS products (
                item_code TEXT PRIMARY KEY NOT NULL,
                description TEXT,
                price REAL,
                qty INTEGER,
                uom TEXT,
                image_url TEXT,
                discount_percentage REAL,
                discount_amount REAL,
                category TEXT,
                sub_category TEXT,
                updated_at TEXT
            )
        """,
        "app_settings": """
            CREATE TABLE IF NOT EXISTS app_settings (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
    }

    _instance: Optional[LocalDatabase] = None
    _lock = threading.Lock()

    def __init__(self, db_path: Optional[Path] = None):
        """
        Initialize local database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self._ensure_directory()
        self._local = threading.local()
        self._initialized = False

    @classmethod
    def get_instance(cls, db_path: Optional[Path] = None) -> LocalDatabase:
        """Get or create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = LocalDatabase(db_path)
        return cls._instance

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            try:
                self._local.connection = sqlite3.connect(
                    str(self.db_path),
                    check_same_thread=False,
                )
            except sqlite3.Error as e:
                raise LocalStoreError(f"Cannot open local database: {e}", operation="connect") from e
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def transaction(self, table: Optional[str] = None, operation: str = "write"):
        """Context manager for database transactions; sqlite errors become LocalStoreError."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise LocalStoreError(f"Local {operation} failed: {e}", table=table, operation=operation) from e
        except Exception:
            conn.rollback()
            raise

    def _read(self, sql: str, params: Sequence[Any] = (), table: Optional[str] = None) -> List[sqlite3.Row]:
        try:
            cursor = self._get_connection().execute(sql, list(params))
            return cursor.fetchall()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Local read failed: {e}", table=table, operation="read") from e

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        with self.transaction(operation="create schema") as conn:
            for table_name, schema in self.SCHEMA.items():
                conn.execute(schema)
                logger.debug(f"Created/verified table: {table_name}")

        self._initialized = True
        logger.info(f"Local database initialized at: {self.db_path}")

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    def upsert_dashboard(self, snapshot: DashboardSnapshot) -> None:
        """Replace the single dashboard row with `snapshot`."""
        updated_at = datetime.now()
        with self.transaction("dashboard", "upsert") as conn:
            conn.execute(
                "INSERT OR REPLACE INTO dashboard (id, data, updated_at) VALUES (?, ?, ?)",
                [DASHBOARD_ROW_ID, json.dumps(snapshot.to_dict()), updated_at.isoformat()],
            )
        snapshot.updated_at = updated_at

    def get_latest_dashboard(self) -> Optional[DashboardSnapshot]:
        """Return the cached dashboard snapshot, or None when nothing was synced yet."""
        rows = self._read(
            "SELECT data, updated_at FROM dashboard ORDER BY updated_at DESC LIMIT 1",
            table="dashboard",
        )
        if not rows:
            return None

        try:
            payload = json.loads(rows[0]["data"])
            snapshot = DashboardSnapshot.from_dict(payload)
        except ValueError as e:
            raise LocalStoreError(f"Corrupt dashboard row: {e}", table="dashboard", operation="read") from e

        if rows[0]["updated_at"]:
            snapshot.updated_at = datetime.fromisoformat(rows[0]["updated_at"])
        return snapshot

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    @staticmethod
    def _product_values(record: ProductRecord, updated_at: str) -> List[Any]:
        if not record.has_identity:
            raise LocalStoreError(
                "Product without item code cannot be stored",
                table="products",
                operation="upsert",
            )
        return list(record.to_row().values()) + [updated_at]

    _PRODUCT_UPSERT = (
        f"INSERT OR REPLACE INTO products ({', '.join(ProductRecord.COLUMNS)}, updated_at) "
        f"VALUES ({', '.join('?' for _ in range(len(ProductRecord.COLUMNS) + 1))})"
    )

    def upsert_product(self, record: ProductRecord) -> None:
        """Insert or wholly replace one product row keyed by item code."""
        values = self._product_values(record, datetime.now().isoformat())
        with self.transaction("products", "upsert") as conn:
            conn.execute(self._PRODUCT_UPSERT, values)

    def upsert_products(self, records: Iterable[ProductRecord]) -> int:
        """
        Upsert many products in one transaction.

        Returns:
            Number of rows written
        """
        updated_at = datetime.now().isoformat()
        rows = [self._product_values(record, updated_at) for record in records]
        if not rows:
            return 0

        with self.transaction("products", "upsert") as conn:
            conn.executemany(self._PRODUCT_UPSERT, rows)
        return len(rows)

    def get_all_products(self) -> List[ProductRecord]:
        rows = self._read("SELECT * FROM products ORDER BY item_code", table="products")
        return [ProductRecord.from_row(row) for row in rows]

    def get_product(self, item_code: str) -> Optional[ProductRecord]:
        rows = self._read("SELECT * FROM products WHERE item_code = ?", [item_code], table="products")
        return ProductRecord.from_row(rows[0]) if rows else None

    def count_products(self) -> int:
        rows = self._read("SELECT COUNT(*) AS total FROM products", table="products")
        return rows[0]["total"] if rows else 0

    def query_products(
        self,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        category: str = "",
        sub_categories: Sequence[str] = (),
        sort_by: str = "itemCode",
        sort_order: str = "asc",
    ) -> ProductPage:
        """
        Page through the cached catalog.

        Args:
            page: 1-based page number
            limit: Page size
            search: Substring matched against item code and description
            category: Exact category filter
            sub_categories: Sub-category filter (any of)
            sort_by: Sort key, see SORTABLE_COLUMNS
            sort_order: 'asc' or 'desc'
        """
        page = max(page, 1)
        limit = max(limit, 1)
        column = SORTABLE_COLUMNS.get(sort_by)
        if column is None:
            raise ValueError(f"Cannot sort products by {sort_by!r}")
        direction = "DESC" if sort_order.lower() == "desc" else "ASC"

        where: List[str] = []
        params: List[Any] = []
        if search:
            where.append("(item_code LIKE ? OR description LIKE ?)")
            params.extend([f"%{search}%", f"%{search}%"])
        if category:
            where.append("category = ?")
            params.append(category)
        if sub_categories:
            where.append(f"sub_category IN ({', '.join('?' for _ in sub_categories)})")
            params.extend(sub_categories)
        where_sql = f" WHERE {' AND '.join(where)}" if where else ""

        total_rows = self._read(f"SELECT COUNT(*) AS total FROM products{where_sql}", params, table="products")
        total = total_rows[0]["total"] if total_rows else 0

        rows = self._read(
            f"SELECT * FROM products{where_sql} ORDER BY {column} {direction} LIMIT ? OFFSET ?",
            params + [limit, (page - 1) * limit],
            table="products",
        )
        products = [ProductRecord.from_row(row) for row in rows]
        return ProductPage.build(products, total, page, limit)

    def get_categories(self) -> List[str]:
        rows = self._read(
            "SELECT DISTINCT category FROM products "
            "WHERE category IS NOT NULL AND category != '' ORDER BY category",
            table="products",
        )
        return [row["category"] for row in rows]

    def get_sub_categories(self, category: Optional[str] = None) -> List[str]:
        sql = "SELECT DISTINCT sub_category FROM products WHERE sub_category IS NOT NULL AND sub_category != ''"
        params: List[Any] = []
        if category:
            sql += " AND category = ?"
            params.append(category)
        rows = self._read(sql + " ORDER BY sub_category", params, table="products")
        return [row["sub_category"] for row in rows]

    # =========================================================================
    # PANDAS INTEGRATION
    # =========================================================================

    def to_dataframe(self, table: str) -> pd.DataFrame:
        """
        Load a cached table into a pandas DataFrame.

        Args:
            table: Table name (must be one of SCHEMA)

        Returns:
            DataFrame with table data
        """
        if table not in self.SCHEMA:
            raise ValueError(f"Unknown table: {table}")
        try:
            return pd.read_sql_query(f"SELECT * FROM {table}", self._get_connection())
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise LocalStoreError(f"Local read failed: {e}", table=table, operation="read") from e

    def products_dataframe(self) -> pd.DataFrame:
        """Cached catalog as a DataFrame, one row per item code."""
        return self.to_dataframe("products")

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an app setting."""
        result = self._read("SELECT value FROM app_settings WHERE key = ?", [key], table="app_settings")
        if result:
            try:
                return json.loads(result[0]["value"])
            except json.JSONDecodeError:
                return result[0]["value"]
        return default

    def set_setting(self, key: str, value: Any) -> None:
        """Set an app setting."""
        value_str = json.dumps(value) if not isinstance(value, str) else value
        with self.transaction("app_settings", "write") as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO app_settings (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                [key, value_str, datetime.now().isoformat()],
            )

    def delete_setting(self, key: str) -> None:
        with self.transaction("app_settings", "delete") as conn:
            conn.execute("DELETE FROM app_settings WHERE key = ?", [key])

    def clear_cache(self) -> None:
        """Drop all cached dashboard and product rows."""
        with self.transaction(operation="clear") as conn:
            conn.execute("DELETE FROM dashboard")
            conn.execute("DELETE FROM products")
        logger.info("Local cache cleared")

    def close(self) -> None:
        """Close database connection."""
        if getattr(self._local, "connection", None) is not None:
            self._local.connection.close()
            self._local.connection = None


# Singleton accessor
_local_database: Optional[LocalDatabase] = None


def get_local_database(db_path: Optional[Path] = None) -> LocalDatabase:
    """Get the global LocalDatabase instance."""
    global _local_database
    if _local_database is None:
        _local_database = LocalDatabase.get_instance(db_path)
        _local_database.initialize()
    return _local_database
