"""
Vendor-Category Store Module.

Persistent home of the learned vendor -> category knowledge. The
store is the source of truth; the pipeline only reads snapshots
through the cache and writes incremental merges.

Backends:
    - SQLiteVendorCategoryStore: SQLite through SQLAlchemy Core
    - InMemoryVendorCategoryStore: process-local, for tests and dry runs

Both implement ``read(mapping_id)`` and ``merge(mapping_id, partial)``.
A merge is an upsert: it never removes keys it does not mention.
"""

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol, Union

from sqlalchemy import (
    Column, DateTime, MetaData, PrimaryKeyConstraint, String, Table,
    create_engine, literal_column, select,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from config import get_config
from bill_extraction.utils.exceptions import StoreError
from bill_extraction.utils.helpers import ensure_directory, merge_vendor_categories, vendor_key
from bill_extraction.utils.logger import get_logger

logger = get_logger(__name__)


class VendorCategoryStore(Protocol):
    """Contract of a persistent vendor-category store."""

    def read(self, mapping_id: str) -> Optional[Dict[str, str]]:
        """Return the stored mapping, or None when it does not exist."""
        ...

    def merge(self, mapping_id: str, partial: Mapping[str, str]) -> None:
        """Upsert ``partial`` into the stored mapping."""
        ...


class SQLiteVendorCategoryStore:
    """
    SQLite-backed vendor-category store.

    One row per ``(mapping_id, vendor_key)`` where ``vendor_key`` is the
    case-folded vendor name. Rows are returned in insertion order, which
    is also the order the vendor extractor searches them in.

    Attributes:
        db_path: Path to the SQLite database file
        table_name: Name of the mapping table

    Example:
        >>> store = SQLiteVendorCategoryStore("data/heuristics.db")
        >>> store.merge("vendors_categories", {"EDF Energy": "Utilities"})
        >>> store.read("vendors_categories")
        {'EDF Energy': 'Utilities'}
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        table_name: Optional[str] = None,
        busy_timeout: Optional[float] = None
    ) -> None:
        """
        Initialize the store and create its table if needed.

        Args:
            db_path: Path to the database file. If None, uses configuration.
            table_name: Table name. If None, uses configuration.
            busy_timeout: Seconds to wait on a locked database.
        """
        if db_path is None:
            db_path = get_config("paths.knowledge_db", "data/heuristics.db")
        self.db_path = Path(db_path)
        self.table_name = table_name or get_config("knowledge.store.table_name", "vendor_categories")
        busy_timeout = busy_timeout if busy_timeout is not None else \
            get_config("knowledge.store.busy_timeout_seconds", 5)

        ensure_directory(self.db_path.parent)

        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"timeout": busy_timeout, "check_same_thread": False},
        )
        self.metadata = MetaData()
        self.table = Table(
            self.table_name,
            self.metadata,
            Column("mapping_id", String, nullable=False),
            Column("vendor_key", String, nullable=False),
            Column("vendor", String, nullable=False),
            Column("category", String, nullable=False),
            Column("updated_at", DateTime(timezone=True), nullable=False),
            PrimaryKeyConstraint("mapping_id", "vendor_key"),
        )

        try:
            self.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError("create tables", str(e))

        logger.info(f"SQLiteVendorCategoryStore initialized (db: {self.db_path})")

    def read(self, mapping_id: str) -> Optional[Dict[str, str]]:
        """
        Read a complete vendor-category mapping.

        Args:
            mapping_id: Identifier of the mapping document.

        Returns:
            Vendor -> category dictionary, or None if the mapping has no rows.

        Raises:
            StoreError: If the query fails.
        """
        query = (
            select(self.table.c.vendor, self.table.c.category)
            .where(self.table.c.mapping_id == mapping_id)
            .order_by(literal_column("rowid"))
        )

        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as e:
            raise StoreError("read", str(e))

        if not rows:
            return None
        return {row.vendor: row.category for row in rows}

    def merge(self, mapping_id: str, partial: Mapping[str, str]) -> None:
        """
        Upsert vendor-category pairs without touching other rows.

        Args:
            mapping_id: Identifier of the mapping document.
            partial: Vendor -> category pairs to insert or update.

        Raises:
            StoreError: If the write fails.
        """
        if not partial:
            return

        now = datetime.now(timezone.utc)
        rows = [
            {
                "mapping_id": mapping_id,
                "vendor_key": vendor_key(vendor),
                "vendor": vendor,
                "category": category,
                "updated_at": now,
            }
            for vendor, category in partial.items()
        ]

        statement = sqlite_insert(self.table)
        statement = statement.on_conflict_do_update(
            index_elements=["mapping_id", "vendor_key"],
            set_={
                "vendor": statement.excluded.vendor,
                "category": statement.excluded.category,
                "updated_at": statement.excluded.updated_at,
            },
        )

        try:
            with self.engine.begin() as conn:
                conn.execute(statement, rows)
        except SQLAlchemyError as e:
            raise StoreError("merge", str(e))

        logger.debug(f"Merged {len(rows)} vendor-category rows into '{mapping_id}'")

    def close(self) -> None:
        self.engine.dispose()


class InMemoryVendorCategoryStore:
    """
    Process-local vendor-category store.

    Example:
        >>> store = InMemoryVendorCategoryStore({"vendors_categories": {"Netflix": "Subscriptions"}})
        >>> store.read("vendors_categories")
        {'Netflix': 'Subscriptions'}
    """

    def __init__(self, initial: Optional[Mapping[str, Mapping[str, str]]] = None) -> None:
        self._mappings: Dict[str, Dict[str, str]] = {
            mapping_id: dict(mapping) for mapping_id, mapping in (initial or {}).items()
        }
        self._lock = threading.Lock()

    def read(self, mapping_id: str) -> Optional[Dict[str, str]]:
        with self._lock:
            mapping = self._mappings.get(mapping_id)
            return dict(mapping) if mapping is not None else None

    def merge(self, mapping_id: str, partial: Mapping[str, str]) -> None:
        with self._lock:
            current = self._mappings.get(mapping_id, {})
            self._mappings[mapping_id] = merge_vendor_categories(current, partial)


def create_store_from_config() -> VendorCategoryStore:
    """
    Build the store selected by ``knowledge.store.backend``.

    Returns:
        SQLite store for "sqlite", in-memory store for "memory".
    """
    backend = get_config("knowledge.store.backend", "sqlite")
    if backend == "memory":
        return InMemoryVendorCategoryStore()
    if backend != "sqlite":
        logger.warning(f"Unknown store backend '{backend}', falling back to sqlite")
    return SQLiteVendorCategoryStore()
