"""
Schema Catalog.
Discovers the master tables present in the database and caches their column metadata.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set

from psycopg2 import extras

from app.config import settings
from app.core.database import get_db_manager
from app.core.exceptions import InvalidTableError
from app.core.logging_config import get_logger, log_database_query, log_operation_start, log_operation_end

logger = get_logger(__name__)


@dataclass(frozen=True)
class ColumnDescriptor:
    """One column of a master table as reported by information_schema."""
    name: str
    data_type: str
    is_nullable: bool = True
    default: Optional[str] = None
    is_auto_generated: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not None


@dataclass(frozen=True)
class MasterTable:
    """An administrable master table and its columns."""
    name: str
    display_label: str
    columns: List[ColumnDescriptor] = field(default_factory=list)


@dataclass(frozen=True)
class CatalogSnapshot:
    tables: FrozenSet[str]
    fetched_at: float


def is_master_table_name(name: str, suffix: str, excluded: Iterable[str] = ()) -> bool:
    """Check a table name against the master table naming convention."""
    return name.endswith(suffix) and len(name) > len(suffix) and name not in set(excluded)


def display_label_for(name: str, suffix: str = "_master") -> str:
    """
    Derive a human label from a table name.

    ``LED_others_master`` becomes ``LED Others``; words keep their existing
    capitals, only the first letter of each word is raised.
    """
    base = name[:-len(suffix)] if suffix and name.endswith(suffix) else name
    words = [w for w in base.split("_") if w]
    return " ".join(w[0].upper() + w[1:] for w in words)


def column_from_row(row: Dict) -> ColumnDescriptor:
    """Build a ColumnDescriptor from an information_schema.columns row."""
    default = row.get("column_default")
    auto_generated = (
        row.get("is_identity") == "YES"
        or row.get("is_generated") == "ALWAYS"
        or (default is not None and str(default).startswith("nextval("))
    )
    return ColumnDescriptor(
        name=row["column_name"],
        data_type=row.get("data_type") or "",
        is_nullable=row.get("is_nullable", "YES") == "YES",
        default=default,
        is_auto_generated=auto_generated,
    )


class SchemaCatalog:
    """
    Answers which master tables exist right now and which columns they have.

    The table list is a snapshot refreshed once it is older than ``ttl_seconds``.
    Column metadata is cached per table for the lifetime of the process, so a
    column added after first access stays invisible until restart.
    """

    TABLES_QUERY = """
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = %s
        AND table_type = 'BASE TABLE'
        ORDER BY table_name
    """

    COLUMNS_QUERY = """
        SELECT column_name, data_type, is_nullable, column_default, is_identity, is_generated
        FROM information_schema.columns
        WHERE table_schema = %s
        AND table_name = %s
        ORDER BY ordinal_position
    """

    def __init__(
        self,
        db_manager=None,
        schema: str = "public",
        table_suffix: str = "_master",
        excluded_tables: Iterable[str] = (),
        ttl_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._db_manager = db_manager
        self.schema = schema
        self.table_suffix = table_suffix
        self.excluded_tables = frozenset(excluded_tables)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: Optional[CatalogSnapshot] = None
        self._columns: Dict[str, List[ColumnDescriptor]] = {}

    @property
    def db_manager(self):
        if self._db_manager is None:
            self._db_manager = get_db_manager()
        return self._db_manager

    def _is_fresh(self) -> bool:
        return (
            self._snapshot is not None
            and self._clock() - self._snapshot.fetched_at < self.ttl_seconds
        )

    def _fetch_tables(self) -> FrozenSet[str]:
        log_operation_start(logger, "refresh_master_catalog", schema=self.schema)
        start = time.time()
        with self.db_manager.get_connection() as conn:
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            try:
                cursor.execute(self.TABLES_QUERY, (self.schema,))
                names = [row["table_name"] for row in cursor.fetchall()]
            finally:
                cursor.close()
        log_database_query(logger, "SELECT", "information_schema.tables", (time.time() - start) * 1000)

        tables = frozenset(
            name for name in names
            if is_master_table_name(name, self.table_suffix, self.excluded_tables)
        )
        log_operation_end(logger, "refresh_master_catalog", success=True, table_count=len(tables))
        return tables

    def list_master_tables(self) -> Set[str]:
        """Names of the master tables in the latest catalog snapshot."""
        if not self._is_fresh():
            self._snapshot = CatalogSnapshot(tables=self._fetch_tables(), fetched_at=self._clock())
        return set(self._snapshot.tables)

    def is_allowed(self, table_name: str) -> bool:
        """Membership test against the latest snapshot; the gate for client supplied table names."""
        if not isinstance(table_name, str) or not table_name:
            return False
        return table_name in self.list_master_tables()

    def require_table(self, table_name: str) -> str:
        """Return ``table_name`` unchanged or raise InvalidTableError."""
        if not self.is_allowed(table_name):
            logger.warning(f"Rejected table name: {table_name!r}")
            raise InvalidTableError(table_name)
        return table_name

    def describe(self, table_name: str) -> List[ColumnDescriptor]:
        """Ordered column descriptors for an allowed table."""
        self.require_table(table_name)

        cached = self._columns.get(table_name)
        if cached is not None:
            return list(cached)

        start = time.time()
        with self.db_manager.get_connection() as conn:
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            try:
                cursor.execute(self.COLUMNS_QUERY, (self.schema, table_name))
                columns = [column_from_row(row) for row in cursor.fetchall()]
            finally:
                cursor.close()
        log_database_query(logger, "SELECT", "information_schema.columns", (time.time() - start) * 1000)

        logger.info(f"Cached {len(columns)} columns for {table_name}")
        self._columns[table_name] = columns
        return list(columns)

    def columns_of(self, table_name: str) -> List[str]:
        """Ordered column names for an allowed table."""
        return [column.name for column in self.describe(table_name)]

    def master_tables(self) -> List[MasterTable]:
        """All master tables with labels and columns, sorted by name."""
        return [
            MasterTable(
                name=name,
                display_label=display_label_for(name, self.table_suffix),
                columns=self.describe(name),
            )
            for name in sorted(self.list_master_tables())
        ]


_catalog: Optional[SchemaCatalog] = None


def get_schema_catalog() -> SchemaCatalog:
    """Get the process-wide SchemaCatalog built from settings."""
    global _catalog
    if _catalog is None:
        _catalog = SchemaCatalog(
            schema=settings.DB_SCHEMA,
            table_suffix=settings.MASTER_TABLE_SUFFIX,
            excluded_tables=settings.EXCLUDED_TABLES,
            ttl_seconds=settings.CATALOG_TTL_SECONDS,
        )
    return _catalog
