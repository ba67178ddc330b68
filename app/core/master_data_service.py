"""
Master Data Service.
Reads, inserts and toggles rows of the discovered master tables.
"""

import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from psycopg2 import extras

from app.config import settings
from app.core.database import get_db_manager
from app.core.exceptions import (
    InvalidIdError,
    NotFoundError,
    UnsupportedOperationError,
    ValidationException,
)
from app.core.logging_config import get_logger, log_database_query
from app.core.master_table_query_builder import ID_COLUMN, ListColumnFlags, MasterTableQueryBuilder
from app.core.schema_catalog import ColumnDescriptor, SchemaCatalog, display_label_for, get_schema_catalog

logger = get_logger(__name__)


def parse_row_id(raw_id: Any) -> int:
    """
    Validate a client supplied row identifier.

    Accepts ints and digit strings; anything else raises InvalidIdError
    before a query is issued.
    """
    if isinstance(raw_id, bool):
        raise InvalidIdError(raw_id)
    if isinstance(raw_id, int):
        if raw_id < 0:
            raise InvalidIdError(raw_id)
        return raw_id
    if isinstance(raw_id, str):
        text = raw_id.strip()
        if text.isascii() and text.isdigit():
            return int(text)
    raise InvalidIdError(raw_id)


def normalize_value(value: Any) -> Any:
    """Empty strings become NULL; other values pass through."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


class MasterDataService:
    """Service for master table row operations."""

    def __init__(
        self,
        catalog: Optional[SchemaCatalog] = None,
        db_manager=None,
        supplier_table: str = "supplier_master",
        label_columns: Sequence[str] = ("PN2", "name"),
        flag_column: str = "is_active",
        auto_timestamp_columns: Sequence[str] = ("created_at", "updated_at"),
    ):
        self.catalog = catalog or get_schema_catalog()
        self._db_manager = db_manager
        self.supplier_table = supplier_table
        self.label_columns = tuple(label_columns)
        self.flag_column = flag_column
        self.auto_timestamp_columns = frozenset(auto_timestamp_columns)

    @property
    def db_manager(self):
        if self._db_manager is None:
            self._db_manager = self.catalog.db_manager
        return self._db_manager

    def insertable_columns(self, table_name: str) -> List[ColumnDescriptor]:
        """Columns a form or CSV row may fill: not the id, not auto-maintained."""
        return [
            column for column in self.catalog.describe(table_name)
            if column.name != ID_COLUMN
            and column.name not in self.auto_timestamp_columns
            and not column.is_auto_generated
        ]

    def list_rows(self, table_name: str) -> Tuple[List[Dict[str, Any]], ListColumnFlags]:
        """
        Overview rows of one master table.

        Returns:
            Tuple of (rows, flags). Every row has id, label, inch,
            supplier_name and is_active keys.
        """
        columns = self.catalog.describe(table_name)
        query, flags = MasterTableQueryBuilder.build_list_query(
            table_name,
            columns,
            supplier_table=self.supplier_table,
            label_columns=self.label_columns,
            flag_column=self.flag_column,
        )

        start = time.time()
        with self.db_manager.get_connection() as conn:
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            try:
                cursor.execute(query)
                rows = [dict(row) for row in cursor.fetchall()]
            finally:
                cursor.close()
        log_database_query(logger, "SELECT", table_name, (time.time() - start) * 1000)

        logger.info(f"Retrieved {len(rows)} rows from {table_name}")
        return rows, flags

    def list_all(self) -> List[Dict[str, Any]]:
        """Rows of every master table, for the overview page."""
        masters = []
        for table_name in sorted(self.catalog.list_master_tables()):
            rows, flags = self.list_rows(table_name)
            masters.append({
                "table": table_name,
                "label": display_label_for(table_name, self.catalog.table_suffix),
                "flags": flags.as_dict(),
                "rows": rows,
            })
        return masters

    def get_row(self, table_name: str, raw_id: Any) -> Dict[str, Any]:
        """Fetch one full row by identifier."""
        self.catalog.require_table(table_name)
        row_id = parse_row_id(raw_id)

        with self.db_manager.get_connection() as conn:
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            try:
                cursor.execute(MasterTableQueryBuilder.build_select_by_id_query(table_name), (row_id,))
                row = cursor.fetchone()
            finally:
                cursor.close()

        if row is None:
            raise NotFoundError(table_name, str(row_id))
        return dict(row)

    def insert_values(self, table_name: str, values: Dict[str, Any]) -> None:
        """
        Insert exactly the given columns as one row in its own transaction.

        Column names must already be checked against the catalog.
        """
        query, params = MasterTableQueryBuilder.build_insert_query(table_name, values)

        start = time.time()
        with self.db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(query, params)
            finally:
                cursor.close()
        log_database_query(logger, "INSERT", table_name, (time.time() - start) * 1000)

    def insert_row(self, table_name: str, field_values: Dict[str, Any]) -> None:
        """
        Create a row from form input.

        Every insertable column receives the supplied value, or NULL when the
        value is absent or empty. Absent columns with a database default are
        left out so the default applies.
        """
        if not isinstance(field_values, dict):
            raise ValidationException("Record payload must be an object")

        insertable = self.insertable_columns(table_name)
        known = {column.name for column in self.catalog.describe(table_name)}
        unknown = [key for key in field_values if key not in known]
        if unknown:
            raise ValidationException(
                f"Unknown fields for {table_name}: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)}
            )

        values: Dict[str, Any] = {}
        for column in insertable:
            if column.name not in field_values and column.has_default:
                continue
            values[column.name] = normalize_value(field_values.get(column.name))

        self.insert_values(table_name, values)
        logger.info(f"Inserted row into {table_name} ({len(values)} columns)")

    def toggle_active(self, table_name: str, raw_id: Any) -> int:
        """
        Flip the active flag of one row.

        Returns:
            The flag value stored after the flip
        """
        self.catalog.require_table(table_name)
        row_id = parse_row_id(raw_id)

        if self.flag_column not in self.catalog.columns_of(table_name):
            raise UnsupportedOperationError(
                f"{table_name} has no {self.flag_column} column",
                details={"table": table_name}
            )

        with self.db_manager.get_connection() as conn:
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            try:
                cursor.execute(
                    MasterTableQueryBuilder.build_toggle_query(table_name, self.flag_column),
                    (row_id,)
                )
                row = cursor.fetchone()
            finally:
                cursor.close()

        if row is None:
            raise NotFoundError(table_name, str(row_id))

        new_state = row[self.flag_column]
        logger.info(f"Toggled {table_name}.{self.flag_column} for id {row_id} -> {new_state}")
        return new_state


def build_master_data_service(catalog: Optional[SchemaCatalog] = None) -> MasterDataService:
    """MasterDataService configured from settings."""
    return MasterDataService(
        catalog=catalog,
        supplier_table=settings.SUPPLIER_TABLE,
        label_columns=settings.LABEL_COLUMNS,
        flag_column=settings.FLAG_COLUMN,
        auto_timestamp_columns=settings.AUTO_TIMESTAMP_COLUMNS,
    )
