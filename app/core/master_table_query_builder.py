"""
Master Table Query Builder - SQL query construction.
Builds parameterized queries from catalog column metadata; identifiers never come from request input.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.core.schema_catalog import ColumnDescriptor

ID_COLUMN = "id"
INCH_COLUMN = "inch"
SUPPLIER_ID_COLUMN = "supplier_id"
SUPPLIER_NAME_COLUMN = "name"


def quote_ident(name: str) -> str:
    """Quote an SQL identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class ListColumnFlags:
    """Which optional columns the list query could project for a table."""
    label_column: Optional[str]
    has_inch: bool
    has_supplier: bool
    has_is_active: bool

    def as_dict(self) -> Dict[str, Any]:
        return {
            "label_column": self.label_column,
            "has_inch": self.has_inch,
            "has_supplier": self.has_supplier,
            "has_is_active": self.has_is_active,
        }


class MasterTableQueryBuilder:
    """Builds SQL queries for master table operations."""

    @staticmethod
    def resolve_flags(
        columns: Sequence[ColumnDescriptor],
        label_columns: Sequence[str] = ("PN2", "name"),
        flag_column: str = "is_active"
    ) -> ListColumnFlags:
        """
        Decide which optional fragments apply to a table.

        Args:
            columns: Column descriptors from the schema catalog
            label_columns: Label candidates in priority order
            flag_column: Name of the active flag column

        Returns:
            ListColumnFlags for the table
        """
        names = {column.name for column in columns}
        label_column = next((c for c in label_columns if c in names), None)
        return ListColumnFlags(
            label_column=label_column,
            has_inch=INCH_COLUMN in names,
            has_supplier=SUPPLIER_ID_COLUMN in names,
            has_is_active=flag_column in names,
        )

    @staticmethod
    def label_expression(flags: ListColumnFlags) -> str:
        id_text = f"t.{quote_ident(ID_COLUMN)}::text"
        if flags.label_column is None:
            return f"{id_text} AS label"
        return f"COALESCE(t.{quote_ident(flags.label_column)}::text, {id_text}) AS label"

    @staticmethod
    def select_fragments(flags: ListColumnFlags, flag_column: str = "is_active") -> List[str]:
        """Projection list; absent optional columns become NULL so every table yields the same row shape."""
        return [
            f"t.{quote_ident(ID_COLUMN)} AS id",
            MasterTableQueryBuilder.label_expression(flags),
            f"t.{quote_ident(INCH_COLUMN)} AS inch" if flags.has_inch else "NULL AS inch",
            f"s.{quote_ident(SUPPLIER_NAME_COLUMN)} AS supplier_name" if flags.has_supplier else "NULL AS supplier_name",
            f"t.{quote_ident(flag_column)} AS is_active" if flags.has_is_active else "NULL AS is_active",
        ]

    @staticmethod
    def join_fragment(flags: ListColumnFlags, supplier_table: str) -> str:
        if not flags.has_supplier:
            return ""
        return (
            f"LEFT JOIN {quote_ident(supplier_table)} s "
            f"ON s.{quote_ident(ID_COLUMN)} = t.{quote_ident(SUPPLIER_ID_COLUMN)}"
        )

    @staticmethod
    def build_list_query(
        table_name: str,
        columns: Sequence[ColumnDescriptor],
        supplier_table: str = "supplier_master",
        label_columns: Sequence[str] = ("PN2", "name"),
        flag_column: str = "is_active"
    ) -> Tuple[str, ListColumnFlags]:
        """
        Build the overview SELECT for a master table.

        Returns:
            Tuple of (query, flags)
        """
        flags = MasterTableQueryBuilder.resolve_flags(columns, label_columns, flag_column)
        parts = [
            "SELECT " + ", ".join(MasterTableQueryBuilder.select_fragments(flags, flag_column)),
            f"FROM {quote_ident(table_name)} t",
        ]
        join = MasterTableQueryBuilder.join_fragment(flags, supplier_table)
        if join:
            parts.append(join)
        parts.append(f"ORDER BY t.{quote_ident(ID_COLUMN)} ASC")
        return "\n".join(parts), flags

    @staticmethod
    def build_select_by_id_query(table_name: str) -> str:
        return f"SELECT * FROM {quote_ident(table_name)} WHERE {quote_ident(ID_COLUMN)} = %s"

    @staticmethod
    def build_insert_query(table_name: str, values: Dict[str, Any]) -> Tuple[str, List[Any]]:
        """
        Build a single-row INSERT with parameterized values.

        Args:
            table_name: Catalog table name
            values: Column name to value, column names taken from the catalog

        Returns:
            Tuple of (query, values)
        """
        if not values:
            return f"INSERT INTO {quote_ident(table_name)} DEFAULT VALUES", []

        columns = list(values.keys())
        query = (
            f"INSERT INTO {quote_ident(table_name)} "
            f"({', '.join(quote_ident(col) for col in columns)}) "
            f"VALUES ({', '.join(['%s'] * len(columns))})"
        )
        return query, [values[col] for col in columns]

    @staticmethod
    def build_toggle_query(table_name: str, flag_column: str = "is_active") -> str:
        """Flip the flag between 1 and 0 in one statement and return the stored value."""
        flag = quote_ident(flag_column)
        return (
            f"UPDATE {quote_ident(table_name)} "
            f"SET {flag} = CASE WHEN {flag} = 1 THEN 0 ELSE 1 END "
            f"WHERE {quote_ident(ID_COLUMN)} = %s "
            f"RETURNING {flag}"
        )
