"""
Tests for SQL fragment selection; no database involved.
"""
from app.core.master_table_query_builder import MasterTableQueryBuilder, quote_ident
from app.core.schema_catalog import ColumnDescriptor


def columns(*names):
    return [ColumnDescriptor(name=name, data_type="text") for name in names]


FULL = columns("id", "PN2", "name", "inch", "supplier_id", "is_active")


def test_resolve_flags_for_full_table():
    flags = MasterTableQueryBuilder.resolve_flags(FULL)

    assert flags.label_column == "PN2"
    assert flags.has_inch and flags.has_supplier and flags.has_is_active


def test_label_falls_back_to_name_then_id():
    assert MasterTableQueryBuilder.resolve_flags(columns("id", "name")).label_column == "name"
    assert MasterTableQueryBuilder.resolve_flags(columns("id")).label_column is None


def test_list_query_with_every_optional_column():
    query, flags = MasterTableQueryBuilder.build_list_query("LCD_master", FULL, supplier_table="supplier_master")

    assert 'COALESCE(t."PN2"::text, t."id"::text) AS label' in query
    assert 't."inch" AS inch' in query
    assert 's."name" AS supplier_name' in query
    assert 't."is_active" AS is_active' in query
    assert 'LEFT JOIN "supplier_master" s ON s."id" = t."supplier_id"' in query
    assert query.rstrip().endswith('ORDER BY t."id" ASC')
    assert flags.as_dict() == {
        "label_column": "PN2",
        "has_inch": True,
        "has_supplier": True,
        "has_is_active": True,
    }


def test_list_query_substitutes_null_for_missing_columns():
    query, flags = MasterTableQueryBuilder.build_list_query("dongle_master", columns("id"))

    assert 't."id"::text AS label' in query
    assert "NULL AS inch" in query
    assert "NULL AS supplier_name" in query
    assert "NULL AS is_active" in query
    assert "JOIN" not in query
    assert not flags.has_is_active


def test_insert_query_binds_every_value():
    query, params = MasterTableQueryBuilder.build_insert_query(
        "LCD_master", {"PN2": "LCD-65C", "inch": 65, "is_active": None}
    )

    assert query == 'INSERT INTO "LCD_master" ("PN2", "inch", "is_active") VALUES (%s, %s, %s)'
    assert params == ["LCD-65C", 65, None]


def test_insert_query_without_values_uses_defaults():
    query, params = MasterTableQueryBuilder.build_insert_query("LCD_master", {})

    assert query == 'INSERT INTO "LCD_master" DEFAULT VALUES'
    assert params == []


def test_toggle_is_a_single_conditional_update():
    query = MasterTableQueryBuilder.build_toggle_query("LCD_master")

    assert query.startswith('UPDATE "LCD_master" SET "is_active" = CASE WHEN "is_active" = 1 THEN 0 ELSE 1 END')
    assert 'WHERE "id" = %s' in query
    assert query.endswith('RETURNING "is_active"')
    assert "SELECT" not in query


def test_select_by_id_is_parameterized():
    assert MasterTableQueryBuilder.build_select_by_id_query("OPS_master") == 'SELECT * FROM "OPS_master" WHERE "id" = %s'


def test_quote_ident_doubles_quotes():
    assert quote_ident('odd"name') == '"odd""name"'
