"""
Tests for the CSV import pipeline: parsing, coercion, per-row isolation and cleanup.
"""
import io
import tempfile

import pytest

from app.core.csv_import_service import CsvImportService, ImportedRow
from app.core.exceptions import CsvParseError, InvalidTableError
from app.core.failed_row_store import FailedRow


def upload(text: str) -> io.BytesIO:
    return io.BytesIO(text.encode("utf-8"))


@pytest.fixture
def isolated_tmp(tmp_path, monkeypatch):
    """Route temporary files into tmp_path so leftovers can be detected."""
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    return tmp_path


def test_example_three_rows_with_empty_label(import_service, store):
    result = import_service.import_file(
        "LCD_master",
        upload("PN2,inch,is_active\nLCD-32X,32,1\n,40,1\nLCD-50Z,50,0\n"),
    )

    assert (result.count, result.ok_count, result.failed_count) == (3, 2, 1)
    assert result.retrieval_id is not None

    batch = store.get(result.retrieval_id)
    assert len(batch.rows) == 1
    assert batch.rows[0].line_number == 3
    assert batch.rows[0].reason == "PN2 is required"
    assert batch.rows[0].values == {"PN2": "", "inch": "40", "is_active": "1"}


@pytest.mark.parametrize("bad_row", [1, 2, 4])
def test_single_bad_row_reports_its_line(import_service, store, bad_row):
    lines = ["PN2,inch"]
    for k in range(1, 5):
        lines.append(f",{k}" if k == bad_row else f"P-{k},{k}")

    result = import_service.import_file("LCD_master", upload("\n".join(lines) + "\n"))

    assert result.ok_count == 3
    assert result.failed_count == 1
    assert [row.line_number for row in store.get(result.retrieval_id).rows] == [bad_row + 1]


def test_failure_does_not_stop_following_rows(import_service, fake_db):
    result = import_service.import_file(
        "LCD_master",
        upload("PN2,inch\nLCD-43A,43\nNEW-1,10\nNEW-2,20\n"),
    )

    assert result.failed_count == 1
    labels = [row["PN2"] for row in fake_db.tables["LCD_master"].rows.values()]
    assert labels[-2:] == ["NEW-1", "NEW-2"]


def test_database_reason_is_recorded(import_service, store):
    result = import_service.import_file("LCD_master", upload("PN2\nLCD-55B\n"))

    reason = store.get(result.retrieval_id).rows[0].reason
    assert "duplicate key" in reason


def test_values_are_coerced_before_insert(import_service, fake_db):
    import_service.import_file(
        "LCD_master",
        upload("PN2,inch,is_active,supplier_id\n  LCD-60  , 60.5 ,true,NULL\nLCD-61,,off,\n"),
    )

    rows = list(fake_db.tables["LCD_master"].rows.values())[-2:]
    assert rows[0]["PN2"] == "LCD-60"
    assert rows[0]["inch"] == 60.5
    assert rows[0]["is_active"] == 1
    assert rows[0]["supplier_id"] is None
    assert rows[1]["inch"] is None
    assert rows[1]["is_active"] == 0


@pytest.mark.parametrize("header, value, fragment", [
    ("inch", "big", "inch must be numeric"),
    ("is_active", "maybe", "is_active must be 0 or 1"),
])
def test_coercion_errors_fail_only_that_row(import_service, store, header, value, fragment):
    result = import_service.import_file(
        "LCD_master",
        upload(f"PN2,{header}\nC-1,{value}\nC-2,1\n"),
    )

    assert (result.ok_count, result.failed_count) == (1, 1)
    assert fragment in store.get(result.retrieval_id).rows[0].reason


def test_record_without_matching_columns_fails(import_service, store, fake_db):
    result = import_service.import_file("LCD_master", upload("colour,weight\nred,3\n"))

    assert result.failed_count == 1
    assert store.get(result.retrieval_id).rows[0].reason.startswith("No CSV columns match LCD_master")
    assert fake_db.count("INSERT INTO") == 0


def test_id_and_timestamp_columns_are_not_imported(import_service, fake_db):
    import_service.import_file("LCD_master", upload("id,PN2,created_at\n99,LCD-99,2024-01-01\n"))

    statement = fake_db.statements[-1]
    assert statement == 'INSERT INTO "LCD_master" ("PN2") VALUES (%s)'


def test_header_only_file_imports_nothing(import_service, store):
    result = import_service.import_file("LCD_master", upload("PN2,inch\n"))

    assert (result.count, result.ok_count, result.failed_count) == (0, 0, 0)
    assert result.retrieval_id is None
    assert len(store) == 0


def test_blank_lines_are_skipped(import_service):
    result = import_service.import_file("LCD_master", upload("PN2,inch\n\nB-1,1\n\n\nB-2,2\n"))

    assert (result.count, result.ok_count) == (2, 2)


def test_bom_and_padded_headers_are_trimmed(import_service, fake_db):
    result = import_service.import_file("LCD_master", upload("\ufeff PN2 , inch \nT-1,7\n"))

    assert result.ok_count == 1
    assert fake_db.tables["LCD_master"].rows[3]["inch"] == 7


def test_preview_holds_first_five_records(import_service):
    body = "PN2\n" + "".join(f"V-{i}\n" for i in range(8))
    result = import_service.import_file("LCD_master", upload(body))

    assert result.preview == [{"PN2": f"V-{i}"} for i in range(5)]


def test_invalid_table_is_rejected_before_reading(import_service):
    class Untouchable(io.BytesIO):
        def read(self, *args):
            raise AssertionError("upload was read")

    with pytest.raises(InvalidTableError):
        import_service.import_file("users", Untouchable())


def test_malformed_file_aborts_and_removes_temp_file(import_service, isolated_tmp, store):
    with pytest.raises(CsvParseError):
        import_service.import_file("LCD_master", upload("PN2,inch\nA,1\nB,2,3,4\n"))

    assert list(isolated_tmp.iterdir()) == []
    assert len(store) == 0


@pytest.mark.parametrize("body", [
    "PN2,inch\nA,1,extra\nB,2\n",
    "PN2,inch\nLCD-70,70,junk\nLCD-71,71\n",
])
def test_wide_first_row_rejects_file_instead_of_shifting_values(import_service, isolated_tmp, fake_db, body):
    with pytest.raises(CsvParseError):
        import_service.import_file("LCD_master", upload(body))

    assert fake_db.count("INSERT INTO") == 0
    assert list(isolated_tmp.iterdir()) == []


def test_record_of_empty_fields_fails_on_required_label(import_service, store):
    result = import_service.import_file("LCD_master", upload("PN2,inch\nE-1,1\n,\nE-2,2\n"))

    assert (result.count, result.ok_count, result.failed_count) == (3, 2, 1)
    failed = store.get(result.retrieval_id).rows
    assert [(row.line_number, row.reason) for row in failed] == [(3, "PN2 is required")]


def test_empty_file_is_a_parse_error(import_service):
    with pytest.raises(CsvParseError):
        import_service.import_file("LCD_master", upload(""))


def test_temp_file_removed_after_success(import_service, isolated_tmp):
    import_service.import_file("LCD_master", upload("PN2\nOK-1\n"))

    assert list(isolated_tmp.iterdir()) == []


def test_process_records_splits_results(import_service):
    outcome = import_service.process_records(
        "LCD_master",
        ["PN2", "inch"],
        [(2, {"PN2": "F-1"}), (3, {"PN2": ""}), (4, {"other": "x"})],
    )

    assert [type(r) for r in outcome.succeeded] == [ImportedRow]
    assert [r.line_number for r in outcome.failed] == [3, 4]
    assert all(isinstance(r, FailedRow) for r in outcome.failed)
    assert outcome.total == 3


@pytest.mark.parametrize("value, expected", [("1", 1), ("TRUE", 1), ("yes", 1), ("0", 0), ("False", 0), ("no", 0)])
def test_parse_flag(value, expected):
    assert CsvImportService.parse_flag("is_active", value) == expected


@pytest.mark.parametrize("value, expected", [("32", 32), ("32.5", 32.5), ("-1", -1)])
def test_parse_number(value, expected):
    assert CsvImportService.parse_number("inch", value) == expected


@pytest.mark.parametrize("value", ["abc", "nan", "inf"])
def test_parse_number_rejects_non_numbers(value):
    with pytest.raises(ValueError):
        CsvImportService.parse_number("inch", value)
