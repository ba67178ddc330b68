"""
Tests for failed-row retention and the CSV download rendering.
"""
import asyncio
import io
from datetime import date

import pandas as pd

from app.core.failed_row_store import (
    LINE_NUMBER_FIELD,
    REASON_FIELD,
    FailedRow,
    failed_rows_filename,
    failed_rows_header,
    render_failed_rows_csv,
)


def sample_rows():
    return [
        FailedRow(line_number=3, values={"PN2": "", "inch": "40"}, reason="PN2 is required"),
        FailedRow(line_number=5, values={"PN2": "LCD-43A", "inch": "43"}, reason="[23505] duplicate key"),
    ]


def test_put_then_get_returns_identical_rows(store):
    rows = sample_rows()
    batch_id = store.put("LCD_master", rows)

    batch = store.get(batch_id)
    assert batch.table_name == "LCD_master"
    assert batch.rows == rows


def test_get_unknown_id_returns_none(store):
    assert store.get("does-not-exist") is None


def test_expired_batch_is_absent_before_any_sweep(store, clock):
    batch_id = store.put("LCD_master", sample_rows())

    clock.advance(599)
    assert store.get(batch_id) is not None

    clock.advance(1)
    assert store.get(batch_id) is None
    assert len(store) == 1


def test_sweep_evicts_only_expired_batches(store, clock):
    old = store.put("LCD_master", sample_rows())
    clock.advance(400)
    recent = store.put("player_master", sample_rows())
    clock.advance(300)

    assert store.sweep() == 1
    assert len(store) == 1
    assert store.get(old) is None
    assert store.get(recent) is not None


def test_retrieval_ids_are_unique(store):
    ids = {store.put("LCD_master", sample_rows()) for _ in range(50)}

    assert len(ids) == 50


def test_failed_rows_filename():
    assert failed_rows_filename("LCD_master", date(2024, 3, 9)) == "LCD_master_failed_20240309.csv"


def test_header_keeps_field_order_and_appends_synthetic_fields():
    rows = [
        FailedRow(line_number=2, values={"PN2": "a", "inch": "1"}, reason="x"),
        FailedRow(line_number=4, values={"PN2": "b", "colour": "red"}, reason="y"),
    ]

    assert failed_rows_header(rows) == ["PN2", "inch", "colour", LINE_NUMBER_FIELD, REASON_FIELD]


def test_rendered_csv_starts_with_bom_and_reads_back(store):
    batch = store.get(store.put("LCD_master", sample_rows()))

    content = render_failed_rows_csv(batch)
    assert content.startswith(b"\xef\xbb\xbf")

    frame = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, encoding="utf-8-sig")
    assert list(frame.columns) == ["PN2", "inch", LINE_NUMBER_FIELD, REASON_FIELD]
    assert frame[LINE_NUMBER_FIELD].tolist() == ["3", "5"]
    assert frame[REASON_FIELD].tolist() == ["PN2 is required", "[23505] duplicate key"]
    assert frame["PN2"].tolist() == ["", "LCD-43A"]


def test_sweeper_evicts_in_background(store, clock):
    batch_id = store.put("LCD_master", sample_rows())
    clock.advance(601)

    async def run():
        task = asyncio.create_task(store.run_sweeper(0.01))
        for _ in range(100):
            await asyncio.sleep(0.01)
            if len(store) == 0:
                break
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(run())

    assert len(store) == 0
    assert store.get(batch_id) is None
