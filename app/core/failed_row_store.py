"""
Failed-row retention store.
Keeps rows rejected by a CSV import in memory for a short window so they can be downloaded and fixed.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

import pandas as pd

from app.config import settings
from app.core.logging_config import get_logger

logger = get_logger(__name__)

LINE_NUMBER_FIELD = "_line_number"
REASON_FIELD = "_reason"


@dataclass
class FailedRow:
    """A CSV record that could not be inserted."""
    line_number: int
    values: Dict[str, str]
    reason: str

    def to_record(self) -> Dict[str, object]:
        record: Dict[str, object] = dict(self.values)
        record[LINE_NUMBER_FIELD] = self.line_number
        record[REASON_FIELD] = self.reason
        return record


@dataclass
class ImportBatch:
    batch_id: str
    table_name: str
    created_at: float
    rows: List[FailedRow] = field(default_factory=list)
    created_on: datetime = field(default_factory=datetime.now)


class FailedRowStore:
    """
    Process-local keyed store of failed import batches.

    Batches expire ``retention_seconds`` after creation whether or not they
    were downloaded. ``get`` never returns an expired batch, ``sweep`` frees
    the memory. Nothing survives a restart.
    """

    def __init__(self, retention_seconds: float = 600.0, clock: Callable[[], float] = time.monotonic):
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._batches: Dict[str, ImportBatch] = {}

    def __len__(self) -> int:
        return len(self._batches)

    def _is_expired(self, batch: ImportBatch, now: float) -> bool:
        return now - batch.created_at >= self.retention_seconds

    def put(self, table_name: str, rows: List[FailedRow]) -> str:
        """Store a batch and return its retrieval id."""
        batch_id = uuid.uuid4().hex
        self._batches[batch_id] = ImportBatch(
            batch_id=batch_id,
            table_name=table_name,
            created_at=self._clock(),
            rows=list(rows),
        )
        logger.info(f"Stored {len(rows)} failed rows for {table_name} as {batch_id}")
        return batch_id

    def get(self, batch_id: str) -> Optional[ImportBatch]:
        batch = self._batches.get(batch_id)
        if batch is None or self._is_expired(batch, self._clock()):
            return None
        return batch

    def sweep(self) -> int:
        """Evict expired batches and return how many were removed."""
        now = self._clock()
        expired = [key for key, batch in self._batches.items() if self._is_expired(batch, now)]
        for key in expired:
            del self._batches[key]
        if expired:
            logger.info(f"Evicted {len(expired)} expired failed-row batches")
        return len(expired)

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Sweep forever on a fixed interval; cancelled on shutdown."""
        logger.info(f"Failed-row sweeper started (every {interval_seconds}s)")
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep()


def failed_rows_header(rows: List[FailedRow]) -> List[str]:
    """Original field names in first-seen order, then the two synthetic fields."""
    header: List[str] = []
    for row in rows:
        for key in row.values:
            if key not in header:
                header.append(key)
    return header + [LINE_NUMBER_FIELD, REASON_FIELD]


def render_failed_rows_csv(batch: ImportBatch) -> bytes:
    """Render a batch as UTF-8 CSV with a byte order mark for spreadsheet tools."""
    header = failed_rows_header(batch.rows)
    frame = pd.DataFrame([row.to_record() for row in batch.rows], columns=header)
    text = frame.to_csv(index=False, lineterminator="\n")
    return ("\ufeff" + text).encode("utf-8")


def failed_rows_filename(table_name: str, day: Optional[date] = None) -> str:
    day = day or date.today()
    return f"{table_name}_failed_{day.strftime('%Y%m%d')}.csv"


_store: Optional[FailedRowStore] = None


def get_failed_row_store() -> FailedRowStore:
    """Get the process-wide FailedRowStore built from settings."""
    global _store
    if _store is None:
        _store = FailedRowStore(retention_seconds=settings.FAILED_ROWS_RETENTION_SECONDS)
    return _store
