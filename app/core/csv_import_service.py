"""
CSV import service.
Bulk-inserts the records of an uploaded CSV into a master table, one row at a time,
collecting rejected rows instead of aborting.
"""

import math
import os
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from app.config import settings
from app.core.exceptions import AppException, CsvParseError
from app.core.failed_row_store import FailedRow, FailedRowStore, get_failed_row_store
from app.core.logging_config import get_logger, log_operation_start, log_operation_end, log_row_rejected
from app.core.master_data_service import MasterDataService, build_master_data_service
from app.core.schema_catalog import SchemaCatalog
from app.schemas.upload import CsvImportResponse

logger = get_logger(__name__)

NULL_TOKENS = ("", "NULL")
TRUE_TOKENS = {"1", "true", "yes", "y", "on"}
FALSE_TOKENS = {"0", "false", "no", "n", "off"}

# First data row sits under the header on line 2
FIRST_DATA_LINE = 2


@dataclass
class ImportedRow:
    line_number: int
    values: Dict[str, Any]


RowResult = Union[ImportedRow, FailedRow]


@dataclass
class ImportOutcome:
    """Per-row results of one import, split by success."""
    succeeded: List[ImportedRow] = field(default_factory=list)
    failed: List[FailedRow] = field(default_factory=list)

    def add(self, result: RowResult) -> "ImportOutcome":
        if isinstance(result, FailedRow):
            self.failed.append(result)
        else:
            self.succeeded.append(result)
        return self

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


class CsvImportService:
    """Service for CSV uploads into master tables."""

    def __init__(
        self,
        catalog: SchemaCatalog,
        data_service: MasterDataService,
        failed_row_store: FailedRowStore,
        flag_column: str = "is_active",
        numeric_columns: Sequence[str] = ("inch",),
        required_label_column: Optional[str] = "PN2",
        preview_rows: int = 5,
    ):
        self.catalog = catalog
        self.data_service = data_service
        self.failed_row_store = failed_row_store
        self.flag_column = flag_column
        self.numeric_columns = frozenset(numeric_columns)
        self.required_label_column = required_label_column
        self.preview_rows = preview_rows

    @staticmethod
    def read_records(file_path: str) -> List[Tuple[int, Dict[str, str]]]:
        """
        Parse a CSV file whose first row holds the field names.

        Blank lines are skipped, names and values are trimmed.

        Returns:
            List of (line_number, record) pairs

        Raises:
            CsvParseError: If the file cannot be read as CSV or a row has more
                fields than the header
        """
        try:
            df = pd.read_csv(
                file_path,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding="utf-8-sig",
            )
        except pd.errors.EmptyDataError:
            raise CsvParseError("CSV file is empty")
        except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
            raise CsvParseError(f"Invalid CSV file: {str(e)}")

        # A first data row wider than the header turns into an implicit index
        # and shifts every value one column left
        if not isinstance(df.index, pd.RangeIndex):
            raise CsvParseError("Invalid CSV file: first data row has more fields than the header")

        df.columns = [str(col).strip() for col in df.columns]
        df = df.fillna("")

        records = []
        for index, raw in enumerate(df.to_dict(orient="records")):
            record = {key: str(value).strip() for key, value in raw.items()}
            records.append((index + FIRST_DATA_LINE, record))
        return records

    @staticmethod
    def parse_flag(column: str, value: str) -> int:
        token = value.lower()
        if token in TRUE_TOKENS:
            return 1
        if token in FALSE_TOKENS:
            return 0
        raise ValueError(f"{column} must be 0 or 1, got {value!r}")

    @staticmethod
    def parse_number(column: str, value: str) -> Union[int, float]:
        try:
            return int(value)
        except ValueError:
            pass
        try:
            number = float(value)
        except ValueError:
            raise ValueError(f"{column} must be numeric, got {value!r}")
        if not math.isfinite(number):
            raise ValueError(f"{column} must be numeric, got {value!r}")
        return number

    def coerce_value(self, column: str, value: str) -> Any:
        """Convert one CSV cell to the value bound for its column."""
        if value in NULL_TOKENS:
            return None
        if column == self.flag_column:
            return self.parse_flag(column, value)
        if column in self.numeric_columns:
            return self.parse_number(column, value)
        return value

    def process_record(
        self,
        table_name: str,
        insertable: Sequence[str],
        line_number: int,
        record: Dict[str, str]
    ) -> RowResult:
        """Validate, coerce and insert one record; never raises."""
        columns = [key for key in record if key in insertable]
        if not columns:
            return FailedRow(
                line_number=line_number,
                values=record,
                reason=(
                    f"No CSV columns match {table_name}. "
                    f"CSV columns: {', '.join(record.keys()) or '(none)'}"
                ),
            )

        try:
            values = {column: self.coerce_value(column, record[column]) for column in columns}

            label = self.required_label_column
            if label and label in record and not record[label].strip():
                return FailedRow(line_number=line_number, values=record, reason=f"{label} is required")

            self.data_service.insert_values(table_name, values)

        except AppException as e:
            reason = e.details.get("db_error") or e.message
            log_row_rejected(logger, table_name, line_number, reason)
            return FailedRow(line_number=line_number, values=record, reason=reason)
        except Exception as e:
            reason = str(e) or type(e).__name__
            log_row_rejected(logger, table_name, line_number, reason)
            return FailedRow(line_number=line_number, values=record, reason=reason)

        return ImportedRow(line_number=line_number, values=values)

    def process_records(
        self,
        table_name: str,
        insertable: Sequence[str],
        records: List[Tuple[int, Dict[str, str]]]
    ) -> ImportOutcome:
        """Fold every record into an ImportOutcome, strictly in file order."""
        outcome = ImportOutcome()
        for line_number, record in records:
            outcome.add(self.process_record(table_name, insertable, line_number, record))
        return outcome

    def import_file(self, table_name: str, source: BinaryIO) -> CsvImportResponse:
        """
        Import an uploaded CSV stream into ``table_name``.

        The table is checked before the stream is read. The stream is spooled
        to a temporary file that is removed on every exit path.

        Args:
            table_name: Target master table
            source: Binary file object with the uploaded content

        Returns:
            CsvImportResponse with counts, preview and retrieval id
        """
        self.catalog.require_table(table_name)
        log_operation_start(logger, "csv_import", table=table_name)
        start_time = time.time()

        insertable = [column.name for column in self.data_service.insertable_columns(table_name)]

        tmp = tempfile.NamedTemporaryFile(prefix="master_import_", suffix=".csv", delete=False)
        try:
            with tmp:
                shutil.copyfileobj(source, tmp)
            records = self.read_records(tmp.name)
            outcome = self.process_records(table_name, insertable, records)
        except Exception as e:
            log_operation_end(logger, "csv_import", success=False, table=table_name, error=str(e))
            raise
        finally:
            if os.path.exists(tmp.name):
                os.remove(tmp.name)

        retrieval_id = None
        if outcome.failed:
            retrieval_id = self.failed_row_store.put(table_name, outcome.failed)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"CSV import into {table_name}: {outcome.total} rows, "
            f"{len(outcome.succeeded)} ok, {len(outcome.failed)} failed, {duration_ms:.2f}ms",
            extra={
                "table": table_name,
                "rows": outcome.total,
                "duration_ms": duration_ms
            }
        )
        log_operation_end(
            logger,
            "csv_import",
            success=True,
            table=table_name,
            ok_count=len(outcome.succeeded),
            failed_count=len(outcome.failed)
        )

        return CsvImportResponse(
            table=table_name,
            count=outcome.total,
            ok_count=len(outcome.succeeded),
            failed_count=len(outcome.failed),
            preview=[record for _, record in records[:self.preview_rows]],
            retrieval_id=retrieval_id,
        )


def build_csv_import_service(
    catalog: Optional[SchemaCatalog] = None,
    data_service: Optional[MasterDataService] = None,
    failed_row_store: Optional[FailedRowStore] = None
) -> CsvImportService:
    """CsvImportService configured from settings."""
    data_service = data_service or build_master_data_service(catalog)
    return CsvImportService(
        catalog=catalog or data_service.catalog,
        data_service=data_service,
        failed_row_store=failed_row_store if failed_row_store is not None else get_failed_row_store(),
        flag_column=settings.FLAG_COLUMN,
        numeric_columns=settings.NUMERIC_COLUMNS,
        required_label_column=settings.REQUIRED_LABEL_COLUMN,
        preview_rows=settings.CSV_PREVIEW_ROWS,
    )
