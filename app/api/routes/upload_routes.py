"""
CSV upload API routes.
Endpoints for bulk-importing master rows and downloading the rows that failed.
"""

from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File, Form
from fastapi.responses import Response
from typing import Dict, Any
from app.core.csv_import_service import CsvImportService
from app.core.failed_row_store import FailedRowStore, failed_rows_filename, render_failed_rows_csv
from app.core.responses import ResponseHandler
from app.core.exceptions import AppException
from app.api.dependencies import get_csv_import_service, get_store
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["Upload"])


@router.post("/csv", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def upload_csv_file(
    file: UploadFile = File(...),
    table: str = Form(...),
    service: CsvImportService = Depends(get_csv_import_service)
):
    """
    Import a CSV file into a master table.

    Rows are inserted one by one; rejected rows do not stop the import and can
    be downloaded through the returned ``retrieval_id``.
    """
    try:
        if not file.filename or not file.filename.lower().endswith('.csv'):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only CSV files (.csv) are allowed"
            )

        result = service.import_file(table, file.file)
        return ResponseHandler.success(data=result.model_dump(), status_code=201)

    except HTTPException:
        raise
    except AppException as e:
        if e.status_code >= 500:
            logger.error(f"CSV import into {table} failed: {e.details}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in upload_csv_file: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
    finally:
        await file.close()


@router.get("/failed/{retrieval_id}")
async def download_failed_rows(
    retrieval_id: str,
    store: FailedRowStore = Depends(get_store)
):
    """
    Download the rows rejected by an import as CSV.

    Batches are kept for a limited time; afterwards this returns 404.
    """
    batch = store.get(retrieval_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="Failed rows not found or expired")

    filename = failed_rows_filename(batch.table_name)
    return Response(
        content=render_failed_rows_csv(batch),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
