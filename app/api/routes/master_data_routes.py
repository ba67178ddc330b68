"""
Master Data API Routes.
Endpoints for listing, viewing, registering and toggling rows of the master tables.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from typing import Dict, Any
from app.schemas.master_data import (
    ColumnInfo,
    MasterRowCreateRequest,
    MasterRowsResponse,
    MasterTableColumnsResponse,
    MasterTableSummary,
    ToggleActiveRequest,
)
from app.core.master_data_service import MasterDataService, parse_row_id
from app.core.schema_catalog import SchemaCatalog, ColumnDescriptor, display_label_for
from app.core.responses import ResponseHandler
from app.core.exceptions import AppException
from app.api.dependencies import get_catalog, get_master_data_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/masters", tags=["Master Data"])


def _column_info(column: ColumnDescriptor) -> ColumnInfo:
    return ColumnInfo(
        name=column.name,
        data_type=column.data_type,
        is_nullable=column.is_nullable,
        default=column.default,
        is_auto_generated=column.is_auto_generated,
    )


@router.get("", response_model=Dict[str, Any])
async def list_all_masters(
    service: MasterDataService = Depends(get_master_data_service)
):
    """
    Rows of every master table.

    Each entry carries the flags telling which optional columns exist, so the
    client knows whether to offer a toggle.
    """
    try:
        return ResponseHandler.success(data=service.list_all())

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_all_masters: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/tables", response_model=Dict[str, Any])
async def list_master_tables(
    catalog: SchemaCatalog = Depends(get_catalog)
):
    """Discovered master tables with their columns."""
    try:
        tables = [
            MasterTableSummary(
                table=table.name,
                label=table.display_label,
                columns=[_column_info(column) for column in table.columns],
            ).model_dump()
            for table in catalog.master_tables()
        ]
        return ResponseHandler.success(data=tables)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_master_tables: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/toggle-active")
async def toggle_active(
    request: ToggleActiveRequest,
    service: MasterDataService = Depends(get_master_data_service)
):
    """
    Flip is_active of one row.

    Responds ``{success, id, is_active}``, or ``{error}`` with a 4xx/5xx status.
    """
    if request.table in (None, "") or request.id in (None, ""):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "table and id are required"})

    try:
        new_state = service.toggle_active(request.table, request.id)
        return {"success": True, "id": parse_row_id(request.id), "is_active": new_state}

    except AppException as e:
        if e.status_code >= 500:
            logger.error(f"Toggle failed for {request.table}/{request.id}: {e.details}")
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except Exception as e:
        logger.error(f"Unexpected error in toggle_active: {str(e)}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


@router.get("/{table}", response_model=Dict[str, Any])
async def list_master_rows(
    table: str,
    service: MasterDataService = Depends(get_master_data_service)
):
    """Rows of one master table, ordered by id."""
    try:
        rows, flags = service.list_rows(table)
        response_data = MasterRowsResponse(
            table=table,
            label=display_label_for(table, service.catalog.table_suffix),
            flags=flags.as_dict(),
            rows=rows,
        )
        return ResponseHandler.success(data=response_data.model_dump())

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in list_master_rows: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{table}/columns", response_model=Dict[str, Any])
async def get_master_columns(
    table: str,
    service: MasterDataService = Depends(get_master_data_service)
):
    """Column metadata for the register form."""
    try:
        columns = service.catalog.describe(table)
        response_data = MasterTableColumnsResponse(
            table=table,
            columns=[_column_info(column) for column in columns],
            insertable_columns=[column.name for column in service.insertable_columns(table)],
        )
        return ResponseHandler.success(data=response_data.model_dump())

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_master_columns: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{table}/{row_id}", response_model=Dict[str, Any])
async def get_master_row(
    table: str,
    row_id: str,
    service: MasterDataService = Depends(get_master_data_service)
):
    """One full row of a master table."""
    try:
        row = service.get_row(table, row_id)
        return ResponseHandler.success(data={"table": table, "row": row})

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in get_master_row: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/{table}", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def register_master_row(
    table: str,
    request: MasterRowCreateRequest,
    service: MasterDataService = Depends(get_master_data_service)
):
    """
    Register a row by hand.

    Raises 409 if a unique column already holds the value.
    """
    try:
        service.insert_row(table, request.record)
        return ResponseHandler.success(data={"table": table}, status_code=201)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error in register_master_row: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
