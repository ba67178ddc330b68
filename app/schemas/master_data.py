"""
Pydantic schemas for master table endpoints.
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List, Optional


class ColumnInfo(BaseModel):
    name: str
    data_type: str
    is_nullable: bool
    default: Optional[str] = None
    is_auto_generated: bool = False


class MasterTableSummary(BaseModel):
    """A discovered master table."""

    table: str
    label: str
    columns: List[ColumnInfo]


class MasterTableColumnsResponse(BaseModel):
    """Columns of a master table, as needed by the register form."""

    table: str
    columns: List[ColumnInfo]
    insertable_columns: List[str]


class MasterRowsResponse(BaseModel):
    table: str
    label: str
    flags: Dict[str, Any]
    rows: List[Dict[str, Any]]


class MasterRowCreateRequest(BaseModel):
    """Request schema for registering a row by hand."""

    record: Dict[str, Any] = Field(..., description="Column name to value")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "record": {"PN2": "LCD-55A", "inch": 55, "supplier_id": 3}
            }
        }
    )


class ToggleActiveRequest(BaseModel):
    """
    Fields are untyped so missing or malformed values reach the service
    and are reported in the toggle error format instead of a 422.
    """

    table: Optional[Any] = None
    id: Optional[Any] = None
