"""
Pydantic schemas for CSV upload endpoints.
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any


class CsvImportResponse(BaseModel):
    """Summary of one CSV import."""

    table: str
    count: int = Field(description="Number of data records in the file")
    ok_count: int = Field(description="Records inserted")
    failed_count: int = Field(description="Records rejected")
    preview: List[Dict[str, Any]] = Field(default_factory=list, description="First records of the file as read")
    retrieval_id: Optional[str] = Field(None, description="Id for downloading the rejected records, when any")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "table": "LCD_master",
                "count": 3,
                "ok_count": 2,
                "failed_count": 1,
                "preview": [{"PN2": "LCD-55A", "inch": "55", "is_active": "1"}],
                "retrieval_id": "0f8b6c1d9a3e4f5b8c7d6e5f4a3b2c1d"
            }
        }
    )
