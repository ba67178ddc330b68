"""
API Dependencies.
Provides the shared catalog, store and services to route handlers.
"""

from fastapi import Depends

from app.core.csv_import_service import CsvImportService, build_csv_import_service
from app.core.failed_row_store import FailedRowStore, get_failed_row_store
from app.core.master_data_service import MasterDataService, build_master_data_service
from app.core.schema_catalog import SchemaCatalog, get_schema_catalog


def get_catalog() -> SchemaCatalog:
    """Process-wide schema catalog."""
    return get_schema_catalog()


def get_store() -> FailedRowStore:
    """Process-wide failed-row store."""
    return get_failed_row_store()


def get_master_data_service(
    catalog: SchemaCatalog = Depends(get_catalog)
) -> MasterDataService:
    return build_master_data_service(catalog)


def get_csv_import_service(
    catalog: SchemaCatalog = Depends(get_catalog),
    data_service: MasterDataService = Depends(get_master_data_service),
    store: FailedRowStore = Depends(get_store)
) -> CsvImportService:
    return build_csv_import_service(catalog, data_service, store)
