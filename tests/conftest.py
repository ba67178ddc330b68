"""
Pytest configuration and fixtures for the Master Data Console tests.

The database is replaced by ``FakeDatabase`` and time by ``FakeClock``,
both from ``tests/utils/fake_database.py``.
"""

import os

# No log files during tests
os.environ.setdefault("ENABLE_FILE_LOGGING", "false")

import pytest

from app.core.csv_import_service import CsvImportService
from app.core.failed_row_store import FailedRowStore
from app.core.master_data_service import MasterDataService
from app.core.schema_catalog import SchemaCatalog
from tests.utils.fake_database import FakeClock, FakeDatabase, column, lcd_rows, serial_id


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_db():
    db = FakeDatabase()
    db.add_table(
        "LCD_master",
        [
            serial_id("LCD_master"),
            column("PN2", "character varying", "NO"),
            column("inch", "numeric"),
            column("supplier_id", "integer"),
            column("is_active", "integer", "NO", "1"),
            column("created_at", "timestamp without time zone", "YES", "CURRENT_TIMESTAMP"),
        ],
        rows=lcd_rows(),
        unique=["PN2"],
        defaults={"is_active": 1},
    )
    db.add_table(
        "player_master",
        [serial_id("player_master"), column("name", "character varying")],
        rows=[{"id": 1, "name": "BrightSign XT"}],
    )
    db.add_table(
        "supplier_master",
        [serial_id("supplier_master"), column("name", "character varying")],
        rows=[{"id": 1, "name": "Acme"}],
    )
    db.add_table("users", [serial_id("users"), column("email")])
    return db


@pytest.fixture
def catalog(fake_db, clock):
    return SchemaCatalog(
        db_manager=fake_db,
        schema="public",
        table_suffix="_master",
        excluded_tables=["supplier_master"],
        ttl_seconds=30.0,
        clock=clock,
    )


@pytest.fixture
def data_service(catalog, fake_db):
    return MasterDataService(catalog=catalog, db_manager=fake_db)


@pytest.fixture
def store(clock):
    return FailedRowStore(retention_seconds=600.0, clock=clock)


@pytest.fixture
def import_service(catalog, data_service, store):
    return CsvImportService(
        catalog=catalog,
        data_service=data_service,
        failed_row_store=store,
    )


@pytest.fixture
def client(catalog, data_service, import_service, store):
    """TestClient wired to the fake database."""
    from fastapi.testclient import TestClient
    from main import app
    from app.api.dependencies import (
        get_catalog,
        get_csv_import_service,
        get_master_data_service,
        get_store,
    )

    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_master_data_service] = lambda: data_service
    app.dependency_overrides[get_csv_import_service] = lambda: import_service
    app.dependency_overrides[get_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
