import os
from collections.abc import Generator
from importlib import resources
from typing import Any

import psycopg
import pytest

from filegate.config.settings import Settings
from filegate.database.connection import close_pool, get_connection, init_pool

_TABLES = ("upload_audit", "file_reputation", "upload_rate_limits", "csv_staging", "csv_imports")


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "filegate_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        with get_connection() as conn:
            conn.execute(resources.files("filegate.database").joinpath("schema.sql").read_text())
            conn.commit()
    except Exception as e:
        close_pool()
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to run.")
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture(autouse=True)
def clean_tables(request: pytest.FixtureRequest) -> Generator[None, None, None]:
    yield
    if "integration_pool" not in request.fixturenames:
        return
    with get_connection() as conn:
        for table in _TABLES:
            conn.execute(f"DELETE FROM {table}")
        conn.commit()
