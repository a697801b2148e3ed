"""
Pytest configuration and fixtures for integration tests.

Provides the shared database fixture. Database tests are skipped when
DATABASE_URL is not set or the database is unreachable.
"""

from pathlib import Path
import os

import pytest
from dotenv import load_dotenv

from db.database import init_connection_pool, close_connection_pool, get_db_connection, health_check

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "db" / "migrations"


@pytest.fixture(scope="module")
def db_connection():
    """
    Initialize database connection pool for tests.

    This fixture:
    - Loads environment variables from .env file
    - Skips the module when DATABASE_URL is missing or the database is down
    - Applies the schema migrations (idempotent)
    - Closes the pool after the module's tests complete
    """
    load_dotenv()

    if not os.getenv("DATABASE_URL"):
        pytest.skip("DATABASE_URL not set - skipping database tests")

    init_connection_pool(min_connections=1, max_connections=5)

    if not health_check():
        close_connection_pool()
        pytest.skip("Database health check failed - skipping tests")

    with get_db_connection() as conn:
        with conn.cursor() as cursor:
            for migration in sorted(MIGRATIONS_DIR.glob("*.sql")):
                cursor.execute(migration.read_text())

    yield

    close_connection_pool()
