"""
Shared pytest fixtures for tabula tests.

This module provides:
- Per-dialect fixtures (parametrised and by name)
- An in-memory SQLite ``Database`` with the sample tables migrated
- Naming-convention isolation

Usage:
    Fixtures are auto-discovered by pytest; request them by argument name.

    def test_something(db, session):
        ...
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sample_records import Basic, Comment, Flags, Post, Stamped, User

from tabula import Database, Dialect, get_dialect
from tabula.adapters import SQLiteAdapter
from tabula.naming import get_naming, set_naming
from tabula.session import Session

# =============================================================================
# Dialects
# =============================================================================


@pytest.fixture(params=["sqlite", "postgresql", "mysql", "oracle"])
def dialect(request: pytest.FixtureRequest) -> Dialect:
    """Parametric fixture: run each test against every dialect."""
    return get_dialect(request.param)


@pytest.fixture
def sqlite() -> Dialect:
    return get_dialect("sqlite")


@pytest.fixture
def pg() -> Dialect:
    return get_dialect("postgresql")


@pytest.fixture
def mysql() -> Dialect:
    return get_dialect("mysql")


@pytest.fixture
def oracle() -> Dialect:
    return get_dialect("oracle")


# =============================================================================
# Databases
# =============================================================================


@pytest.fixture
def db() -> Iterator[Database]:
    """In-memory SQLite database with the sample tables created."""
    database = Database(SQLiteAdapter(":memory:"), db_name="tabula_test")
    with database.migration() as m:
        for record in (Basic, User, Post, Comment, Stamped, Flags):
            m.create_table_if_not_exists(record)
    yield database
    database.close()


@pytest.fixture
def session(db: Database) -> Iterator[Session]:
    with db.session() as s:
        yield s


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture
def restore_naming() -> Iterator[None]:
    """Put the process-wide naming convention back after the test."""
    saved = get_naming()
    yield
    set_naming(saved)
