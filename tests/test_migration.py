"""Migration tests against in-memory SQLite."""

from __future__ import annotations

import sqlite3

import pytest
from sample_records import AddColumnRenamed, AddColumnV1, AddColumnV2, Basic, Constrained

from tabula import Database, Migration, get_dialect
from tabula.adapters import SQLiteAdapter
from tabula.errors import ColumnRenameError, ConfigError, MigrationError, QueryError


class FailingCursor:
    def execute(self, sql, args=None):
        raise RuntimeError("disk full")

    def close(self):
        pass


class FailingConnection:
    def __init__(self):
        self.rolled_back = False

    def cursor(self):
        return FailingCursor()

    def commit(self):
        pass

    def rollback(self):
        self.rolled_back = True


class TestCreateTable:
    def test_idempotent(self, db):
        with db.migration() as m:
            first = m.create_table_if_not_exists(Constrained)
            second = m.create_table_if_not_exists(Constrained)
        assert len(first) == 3
        assert all(sql.startswith("CREATE") for sql in first)
        assert second == []

    def test_accepts_instance(self, db):
        with db.migration() as m:
            m.create_table_if_not_exists(AddColumnV1(name="x"))
            assert m.dialect.columns_in_table(m, "add_column") == {"id", "name"}

    def test_failure_is_wrapped(self):
        conn = FailingConnection()
        m = Migration(conn, get_dialect("sqlite"))
        with pytest.raises(MigrationError) as exc:
            m.create_table_if_not_exists(Basic)
        assert exc.value.context.table == "basic"
        assert isinstance(exc.value.cause, RuntimeError)
        assert conn.rolled_back

    def test_owned_connection_is_closed(self):
        conn = sqlite3.connect(":memory:")
        with Migration(conn, get_dialect("sqlite"), owns_connection=True) as m:
            m.create_table_if_not_exists(Basic)
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")


class TestAddColumn:
    def test_adds_missing_column_and_keeps_rows(self, db):
        with db.migration() as m:
            m.create_table_if_not_exists(AddColumnV1)
        with db.session() as s:
            s.save(AddColumnV1(name="kept"))

        with db.migration() as m:
            issued = m.create_table_if_not_exists(AddColumnV2)
        assert issued == ["ALTER TABLE `add_column` ADD COLUMN `email` text"]

        with db.session() as s:
            found = s.find(AddColumnV2(id=1))
            assert found.name == "kept"
            s.save(AddColumnV2(name="new", email="a@b.c"))
            assert s.where("email = ?", "a@b.c").count(AddColumnV2) == 1

    def test_rename_is_refused(self, db):
        with db.migration() as m:
            m.create_table_if_not_exists(AddColumnV1)
            with pytest.raises(ColumnRenameError) as exc:
                m.create_table_if_not_exists(AddColumnRenamed)
        assert exc.value.missing == ["name"]
        assert isinstance(exc.value, MigrationError)

    def test_fewer_fields_is_fine(self, db):
        with db.migration() as m:
            m.create_table_if_not_exists(AddColumnV2)
            assert m.create_table_if_not_exists(AddColumnV1) == []


class TestIndexes:
    def test_create_index_if_not_exists(self, db):
        with db.migration() as m:
            sql = m.create_index_if_not_exists(Basic, "name", False, "name")
            assert sql == "CREATE INDEX `basic_name` ON `basic` (`name`)"
            assert m.create_index_if_not_exists("basic", "name", False, "name") is None
            assert m.dialect.index_exists(m, "basic", "basic_name")

    def test_failed_index_does_not_stop_the_rest(self, db):
        with db.session() as s:
            s.exec(
                "CREATE TABLE constrained (id integer PRIMARY KEY AUTOINCREMENT NOT NULL, "
                "email text NOT NULL, city text, zip_code text DEFAULT '00000', first text, last text)"
            )
            s.exec("INSERT INTO constrained (email, first) VALUES (?, ?)", "dup@x", "a")
            s.exec("INSERT INTO constrained (email, first) VALUES (?, ?)", "dup@x", "b")

        with db.migration() as m:
            with pytest.raises(MigrationError, match="constrained"):
                m.create_table_if_not_exists(Constrained)
            assert not m.dialect.index_exists(m, "constrained", "constrained_email")
            assert m.dialect.index_exists(m, "constrained", "constrained_city")
            assert m.dialect.index_exists(m, "constrained", "constrained_first_last")


class TestDrop:
    def test_drop_on_test_database(self, db):
        with db.migration() as m:
            m.drop_table(Basic)
        with db.session() as s:
            with pytest.raises(QueryError):
                s.count(Basic)

    def test_drop_refused_elsewhere(self):
        database = Database(SQLiteAdapter(":memory:"), db_name="production")
        try:
            with database.migration() as m:
                with pytest.raises(ConfigError, match="test databases"):
                    m.drop_table(Basic)
        finally:
            database.close()

    def test_drop_if_exists_tolerates_absence(self, db):
        with db.migration() as m:
            m.drop_table_if_exists("never_created")
