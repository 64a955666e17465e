"""Tests for the prepared-statement cache and its lock."""

from __future__ import annotations

import threading
import time

from tabula.statements import PreparedStatement, ReadWriteLock, StatementCache


class FakeCursor:
    def __init__(self):
        self.calls = []

    def execute(self, sql, args=None):
        self.calls.append((sql, args))


class TestPreparedStatement:
    def test_execute_with_args_uses_driver_sql(self):
        stmt = PreparedStatement("a = ?", "a = %s")
        cursor = FakeCursor()
        assert stmt.execute(cursor, [1]) is cursor
        assert cursor.calls == [("a = %s", (1,))]

    def test_execute_without_args_uses_sql(self):
        stmt = PreparedStatement("SELECT '100%'", "SELECT '100%%'")
        cursor = FakeCursor()
        stmt.execute(cursor)
        assert cursor.calls == [("SELECT '100%'", None)]

    def test_driver_sql_defaults_to_sql(self):
        assert PreparedStatement("SELECT 1").driver_sql == "SELECT 1"


class TestStatementCache:
    def test_prepares_once(self):
        cache = StatementCache()
        made = []

        def factory(sql):
            made.append(sql)
            return PreparedStatement(sql)

        first = cache.get_or_prepare("SELECT 1", factory)
        second = cache.get_or_prepare("SELECT 1", factory)
        assert first is second
        assert made == ["SELECT 1"]
        assert "SELECT 1" in cache
        assert len(cache) == 1

    def test_clear(self):
        cache = StatementCache()
        cache.get_or_prepare("SELECT 1", PreparedStatement)
        cache.clear()
        assert len(cache) == 0
        assert "SELECT 1" not in cache

    def test_concurrent_callers_share_statement(self):
        cache = StatementCache()
        made = []
        lock = threading.Lock()

        def factory(sql):
            with lock:
                made.append(sql)
            time.sleep(0.01)
            return PreparedStatement(sql)

        results = []
        threads = [
            threading.Thread(target=lambda: results.append(cache.get_or_prepare("SELECT 2", factory)))
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(made) == 1
        assert len({id(r) for r in results}) == 1


class TestReadWriteLock:
    def test_readers_share(self):
        lock = ReadWriteLock()
        lock.acquire_read()
        lock.acquire_read()
        lock.release_read()
        lock.release_read()

    def test_writer_waits_for_reader(self):
        lock = ReadWriteLock()
        order = []
        lock.acquire_read()

        def writer():
            with lock.write_locked():
                order.append("write")

        t = threading.Thread(target=writer)
        t.start()
        time.sleep(0.05)
        order.append("read-done")
        lock.release_read()
        t.join(timeout=2)
        assert order == ["read-done", "write"]
