"""Tests for ``tabula.dialect``: SQL rendering per engine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sample_records import (
    Basic,
    Constrained,
    Post,
    SqlGenModel,
    Student,
    TypeSampler,
    WithoutPk,
    WithPk,
)

from tabula import Condition, Criteria, Dialect, extract, get_dialect, register_dialect
from tabula.criteria import Order
from tabula.dialect import MySQLDialect, OracleDialect, PostgreSQLDialect, SQLiteDialect
from tabula.errors import ConfigError, MissingConditionError, UnsupportedColumnTypeError
from tabula.model import ModelField
from tabula.types import FieldType, ScalarKind


def _criteria(record, dialect: Dialect | None = None, **kwargs) -> Criteria:
    c = Criteria(model=extract(record), **kwargs)
    if dialect is not None:
        c.merge_pk_condition(dialect)
    return c


def _student_criteria(dialect: Dialect) -> Criteria:
    condition = Condition.in_("grade", [6, 7, 8])
    condition.and_condition(Condition("score <= ?", 60).or_("score >= ?", 80))
    return Criteria(
        model=extract(Student()),
        condition=condition,
        order_bys=[Order(dialect.quote("name")), Order(dialect.quote("grade"), True)],
        limit=10,
        offset=20,
    )


# =========================================================================
# Registry
# =========================================================================


class TestRegistry:
    def test_lookup_by_name_and_alias(self):
        assert isinstance(get_dialect("postgres"), PostgreSQLDialect)
        assert isinstance(get_dialect("SQLite3"), SQLiteDialect)
        assert isinstance(get_dialect("mysql"), MySQLDialect)
        assert isinstance(get_dialect("oracle"), OracleDialect)

    def test_unknown(self):
        with pytest.raises(ConfigError, match="Unknown dialect"):
            get_dialect("db2")

    def test_register(self):
        class Custom(SQLiteDialect):
            name = "custom"

        register_dialect("Custom", Custom())
        assert get_dialect("custom").name == "custom"

    def test_every_dialect_is_a_dialect(self, dialect):
        assert isinstance(dialect, Dialect)


# =========================================================================
# Identifiers and markers
# =========================================================================


class TestQuoting:
    def test_quote_path(self, pg, mysql):
        assert pg.quote("post.author_id") == '"post"."author_id"'
        assert mysql.quote("post.author_id") == "`post`.`author_id`"

    def test_markers(self, pg, oracle, mysql, sqlite):
        sql = "a = ? AND b = ?"
        assert pg.substitute_markers(sql) == "a = $1 AND b = $2"
        assert oracle.substitute_markers(sql) == "a = :1 AND b = :2"
        assert mysql.substitute_markers(sql) == sql
        assert sqlite.substitute_markers(sql) == sql

    def test_driver_sql_mysql(self, mysql):
        stmt = mysql.prepare("SELECT * FROM t WHERE a = ? AND b LIKE '5%'")
        assert stmt.driver_sql == "SELECT * FROM t WHERE a = %s AND b LIKE '5%%'"
        assert stmt.sql == "SELECT * FROM t WHERE a = ? AND b LIKE '5%'"

    def test_driver_sql_postgresql(self, pg):
        assert pg.driver_sql("a = $1 AND b = $2") == "a = %s AND b = %s"

    def test_driver_sql_native(self, sqlite, oracle):
        assert sqlite.driver_sql("a = ?") == "a = ?"
        assert oracle.driver_sql("a = :1") == "a = :1"


# =========================================================================
# Type mapping
# =========================================================================

TYPES = {
    "postgresql": {
        "flag": "boolean",
        "small": "integer",
        "big": "bigint",
        "unsigned": "bigint",
        "ratio": "double precision",
        "short_text": "varchar(128)",
        "long_text": "text",
        "huge_text": "text",
        "payload": "bytea",
        "short_payload": "bytea",
        "stamp": "timestamp with time zone",
        "money": "double precision",
    },
    "mysql": {
        "flag": "boolean",
        "small": "int",
        "big": "bigint",
        "unsigned": "bigint",
        "ratio": "double",
        "short_text": "varchar(128)",
        "long_text": "longtext",
        "huge_text": "longtext",
        "payload": "longblob",
        "short_payload": "varbinary(16)",
        "stamp": "timestamp",
        "money": "double",
    },
    "sqlite": {
        "flag": "integer",
        "small": "integer",
        "big": "integer",
        "unsigned": "integer",
        "ratio": "real",
        "short_text": "text",
        "long_text": "text",
        "huge_text": "text",
        "payload": "blob",
        "short_payload": "blob",
        "stamp": "text",
        "money": "real",
    },
    "oracle": {
        "flag": "NUMBER(1)",
        "small": "NUMBER",
        "big": "NUMBER",
        "unsigned": "NUMBER",
        "ratio": "NUMBER(16,2)",
        "short_text": "VARCHAR2(128)",
        "long_text": "CLOB",
        "huge_text": "CLOB",
        "payload": "CLOB",
        "short_payload": "VARCHAR2(16)",
        "stamp": "DATE",
        "money": "NUMBER(16,2)",
    },
}


class TestColumnTypes:
    @pytest.mark.parametrize("dialect_name", sorted(TYPES))
    def test_type_table(self, dialect_name):
        d = get_dialect(dialect_name)
        m = extract(TypeSampler())
        actual = {attr: d.column_type(m.field_by_attr(attr)) for attr in TYPES[dialect_name]}
        assert actual == TYPES[dialect_name]

    def test_unknown_coltype(self, dialect):
        f = ModelField(
            column="shape",
            attr="shape",
            value=None,
            field_type=FieldType(ScalarKind.STRING),
            col_type="geometry",
        )
        with pytest.raises(UnsupportedColumnTypeError) as exc:
            dialect.column_type(f)
        assert exc.value.col_type == "geometry"


# =========================================================================
# DDL
# =========================================================================


class TestCreateTable:
    def test_without_pk(self, pg):
        assert pg.create_table_sql(extract(WithoutPk()), True) == (
            'CREATE TABLE IF NOT EXISTS "without_pk" ( "first" text, "last" text, "amount" integer )'
        )

    def test_with_pk(self, pg):
        assert pg.create_table_sql(extract(WithPk()), False) == (
            'CREATE TABLE "with_pk" ( "primary" bigserial PRIMARY KEY, '
            '"first" text, "last" text, "amount" integer )'
        )

    def test_sqlite(self, sqlite):
        assert sqlite.create_table_sql(extract(Basic())) == (
            "CREATE TABLE IF NOT EXISTS `basic` ( `id` integer PRIMARY KEY AUTOINCREMENT NOT NULL, "
            "`name` text, `state` integer )"
        )

    def test_mysql(self, mysql):
        assert mysql.create_table_sql(extract(Basic())) == (
            "CREATE TABLE IF NOT EXISTS `basic` ( `id` bigint PRIMARY KEY AUTO_INCREMENT, "
            "`name` varchar(64), `state` bigint )"
        )

    def test_foreign_key_constraint(self, pg):
        assert pg.create_table_sql(extract(Post())) == (
            'CREATE TABLE IF NOT EXISTS "post" ( "id" bigserial PRIMARY KEY, "author_id" bigint, '
            '"content" text, FOREIGN KEY ("author_id") REFERENCES "user" ("id") ON DELETE CASCADE )'
        )

    def test_notnull_and_default(self, pg):
        sql = pg.create_table_sql(extract(Constrained()))
        assert '"email" varchar(100) NOT NULL' in sql
        assert "\"zip_code\" varchar(10) DEFAULT '00000'" in sql

    def test_oracle_sequence_and_trigger(self, oracle):
        statements = oracle.create_table_statements(extract(Basic()))
        assert statements == [
            'CREATE TABLE "basic" ( "id" NUMBER(16) PRIMARY KEY NOT NULL, "name" VARCHAR2(64), "state" NUMBER )',
            'CREATE SEQUENCE "basic_id_seq" MINVALUE 1 NOMAXVALUE START WITH 1 INCREMENT BY 1 NOCACHE NOCYCLE',
            'CREATE TRIGGER "basic_id_trigger" BEFORE INSERT ON "basic" FOR EACH ROW '
            'WHEN (new."id" IS NULL) BEGIN SELECT "basic_id_seq".nextval INTO :new."id" FROM dual; END;',
        ]

    def test_single_statement_elsewhere(self, pg):
        assert len(pg.create_table_statements(extract(Basic()))) == 1


class TestAlterAndIndex:
    def test_drop(self, pg, oracle):
        assert pg.drop_table_sql("user") == 'DROP TABLE IF EXISTS "user"'
        assert oracle.drop_table_sql("user") == 'DROP TABLE "user"'

    def test_add_column(self, pg, oracle, mysql):
        f = ModelField(
            column="email", attr="email", value="", field_type=FieldType(ScalarKind.STRING), size=100
        )
        assert pg.add_column_sql("user", f) == 'ALTER TABLE "user" ADD COLUMN "email" varchar(100)'
        assert mysql.add_column_sql("user", f) == "ALTER TABLE `user` ADD COLUMN `email` varchar(100)"
        assert oracle.add_column_sql("user", f) == 'ALTER TABLE "user" ADD ("email" VARCHAR2(100))'

    def test_create_index(self, pg, mysql):
        assert pg.create_index_sql("user_name", "user", True, "name") == (
            'CREATE UNIQUE INDEX "user_name" ON "user" ("name")'
        )
        assert mysql.create_index_sql("t_a_b", "t", False, "a", "b") == (
            "CREATE INDEX `t_a_b` ON `t` (`a`, `b`)"
        )


# =========================================================================
# DML
# =========================================================================


class TestInsertUpdateDelete:
    def test_postgresql_insert_returning(self, pg):
        rec = SqlGenModel(prim=3, first="FirstName", last="LastName", amount=6)
        sql, args = pg.insert_sql(_criteria(rec))
        assert sql == (
            'INSERT INTO "sql_gen_model" ("prim", "first", "last", "amount") '
            'VALUES ($1, $2, $3, $4) RETURNING "prim"'
        )
        assert args == [3, "FirstName", "LastName", 6]

    def test_postgresql_update(self, pg):
        rec = SqlGenModel(prim=3, first="FirstName", last="LastName", amount=6)
        sql, args = pg.update_sql(_criteria(rec, pg))
        assert sql == (
            'UPDATE "sql_gen_model" SET "first" = $1, "last" = $2, "amount" = $3 WHERE "prim" = $4'
        )
        assert args == ["FirstName", "LastName", 6, 3]

    def test_postgresql_delete(self, pg):
        sql, args = pg.delete_sql(_criteria(SqlGenModel(prim=3), pg))
        assert sql == 'DELETE FROM "sql_gen_model" WHERE "prim" = $1'
        assert args == [3]

    def test_pk_and_user_condition(self, mysql):
        c = Criteria(model=extract(Basic(id=2, name="x")), condition=Condition("state = ?", 1))
        c.merge_pk_condition(mysql)
        sql, args = mysql.delete_sql(c)
        assert sql == "DELETE FROM `basic` WHERE (`id` = ?) AND (state = ?)"
        assert args == [2, 1]

    def test_mysql_insert(self, mysql):
        sql, args = mysql.insert_sql(_criteria(Basic(name="a", state=1)))
        assert sql == "INSERT INTO `basic` (`name`, `state`) VALUES (?, ?)"
        assert args == ["a", 1]

    def test_oracle_insert_returning_into(self, oracle):
        sql, args = oracle.insert_sql(_criteria(Basic(name="a", state=1)))
        assert sql == 'INSERT INTO "basic" ("name", "state") VALUES (:1, :2) RETURNING "id" INTO :3'
        assert args == ["a", 1]

    def test_update_requires_condition(self, dialect):
        with pytest.raises(MissingConditionError):
            dialect.update_sql(_criteria(Basic(name="x"), dialect))

    def test_delete_requires_condition(self, dialect):
        with pytest.raises(MissingConditionError):
            dialect.delete_sql(_criteria(Basic(), dialect))


class TestSelect:
    def test_join_select(self, pg):
        sql, args = pg.query_sql(_criteria(Post()))
        assert sql == (
            'SELECT "post"."id", "post"."author_id", "post"."content", '
            '"author"."id" AS "author___id", "author"."name" AS "author___name" '
            'FROM "post" LEFT JOIN "user" AS "author" ON "post"."author_id" = "author"."id"'
        )
        assert args == []

    def test_oracle_alias_without_as(self, oracle):
        sql, _ = oracle.query_sql(_criteria(Post()))
        assert 'LEFT JOIN "user" "author" ON' in sql

    def test_join_columns_keep_their_case(self, oracle):
        sql, _ = oracle.query_sql(_criteria(Post()))
        assert '"author"."name" AS "author___name"' in sql

    def test_omitted_join_is_unqualified(self, pg):
        c = Criteria(model=extract(Post(), root=False))
        sql, _ = pg.query_sql(c)
        assert sql == 'SELECT "id", "author_id", "content" FROM "post"'

    def test_postgresql_full_query(self, pg):
        sql, args = pg.query_sql(_student_criteria(pg))
        assert sql == (
            'SELECT "id", "name", "grade", "score" FROM "student" '
            "WHERE (grade IN ($1, $2, $3)) AND ((score <= $4) OR (score >= $5)) "
            'ORDER BY "name", "grade" DESC LIMIT $6 OFFSET $7'
        )
        assert args == [6, 7, 8, 60, 80, 10, 20]

    def test_mysql_full_query(self, mysql):
        sql, args = mysql.query_sql(_student_criteria(mysql))
        assert sql == (
            "SELECT `id`, `name`, `grade`, `score` FROM `student` "
            "WHERE (grade IN (?, ?, ?)) AND ((score <= ?) OR (score >= ?)) "
            "ORDER BY `name`, `grade` DESC LIMIT ? OFFSET ?"
        )
        assert args == [6, 7, 8, 60, 80, 10, 20]

    def test_oracle_paging(self, oracle):
        sql, args = oracle.query_sql(_student_criteria(oracle))
        assert sql.endswith('ORDER BY "name", "grade" DESC OFFSET :6 ROWS FETCH NEXT :7 ROWS ONLY')
        assert args[-2:] == [20, 10]

    def test_count(self, pg):
        assert pg.count_sql("basic") == ('SELECT COUNT(*) FROM "basic"', [])
        assert pg.count_sql("basic", Condition("state = ?", 1)) == (
            'SELECT COUNT(*) FROM "basic" WHERE state = $1',
            [1],
        )


# =========================================================================
# Value coercion
# =========================================================================


class TestToPython:
    def test_none(self, dialect):
        assert dialect.to_python(FieldType(ScalarKind.STRING), None) is None

    def test_bool_from_int(self, sqlite, mysql, oracle):
        for d in (sqlite, mysql, oracle):
            assert d.to_python(FieldType(ScalarKind.BOOL), 1) is True
            assert d.to_python(FieldType(ScalarKind.BOOL), 0) is False

    def test_unsigned_wraps(self, sqlite):
        assert sqlite.to_python(FieldType(ScalarKind.UINT), -1) == 2**64 - 1

    def test_string_from_bytes(self, mysql):
        assert mysql.to_python(FieldType(ScalarKind.STRING), b"abc") == "abc"

    def test_bytes_from_memoryview(self, pg):
        assert pg.to_python(FieldType(ScalarKind.BYTES), memoryview(b"\x00\x01")) == b"\x00\x01"

    def test_time_layouts(self, sqlite):
        kind = FieldType(ScalarKind.TIME)
        assert sqlite.to_python(kind, "2024-01-02 03:04:05") == datetime(2024, 1, 2, 3, 4, 5)
        aware = sqlite.to_python(kind, "2024-01-02 03:04:05.250000+00:00")
        assert aware == datetime(2024, 1, 2, 3, 4, 5, 250000, tzinfo=timezone.utc)
        assert sqlite.to_python(kind, 0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_lob_is_read(self, oracle):
        class Lob:
            def read(self):
                return "long text"

        assert oracle.to_python(FieldType(ScalarKind.STRING), Lob()) == "long text"


class TestToDriver:
    def test_sqlite_datetime_as_text(self, sqlite):
        assert sqlite.to_driver(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02 03:04:05"

    def test_oracle_bool_and_naive_time(self, oracle):
        assert oracle.to_driver(True) == 1
        aware = datetime(2024, 1, 2, tzinfo=timezone(timedelta(hours=2)))
        assert oracle.to_driver(aware).tzinfo is None

    def test_passthrough(self, pg):
        assert pg.driver_args([1, "a", None]) == [1, "a", None]


class TestMigrationErrors:
    def test_oracle_benign_codes(self, oracle):
        assert oracle.catch_migration_error(Exception("ORA-00955: name is already used"))
        assert oracle.catch_migration_error(Exception("ORA-00942: table or view does not exist"))
        assert not oracle.catch_migration_error(Exception("ORA-00001: unique constraint"))

    def test_others_are_not_benign(self, sqlite, pg):
        assert not sqlite.catch_migration_error(Exception("table basic already exists"))
        assert not pg.catch_migration_error(Exception("boom"))
