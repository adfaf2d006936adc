# Shared pytest fixtures
from __future__ import annotations

import copy
import json
import re
import tempfile
from pathlib import Path

import pytest

from tabload.logging.init import reset_logging

_QNAME = r'"((?:[^"]|"")+)"\."((?:[^"]|"")+)"'
_COLUMN_DEF = re.compile(r'"((?:[^"]|"")+)" (TEXT|NUMERIC|TIMESTAMP)')


def _unquote(name: str) -> str:
    return name.replace('""', '"')


def _key(match: re.Match, start: int = 1) -> str:
    return f"{_unquote(match.group(start))}.{_unquote(match.group(start + 1))}"


class FakeDbError(Exception):
    pass


class FakeTable:
    def __init__(self, columns: list[str], constraints: str = "") -> None:
        self.columns = columns
        self.constraints = constraints
        self.rows: list[tuple] = []
        self.indexes: list[str] = []


class FakeDatabase:
    """In-memory stand-in for the handful of statements the loader issues.

    - BEGIN snapshots every table; ROLLBACK restores the snapshot.
    - ``fail_on``: any statement containing this text raises FakeDbError.
    - ``fail_batch``: the n-th bulk insert (1-based) raises FakeDbError.
    """

    def __init__(self) -> None:
        self.tables: dict[str, FakeTable] = {}
        self.statements: list[str] = []
        self.fail_on: str | None = None
        self.fail_batch: int | None = None
        self.batches = 0
        self.closed_cursors = 0
        self._snapshot: dict[str, FakeTable] | None = None

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def rows(self, name: str) -> list[tuple]:
        return self.tables[name].rows

    def create_table(self, name: str, columns: list[str], rows: list[tuple] | None = None) -> FakeTable:
        table = FakeTable(columns)
        table.rows.extend(rows or [])
        self.tables[name] = table
        return table

    # --- statement interpreter ---
    def execute(self, sql: str) -> None:
        self.statements.append(sql)
        if self.fail_on and self.fail_on in sql:
            raise FakeDbError(f"injected failure: {sql}")
        if sql.startswith("SET "):
            return
        if sql == "BEGIN":
            self._snapshot = copy.deepcopy(self.tables)
            return
        if sql == "COMMIT":
            self._snapshot = None
            return
        if sql == "ROLLBACK":
            if self._snapshot is not None:
                self.tables = self._snapshot
            self._snapshot = None
            return

        m = re.fullmatch(rf"DROP TABLE (IF EXISTS )?{_QNAME}", sql)
        if m:
            name = _key(m, 2)
            if name not in self.tables and not m.group(1):
                raise FakeDbError(f'table "{name}" does not exist')
            self.tables.pop(name, None)
            return

        m = re.fullmatch(rf"CREATE TABLE IF NOT EXISTS {_QNAME} \(LIKE {_QNAME} INCLUDING ALL\)", sql)
        if m:
            name, like = _key(m, 1), _key(m, 3)
            if name not in self.tables:
                src = self.tables[like]
                created = FakeTable(list(src.columns), src.constraints)
                created.indexes = [f"{name}_{i}_idx" for i, _ in enumerate(src.indexes)]
                self.tables[name] = created
            return

        m = re.fullmatch(rf"CREATE TABLE {_QNAME} \((.*)\)", sql)
        if m:
            name = _key(m)
            if name in self.tables:
                raise FakeDbError(f'relation "{name}" already exists')
            body = m.group(3)
            columns = [_unquote(c) for c, _ in _COLUMN_DEF.findall(body)]
            self.tables[name] = FakeTable(columns, body)
            return

        m = re.fullmatch(rf'CREATE INDEX "((?:[^"]|"")+)" ON {_QNAME} \("((?:[^"]|"")+)"\)', sql)
        if m:
            self.tables[_key(m, 2)].indexes.append(_unquote(m.group(1)))
            return

        m = re.fullmatch(rf'ALTER TABLE {_QNAME} RENAME TO "((?:[^"]|"")+)"', sql)
        if m:
            table = self.tables.pop(_key(m))
            self.tables[f"{_unquote(m.group(1))}.{_unquote(m.group(3))}"] = table
            return

        m = re.fullmatch(rf"INSERT INTO {_QNAME} SELECT \* FROM {_QNAME}", sql)
        if m:
            dest, src = self.tables[_key(m, 1)], self.tables[_key(m, 3)]
            if len(dest.columns) != len(src.columns):
                raise FakeDbError("INSERT has more expressions than target columns")
            dest.rows.extend(src.rows)
            return

        raise FakeDbError(f"unsupported statement: {sql}")

    def insert_values(self, sql: str, rows: list) -> None:
        self.statements.append(sql)
        self.batches += 1
        if self.fail_batch is not None and self.batches == self.fail_batch:
            raise FakeDbError(f"injected failure on batch {self.batches}")
        m = re.fullmatch(rf"INSERT INTO {_QNAME} \((.*)\) VALUES %s", sql)
        if m is None:
            raise FakeDbError(f"unsupported insert: {sql}")
        table = self.tables.get(_key(m))
        if table is None:
            raise FakeDbError(f'relation "{_key(m)}" does not exist')
        table.rows.extend(tuple(r) for r in rows)


class FakeCursor:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db

    def execute(self, sql: str, params=None) -> None:
        self.db.execute(sql)

    def close(self) -> None:
        self.db.closed_cursors += 1


@pytest.fixture()
def fake_db(monkeypatch) -> FakeDatabase:
    """FakeDatabase with execute_values routed into it."""
    import tabload.db.batch_insert as bi

    db = FakeDatabase()

    def fake_execute_values(cursor, sql, rows, page_size=100, template=None):
        cursor.db.insert_values(sql, list(rows))

    monkeypatch.setattr(bi, "execute_values", fake_execute_values)
    return db


@pytest.fixture()
def fake_cursor(fake_db: FakeDatabase) -> FakeCursor:
    return fake_db.cursor()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_column_config() -> list[dict]:
    return [
        {"header": "Order ID", "sqlColumn": "order_id", "primary": True},
        {"header": "Amount", "fieldType": "number"},
        {"header": "Created At", "fieldType": "timestamp", "needIndex": True},
        {"header": "Note"},
    ]


@pytest.fixture()
def write_column_config(temp_workdir: Path, sample_column_config: list[dict]) -> Path:
    cfg = temp_workdir / "config" / "columns.json"
    cfg.write_text(json.dumps(sample_column_config), encoding="utf-8")
    return cfg


@pytest.fixture()
def write_csv(temp_workdir: Path):
    def _write(text: str, name: str = "orders.csv", encoding: str = "utf-8") -> Path:
        path = temp_workdir / "data" / name
        path.write_text(text, encoding=encoding)
        return path
    return _write


@pytest.fixture(autouse=True)
def _reset_app_logging():
    reset_logging()
    yield
    reset_logging()
