"""Read-only SQLite table store for a notebook's tabular data."""

from __future__ import annotations

import re
import sqlite3
from pathlib import Path
from typing import Any

from ..schemas import ColumnInfo, SqlResult, TableInfo
from . import AdapterError

_READ_ONLY_START = re.compile(r"^\s*(select|with)\b", re.IGNORECASE)


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _cell(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.hex()
    return value


class SqliteTableStore:
    def __init__(self, path: str | Path, row_limit: int = 200) -> None:
        self._path = Path(path)
        self._row_limit = row_limit

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        uri = self._path.resolve().as_uri() + "?mode=ro"
        try:
            return sqlite3.connect(uri, uri=True)
        except sqlite3.Error as exc:
            raise AdapterError("TABLES_UNAVAILABLE", str(exc), {"path": str(self._path)}) from exc

    def list_tables(self) -> list[TableInfo]:
        conn = self._connect()
        try:
            names = [
                row[0]
                for row in conn.execute(
                    "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
                )
            ]
            tables = []
            for name in names:
                columns = [
                    ColumnInfo(name=row[1], type=row[2] or "")
                    for row in conn.execute(f"PRAGMA table_info({_quote(name)})")
                ]
                row_count = conn.execute(f"SELECT COUNT(*) FROM {_quote(name)}").fetchone()[0]
                tables.append(TableInfo(name=name, columns=columns, row_count=row_count))
            return tables
        except sqlite3.Error as exc:
            raise AdapterError("TABLES_UNAVAILABLE", str(exc)) from exc
        finally:
            conn.close()

    def execute(self, sql: str, limit: int | None = None) -> SqlResult:
        statement = sql.strip().rstrip(";").strip()
        if ";" in statement:
            raise AdapterError("SQL_REJECTED", "Only a single statement is allowed.", {"sql": sql})
        if not _READ_ONLY_START.match(statement):
            raise AdapterError("SQL_REJECTED", "Only SELECT queries are allowed.", {"sql": sql})
        max_rows = min(limit or self._row_limit, self._row_limit)
        conn = self._connect()
        try:
            cursor = conn.execute(statement)
            columns = [col[0] for col in cursor.description or ()]
            fetched = cursor.fetchmany(max_rows + 1)
        except sqlite3.Error as exc:
            raise AdapterError("SQL_ERROR", str(exc), {"sql": sql}) from exc
        finally:
            conn.close()
        rows = [[_cell(value) for value in row] for row in fetched[:max_rows]]
        return SqlResult(columns=columns, rows=rows, truncated=len(fetched) > max_rows)
