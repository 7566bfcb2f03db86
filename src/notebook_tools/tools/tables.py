"""Table tools: schema introspection and read-only SQL."""

from __future__ import annotations

import asyncio
import re

from notebook_agent.errors import ToolExecutionError
from notebook_agent.state import NotebookContext
from notebook_agent.tools import Tool

from ..schemas import (
    DescribeTablesInput,
    DescribeTablesOutput,
    RunSqlInput,
    RunSqlOutput,
    SourceChunk,
    TableInfo,
)
from ..stores import TABLES, TableStore, require_store


class DescribeTablesTool(Tool):
    name = "describe_tables"
    description = (
        "Describe the notebook's tables: names, columns with types, and row counts. "
        "Call this before writing SQL."
    )
    input_model = DescribeTablesInput

    async def run(self, payload: DescribeTablesInput, context: NotebookContext) -> DescribeTablesOutput:
        store: TableStore = require_store(context, TABLES)
        tables = await asyncio.to_thread(store.list_tables)
        if payload.tables:
            wanted = {name.lower() for name in payload.tables}
            missing = wanted - {table.name.lower() for table in tables}
            if missing:
                raise ToolExecutionError(
                    "NOT_FOUND",
                    f"Unknown table(s): {', '.join(sorted(missing))}",
                    {"available": [table.name for table in tables]},
                )
            tables = [table for table in tables if table.name.lower() in wanted]
        return DescribeTablesOutput(tables=tables)


def referenced_tables(sql: str, tables: list[TableInfo]) -> list[str]:
    return [
        table.name
        for table in tables
        if re.search(rf"(?<!\w){re.escape(table.name)}(?!\w)", sql, re.IGNORECASE)
    ]


class RunSqlTool(Tool):
    name = "run_sql"
    description = (
        "Run one read-only SQLite SELECT statement against the notebook's tables. "
        "Results are row-limited. Use describe_tables first to learn column names."
    )
    input_model = RunSqlInput
    repairable = True

    async def run(self, payload: RunSqlInput, context: NotebookContext) -> RunSqlOutput:
        store: TableStore = require_store(context, TABLES)
        result = await asyncio.to_thread(store.execute, payload.sql, payload.limit)
        tables = await asyncio.to_thread(store.list_tables)
        sources = [
            SourceChunk(source=f"table:{name}", chunk_index=0, text=payload.sql)
            for name in referenced_tables(payload.sql, tables)
        ]
        return RunSqlOutput(
            sql=payload.sql,
            columns=result.columns,
            rows=result.rows,
            row_count=len(result.rows),
            truncated=result.truncated,
            sources=sources,
        )
