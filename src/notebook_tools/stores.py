"""Store interfaces tools expect to find on a NotebookContext."""

from __future__ import annotations

from typing import Any, Protocol

from notebook_agent.errors import ToolExecutionError
from notebook_agent.state import NotebookContext

from .schemas import SourceChunk, SqlResult, TableInfo

DOCUMENTS = "documents"
TABLES = "tables"
FILES = "files"


class DocumentIndex(Protocol):
    async def search(self, query: str, top_k: int) -> list[SourceChunk]: ...

    async def list_sources(self) -> list[str]: ...


class TableStore(Protocol):
    def list_tables(self) -> list[TableInfo]: ...

    def execute(self, sql: str, limit: int | None = None) -> SqlResult: ...


def require_store(context: NotebookContext, key: str) -> Any:
    store = context.store(key)
    if store is None:
        raise ToolExecutionError(
            "STORE_UNAVAILABLE",
            f"Notebook {context.notebook_id} has no {key} store.",
            {"store": key},
        )
    return store
