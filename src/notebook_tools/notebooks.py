"""Resolve a notebook id into a NotebookContext.

On-disk layout under ``notebooks_dir``::

    <notebook_id>/files/...        uploaded files (names only are exposed)
    <notebook_id>/tables.sqlite    tabular data extracted at ingestion time

Document search goes through the retrieval service when one is configured.
"""

from __future__ import annotations

import re
from pathlib import Path

from notebook_agent.errors import NotebookAgentError
from notebook_agent.settings import AgentSettings
from notebook_agent.state import NotebookContext

from .adapters.retrieval import RetrievalClient
from .adapters.sqlite import SqliteTableStore
from .schemas import TableInfo
from .stores import DOCUMENTS, FILES, TABLES

_NOTEBOOK_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class NotebookNotFoundError(NotebookAgentError, LookupError):
    def __init__(self, notebook_id: str) -> None:
        super().__init__(f"Notebook not found: {notebook_id}")
        self.notebook_id = notebook_id


def summarize(notebook_id: str, files: list[str], tables: list[TableInfo], searchable: bool) -> str:
    lines = [f"Notebook {notebook_id}."]
    if files:
        lines.append("Files: " + ", ".join(files) + ".")
    if tables:
        described = [
            f"{table.name}({', '.join(col.name for col in table.columns)}; {table.row_count} rows)"
            for table in tables
        ]
        lines.append("Tables: " + "; ".join(described) + ".")
    lines.append("Document search: " + ("available." if searchable else "not available."))
    return " ".join(lines)


class NotebookResolver:
    def __init__(self, settings: AgentSettings) -> None:
        self._settings = settings
        self._root = Path(settings.notebooks_dir)

    def resolve(self, notebook_id: str) -> NotebookContext:
        if not _NOTEBOOK_ID.match(notebook_id or ""):
            raise NotebookNotFoundError(notebook_id)
        directory = self._root / notebook_id
        if not directory.is_dir() and not self._settings.retrieval_base_url:
            raise NotebookNotFoundError(notebook_id)

        stores: dict[str, object] = {}
        files_dir = directory / "files"
        files = sorted(p.name for p in files_dir.iterdir() if p.is_file()) if files_dir.is_dir() else []
        stores[FILES] = tuple(files)

        tables: list[TableInfo] = []
        tables_path = directory / "tables.sqlite"
        if tables_path.is_file():
            store = SqliteTableStore(tables_path, row_limit=self._settings.sql_row_limit)
            tables = store.list_tables()
            stores[TABLES] = store

        if self._settings.retrieval_base_url:
            stores[DOCUMENTS] = RetrievalClient(
                self._settings.retrieval_base_url,
                notebook_id,
                timeout_s=self._settings.request_timeout_s,
            )

        return NotebookContext(
            notebook_id=notebook_id,
            summary=summarize(notebook_id, files, tables, DOCUMENTS in stores),
            stores=stores,
        )
