"""Tool input/output models (single source of truth for parameter schemas)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StrictInput(BaseModel):
    model_config = ConfigDict(extra="forbid")


class SourceChunk(BaseModel):
    """A citable unit: one chunk of one source."""

    source: str
    chunk_index: int = Field(default=0, ge=0)
    page: str | None = None
    text: str = ""
    score: float | None = None


class SearchDocumentsInput(StrictInput):
    query: str = Field(..., min_length=1, description="Search query (keywords or a natural language question)")
    top_k: int = Field(default=5, ge=1, le=20, description="Number of chunks to return")


class SearchDocumentsOutput(BaseModel):
    query: str
    sources: list[SourceChunk]


class ListSourcesInput(StrictInput):
    pass


class ListSourcesOutput(BaseModel):
    files: list[str]


class ColumnInfo(BaseModel):
    name: str
    type: str = ""


class TableInfo(BaseModel):
    name: str
    columns: list[ColumnInfo]
    row_count: int = 0


class DescribeTablesInput(StrictInput):
    tables: list[str] | None = Field(default=None, description="Restrict to these table names")


class DescribeTablesOutput(BaseModel):
    tables: list[TableInfo]


class RunSqlInput(StrictInput):
    sql: str = Field(..., min_length=1, description="A single read-only SELECT statement")
    limit: int | None = Field(default=None, ge=1, description="Maximum rows to return")


class SqlResult(BaseModel):
    columns: list[str]
    rows: list[list[Any]]
    truncated: bool = False


class RunSqlOutput(BaseModel):
    sql: str
    columns: list[str]
    rows: list[list[Any]]
    row_count: int
    truncated: bool
    sources: list[SourceChunk]
