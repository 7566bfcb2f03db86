"""Notebook tools and the default registry."""

from __future__ import annotations

from notebook_agent.registry import ToolRegistry

from .documents import ListSourcesTool, SearchDocumentsTool
from .tables import DescribeTablesTool, RunSqlTool


def build_registry() -> ToolRegistry:
    """Register every notebook tool and close the registry."""
    return ToolRegistry(
        [
            SearchDocumentsTool(),
            ListSourcesTool(),
            DescribeTablesTool(),
            RunSqlTool(),
        ]
    ).close()


__all__ = [
    "DescribeTablesTool",
    "ListSourcesTool",
    "RunSqlTool",
    "SearchDocumentsTool",
    "build_registry",
]
