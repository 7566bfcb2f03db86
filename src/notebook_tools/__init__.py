"""Notebook tools: document and table capabilities behind the agent's tool contract."""

from .notebooks import NotebookNotFoundError, NotebookResolver
from .tools import build_registry

__all__ = ["NotebookNotFoundError", "NotebookResolver", "build_registry"]
