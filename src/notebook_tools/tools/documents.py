"""Document tools: semantic search and source listing."""

from __future__ import annotations

from notebook_agent.state import NotebookContext
from notebook_agent.tools import Tool

from ..schemas import ListSourcesInput, ListSourcesOutput, SearchDocumentsInput, SearchDocumentsOutput
from ..stores import DOCUMENTS, FILES, require_store


class SearchDocumentsTool(Tool):
    name = "search_documents"
    description = (
        "Semantic search over the notebook's documents and image captions. "
        "Returns citable chunks with source, chunk_index, page and text."
    )
    input_model = SearchDocumentsInput

    async def run(self, payload: SearchDocumentsInput, context: NotebookContext) -> SearchDocumentsOutput:
        index = require_store(context, DOCUMENTS)
        chunks = await index.search(payload.query, payload.top_k)
        return SearchDocumentsOutput(query=payload.query, sources=chunks)


class ListSourcesTool(Tool):
    name = "list_sources"
    description = "List the files available in the notebook. Use to see what can be searched."
    input_model = ListSourcesInput

    async def run(self, payload: ListSourcesInput, context: NotebookContext) -> ListSourcesOutput:
        files = list(context.store(FILES) or ())
        index = context.store(DOCUMENTS)
        if index is not None:
            files.extend(await index.list_sources())
        if not files and index is None:
            # Neither a file list nor an index: the notebook has nothing to offer.
            require_store(context, FILES)
        return ListSourcesOutput(files=sorted(set(files)))
