"""Retrieval service adapter.

Speaks the retrieval service's tool endpoints:
``POST /tools/search_documents`` -> ``{"results": [{id, text, source, chunk_id, page}]}``
``POST /tools/list_sources``     -> ``{"sources": [...]}``
"""

from __future__ import annotations

from typing import Any

import httpx

from notebook_agent.logging import get_logger

from ..schemas import SourceChunk
from . import AdapterError

logger = get_logger("adapters.retrieval")


class RetrievalClient:
    def __init__(
        self,
        base_url: str,
        notebook_id: str,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._notebook_id = notebook_id
        self._timeout_s = timeout_s
        self._transport = transport

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}/tools/{endpoint}"
        body = {**payload, "notebook_id": self._notebook_id}
        try:
            # Avoid inheriting system proxy settings that can break local services.
            async with httpx.AsyncClient(
                timeout=self._timeout_s, trust_env=False, transport=self._transport
            ) as client:
                resp = await client.post(url, json=body)
        except httpx.RequestError as exc:
            logger.info("retrieval_unavailable", extra={"extra": {"url": url, "error": str(exc)}})
            raise AdapterError("RETRIEVAL_UNAVAILABLE", str(exc) or type(exc).__name__) from exc
        if resp.status_code >= 400:
            raise AdapterError(
                "RETRIEVAL_UPSTREAM_ERROR",
                f"Retrieval service error: {resp.status_code}",
                {"status_code": resp.status_code},
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise AdapterError("RETRIEVAL_BAD_RESPONSE", str(exc)) from exc
        if not isinstance(data, dict):
            raise AdapterError("RETRIEVAL_BAD_RESPONSE", "Expected a JSON object")
        return data

    async def search(self, query: str, top_k: int) -> list[SourceChunk]:
        data = await self._post("search_documents", {"query": query, "top_k": top_k})
        chunks: list[SourceChunk] = []
        for item in (data.get("results") or [])[:top_k]:
            if not isinstance(item, dict) or not item.get("source"):
                continue
            page = item.get("page")
            chunks.append(
                SourceChunk(
                    source=str(item["source"]),
                    chunk_index=int(item.get("chunk_index", item.get("chunk_id", 0)) or 0),
                    page=str(page) if page not in (None, "") else None,
                    text=str(item.get("text") or ""),
                    score=item.get("score"),
                )
            )
        return chunks

    async def list_sources(self) -> list[str]:
        data = await self._post("list_sources", {})
        return [str(source) for source in data.get("sources") or []]
