"""FastAPI entry for the notebook agent."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from notebook_tools import NotebookNotFoundError

from .errors import TraceNotFoundError
from .handlers import AskRequest, get_registry, handle_ask, read_trace
from .logging import get_logger
from .settings import get_settings

app = FastAPI(title="Notebook Agent", version="0.1.0")
logger = get_logger("app")

# Run-level failure codes that map to a non-200 status; the body is the same.
_FAILURE_STATUS = {
    "PLAN_INVALID": 422,
    "PLANNING_ORACLE_ERROR": 502,
    "SYNTHESIS_ORACLE_ERROR": 502,
}


@app.on_event("startup")
def log_startup_config() -> None:
    settings = get_settings()
    logger.info(
        "agent_config",
        extra={
            "extra": {
                "openai_model": settings.openai_model,
                "mock_llm": settings.mock_llm or not settings.openai_api_key,
                "max_attempts": settings.max_attempts,
                "tool_timeout_s": settings.tool_timeout_s,
                "trace_dir": settings.trace_dir,
                "notebooks_dir": settings.notebooks_dir,
                "retrieval_base_url": settings.retrieval_base_url,
                "tools": [definition.name for definition in get_registry().list_tools()],
            }
        },
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/v1/tools")
def list_tools() -> list[dict[str, Any]]:
    return [definition.model_dump() for definition in get_registry().list_tools()]


@app.post("/v1/ask")
async def ask(payload: AskRequest) -> JSONResponse:
    try:
        response = await handle_ask(payload)
    except NotebookNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    status_code = 200
    if response.error is not None:
        status_code = _FAILURE_STATUS.get(response.error.code, 200)
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


@app.get("/v1/traces/{trace_id}")
def get_trace(trace_id: str) -> dict[str, Any]:
    try:
        trace = read_trace(trace_id)
    except TraceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return trace.model_dump(mode="json")
