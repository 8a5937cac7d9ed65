"""FastAPI application — HTTP surface for the Cypher retrieval pipeline.

Endpoints:
    GET  /health  — Health check (Neo4j connectivity)
    POST /ask     — Answer a question from the graph
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cypher_qa.agents.tracing import tracing_config
from cypher_qa.config import settings
from cypher_qa.cypher.retrieval import build_cypher_retrieval
from cypher_qa.errors import PipelineError
from cypher_qa.graph import close_graph, get_graph
from cypher_qa.history import close_pool, drain_history
from cypher_qa.utils.logging import get_logger

log = get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the pipeline on startup; flush history and close connections on shutdown."""
    app.state.retrieval = await build_cypher_retrieval(config=tracing_config())
    yield
    await drain_history(timeout=settings.history_timeout_s)
    await close_pool()
    await close_graph()


app = FastAPI(
    title="Cypher QA API",
    description="Natural-language questions answered from a Neo4j graph",
    version="0.1.0",
    lifespan=lifespan,
)


class AskRequest(BaseModel):
    question: str
    rephrased_question: str | None = None
    session_id: str | None = None


class AskResponse(BaseModel):
    answer: str
    session_id: str


@app.get("/health")
async def health():
    """Health check — verifies Neo4j connectivity."""
    try:
        ok = await get_graph().ping()
        return {"status": "ok", "neo4j": ok}
    except Exception as e:
        log.error("Health check failed: %s", e)
        return JSONResponse(status_code=503, content={"status": "error", "detail": str(e)})


@app.post("/ask", response_model=AskResponse)
async def ask(body: AskRequest):
    session_id = body.session_id or str(uuid.uuid4())
    try:
        answer = await app.state.retrieval.ainvoke(
            body.question,
            body.rephrased_question,
            session_id,
            config={"metadata": {"langfuse_session_id": session_id}},
        )
    except PipelineError as e:
        log.error("Pipeline failed at %s: %s", e.stage, e)
        return JSONResponse(status_code=502, content={"stage": e.stage, "detail": str(e)})
    return AskResponse(answer=answer, session_id=session_id)
