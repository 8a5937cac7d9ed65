"""Answer history persistence.

Each answered question is appended to a history store keyed by session.
Persistence is advisory: ``record_history`` issues the write as a detached
task whose failure is logged as a warning and never reaches the caller.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Protocol

import asyncpg

from cypher_qa.config import settings
from cypher_qa.errors import PersistenceFailure
from cypher_qa.models import HistoryRecord
from cypher_qa.utils.logging import get_logger, DIM, YELLOW, RESET

log = get_logger()

# Strong references to in-flight writes so they are not garbage collected
_pending: set[asyncio.Task] = set()

SAVE_RESPONSE_CYPHER = """
MERGE (session:Session {id: $sessionId})

CREATE (response:Response {
  id: $responseId,
  createdAt: datetime($createdAt),
  input: $input,
  rephrasedQuestion: $rephrasedQuestion,
  output: $output,
  cypher: $cypher,
  ids: $ids
})
CREATE (session)-[:HAS_RESPONSE]->(response)

WITH session, response

CALL {
  WITH session
  OPTIONAL MATCH (session)-[lrel:LAST_RESPONSE]->(last)
  DELETE lrel
  RETURN collect(last) AS lastResponses
}

FOREACH (last IN lastResponses | CREATE (last)-[:NEXT]->(response))
CREATE (session)-[:LAST_RESPONSE]->(response)

WITH response

CALL {
  WITH response
  UNWIND $ids AS id
  MATCH (context)
  WHERE elementId(context) = id
  CREATE (response)-[:CONTEXT]->(context)
  RETURN count(*) AS count
}

RETURN DISTINCT response.id AS id
"""

CREATE_RESPONSES_SQL = """
CREATE TABLE IF NOT EXISTS responses (
    id UUID PRIMARY KEY,
    session_id TEXT NOT NULL,
    question TEXT NOT NULL,
    rephrased_question TEXT NOT NULL,
    answer TEXT NOT NULL,
    cypher TEXT NOT NULL,
    ids TEXT[] NOT NULL DEFAULT '{}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS responses_session_idx ON responses (session_id, created_at);
"""


class HistoryStore(Protocol):
    async def append(self, record: HistoryRecord) -> str:
        """Persist ``record`` and return the stored response id."""
        ...


class Neo4jHistoryStore:
    """Stores responses in the queried graph, linked to the nodes they used."""

    def __init__(self, graph):
        self._graph = graph

    async def append(self, record: HistoryRecord) -> str:
        response_id = str(uuid.uuid4())
        rows = await self._graph.query(SAVE_RESPONSE_CYPHER, {
            "sessionId": record.session_id,
            "responseId": response_id,
            "createdAt": record.created_at.isoformat(),
            "input": record.question,
            "rephrasedQuestion": record.rephrased_question,
            "output": record.answer,
            "cypher": record.cypher,
            "ids": record.ids,
        })
        if not rows:
            raise PersistenceFailure(f"no response node created for session {record.session_id}")
        return rows[0]["id"]


class PostgresHistoryStore:
    """Stores responses in a PostgreSQL ``responses`` table."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def ensure_schema(self) -> None:
        await self._pool.execute(CREATE_RESPONSES_SQL)

    async def append(self, record: HistoryRecord) -> str:
        response_id = uuid.uuid4()
        await self._pool.execute(
            """
            INSERT INTO responses
                (id, session_id, question, rephrased_question, answer, cypher, ids, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            response_id,
            record.session_id,
            record.question,
            record.rephrased_question,
            record.answer,
            record.cypher,
            record.ids,
            record.created_at,
        )
        return str(response_id)


_pool: asyncpg.Pool | None = None


async def get_pool(database_url: str | None = None) -> asyncpg.Pool:
    global _pool
    if _pool is None:
        url = database_url or settings.database_url
        _pool = await asyncpg.create_pool(url, min_size=1, max_size=5)
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool:
        await _pool.close()
        _pool = None


async def build_history_store(graph=None) -> HistoryStore | None:
    """Select the history backend configured in settings."""
    backend = settings.history_backend.lower()
    if backend == "none":
        return None
    if backend == "postgres":
        return PostgresHistoryStore(await get_pool())
    if backend == "neo4j":
        if graph is None:
            from cypher_qa.graph import get_graph

            graph = get_graph()
        return Neo4jHistoryStore(graph)
    raise ValueError(f"unknown history backend {settings.history_backend!r}")


async def _append(store: HistoryStore, record: HistoryRecord, timeout: float | None) -> str:
    try:
        return await asyncio.wait_for(store.append(record), timeout)
    except PersistenceFailure:
        raise
    except asyncio.TimeoutError as e:
        raise PersistenceFailure(f"history write timed out after {timeout}s") from e
    except Exception as e:
        raise PersistenceFailure(f"history write failed: {e}") from e


def _on_done(record: HistoryRecord, task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        log.warning(f"  {YELLOW}⚠{RESET} history write cancelled (session={record.session_id})")
        return
    exc = task.exception()
    if exc is not None:
        log.warning(f"  {YELLOW}⚠{RESET} {exc} (session={record.session_id})")
    else:
        log.debug(f"  {DIM}history saved: response={task.result()} session={record.session_id}{RESET}")


def record_history(
    store: HistoryStore,
    record: HistoryRecord,
    timeout: float | None = None,
) -> asyncio.Task:
    """Issue the history write without waiting for it.

    Must be called from a running event loop. The returned task never raises
    into the caller's flow; its outcome is logged.
    """
    task = asyncio.create_task(_append(store, record, timeout))
    _pending.add(task)
    task.add_done_callback(lambda t: _on_done(record, t))
    return task


async def drain_history(timeout: float | None = None) -> None:
    """Wait for outstanding history writes, e.g. before the event loop closes."""
    if not _pending:
        return
    _, still_pending = await asyncio.wait(set(_pending), timeout=timeout)
    if still_pending:
        log.warning(f"  {YELLOW}⚠{RESET} {len(still_pending)} history write(s) still pending")
