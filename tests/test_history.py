import asyncio
import logging

import pytest

from conftest import FakeGraph, FakeHistory
from cypher_qa.history import (
    Neo4jHistoryStore,
    PostgresHistoryStore,
    drain_history,
    record_history,
)
from cypher_qa.models import HistoryRecord


def _record(**overrides):
    fields = dict(
        session_id="s1",
        question="who made the matrix",
        rephrased_question="Who directed The Matrix?",
        answer="Lana and Lilly Wachowski.",
        ids=["4:db:10", "4:db:11"],
        cypher="MATCH (p:Person)-[:DIRECTED]->(m:Movie) RETURN elementId(p) AS _id",
    )
    fields.update(overrides)
    return HistoryRecord(**fields)


class FakePool:
    def __init__(self):
        self.executed = []

    async def execute(self, sql, *args):
        self.executed.append((sql, args))
        return "INSERT 0 1"


@pytest.mark.asyncio
async def test_neo4j_store_links_response_to_context_nodes():
    graph = FakeGraph(results=[{"id": "r-1"}])
    store = Neo4jHistoryStore(graph)

    response_id = await store.append(_record())

    assert response_id == "r-1"
    cypher, params = graph.queries[0]
    assert "[:HAS_RESPONSE]" in cypher
    assert "[:CONTEXT]" in cypher
    assert params["sessionId"] == "s1"
    assert params["input"] == "who made the matrix"
    assert params["output"] == "Lana and Lilly Wachowski."
    assert params["ids"] == ["4:db:10", "4:db:11"]


@pytest.mark.asyncio
async def test_postgres_store_inserts_row():
    pool = FakePool()
    store = PostgresHistoryStore(pool)

    response_id = await store.append(_record())

    sql, args = pool.executed[0]
    assert "INSERT INTO responses" in sql
    assert str(args[0]) == response_id
    assert args[1:7] == (
        "s1",
        "who made the matrix",
        "Who directed The Matrix?",
        "Lana and Lilly Wachowski.",
        "MATCH (p:Person)-[:DIRECTED]->(m:Movie) RETURN elementId(p) AS _id",
        ["4:db:10", "4:db:11"],
    )


@pytest.mark.asyncio
async def test_postgres_schema_is_idempotent_ddl():
    pool = FakePool()
    await PostgresHistoryStore(pool).ensure_schema()
    assert "CREATE TABLE IF NOT EXISTS responses" in pool.executed[0][0]


@pytest.mark.asyncio
async def test_record_history_timeout_is_logged_not_raised(caplog):
    history = FakeHistory(gate=asyncio.Event())

    with caplog.at_level(logging.WARNING, logger="cypher_qa"):
        task = record_history(history, _record(), timeout=0.01)
        await drain_history()

    assert task.done()
    assert history.records == []
    assert "timed out" in caplog.text


@pytest.mark.asyncio
async def test_record_history_success():
    history = FakeHistory()
    task = record_history(history, _record())
    await drain_history()

    assert task.result() == "response-1"
    assert history.records[0].session_id == "s1"
