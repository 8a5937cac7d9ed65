"""Async access to the Neo4j graph via langchain-neo4j.

``Neo4jGraph`` is synchronous; every call runs in a worker thread. The
driver bounds each transaction with ``settings.graph_timeout_s`` so a
query abandoned by ``wait_for`` is also cancelled on the server.
"""

from __future__ import annotations

import asyncio
from typing import Any

from langchain_neo4j import Neo4jGraph

from cypher_qa.config import settings
from cypher_qa.utils.logging import get_logger, GREEN, RESET

log = get_logger()

_graph: GraphClient | None = None


class GraphClient:
    def __init__(self, graph: Neo4jGraph, timeout: float | None = None):
        self._graph = graph
        self._timeout = timeout

    async def get_schema(self) -> str:
        """Fresh schema snapshot: labels, relationship types and properties."""
        def _snapshot() -> str:
            self._graph.refresh_schema()
            return self._graph.get_schema

        return await asyncio.wait_for(asyncio.to_thread(_snapshot), self._timeout)

    async def query(self, cypher: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Run a statement and return its records as plain dicts."""
        return await asyncio.wait_for(
            asyncio.to_thread(self._graph.query, cypher, params or {}),
            self._timeout,
        )

    async def ping(self) -> bool:
        rows = await self.query("RETURN 1 AS ping")
        return bool(rows) and rows[0].get("ping") == 1

    async def close(self) -> None:
        await asyncio.to_thread(self._graph.close)


def get_graph() -> GraphClient:
    """Return the shared graph client, connecting on first use."""
    global _graph
    if _graph is None:
        neo4j_graph = Neo4jGraph(
            url=settings.neo4j_uri,
            username=settings.neo4j_user,
            password=settings.neo4j_password,
            database=settings.neo4j_database,
            refresh_schema=False,
            timeout=settings.graph_timeout_s,
        )
        _graph = GraphClient(neo4j_graph, timeout=settings.graph_timeout_s)
        log.info(f"  {GREEN}✓{RESET} Connected to Neo4j at {settings.neo4j_uri}")
    return _graph


async def close_graph() -> None:
    global _graph
    if _graph:
        await _graph.close()
        _graph = None
