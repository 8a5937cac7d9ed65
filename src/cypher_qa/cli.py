"""Click CLI entry point.

Usage:
    cypher-qa ask "Who directed The Matrix?"
    cypher-qa ask "Who directed it?" --rephrased "Who directed The Matrix?" --session-id abc
    cypher-qa schema
    cypher-qa migrate
    cypher-qa serve --port 8000
"""

from __future__ import annotations

import asyncio
import sys
import uuid

import click

from cypher_qa.errors import PipelineError
from cypher_qa.utils.logging import GREEN, RED, BOLD, DIM, RESET, get_logger

log = get_logger()


@click.group()
def cli() -> None:
    """Ask natural-language questions of a Neo4j graph."""
    pass


@cli.command()
@click.argument("question")
@click.option("--session-id", default=None, help="Conversation id (default: new random id)")
@click.option("--rephrased", default=None, help="Standalone form of the question (default: the question)")
@click.option("--show-cypher", is_flag=True, help="Log every Cypher candidate and validator error")
def ask(question: str, session_id: str | None, rephrased: str | None, show_cypher: bool) -> None:
    """Answer QUESTION from the graph."""
    if show_cypher:
        get_logger(level="debug")
    try:
        answer = asyncio.run(_ask(question, rephrased, session_id or str(uuid.uuid4())))
    except PipelineError as e:
        log.error(f"{RED}✗ {e.stage} failed:{RESET} {e}")
        sys.exit(1)
    click.echo(answer)


async def _ask(question: str, rephrased: str | None, session_id: str) -> str:
    from cypher_qa.agents.tracing import tracing_config
    from cypher_qa.config import settings
    from cypher_qa.cypher.retrieval import build_cypher_retrieval
    from cypher_qa.graph import close_graph
    from cypher_qa.history import close_pool, drain_history

    try:
        retrieval = await build_cypher_retrieval(config=tracing_config(session_id))
        return await retrieval.ainvoke(question, rephrased, session_id)
    finally:
        await drain_history(timeout=settings.history_timeout_s)
        await close_pool()
        await close_graph()


@cli.command()
def schema() -> None:
    """Print the current graph schema."""
    asyncio.run(_schema())


async def _schema() -> None:
    from cypher_qa.graph import close_graph, get_graph

    try:
        click.echo(await get_graph().get_schema())
    finally:
        await close_graph()


@cli.command()
def migrate() -> None:
    """Create the PostgreSQL history table."""
    asyncio.run(_migrate())


async def _migrate() -> None:
    from cypher_qa.history import PostgresHistoryStore, close_pool, get_pool

    try:
        store = PostgresHistoryStore(await get_pool())
        await store.ensure_schema()
        log.info(f"{GREEN}✓{RESET} {BOLD}responses{RESET} table ready {DIM}(history_backend=postgres){RESET}")
    finally:
        await close_pool()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, help="Bind port")
def serve(host: str, port: int) -> None:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("cypher_qa.main:app", host=host, port=port)


if __name__ == "__main__":
    cli()
