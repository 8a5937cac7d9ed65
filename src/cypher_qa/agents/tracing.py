"""Langfuse tracing for the Cypher generation, evaluation and answer calls."""

from __future__ import annotations

import os

from cypher_qa.config import settings
from cypher_qa.utils.logging import get_logger, YELLOW, DIM, RESET

log = get_logger()


def get_langfuse_handler():
    """Langfuse callback handler attached to every LLM call of a question.

    One trace then shows the initial Cypher, each evaluation round and the
    answer together. None when no Langfuse keys are set or the SDK cannot
    start; questions are answered untraced in that case.
    """
    if not settings.langfuse_public_key or not settings.langfuse_secret_key:
        log.debug(f"  {DIM}no Langfuse keys, Cypher runs are not traced{RESET}")
        return None

    try:
        from langfuse.langchain import CallbackHandler

        # the SDK only reads credentials from the environment
        os.environ.setdefault("LANGFUSE_PUBLIC_KEY", settings.langfuse_public_key)
        os.environ.setdefault("LANGFUSE_SECRET_KEY", settings.langfuse_secret_key)
        os.environ.setdefault("LANGFUSE_HOST", settings.langfuse_base_url)

        handler = CallbackHandler()
        log.info(f"  {DIM}tracing Cypher runs to {settings.langfuse_base_url}{RESET}")
        return handler
    except Exception as e:
        log.warning(f"  {YELLOW}Langfuse unavailable, answering untraced: {e}{RESET}")
        return None


def tracing_config(session_id: str | None = None) -> dict:
    """LangChain run config carrying the Langfuse handler and session metadata."""
    config: dict = {}
    handler = get_langfuse_handler()
    if handler:
        config["callbacks"] = [handler]
    if session_id:
        config["metadata"] = {"langfuse_session_id": session_id}
    return config
