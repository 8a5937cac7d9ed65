"""Self-correcting Cypher generation.

Generates one candidate, then lets the evaluation chain rewrite it until it
reports no errors or the retry budget runs out. The last candidate is used
either way.
"""

from __future__ import annotations

import re

from cypher_qa.cypher.evaluation import evaluate_cypher
from cypher_qa.cypher.generation import generate_cypher
from cypher_qa.errors import GenerationFailure
from cypher_qa.utils.logging import get_logger, DIM, GREEN, YELLOW, RESET

log = get_logger()

MAX_TRIES = 5

# id(n) or id (n) with a bare variable as the only argument. Not preceded by a word
# character or dot, so elementId(n) and n.id(...) are left alone.
_LEGACY_ID_RE = re.compile(r"(?<![\w.`])id\s*\(\s*([A-Za-z_][A-Za-z0-9_]*)\s*\)", re.IGNORECASE)


def rewrite_legacy_ids(cypher: str) -> str:
    """Rewrite deprecated ``id(var)`` calls to ``elementId(var)``.

    Models keep emitting ``id()`` whatever the prompt says, so this runs on
    every final statement. Idempotent.
    """
    return _LEGACY_ID_RE.sub(r"elementId(\1)", cypher)


async def recursively_evaluate(
    graph,
    generation_chain,
    evaluation_chain,
    question: str,
    max_tries: int = MAX_TRIES,
    config: dict | None = None,
    timeout: float | None = None,
) -> str:
    """Generate a Cypher statement for ``question`` and validate it against the schema.

    Args:
        graph: Object exposing ``async get_schema()``; read once per call.
        generation_chain: Chain from ``build_generation_chain``.
        evaluation_chain: Chain from ``build_evaluation_chain``.
        question: The rephrased question.
        max_tries: Maximum number of evaluation rounds.
        config: LangChain run config (callbacks, tags) for every LLM call.
        timeout: Per-call timeout in seconds.
    """
    try:
        schema = await graph.get_schema()
    except Exception as e:
        raise GenerationFailure(f"could not read graph schema: {e}") from e

    cypher = await generate_cypher(generation_chain, question, schema, config, timeout)
    log.debug(f"  {DIM}initial cypher: {cypher}{RESET}")

    errors = ["N/A"]
    tries = 0

    while tries < max_tries and errors:
        tries += 1

        evaluation = await evaluate_cypher(
            evaluation_chain, question, schema, cypher, errors, config, timeout
        )
        cypher = evaluation.cypher
        errors = evaluation.errors

        log.info(f"  {DIM}evaluation {tries}/{max_tries}: {len(errors)} error(s){RESET}")
        for error in errors:
            log.debug(f"    {DIM}→ {error}{RESET}")

    if errors:
        log.warning(
            f"  {YELLOW}↻{RESET} retry budget exhausted after {tries} evaluation(s), "
            f"using last candidate with {len(errors)} residual error(s): {errors}"
        )
    else:
        log.info(f"  {GREEN}✓{RESET} Cypher accepted after {tries} evaluation(s)")

    return rewrite_legacy_ids(cypher)
