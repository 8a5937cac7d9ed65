"""Cypher evaluation: one validator round over a candidate statement.

The validator LLM answers with a JSON object ``{"cypher": ..., "errors": [...]}``.
Anything else is a malformed response; it is never coerced into an empty
error list.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from langchain_core.output_parsers import StrOutputParser
from langchain_core.runnables import RunnablePassthrough
from pydantic import ValidationError

from cypher_qa.agents.chains import load_prompt
from cypher_qa.errors import MalformedEvaluationOutput
from cypher_qa.models import EvaluationResult
from cypher_qa.utils.text import strip_code_fences


def flatten_errors(errors: Sequence[str] | str) -> str:
    """Join the previous round's errors into the single string the prompt takes."""
    if isinstance(errors, str):
        return errors
    return "\n".join(errors)


def build_evaluation_chain(llm, prompt_version: str = "v1"):
    """Build the evaluation chain: {question, schema, cypher, errors} → raw JSON text."""
    prompt = load_prompt(f"cypher_evaluation_{prompt_version}.yaml")
    return (
        RunnablePassthrough.assign(errors=lambda x: flatten_errors(x["errors"]))
        | prompt
        | llm
        | StrOutputParser()
    )


def parse_evaluation(text: str) -> EvaluationResult:
    """Strictly parse validator output into an ``EvaluationResult``."""
    body = strip_code_fences(text)
    try:
        return EvaluationResult.model_validate_json(body)
    except ValidationError as e:
        raise MalformedEvaluationOutput(
            f"validator output is not a {{cypher, errors}} object: {e.error_count()} problem(s)",
            raw=text,
        ) from e


async def evaluate_cypher(
    chain,
    question: str,
    schema: str,
    cypher: str,
    errors: Sequence[str],
    config: dict | None = None,
    timeout: float | None = None,
) -> EvaluationResult:
    """Run one validator round and return the corrected statement and residual errors."""
    payload = {
        "question": question,
        "schema": schema,
        "cypher": cypher,
        "errors": list(errors),
    }
    try:
        raw = await asyncio.wait_for(chain.ainvoke(payload, config=config or {}), timeout)
    except asyncio.TimeoutError as e:
        raise MalformedEvaluationOutput(f"Cypher evaluation timed out after {timeout}s") from e
    except Exception as e:
        raise MalformedEvaluationOutput(f"Cypher evaluation failed: {e}") from e

    return parse_evaluation(raw if isinstance(raw, str) else str(raw))
