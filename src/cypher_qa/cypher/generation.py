"""Initial Cypher generation: question + schema → candidate statement."""

from __future__ import annotations

import asyncio

from langchain_core.output_parsers import StrOutputParser

from cypher_qa.agents.chains import load_prompt
from cypher_qa.errors import GenerationFailure
from cypher_qa.utils.text import strip_code_fences


def build_generation_chain(llm, prompt_version: str = "v1"):
    """Build the generation chain: {question, schema} → Cypher text."""
    prompt = load_prompt(f"cypher_generation_{prompt_version}.yaml")
    return prompt | llm | StrOutputParser()


async def generate_cypher(
    chain,
    question: str,
    schema: str,
    config: dict | None = None,
    timeout: float | None = None,
) -> str:
    """Produce a best-effort candidate statement. Called once, never retried."""
    try:
        raw = await asyncio.wait_for(
            chain.ainvoke({"question": question, "schema": schema}, config=config or {}),
            timeout,
        )
    except asyncio.TimeoutError as e:
        raise GenerationFailure(f"Cypher generation timed out after {timeout}s") from e
    except Exception as e:
        raise GenerationFailure(f"Cypher generation failed: {e}") from e

    cypher = strip_code_fences(raw if isinstance(raw, str) else str(raw))
    if not cypher:
        raise GenerationFailure("Cypher generation returned no statement")
    return cypher
