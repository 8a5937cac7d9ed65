"""LangChain building blocks shared by the Cypher and answer chains."""

from __future__ import annotations

import asyncio
from pathlib import Path

import yaml
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from cypher_qa.config import settings
from cypher_qa.errors import SynthesisFailure

_PROMPTS_DIR = Path(__file__).parent / "prompts"


def get_llm() -> ChatOpenAI:
    """Create the LLM client from settings."""
    return ChatOpenAI(
        model=settings.llm_model,
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        temperature=0,
    )


def load_prompt(filename: str) -> ChatPromptTemplate:
    """Load a prompt template (system + human message) from a YAML file."""
    path = _PROMPTS_DIR / filename
    with open(path) as f:
        data = yaml.safe_load(f)

    return ChatPromptTemplate.from_messages([
        ("system", data["system"]),
        ("human", data["human"]),
    ])


def build_answer_chain(llm, prompt_version: str = "v1"):
    """Build the answer chain: {question, context} → answer text."""
    prompt = load_prompt(f"authoritative_answer_{prompt_version}.yaml")
    return prompt | llm | StrOutputParser()


async def generate_answer(
    chain,
    question: str,
    context: str,
    config: dict | None = None,
    timeout: float | None = None,
) -> str:
    """Turn the projected query results into a natural-language answer."""
    try:
        return await asyncio.wait_for(
            chain.ainvoke({"question": question, "context": context}, config=config or {}),
            timeout,
        )
    except asyncio.TimeoutError as e:
        raise SynthesisFailure(f"answer generation timed out after {timeout}s") from e
    except Exception as e:
        raise SynthesisFailure(f"answer generation failed: {e}") from e
