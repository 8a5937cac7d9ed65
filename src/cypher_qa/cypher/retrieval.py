"""Cypher retrieval pipeline.

Flow for one question:
    1. rephrased question → self-corrected Cypher statement
    2. Cypher → records from the graph
    3. records → element ids + JSON context
    4. question + context → answer
    5. answer → history store (detached, advisory)

Each stage reads fields populated by earlier stages and returns a new
``PipelineState`` with only its own fields added. Only the answer is
returned to the caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from cypher_qa.agents.chains import build_answer_chain, generate_answer, get_llm
from cypher_qa.config import settings
from cypher_qa.cypher.correction import MAX_TRIES, recursively_evaluate
from cypher_qa.cypher.evaluation import build_evaluation_chain
from cypher_qa.cypher.generation import build_generation_chain
from cypher_qa.cypher.projection import extract_ids, render_context
from cypher_qa.errors import ExecutionFailure
from cypher_qa.history import HistoryStore, build_history_store, record_history
from cypher_qa.models import HistoryRecord, PipelineState
from cypher_qa.utils.logging import get_logger, BOLD, DIM, RESET

log = get_logger()


@dataclass
class CypherRetrieval:
    """Collaborators and limits shared by every invocation.

    Holds no per-question state, so concurrent ``ainvoke`` calls are safe.
    """

    graph: object
    generation_chain: object
    evaluation_chain: object
    answer_chain: object
    history: HistoryStore | None = None
    max_tries: int = MAX_TRIES
    llm_timeout: float | None = None
    history_timeout: float | None = None
    config: dict = field(default_factory=dict)

    async def ainvoke(
        self,
        raw_input: str,
        rephrased_question: str | None = None,
        session_id: str = "",
        config: dict | None = None,
    ) -> str:
        """Answer one question and return only the answer text."""
        state = PipelineState(
            session_id=session_id,
            raw_input=raw_input,
            rephrased_question=rephrased_question or raw_input,
        )
        run_config = {**self.config, **(config or {})}

        log.info(f"{BOLD}QUESTION{RESET} — {state.rephrased_question} {DIM}(session={session_id}){RESET}")

        for stage in STAGES:
            state = await stage(state, self, run_config)

        (output,) = state.require("output")
        return output


async def _cypher_stage(state: PipelineState, retrieval: CypherRetrieval, config: dict) -> PipelineState:
    (question,) = state.require("rephrased_question")
    cypher = await recursively_evaluate(
        retrieval.graph,
        retrieval.generation_chain,
        retrieval.evaluation_chain,
        question,
        max_tries=retrieval.max_tries,
        config=config,
        timeout=retrieval.llm_timeout,
    )
    log.info(f"  {DIM}cypher: {cypher}{RESET}")
    return state.assign(cypher=cypher)


async def _results_stage(state: PipelineState, retrieval: CypherRetrieval, config: dict) -> PipelineState:
    (cypher,) = state.require("cypher")
    try:
        results = await retrieval.graph.query(cypher, {})
    except asyncio.TimeoutError as e:
        raise ExecutionFailure("graph query timed out", cypher=cypher) from e
    except Exception as e:
        raise ExecutionFailure(f"graph rejected query: {e}", cypher=cypher) from e

    count = len(results) if isinstance(results, list) else 1
    log.info(f"  {DIM}{count} record(s) returned{RESET}")
    return state.assign(results=results)


async def _projection_stage(state: PipelineState, retrieval: CypherRetrieval, config: dict) -> PipelineState:
    (results,) = state.require("results")
    return state.assign(ids=extract_ids(results), context=render_context(results))


async def _answer_stage(state: PipelineState, retrieval: CypherRetrieval, config: dict) -> PipelineState:
    question, context = state.require("rephrased_question", "context")
    output = await generate_answer(
        retrieval.answer_chain, question, context, config, retrieval.llm_timeout
    )
    log.info(f"{BOLD}ANSWER{RESET} — {output}")
    return state.assign(output=output)


async def _history_stage(state: PipelineState, retrieval: CypherRetrieval, config: dict) -> PipelineState:
    if retrieval.history is None:
        return state

    session_id, raw_input, question, output, ids, cypher = state.require(
        "session_id", "raw_input", "rephrased_question", "output", "ids", "cypher"
    )
    record = HistoryRecord(
        session_id=session_id,
        question=raw_input,
        rephrased_question=question,
        answer=output,
        ids=ids,
        cypher=cypher,
    )
    record_history(retrieval.history, record, retrieval.history_timeout)
    return state


STAGES = (
    _cypher_stage,
    _results_stage,
    _projection_stage,
    _answer_stage,
    _history_stage,
)


async def build_cypher_retrieval(
    llm=None,
    graph=None,
    history: HistoryStore | None = None,
    config: dict | None = None,
) -> CypherRetrieval:
    """Wire a ``CypherRetrieval`` from settings, overriding any collaborator given."""
    if llm is None:
        llm = get_llm()
    if graph is None:
        from cypher_qa.graph import get_graph

        graph = get_graph()
    if history is None:
        history = await build_history_store(graph)

    return CypherRetrieval(
        graph=graph,
        generation_chain=build_generation_chain(llm, settings.prompt_version),
        evaluation_chain=build_evaluation_chain(llm, settings.prompt_version),
        answer_chain=build_answer_chain(llm, settings.prompt_version),
        history=history,
        max_tries=settings.max_tries,
        llm_timeout=settings.llm_timeout_s,
        history_timeout=settings.history_timeout_s,
        config=config or {},
    )
