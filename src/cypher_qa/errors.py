"""Failure taxonomy for the retrieval pipeline.

Every failure that reaches the caller is a ``PipelineError`` whose ``stage``
names the step that failed. History persistence failures are logged by
``cypher_qa.history`` and never raised past it.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for failures surfaced to the pipeline's caller."""

    stage = "pipeline"

    def __init__(self, message: str, *, stage: str | None = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {super().__str__()}"


class StateError(PipelineError):
    """A stage read a field nobody populated, or overwrote one that was."""

    stage = "state"


class GenerationFailure(PipelineError):
    """The initial Cypher candidate could not be produced."""

    stage = "generate"


class MalformedEvaluationOutput(PipelineError):
    """The validator returned something other than ``{cypher, errors}``."""

    stage = "evaluate"

    def __init__(self, message: str, *, raw: str | None = None):
        super().__init__(message)
        self.raw = raw


class ExecutionFailure(PipelineError):
    """The graph store rejected or timed out on the final query."""

    stage = "execute"

    def __init__(self, message: str, *, cypher: str | None = None):
        super().__init__(message)
        self.cypher = cypher


class SynthesisFailure(PipelineError):
    """The answer could not be generated from the query results."""

    stage = "answer"


class PersistenceFailure(PipelineError):
    """Writing the history record failed. Logged, never propagated."""

    stage = "history"
