"""Pydantic models threaded through the retrieval pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cypher_qa.errors import StateError

Record = dict[str, Any]
Results = Record | list[Record]


class PipelineState(BaseModel):
    """Accumulating record for one question.

    The three inputs are set at construction. Every stage adds its own
    fields through ``assign`` which returns a new state; populated fields
    can never be overwritten.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    raw_input: str
    rephrased_question: str
    cypher: str | None = None
    results: Results | None = None
    ids: list[str] | None = None
    context: str | None = None
    output: str | None = None

    def assign(self, **fields: Any) -> PipelineState:
        for name, value in fields.items():
            if name not in type(self).model_fields:
                raise StateError(f"unknown state field {name!r}")
            if getattr(self, name) is not None:
                raise StateError(f"state field {name!r} is already populated")
            if value is None:
                raise StateError(f"stage produced no value for {name!r}")
        return self.model_copy(update=fields)

    def require(self, *names: str) -> tuple[Any, ...]:
        missing = [name for name in names if getattr(self, name, None) is None]
        if missing:
            raise StateError(f"state field(s) not populated yet: {', '.join(missing)}")
        return tuple(getattr(self, name) for name in names)


class EvaluationResult(BaseModel):
    """Validator verdict for one round: corrected statement plus residual errors."""

    model_config = ConfigDict(extra="forbid", strict=True)

    cypher: str
    errors: list[str]


class HistoryRecord(BaseModel):
    """One answered question, handed to a history store."""

    session_id: str
    question: str
    rephrased_question: str
    answer: str
    ids: list[str] = Field(default_factory=list)
    cypher: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
