import pytest
from pydantic import ValidationError

from cypher_qa.errors import StateError
from cypher_qa.models import PipelineState


def _state():
    return PipelineState(session_id="s1", raw_input="who?", rephrased_question="Who?")


def test_assign_returns_new_state():
    state = _state()
    updated = state.assign(cypher="MATCH (n) RETURN n")

    assert updated.cypher == "MATCH (n) RETURN n"
    assert state.cypher is None
    assert updated.rephrased_question == "Who?"


def test_assign_cannot_overwrite():
    state = _state().assign(cypher="MATCH (n) RETURN n")
    with pytest.raises(StateError):
        state.assign(cypher="MATCH (m) RETURN m")
    with pytest.raises(StateError):
        state.assign(raw_input="something else")


def test_assign_rejects_unknown_and_empty_fields():
    with pytest.raises(StateError):
        _state().assign(answer="42")
    with pytest.raises(StateError):
        _state().assign(cypher=None)


def test_empty_collections_count_as_populated():
    state = _state().assign(results=[], ids=[])
    assert state.require("results", "ids") == ([], [])


def test_require_unpopulated_field():
    with pytest.raises(StateError, match="context"):
        _state().require("rephrased_question", "context")


def test_state_is_frozen():
    with pytest.raises(ValidationError):
        _state().cypher = "MATCH (n) RETURN n"
