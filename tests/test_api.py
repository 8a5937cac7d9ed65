import pytest
from httpx import ASGITransport, AsyncClient

from cypher_qa.errors import ExecutionFailure
from cypher_qa.main import app


class StubRetrieval:
    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error
        self.calls = []
        self.configs = []

    async def ainvoke(self, raw_input, rephrased_question=None, session_id="", config=None):
        self.calls.append((raw_input, rephrased_question, session_id))
        self.configs.append(config)
        if self.error:
            raise self.error
        return self.answer


@pytest.mark.asyncio
async def test_ask_returns_answer_and_session():
    app.state.retrieval = StubRetrieval(answer="Lana and Lilly Wachowski.")
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/ask", json={
            "question": "who made it?",
            "rephrased_question": "Who directed The Matrix?",
            "session_id": "abc",
        })

    assert response.status_code == 200
    assert response.json() == {"answer": "Lana and Lilly Wachowski.", "session_id": "abc"}
    assert app.state.retrieval.calls == [("who made it?", "Who directed The Matrix?", "abc")]
    assert app.state.retrieval.configs == [{"metadata": {"langfuse_session_id": "abc"}}]


@pytest.mark.asyncio
async def test_ask_assigns_session_id():
    app.state.retrieval = StubRetrieval(answer="ok")
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/ask", json={"question": "Who directed The Matrix?"})

    assert response.status_code == 200
    assert response.json()["session_id"]


@pytest.mark.asyncio
async def test_pipeline_failure_reports_stage():
    app.state.retrieval = StubRetrieval(error=ExecutionFailure("syntax error", cypher="RETRUN 1"))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/ask", json={"question": "Who directed The Matrix?"})

    assert response.status_code == 502
    assert response.json()["stage"] == "execute"
