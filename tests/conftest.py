import json

import pytest
from langchain_core.runnables import RunnableLambda

MOVIE_SCHEMA = """Node properties:
Person {name: STRING, born: INTEGER, tmdbId: STRING}
Movie {title: STRING, released: DATE, tmdbId: STRING}
Relationship properties:
ACTED_IN {role: STRING}
The relationships:
(:Person)-[:ACTED_IN]->(:Movie)
(:Person)-[:DIRECTED]->(:Movie)"""


class FakeGraph:
    """In-memory stand-in for GraphClient."""

    def __init__(self, results=None, schema=MOVIE_SCHEMA, error=None):
        self.results = [] if results is None else results
        self.schema = schema
        self.error = error
        self.queries = []
        self.schema_reads = 0

    async def get_schema(self):
        self.schema_reads += 1
        return self.schema

    async def query(self, cypher, params=None):
        self.queries.append((cypher, params))
        if self.error:
            raise self.error
        return self.results


class FakeHistory:
    def __init__(self, error=None, gate=None):
        self.records = []
        self.error = error
        self.gate = gate

    async def append(self, record):
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        self.records.append(record)
        return f"response-{len(self.records)}"


def scripted_llm(*responses):
    """LLM replacement returning canned text in order and recording each prompt."""
    prompts = []

    def respond(prompt_value):
        prompts.append(prompt_value.to_string())
        return responses[min(len(prompts), len(responses)) - 1]

    return RunnableLambda(respond), prompts


def evaluation(cypher, errors=()):
    return json.dumps({"cypher": cypher, "errors": list(errors)})


@pytest.fixture
def movie_schema():
    return MOVIE_SCHEMA


@pytest.fixture
def fake_graph():
    return FakeGraph()


@pytest.fixture
def fake_history():
    return FakeHistory()
