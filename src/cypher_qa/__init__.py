"""Natural-language question answering over a Neo4j graph via self-correcting Cypher."""

__version__ = "0.1.0"
