"""Projection of raw query results into identifiers and answer context."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

ID_KEY = "_id"


def extract_ids(results: Any) -> list[str]:
    """Collect every ``_id`` value from arbitrarily nested results.

    Order is first-encountered; repeated identifiers are kept once.
    """
    ids: list[str] = []

    def walk(item: Any) -> None:
        if isinstance(item, Mapping):
            for key, value in item.items():
                if key == ID_KEY and value is not None and not isinstance(value, (Mapping, list, tuple)):
                    value = str(value)
                    if value not in ids:
                        ids.append(value)
                else:
                    walk(value)
        elif isinstance(item, (list, tuple)):
            for value in item:
                walk(value)

    walk(results)
    return ids


def render_context(results: Any) -> str:
    """Render results as JSON, unwrapping a single-record result to a flat object."""
    if isinstance(results, (list, tuple)) and len(results) == 1:
        return json.dumps(results[0], default=str, ensure_ascii=False)
    return json.dumps(results, default=str, ensure_ascii=False)
