"""Cleanup for raw LLM text output."""

from __future__ import annotations

import re

# An optional language tag ends at a newline; on one-line fences only known tags are dropped
_FENCE_RE = re.compile(r"^```(?:[\w-]*[ \t]*\n|(?:cypher|json)[ \t]+)?(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove one surrounding markdown code fence, if present.

    >>> strip_code_fences("```cypher\\nMATCH (n) RETURN n\\n```")
    'MATCH (n) RETURN n'
    """
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text
