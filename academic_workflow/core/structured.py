"""
Tagged parsing of model replies that are expected to contain JSON.

Callers decide how to present an Unstructured reply; nothing here
invents fallback content.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Union

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class Structured:
    """Reply that parsed as JSON."""
    data: Any


@dataclass(frozen=True)
class Unstructured:
    """Reply that did not contain parseable JSON."""
    raw_text: str


ParsedReply = Union[Structured, Unstructured]


def _try_load(text: str):
    try:
        return True, json.loads(text)
    except (TypeError, ValueError):
        return False, None


def parse_structured(text: str) -> ParsedReply:
    """Parse a model reply into Structured or Unstructured.

    Tries, in order: the whole reply, a fenced code block, and the
    outermost ``{...}`` span.

    Args:
        text: Raw model output

    Returns:
        Structured with the decoded value, or Unstructured with the raw text
    """
    if not text or not text.strip():
        return Unstructured(raw_text=text or "")

    candidates = [text.strip()]
    fenced = _FENCED_JSON_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    span = _OBJECT_RE.search(text)
    if span:
        candidates.append(span.group(0))

    for candidate in candidates:
        ok, value = _try_load(candidate)
        if ok:
            return Structured(data=value)
    return Unstructured(raw_text=text)
