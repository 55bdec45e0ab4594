"""Tolerant JSON extraction for LLM replies (code fences, chatter, truncation)."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List

from utils.exceptions import MalformedOracleOutput

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)(?:```|$)")
_REPETITION_RE = re.compile(r"(\b\w{4,}\b)(?:[\s,.\"]*\1){25,}")


def _strip_fence(text: str) -> str:
    match = _FENCE_RE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return text.strip()


def _envelope(text: str) -> str:
    brace = text.find("{")
    bracket = text.find("[")
    if brace == -1 and bracket == -1:
        raise MalformedOracleOutput("No JSON envelope found", snippet=text[:200])
    if bracket != -1 and (brace == -1 or bracket < brace):
        start, end_char = bracket, "]"
    else:
        start, end_char = brace, "}"
    end = text.rfind(end_char)
    if end <= start:
        return text[start:]
    return text[start : end + 1]


def _missing_closers(text: str) -> str:
    stack: List[str] = []
    in_string = False
    escape = False
    for char in text:
        if escape:
            escape = False
            continue
        if char == "\\":
            escape = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            stack.append("}")
        elif char == "[":
            stack.append("]")
        elif char in "}]" and stack and stack[-1] == char:
            stack.pop()
    closers = "".join(reversed(stack))
    if in_string:
        closers = '"' + closers
    return closers


def parse_json_reply(text: str) -> Any:
    """
    Parse the JSON value embedded in an LLM reply.

    Raises:
        MalformedOracleOutput: empty input, repetition loops, or no
            recoverable JSON value.
    """
    if not text or not str(text).strip():
        raise MalformedOracleOutput("Empty response received")
    text = str(text)
    if _REPETITION_RE.search(text):
        raise MalformedOracleOutput("Detected repetition loop", snippet=text[:200])

    candidate = _envelope(_strip_fence(text))
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    closers = _missing_closers(candidate)
    if closers:
        logger.warning("json_repair truncated reply, appending %r", closers)
    repaired = candidate + closers
    try:
        return json.loads(repaired)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(re.sub(r"(?<!\\)\n", "\\\\n", repaired))
    except json.JSONDecodeError as exc:
        raise MalformedOracleOutput(
            "Heuristic JSON parse failed",
            snippet=text[:200],
            truncated=bool(closers),
        ) from exc
