"""Turn raw LLM replies into validated data.

The model is asked for JSON only, but replies arrive wrapped in Markdown
fences or surrounded by prose often enough that a small salvage step is
needed. The salvage is deliberately narrow: strip one fence, cut to the
outermost braces (or brackets), parse. Anything else is a
MalformedResponseError carrying the raw text.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import TypeAdapter, ValidationError

from adaptive_tutor.errors import MalformedResponseError
from adaptive_tutor.models import Evaluation, PendingView, RevealedView, SessionView

log = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")

_session_view = TypeAdapter(SessionView)


def strip_fences(raw: str) -> str:
    """Trim the reply and drop one leading and one trailing code fence."""
    cleaned = raw.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
    return _FENCE_CLOSE.sub("", cleaned, count=1)


def _select_json_text(cleaned: str) -> str:
    obj_start, obj_end = cleaned.find("{"), cleaned.rfind("}")
    if obj_start != -1 and obj_end != -1 and obj_start < obj_end:
        return cleaned[obj_start : obj_end + 1]
    arr_start, arr_end = cleaned.find("["), cleaned.rfind("]")
    if arr_start != -1 and arr_end != -1 and arr_start < arr_end:
        return cleaned[arr_start : arr_end + 1]
    return cleaned


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def extract_structured(raw: str) -> Any:
    """Parse the JSON value inside an LLM reply.

    Raises:
        MalformedResponseError: if no valid JSON can be recovered.
    """
    if not isinstance(raw, str):
        raise MalformedResponseError("LLM reply is not text", raw=repr(raw))
    cleaned = strip_fences(raw)
    json_text = _select_json_text(cleaned)
    try:
        return json.loads(json_text, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        # Deeply nested brackets overflow the decoder with RecursionError.
        log.error("Failed to parse JSON from LLM reply.")
        log.error(f"Raw response: {raw}")
        log.error(f"Cleaned text: {cleaned}")
        log.error(f"JSON text: {json_text}")
        reason = e.msg if isinstance(e, json.JSONDecodeError) else str(e)
        raise MalformedResponseError(
            f"Invalid JSON from LLM: {reason}", raw=raw, cleaned=cleaned
        ) from e


def _validate(adapter_or_model, data: Any, raw: str, what: str):
    try:
        if isinstance(adapter_or_model, TypeAdapter):
            return adapter_or_model.validate_python(data)
        return adapter_or_model.model_validate(data)
    except ValidationError as e:
        log.error(f"LLM reply has the wrong shape for {what}: {e}")
        raise MalformedResponseError(
            f"LLM reply is not a valid {what}", raw=raw, cleaned=strip_fences(raw)
        ) from e


def parse_session_view(data: Any, raw: str = "") -> SessionView:
    """Check the per-status required fields and build a typed view."""
    return _validate(_session_view, data, raw, "lesson view")


def parse_pending(data: Any, raw: str = "") -> PendingView:
    return _validate(PendingView, data, raw, "pending question")


def parse_revealed(data: Any, raw: str = "") -> RevealedView:
    return _validate(RevealedView, data, raw, "revealed solution")


def parse_evaluation(data: Any, raw: str = "") -> Evaluation:
    return _validate(Evaluation, data, raw, "answer evaluation")


def parse_topics(data: Any, raw: str = "", limit: int = 12) -> list[str]:
    """Accept a bare list or {"topics": [...]}; keep unique, non-empty entries."""
    if isinstance(data, dict):
        data = data.get("topics")
    if not isinstance(data, list):
        raise MalformedResponseError(
            "LLM topics reply is not a list", raw=raw, cleaned=strip_fences(raw)
        )
    topics: list[str] = []
    seen: set[str] = set()
    for item in data:
        if not isinstance(item, str):
            continue
        topic = item.strip()
        if not topic or topic.lower() in seen:
            continue
        seen.add(topic.lower())
        topics.append(topic)
        if len(topics) >= limit:
            break
    if not topics:
        raise MalformedResponseError(
            "LLM returned no usable topics", raw=raw, cleaned=strip_fences(raw)
        )
    return topics
