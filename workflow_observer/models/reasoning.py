"""Typed decoding of reasoning-collaborator replies.

Every reply is passed through :func:`decode_response`, which yields either a
validated model or an :class:`InvalidResponse`. Consumers map the invalid
variant to their most conservative value instead of guessing at fields.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, model_validator

from .questions import ConfusionType


_JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class InvalidResponse(BaseModel):
    """Explicit marker for a reply that could not be decoded."""

    reason: str
    raw: str = ""


class ConfusionResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    confused: StrictBool
    type: Optional[ConfusionType] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    context: Optional[str] = None
    question: Optional[str] = None
    understanding: Optional[str] = None

    @model_validator(mode="after")
    def _require_signal_fields(self) -> "ConfusionResponse":
        if self.confused:
            missing = [
                name
                for name, value in (("type", self.type), ("confidence", self.confidence))
                if value is None
            ]
            if not (self.question or "").strip():
                missing.append("question")
            if missing:
                raise ValueError(f"confused reply missing fields: {', '.join(missing)}")
        return self


class ContextChangeResponse(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    same_task: StrictBool = Field(alias="sameTask")
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""


ModelT = TypeVar("ModelT", bound=BaseModel)


def extract_json_object(raw: Any) -> Optional[Dict[str, Any]]:
    """Pull the first JSON object out of a reply, tolerating prose and code fences."""

    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    match = _JSON_OBJECT_PATTERN.search(raw)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def decode_response(model: Type[ModelT], raw: Any) -> Union[ModelT, InvalidResponse]:
    raw_text = raw if isinstance(raw, str) else json.dumps(raw, default=str) if raw is not None else ""
    payload = extract_json_object(raw)
    if payload is None:
        return InvalidResponse(reason="no JSON object found", raw=raw_text[:500])
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        return InvalidResponse(reason=f"schema validation failed: {exc.error_count()} error(s)", raw=raw_text[:500])


__all__ = [
    "ConfusionResponse",
    "ContextChangeResponse",
    "InvalidResponse",
    "decode_response",
    "extract_json_object",
]
