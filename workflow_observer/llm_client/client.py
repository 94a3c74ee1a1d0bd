from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx

from ..config import get_settings
from ..errors import ReasoningError


def _headers(*, api_key: Optional[str] = None) -> Dict[str, str]:
    settings = get_settings()
    key = (api_key or settings.reasoning_api_key or "").strip()
    if not key:
        raise ReasoningError("Missing reasoning API key")

    return {
        "Authorization": f"Bearer {key}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def _build_messages(messages: List[Dict[str, Any]], system: Optional[str]) -> List[Dict[str, Any]]:
    if system:
        return [{"role": "system", "content": system}, *messages]
    return messages


def _handle_response_error(exc: httpx.HTTPStatusError) -> None:
    response = exc.response
    detail: str
    try:
        payload = response.json()
        detail = payload.get("error") or payload.get("message") or json.dumps(payload)
    except ValueError:
        detail = response.text
    raise ReasoningError(f"Reasoning request failed ({response.status_code}): {detail}") from exc


def extract_message_text(response: Dict[str, Any]) -> str:
    """Return the first choice's text content or raise when the payload has none."""

    choices = response.get("choices") or []
    if not choices:
        raise ReasoningError("Reasoning response missing choices")
    message = choices[0].get("message") or {}
    content = message.get("content")
    if isinstance(content, list):
        content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
    text = (content or "").strip()
    if not text:
        raise ReasoningError("Reasoning response missing content")
    return text


async def request_chat_completion(
    *,
    model: str,
    messages: List[Dict[str, Any]],
    system: Optional[str] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """Request a chat completion and return the raw JSON payload."""

    settings = get_settings()
    payload: Dict[str, object] = {
        "model": model,
        "messages": _build_messages(messages, system),
        "stream": False,
    }
    if temperature is not None:
        payload["temperature"] = temperature
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens

    url = f"{(base_url or settings.reasoning_base_url).rstrip('/')}/chat/completions"

    async with httpx.AsyncClient() as client:
        try:
            response = await client.post(
                url,
                headers=_headers(api_key=api_key),
                json=payload,
                timeout=timeout or settings.reasoning_timeout_seconds,
            )
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                _handle_response_error(exc)
            return response.json()
        except httpx.HTTPError as exc:
            raise ReasoningError(f"Reasoning request failed: {exc}") from exc
        except ValueError as exc:
            raise ReasoningError(f"Reasoning response was not JSON: {exc}") from exc


__all__ = ["extract_message_text", "request_chat_completion"]
