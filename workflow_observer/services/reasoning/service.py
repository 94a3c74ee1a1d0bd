"""Reasoning collaborator: the three request/response shapes the observer relies on.

Every method returns the raw reply text. Decoding into typed results belongs
to the consumers so a malformed reply can be mapped to a conservative value
where it is used.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ...config import Settings, get_settings
from ...errors import ReasoningError
from ...llm_client import extract_message_text, request_chat_completion
from ...logging_config import logger
from ..context.assembler import AssembledContext
from .prompts import (
    ReasoningPrompt,
    build_confusion_prompt,
    build_context_change_prompt,
    build_summary_prompt,
    build_task_name_prompt,
)


class ReasoningCollaborator(Protocol):
    async def evaluate_confusion(
        self, context: AssembledContext, questions_asked: Sequence[str] = ()
    ) -> str:
        ...

    async def evaluate_context_change(
        self,
        task_theory: Optional[str],
        recent_activity: str,
        image_refs: Sequence[str] = (),
    ) -> str:
        ...

    async def summarize(self, facts: str) -> str:
        ...

    async def name_task(
        self, apps: Sequence[str], window_titles: Sequence[str], baseline: str = ""
    ) -> str:
        ...


class ReasoningService:
    """Chat-completions backed implementation of :class:`ReasoningCollaborator`."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    async def _complete(self, prompt: ReasoningPrompt, model: str, *, purpose: str) -> str:
        settings = self._settings
        try:
            response = await request_chat_completion(
                model=model,
                messages=prompt.messages,
                system=prompt.system_prompt,
                api_key=settings.reasoning_api_key,
                base_url=settings.reasoning_base_url,
                temperature=0.2,
                timeout=settings.reasoning_timeout_seconds,
            )
            return extract_message_text(response)
        except ReasoningError as exc:
            logger.warning(
                "reasoning call failed",
                extra={"purpose": purpose, "model": model, "error": str(exc)},
            )
            raise

    async def evaluate_confusion(
        self, context: AssembledContext, questions_asked: Sequence[str] = ()
    ) -> str:
        prompt = build_confusion_prompt(context, questions_asked)
        return await self._complete(prompt, self._settings.confusion_model, purpose="confusion")

    async def evaluate_context_change(
        self,
        task_theory: Optional[str],
        recent_activity: str,
        image_refs: Sequence[str] = (),
    ) -> str:
        prompt = build_context_change_prompt(task_theory, recent_activity, image_refs)
        return await self._complete(prompt, self._settings.context_change_model, purpose="context_change")

    async def summarize(self, facts: str) -> str:
        prompt = build_summary_prompt(facts)
        return await self._complete(prompt, self._settings.summarizer_model, purpose="summary")

    async def name_task(
        self, apps: Sequence[str], window_titles: Sequence[str], baseline: str = ""
    ) -> str:
        prompt = build_task_name_prompt(apps, window_titles, baseline)
        return await self._complete(prompt, self._settings.summarizer_model, purpose="task_name")


__all__ = ["ReasoningCollaborator", "ReasoningService"]
