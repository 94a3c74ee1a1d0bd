"""Reasoning collaborator client and prompt builders."""

from .prompts import (
    ReasoningPrompt,
    build_confusion_prompt,
    build_context_change_prompt,
    build_summary_prompt,
    build_task_name_prompt,
)
from .service import ReasoningCollaborator, ReasoningService

__all__ = [
    "ReasoningCollaborator",
    "ReasoningPrompt",
    "ReasoningService",
    "build_confusion_prompt",
    "build_context_change_prompt",
    "build_summary_prompt",
    "build_task_name_prompt",
]
