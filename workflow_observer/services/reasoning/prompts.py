from __future__ import annotations

from dataclasses import dataclass
from textwrap import dedent
from typing import Any, Dict, List, Optional, Sequence

from ..context.assembler import AssembledContext


@dataclass(frozen=True)
class ReasoningPrompt:
    system_prompt: str
    messages: List[Dict[str, Any]]


_CONFUSION_SYSTEM_PROMPT = dedent(
    """
    You are observing a knowledge worker's screen to learn how they do their job.
    You receive their role, what happened in earlier sessions, what happened so far today,
    and the last few screenshots. Decide whether you can explain what they are doing and why.

    Reply with a single JSON object and nothing else.

    When you understand the activity:
    {"confused": false, "understanding": "<one sentence describing the current task>"}

    When something genuinely needs the user's explanation:
    {"confused": true,
     "type": "<unfamiliar_app | unclear_purpose | repeated_action | multi_system | pattern_deviation | manual_entry | error_state>",
     "confidence": <0.0-1.0>,
     "context": "<what you observed>",
     "question": "<one short, specific question for the user>"}

    RULES:
    1. Prefer "confused": false. Only ask when the answer would change your understanding of the workflow.
    2. Never ask something already listed as asked this session.
    3. Questions must be answerable in one sentence and must not mention screenshots.
    """
).strip()


_CONTEXT_CHANGE_SYSTEM_PROMPT = dedent(
    """
    You decide whether a knowledge worker is still on the same task.
    You receive the current task theory and a summary of recent activity.
    Reply with a single JSON object and nothing else:
    {"sameTask": <true|false>, "confidence": <0.0-1.0>, "reasoning": "<one sentence>"}

    Be conservative. Research, lookups and brief message checks are part of the same task.
    Only answer false when the goal of the work has clearly changed.
    """
).strip()


_SUMMARY_SYSTEM_PROMPT = dedent(
    """
    You compress an observation session into a short brief that will be read at the start of future sessions.
    Write two to four plain sentences covering the tasks worked on, the systems used and anything the user
    explained. Do not invent facts; only use the structured facts provided. No headings, no bullet points.
    """
).strip()


_TASK_NAME_SYSTEM_PROMPT = dedent(
    """
    You label units of work for a workflow inventory.
    Reply with a short task name of two to six words in title case, such as "Reconcile Vendor Invoices".
    Reply with the name only.
    """
).strip()


def _image_parts(image_refs: Sequence[str]) -> List[Dict[str, Any]]:
    return [{"type": "image_url", "image_url": {"url": ref}} for ref in image_refs if ref]


def _user_message(text: str, image_refs: Sequence[str] = ()) -> Dict[str, Any]:
    images = _image_parts(image_refs)
    if not images:
        return {"role": "user", "content": text}
    return {"role": "user", "content": [{"type": "text", "text": text}, *images]}


def _format_list(items: Sequence[str], empty: str = "None") -> str:
    cleaned = [item for item in items if item]
    return ", ".join(cleaned) if cleaned else empty


def build_confusion_prompt(context: AssembledContext, questions_asked: Sequence[str] = ()) -> ReasoningPrompt:
    asked = "\n".join(f"- {question}" for question in questions_asked) or "- None"
    content = dedent(
        """
        {context}

        Questions already asked this session:
        {asked}
        """
    ).strip().format(context=context.render(), asked=asked)
    return ReasoningPrompt(
        system_prompt=_CONFUSION_SYSTEM_PROMPT,
        messages=[_user_message(content, context.image_refs)],
    )


def build_context_change_prompt(
    task_theory: Optional[str],
    recent_activity: str,
    image_refs: Sequence[str] = (),
) -> ReasoningPrompt:
    content = (
        f"Current task theory: {task_theory or 'Unknown'}\n\n"
        f"Recent activity:\n{recent_activity or '(none)'}"
    )
    return ReasoningPrompt(
        system_prompt=_CONTEXT_CHANGE_SYSTEM_PROMPT,
        messages=[_user_message(content, image_refs)],
    )


def build_summary_prompt(facts: str) -> ReasoningPrompt:
    content = f"Session facts:\n{facts.strip() or '(no activity recorded)'}"
    return ReasoningPrompt(
        system_prompt=_SUMMARY_SYSTEM_PROMPT,
        messages=[_user_message(content)],
    )


def build_task_name_prompt(apps: Sequence[str], window_titles: Sequence[str], baseline: str = "") -> ReasoningPrompt:
    titles = "\n".join(f"- {title}" for title in window_titles if title) or "- (none)"
    content = dedent(
        """
        Role: {baseline}
        Applications used: {apps}
        Window titles seen:
        {titles}
        """
    ).strip().format(baseline=baseline or "Unknown", apps=_format_list(apps), titles=titles)
    return ReasoningPrompt(
        system_prompt=_TASK_NAME_SYSTEM_PROMPT,
        messages=[_user_message(content)],
    )


__all__ = [
    "ReasoningPrompt",
    "build_confusion_prompt",
    "build_context_change_prompt",
    "build_summary_prompt",
    "build_task_name_prompt",
]
