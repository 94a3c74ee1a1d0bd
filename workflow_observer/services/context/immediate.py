"""Rolling short-term window over the observation stream."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from ...models import ImmediateContext, Observation
from ...utils.timestamps import seconds_between


def describe_change(previous: Optional[Observation], current: Observation) -> Optional[str]:
    """Short description of what changed between two observations, or None."""

    if previous is None:
        return None

    changes: List[str] = []
    if previous.active_app != current.active_app:
        changes.append(f"switched from {previous.active_app} to {current.active_app}")
    elif previous.window_title != current.window_title:
        prev_title = (previous.window_title or "").lower()
        curr_title = (current.window_title or "").lower()
        if prev_title not in curr_title and curr_title not in prev_title:
            changes.append(f"window changed to: {current.window_title[:50]}")
    return "; ".join(changes) if changes else None


def format_immediate_state(context: ImmediateContext, now: Optional[datetime] = None) -> str:
    if context.latest is None:
        return "No immediate context available."

    reference = now or context.latest.timestamp
    parts = [
        f"Current app: {context.current_app or 'Unknown'}",
        f"Window: {context.current_window_title or 'Unknown'}",
    ]
    if context.last_change_description:
        parts.append(f"Recent change: {context.last_change_description}")
    if context.last_app_switch_time:
        ago = int(seconds_between(context.last_app_switch_time, reference))
        parts.append(f"Last app switch: {max(ago, 0)}s ago")
    return "\n".join(parts)


class ImmediateContextTracker:
    """Maintains the FIFO buffer of the last few observations for one session."""

    def __init__(self, capacity: int = 6) -> None:
        self._context = ImmediateContext(capacity=capacity)
        self.last_update_changed = False

    @property
    def context(self) -> ImmediateContext:
        return self._context

    def update(self, observation: Observation) -> ImmediateContext:
        context = self._context
        previous = context.latest

        context.buffer.append(observation)
        context.current_app = observation.active_app
        context.current_window_title = observation.window_title
        self.last_update_changed = False

        if previous is not None and (
            previous.active_app != observation.active_app
            or previous.window_title != observation.window_title
        ):
            context.last_app_switch_time = observation.timestamp
            description = describe_change(previous, observation)
            if description:
                context.last_change_description = description
                self.last_update_changed = True
        return context

    def format_state(self, now: Optional[datetime] = None) -> str:
        return format_immediate_state(self._context, now)

    def reset(self) -> None:
        self._context = ImmediateContext(capacity=self._context.capacity)
        self.last_update_changed = False


__all__ = ["ImmediateContextTracker", "describe_change", "format_immediate_state"]
