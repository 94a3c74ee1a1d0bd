"""Task boundary detection, merging and naming."""

from .detector import DetectorOutput, DetectorState, TaskBoundaryDetector
from .merging import merge_tasks, should_merge_tasks
from .naming import TaskNamer, clean_task_name, fallback_task_name
from .policy import (
    DEFAULT_DAY_BOUNDARIES,
    DEFAULT_NEW_TASK_APPS,
    DEFAULT_SAME_TASK_PAIRS,
    WILDCARD,
    AppPair,
    AppSwitchPolicy,
    DayBoundary,
    TimePatternPolicy,
)

__all__ = [
    "AppPair",
    "AppSwitchPolicy",
    "DEFAULT_DAY_BOUNDARIES",
    "DEFAULT_NEW_TASK_APPS",
    "DEFAULT_SAME_TASK_PAIRS",
    "DayBoundary",
    "DetectorOutput",
    "DetectorState",
    "TaskBoundaryDetector",
    "TaskNamer",
    "TimePatternPolicy",
    "WILDCARD",
    "clean_task_name",
    "fallback_task_name",
    "merge_tasks",
    "should_merge_tasks",
]
