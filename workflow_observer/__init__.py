"""Screen-observation core: tiered context, task boundaries and throttled questions."""

from .config import ObservationConfig, Settings, TokenBudget, get_settings

__all__ = ["ObservationConfig", "Settings", "TokenBudget", "get_settings"]
