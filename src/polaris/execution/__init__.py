"""Execution substrate for agent runs."""

from .run_manager import RunHandle, RunManager, RunOutcome
from .steps import StepContext

__all__ = ["RunHandle", "RunManager", "RunOutcome", "StepContext"]
