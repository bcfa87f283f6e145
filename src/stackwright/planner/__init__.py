"""Change ordering."""

from .planner import build_plan

__all__ = ["build_plan"]
