"""Presentation layer - human-friendly and JSON formatting."""

from .formatter import (
    format_apply_result,
    format_plan,
    format_resource,
    format_state_list,
    plan_to_dict,
    result_to_dict,
)

__all__ = [
    "format_plan",
    "format_apply_result",
    "format_state_list",
    "format_resource",
    "plan_to_dict",
    "result_to_dict",
]
