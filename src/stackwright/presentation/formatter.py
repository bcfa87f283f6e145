"""Human-friendly output formatter for plans, apply results and state."""

import json
import os
from typing import Any, Dict, List, Optional
from ..contracts.changes import ExecutionPlan, PlanStep, StepAction
from ..contracts.resources import ResourceNode, StateSnapshot
from ..contracts.results import ApplyResult, StepOutcome

WIDTH = 65

# Change markers by operation
MARKERS = {
    "create": "+",
    "update": "~",
    "replace": "-/+",
    "delete": "-",
}


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("STACKWRIGHT_ASCII", "").lower() in ("1", "true", "yes")


def _box(title: str, width: int = WIDTH, ascii_mode: bool = False) -> List[str]:
    """Return box-drawing header lines."""
    b = {"tl": "+", "tr": "+", "bl": "+", "br": "+", "h": "-", "v": "|"} if ascii_mode else {
        "tl": "┌", "tr": "┐", "bl": "└", "br": "┘", "h": "─", "v": "│"
    }
    h = b["h"] * (width - 2)
    return [
        b["tl"] + h + b["tr"],
        f"{b['v']} {title:<{width - 4}} {b['v']}",
        b["bl"] + h + b["br"],
        "",
    ]


def _step_line(step: PlanStep, ascii_mode: bool) -> str:
    op = step.operation
    if step.action == StepAction.DELETE_DEPOSED:
        marker, detail = "-", f"delete deposed {step.physical_id}"
    else:
        marker, detail = MARKERS[op.op], ""
        if op.op == "replace":
            detail = f"{step.action.value} ({op.strategy.value}): {op.reason}"
        elif op.op == "update":
            detail = ", ".join(op.changed_properties) or "state only"
        elif op.op == "delete" and step.physical_id:
            detail = step.physical_id
    line = f"{marker:<3} {step.logical_id} ({step.kind})"
    if detail:
        line += f" {'->' if ascii_mode else '→'} {detail}"
    return line


def format_plan(plan: ExecutionPlan, ascii_mode: Optional[bool] = None) -> str:
    """
    Render an execution plan for humans.

    Args:
        plan: Planned steps
        ascii_mode: Force ASCII output (default: STACKWRIGHT_ASCII)
    """
    ascii_mode = _use_ascii(ascii_mode)
    title = "STACKWRIGHT DESTROY PLAN" if plan.destroy else "STACKWRIGHT PLAN"
    lines = _box(title, ascii_mode=ascii_mode)

    if plan.is_empty():
        lines.append("No changes. Infrastructure matches the desired state.")
        return "\n".join(lines)

    for index, step in enumerate(plan.steps, 1):
        lines.append(f"{index:>3}. {_step_line(step, ascii_mode)}")

    counts = plan.summary()
    lines.append("")
    lines.append(
        f"Plan: {counts['create']} to create, {counts['update']} to update, "
        f"{counts['replace']} to replace, {counts['delete']} to delete."
    )
    return "\n".join(lines)


def format_apply_result(result: ApplyResult, ascii_mode: Optional[bool] = None) -> str:
    """Render an apply or destroy result for humans."""
    ascii_mode = _use_ascii(ascii_mode)
    if result.succeeded:
        title = "APPLY COMPLETE"
    elif result.cancelled:
        title = "APPLY CANCELLED"
    else:
        title = "APPLY FAILED (partial)"
    lines = _box(f"{title} - run {result.run_id}", ascii_mode=ascii_mode)

    symbols = {
        StepOutcome.SUCCEEDED: "[OK]" if ascii_mode else "✓",
        StepOutcome.FAILED: "[X]" if ascii_mode else "✗",
        StepOutcome.SKIPPED: "[-]" if ascii_mode else "·",
    }
    for step in result.steps:
        line = f"  {symbols[step.outcome]} {step.action:<14} {step.logical_id}"
        if step.physical_id:
            line += f" ({step.physical_id})"
        if step.attempts > 1:
            line += f" after {step.attempts} attempts"
        lines.append(line)
        if step.error:
            lines.append(f"      {step.error}")

    counts = result.summary()
    lines.append("")
    lines.append(f"{counts['applied']} applied, {counts['failed']} failed, {counts['skipped']} skipped.")

    if result.outputs:
        lines.append("")
        lines.append("Outputs:")
        for name in sorted(result.outputs):
            lines.append(f"  {name} = {_scalar(result.outputs[name])}")
    return "\n".join(lines)


def format_state_list(snapshot: StateSnapshot) -> str:
    """One line per applied resource: logical id, kind, physical id."""
    if snapshot.is_empty():
        return "No resources in state."
    width = max(len(logical_id) for logical_id in snapshot.resources)
    lines = []
    for logical_id in sorted(snapshot.resources):
        node = snapshot.resources[logical_id]
        line = f"{logical_id:<{width}}  {node.kind:<24} {node.physical_id or '-'}"
        if node.deposed:
            line += f"  (deposed: {', '.join(node.deposed_ids())})"
        lines.append(line)
    return "\n".join(lines)


def format_resource(node: ResourceNode, ascii_mode: Optional[bool] = None) -> str:
    """Render one applied resource with its properties and outputs."""
    ascii_mode = _use_ascii(ascii_mode)
    lines = _box(f"{node.logical_id} ({node.kind})", ascii_mode=ascii_mode)
    lines.append(f"physical_id:     {node.physical_id or '-'}")
    lines.append(f"status:          {node.status.value}")
    lines.append(f"deletion_policy: {node.deletion_policy.value}")
    if node.dependencies:
        lines.append(f"depends on:      {', '.join(node.dependencies)}")
    if node.deposed:
        lines.append(f"deposed:         {', '.join(node.deposed_ids())}")
    for title, values in (("Properties", node.properties), ("Outputs", node.outputs)):
        lines.append("")
        lines.append(f"{title}:")
        if not values:
            lines.append("  (none)")
        for name in sorted(values):
            lines.append(f"  {name} = {_scalar(values[name])}")
    return "\n".join(lines)


def _scalar(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def plan_to_dict(plan: ExecutionPlan) -> Dict[str, Any]:
    """JSON-ready plan including step keys."""
    data = plan.model_dump(mode="json")
    for step_data, step in zip(data["steps"], plan.steps):
        step_data["key"] = step.key
    data["summary"] = plan.summary()
    return data


def result_to_dict(result: ApplyResult) -> Dict[str, Any]:
    """JSON-ready apply result with summary counts."""
    data = result.model_dump(mode="json")
    data["summary"] = result.summary()
    return data
