"""Planner: order a changeset into provider steps.

Ordering rules, as edges "u must complete before v" in a step graph:

- apply order: a node's create/update follows the create/update of every
  node it depends on in the desired graph;
- delete order: a node's delete precedes the delete of every node it
  depended on in the applied state;
- destroy-before-create replace: delete, then create, then dependents;
- create-before-destroy replace: create, then dependents, then delete of the
  deposed object;
- a surviving node that dropped its reference to a removed node is updated
  before that node is deleted.
"""

import networkx as nx
from typing import Dict, List, Optional
from ..contracts.changes import (
    ChangeOperation,
    CreateOperation,
    DeleteOperation,
    ExecutionPlan,
    PlanStep,
    ReplaceOperation,
    ReplaceStrategy,
    StepAction,
    UpdateOperation,
)
from ..contracts.resources import StateSnapshot
from ..graph.resource_graph import ResourceGraph, graph_from_snapshot
from ..utils.errors import PlanCycleError
from ..utils.logging import get_logger

logger = get_logger("planner.planner")

ACTION_RANK = {
    StepAction.DELETE_DEPOSED: 0,
    StepAction.DELETE: 1,
    StepAction.CREATE: 2,
    StepAction.UPDATE: 3,
}


class _NodeSteps:
    """Steps generated for one logical id."""

    def __init__(self):
        self.apply: Optional[PlanStep] = None
        self.delete: Optional[PlanStep] = None
        self.deposed: List[PlanStep] = []
        self.recreated = False

    def deletes(self) -> List[PlanStep]:
        return ([self.delete] if self.delete else []) + self.deposed


def _expand(op: ChangeOperation, snapshot: StateSnapshot) -> List[PlanStep]:
    """Expand one change operation into provider steps."""
    applied = snapshot.get(op.logical_id)
    physical_id = applied.physical_id if applied else None

    if isinstance(op, CreateOperation):
        return [PlanStep(action=StepAction.CREATE, logical_id=op.logical_id, kind=op.kind, operation=op)]
    if isinstance(op, UpdateOperation):
        return [PlanStep(action=StepAction.UPDATE, logical_id=op.logical_id, kind=op.kind,
                         physical_id=physical_id, operation=op)]
    if isinstance(op, ReplaceOperation):
        old_kind = applied.kind if applied else op.kind
        create = PlanStep(action=StepAction.CREATE, logical_id=op.logical_id, kind=op.kind, operation=op)
        if op.strategy == ReplaceStrategy.CREATE_BEFORE_DESTROY:
            delete = PlanStep(action=StepAction.DELETE_DEPOSED, logical_id=op.logical_id, kind=old_kind,
                              physical_id=physical_id, operation=op)
        else:
            delete = PlanStep(action=StepAction.DELETE, logical_id=op.logical_id, kind=old_kind,
                              physical_id=physical_id, operation=op)
        return [create, delete]
    if isinstance(op, DeleteOperation):
        if op.deposed_physical_id:
            return [PlanStep(action=StepAction.DELETE_DEPOSED, logical_id=op.logical_id, kind=op.kind,
                             physical_id=op.deposed_physical_id, operation=op)]
        return [PlanStep(action=StepAction.DELETE, logical_id=op.logical_id, kind=op.kind,
                         physical_id=physical_id, operation=op)]
    raise TypeError(f"Unsupported change operation: {op!r}")


def build_plan(
    changes: List[ChangeOperation],
    desired: ResourceGraph,
    snapshot: StateSnapshot,
    destroy: bool = False
) -> ExecutionPlan:
    """
    Order change operations into an execution plan.

    Args:
        changes: ChangeOperations from the diff engine
        desired: Desired-state graph (empty for destroy)
        snapshot: Last applied state
        destroy: Whether this plan destroys the whole stack

    Returns:
        ExecutionPlan with steps in execution order and per-step prerequisites

    Raises:
        PlanCycleError: If ordering constraints are unsatisfiable
    """
    by_node: Dict[str, _NodeSteps] = {}
    steps: Dict[str, PlanStep] = {}

    for op in changes:
        entry = by_node.setdefault(op.logical_id, _NodeSteps())
        for step in _expand(op, snapshot):
            steps[step.key] = step
            if step.action in (StepAction.CREATE, StepAction.UPDATE):
                entry.apply = step
            elif step.action == StepAction.DELETE:
                entry.delete = step
            else:
                entry.deposed.append(step)
        if isinstance(op, ReplaceOperation):
            entry.recreated = True

    order = nx.DiGraph()
    order.add_nodes_from(steps)

    def before(first: PlanStep, second: PlanStep) -> None:
        if first.key != second.key:
            order.add_edge(first.key, second.key)

    applied_graph = graph_from_snapshot(snapshot)

    for logical_id, entry in by_node.items():
        # Replacement internals
        if entry.recreated and entry.apply:
            if entry.delete:
                before(entry.delete, entry.apply)
            for deposed in entry.deposed:
                if deposed.operation.op == "replace":
                    before(entry.apply, deposed)
        # Deposed leftovers go before the node's own delete
        if entry.delete and not entry.recreated:
            for deposed in entry.deposed:
                before(deposed, entry.delete)

        # Apply order over desired edges
        if entry.apply:
            for dep_id in desired.dependencies_of(logical_id):
                dep = by_node.get(dep_id)
                if dep and dep.apply:
                    before(dep.apply, entry.apply)

        # Create-before-destroy: deposed delete waits for dependents to migrate
        if entry.recreated and entry.apply:
            cbd_deletes = [d for d in entry.deposed if d.operation.op == "replace"]
            for dependent_id in desired.dependents_of(logical_id):
                dependent = by_node.get(dependent_id)
                if dependent and dependent.apply:
                    for deposed in cbd_deletes:
                        before(dependent.apply, deposed)

        # Delete order over applied edges
        for old_dep_id in applied_graph.dependencies_of(logical_id):
            dep = by_node.get(old_dep_id)
            if not dep:
                continue
            for own_delete in entry.deletes():
                for dep_delete in dep.deletes():
                    before(own_delete, dep_delete)
            # A survivor stops referencing a node that goes away for good
            if entry.apply and not dep.recreated:
                for dep_delete in dep.deletes():
                    before(entry.apply, dep_delete)

    try:
        ordered_keys = list(nx.lexicographical_topological_sort(order, key=lambda k: _sort_key(steps[k])))
    except nx.NetworkXUnfeasible:
        cycle_edges = nx.find_cycle(order)
        cycle = [edge[0] for edge in cycle_edges] + [cycle_edges[0][0]]
        raise PlanCycleError(cycle)

    ordered: List[PlanStep] = []
    for key in ordered_keys:
        step = steps[key]
        step.depends_on = sorted(order.predecessors(key))
        ordered.append(step)

    plan = ExecutionPlan(changes=list(changes), steps=ordered, destroy=destroy)
    logger.info(f"Planned {len(ordered)} steps from {len(changes)} changes: {plan.summary()}")
    return plan


def _sort_key(step: PlanStep) -> str:
    return f"{step.logical_id}\x00{ACTION_RANK[step.action]}\x00{step.physical_id or ''}"
