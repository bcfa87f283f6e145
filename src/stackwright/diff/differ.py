"""Diff engine: compare desired graph with the last applied state.

Produces one ChangeOperation per logical id that needs work (plus one
Delete per deposed object). Property comparison is structural deep equality;
references stay symbolic on both sides, so an unchanged document against the
state it produced diffs to nothing.
"""

from typing import Dict, Iterable, List, Optional
from ..contracts.changes import (
    ChangeOperation,
    CreateOperation,
    DeleteOperation,
    ReplaceOperation,
    UpdateOperation,
)
from ..contracts.resources import ResourceNode, StateSnapshot
from ..graph.resource_graph import ResourceGraph
from ..ingest.references import referenced_properties
from ..kinds.registry import KindRegistry
from ..utils.errors import ValidationError
from ..utils.logging import get_logger

logger = get_logger("diff.differ")


def changed_properties(desired: Dict, applied: Dict) -> List[str]:
    """Top-level property names whose values differ (added, removed or modified)."""
    names = set(desired) | set(applied)
    return sorted(
        name for name in names
        if name not in desired or name not in applied or desired[name] != applied[name]
    )


def _metadata_changed(desired: ResourceNode, applied: ResourceNode) -> bool:
    return (
        desired.deletion_policy != applied.deletion_policy
        or sorted(desired.dependencies) != sorted(applied.dependencies)
    )


def _replace(node: ResourceNode, registry: KindRegistry, reason: str, changed: List[str]) -> ReplaceOperation:
    kind = registry.get(node.kind, node.logical_id)
    if kind.replace_strategy is None:
        raise ValidationError(
            f"Resource '{node.logical_id}' needs replacement ({reason}) but kind '{node.kind}' "
            "declares no replace_strategy"
        )
    return ReplaceOperation(
        logical_id=node.logical_id,
        kind=node.kind,
        reason=reason,
        strategy=kind.replace_strategy,
        changed_properties=changed,
    )


def classify_node(
    desired: ResourceNode,
    applied: Optional[ResourceNode],
    registry: KindRegistry,
    force_replace: bool = False
) -> Optional[ChangeOperation]:
    """Classify a single desired node against its applied counterpart."""
    if applied is None or applied.physical_id is None:
        return CreateOperation(logical_id=desired.logical_id, kind=desired.kind)

    if desired.kind != applied.kind:
        return _replace(desired, registry, f"kind changed from {applied.kind} to {desired.kind}", [])

    changed = changed_properties(desired.properties, applied.properties)

    if force_replace:
        return _replace(desired, registry, "replacement requested", changed)

    kind = registry.get(desired.kind, desired.logical_id)
    forcing = [name for name in changed if kind.requires_replacement(name)]
    if forcing:
        reason = f"property '{forcing[0]}' requires replacement"
        return _replace(desired, registry, reason, changed)

    if changed:
        return UpdateOperation(logical_id=desired.logical_id, kind=desired.kind, changed_properties=changed)

    if _metadata_changed(desired, applied):
        return UpdateOperation(
            logical_id=desired.logical_id,
            kind=desired.kind,
            changed_properties=[],
            reason="lifecycle settings changed",
        )

    return None


def _cascade_replacements(
    graph: ResourceGraph,
    snapshot: StateSnapshot,
    registry: KindRegistry,
    operations: Dict[str, ChangeOperation]
) -> None:
    """
    Propagate new physical objects to applied dependents that reference them.

    A replaced node gets a new physical id. A node being created while an
    applied dependent already references it was deleted by an interrupted
    destroy-before-create replace, so its dependents are refreshed as well.
    """
    for logical_id in graph.topological_order():
        op = operations.get(logical_id)
        if not isinstance(op, (ReplaceOperation, CreateOperation)):
            continue
        verb = "replaced" if isinstance(op, ReplaceOperation) else "recreated"

        for dependent_id in sorted(graph.dependents_of(logical_id)):
            dependent = graph.get_node(dependent_id)
            if snapshot.get(dependent_id) is None:
                continue
            existing = operations.get(dependent_id)
            if isinstance(existing, (CreateOperation, ReplaceOperation)):
                continue

            props = referenced_properties(dependent.properties, logical_id)
            if not props:
                continue

            if isinstance(existing, UpdateOperation):
                props = sorted(set(props) | set(existing.changed_properties))

            kind = registry.get(dependent.kind, dependent_id)
            forcing = [name for name in props if kind.requires_replacement(name)]
            if forcing:
                operations[dependent_id] = _replace(
                    dependent, registry, f"dependency '{logical_id}' is {verb} and property '{forcing[0]}' requires replacement", props
                )
            else:
                operations[dependent_id] = UpdateOperation(
                    logical_id=dependent_id,
                    kind=dependent.kind,
                    changed_properties=props,
                    reason=f"dependency '{logical_id}' is {verb}",
                )
            logger.debug(f"Cascaded new object of {logical_id} to {dependent_id}: {operations[dependent_id].op}")


def compute_changes(
    graph: ResourceGraph,
    snapshot: StateSnapshot,
    registry: KindRegistry,
    force_replace: Optional[Iterable[str]] = None
) -> List[ChangeOperation]:
    """
    Compute the changeset between desired graph and applied state.

    Args:
        graph: Validated desired-state graph
        snapshot: Last applied state
        registry: Kind registry
        force_replace: Logical ids to replace even when unchanged

    Returns:
        ChangeOperations sorted by ordering key

    Raises:
        ValidationError: If a forced id is unknown or a replacement has no declared strategy
    """
    forced = set(force_replace or [])
    unknown = sorted(forced - set(graph.node_ids()))
    if unknown:
        raise ValidationError(f"Cannot replace unknown resources: {', '.join(unknown)}")

    operations: Dict[str, ChangeOperation] = {}
    for node in graph.get_all_nodes():
        op = classify_node(node, snapshot.get(node.logical_id), registry, node.logical_id in forced)
        if op is not None:
            operations[node.logical_id] = op

    _cascade_replacements(graph, snapshot, registry, operations)

    changes: List[ChangeOperation] = list(operations.values())

    for logical_id, applied in snapshot.resources.items():
        if logical_id not in graph:
            changes.append(DeleteOperation(logical_id=logical_id, kind=applied.kind))
        for deposed in applied.deposed:
            changes.append(DeleteOperation(
                logical_id=logical_id, kind=deposed.kind, deposed_physical_id=deposed.physical_id
            ))

    changes.sort(key=lambda c: (c.ordering_key, c.op))
    logger.info(f"Computed {len(changes)} changes against state with {len(snapshot.resources)} resources")
    return changes


def compute_destroy_changes(snapshot: StateSnapshot) -> List[ChangeOperation]:
    """Changeset deleting every applied resource and deposed object."""
    changes: List[ChangeOperation] = []
    for logical_id, applied in snapshot.resources.items():
        changes.append(DeleteOperation(logical_id=logical_id, kind=applied.kind))
        for deposed in applied.deposed:
            changes.append(DeleteOperation(
                logical_id=logical_id, kind=deposed.kind, deposed_physical_id=deposed.physical_id
            ))
    changes.sort(key=lambda c: (c.ordering_key, c.op))
    return changes
