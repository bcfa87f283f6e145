"""Engine: plan, apply and destroy orchestration."""

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Union
from .contracts.changes import ExecutionPlan
from .contracts.resources import StateSnapshot
from .contracts.results import ApplyResult
from .diff.differ import compute_changes, compute_destroy_changes
from .executor.context import RunContext
from .executor.executor import execute_plan
from .executor.retry import RetryPolicy
from .graph.resource_graph import ResourceGraph, build_graph
from .ingest.models import DesiredStateDocument
from .ingest.references import collect_references, resolve_references
from .ingest.spec_loader import load_documents
from .ingest.spec_normalizer import normalize_document, resolve_output_expressions
from .kinds.registry import KindRegistry, load_kind_registry, load_kinds
from .planner.planner import build_plan
from .providers.base import Provider
from .state.store import StateStore
from .utils.errors import DanglingReferenceError, InvalidReferenceError, ReferenceResolutionError
from .utils.logging import get_logger

logger = get_logger("engine")

PlanCallback = Callable[[ExecutionPlan], None]


@dataclass
class Stack:
    """A loaded, validated desired state."""
    document: DesiredStateDocument
    registry: KindRegistry
    graph: ResourceGraph
    outputs: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.document.name


def _check_output_references(outputs: Dict[str, Any], graph: ResourceGraph, registry: KindRegistry) -> None:
    for name, value in outputs.items():
        for ref in collect_references(value, name):
            target = graph.get_node(ref.target)
            if target is None:
                raise DanglingReferenceError(f"outputs.{name}", ref.target)
            if ref.attribute is not None and not registry.get(target.kind).declares_output(ref.attribute):
                raise InvalidReferenceError(
                    f"Stack output '{name}' references '{ref.expression}' which kind '{target.kind}' does not declare"
                )


def build_stack(document: DesiredStateDocument, registry: Optional[KindRegistry] = None) -> Stack:
    """
    Validate a parsed document and build its resource graph.

    Raises:
        ValidationError: On any document, kind or graph validation failure
    """
    base = registry if registry is not None else load_kind_registry()
    registry = base.extend(document.kinds) if document.kinds else base
    nodes = normalize_document(document, registry)
    graph = build_graph(nodes, registry)
    outputs = resolve_output_expressions(document)
    _check_output_references(outputs, graph, registry)
    return Stack(document=document, registry=registry, graph=graph, outputs=outputs)


def load_stack(spec_paths: Iterable[Union[str, Path]], kinds_path: Optional[Union[str, Path]] = None) -> Stack:
    """Load one or more desired-state files into a validated Stack."""
    document = load_documents(list(spec_paths))
    registry = load_kinds(kinds_path)
    return build_stack(document, registry)


def plan_stack(stack: Stack, snapshot: StateSnapshot, force_replace: Optional[Iterable[str]] = None) -> ExecutionPlan:
    """
    Diff a stack against a snapshot and order the changes.

    Raises:
        ValidationError: If a forced replacement targets an unknown id
        PlanCycleError: If ordering constraints are unsatisfiable
    """
    changes = compute_changes(stack.graph, snapshot, stack.registry, force_replace)
    return build_plan(changes, stack.graph, snapshot)


def plan_destroy(snapshot: StateSnapshot) -> ExecutionPlan:
    """Plan deleting everything recorded in the snapshot."""
    return build_plan(compute_destroy_changes(snapshot), ResourceGraph(), snapshot, destroy=True)


def resolve_stack_outputs(expressions: Dict[str, Any], snapshot: StateSnapshot) -> Dict[str, Any]:
    """
    Resolve stack output expressions against applied state.

    Raises:
        ReferenceResolutionError: If an output references a missing resource or attribute
    """
    def lookup(target: str, attribute: Optional[str]) -> Any:
        node = snapshot.get(target)
        if node is None or not node.physical_id:
            raise ReferenceResolutionError(f"Stack output references unapplied resource '{target}'")
        if attribute is None:
            return node.physical_id
        if attribute not in node.outputs:
            raise ReferenceResolutionError(f"Stack output references unknown output '{target}.{attribute}'")
        return node.outputs[attribute]

    return {name: resolve_references(value, lookup) for name, value in expressions.items()}


def _run(
    plan_factory: Callable[[StateSnapshot], ExecutionPlan],
    desired: ResourceGraph,
    store: StateStore,
    provider: Provider,
    parallelism: int,
    retry: Optional[RetryPolicy],
    cancel_event: Optional[threading.Event],
    sleep: Callable[[float], None],
    on_plan: Optional[PlanCallback],
    finalize: Callable[[RunContext, ApplyResult], None],
) -> ApplyResult:
    with store.lock():
        snapshot = store.load()
        plan = plan_factory(snapshot)
        if on_plan is not None:
            on_plan(plan)

        ctx = RunContext(
            provider=provider,
            store=store,
            desired=desired,
            parallelism=parallelism,
            retry=retry or RetryPolicy(),
            cancel_event=cancel_event or threading.Event(),
            sleep=sleep,
        )
        result = execute_plan(plan, ctx)
        if result.succeeded:
            finalize(ctx, result)
        return result


def apply_stack(
    stack: Stack,
    store: StateStore,
    provider: Provider,
    force_replace: Optional[Iterable[str]] = None,
    parallelism: int = 1,
    retry: Optional[RetryPolicy] = None,
    cancel_event: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep,
    on_plan: Optional[PlanCallback] = None,
) -> ApplyResult:
    """
    Plan and apply a stack under the run lock.

    Args:
        stack: Loaded stack
        store: State store
        provider: Resource provider
        force_replace: Logical ids to replace even when unchanged
        parallelism: Worker count for independent steps (1 = sequential)
        retry: Retry policy for retryable provider errors
        cancel_event: Set to request cancellation between steps
        sleep: Sleep function used for backoff
        on_plan: Called with the plan before execution starts

    Returns:
        ApplyResult; stack outputs are resolved and persisted only on full success

    Raises:
        RunInProgressError: If another run holds the state lock
        ValidationError, PlanCycleError: Before any provider call
    """
    provider.bind_kinds(stack.registry)
    forced = list(force_replace or [])

    def finalize(ctx: RunContext, result: ApplyResult) -> None:
        with ctx.lock:
            outputs = resolve_stack_outputs(stack.outputs, ctx.snapshot)
            if outputs != ctx.snapshot.outputs:
                ctx.store.save_outputs(outputs)
                ctx.store.commit()
        result.outputs = outputs

    logger.info(f"Applying stack '{stack.name}' ({len(stack.graph)} resources)")
    return _run(
        lambda snapshot: plan_stack(stack, snapshot, forced),
        stack.graph, store, provider, parallelism, retry, cancel_event, sleep, on_plan, finalize,
    )


def destroy_stack(
    store: StateStore,
    provider: Provider,
    parallelism: int = 1,
    retry: Optional[RetryPolicy] = None,
    cancel_event: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep,
    on_plan: Optional[PlanCallback] = None,
    registry: Optional[KindRegistry] = None,
) -> ApplyResult:
    """
    Delete every resource recorded in state, dependents first.

    Resources with deletion_policy 'retain' are removed from state only.
    """
    if registry is not None:
        provider.bind_kinds(registry)

    def finalize(ctx: RunContext, result: ApplyResult) -> None:
        with ctx.lock:
            if ctx.snapshot.outputs:
                ctx.store.save_outputs({})
                ctx.store.commit()

    logger.info("Destroying all resources in state")
    return _run(plan_destroy, ResourceGraph(), store, provider, parallelism, retry, cancel_event, sleep, on_plan, finalize)
