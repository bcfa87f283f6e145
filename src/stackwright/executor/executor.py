"""Executor: apply an ordered plan against the provider.

Steps run one at a time by default. With parallelism above one, a step is
submitted to a bounded thread pool as soon as every step it depends on has
succeeded. A fatal failure halts the run: no new steps start, in-flight steps
finish, and nothing is rolled back. Each successful step is saved and
committed to the state store before it is reported as succeeded.
"""

import copy
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional, Tuple
from .context import RunContext
from .retry import call_with_retry
from ..contracts.changes import ExecutionPlan, PlanStep, ReplaceOperation, ReplaceStrategy, StepAction
from ..contracts.resources import DeletionPolicy, DeposedObject, NodeStatus, ResourceNode
from ..contracts.results import ApplyResult, StepOutcome, StepResult
from ..ingest.references import resolve_references
from ..utils.errors import ResourceNotFoundError, StackwrightError, StateStoreError
from ..utils.logging import get_logger

logger = get_logger("executor.executor")

# Handler result: (physical id touched, provider attempts)
StepHandler = Callable[[RunContext, PlanStep], Tuple[Optional[str], int]]


def _merge_desired(desired: ResourceNode, applied: Optional[ResourceNode]) -> ResourceNode:
    """Desired declaration carried onto the applied record (unknown fields kept)."""
    if applied is None:
        node = desired.model_copy(deep=True)
    else:
        node = applied.model_copy(deep=True)
        node.kind = desired.kind
        node.properties = copy.deepcopy(desired.properties)
        node.dependencies = list(desired.dependencies)
        node.deletion_policy = desired.deletion_policy
    node.status = NodeStatus.APPLYING
    return node


def _desired_node(ctx: RunContext, step: PlanStep) -> ResourceNode:
    node = ctx.desired.get_node(step.logical_id)
    if node is None:
        raise StackwrightError(f"Step {step.key} has no desired resource '{step.logical_id}'")
    return node


def _persist(ctx: RunContext, node: Optional[ResourceNode], logical_id: str) -> None:
    """Save (or remove, when node is None) and commit under the run lock."""
    with ctx.lock:
        if node is None:
            ctx.store.remove(logical_id)
        else:
            ctx.store.save(logical_id, node)
        ctx.store.commit()


def _create(ctx: RunContext, step: PlanStep) -> Tuple[Optional[str], int]:
    desired = _desired_node(ctx, step)
    properties = resolve_references(desired.properties, ctx.lookup)
    (physical_id, outputs), attempts = call_with_retry(
        ctx.provider.create_resource, step.kind, properties,
        policy=ctx.retry, description=f"create {step.logical_id}", sleep=ctx.sleep,
    )

    with ctx.lock:
        applied = ctx.snapshot.get(step.logical_id)
        node = _merge_desired(desired, applied)
        op = step.operation
        if (
            applied is not None and applied.physical_id
            and isinstance(op, ReplaceOperation)
            and op.strategy == ReplaceStrategy.CREATE_BEFORE_DESTROY
        ):
            deposed = DeposedObject(physical_id=applied.physical_id, kind=applied.kind)
            node.deposed = list(applied.deposed) + [deposed]
            logger.debug(f"Deposed {applied.physical_id} of {step.logical_id}")
        node.mark_applied(physical_id, outputs)
        _persist(ctx, node, step.logical_id)
    return physical_id, attempts


def _update(ctx: RunContext, step: PlanStep) -> Tuple[Optional[str], int]:
    desired = _desired_node(ctx, step)
    with ctx.lock:
        applied = ctx.snapshot.get(step.logical_id)
    if applied is None or not applied.physical_id:
        raise StateStoreError(f"Cannot update '{step.logical_id}': it is not in the applied state")

    if step.operation.op == "update" and step.operation.state_only:
        outputs, attempts = applied.outputs, 0
        logger.debug(f"State-only update of {step.logical_id}")
    else:
        properties = resolve_references(desired.properties, ctx.lookup)
        outputs, attempts = call_with_retry(
            ctx.provider.update_resource, step.kind, applied.physical_id, properties,
            policy=ctx.retry, description=f"update {step.logical_id}", sleep=ctx.sleep,
        )

    # Other steps of this node may have committed while the provider call ran
    with ctx.lock:
        current = ctx.snapshot.get(step.logical_id) or applied
        node = _merge_desired(desired, current)
        node.mark_applied(applied.physical_id, outputs)
        _persist(ctx, node, step.logical_id)
    return applied.physical_id, attempts


def _delete_physical(ctx: RunContext, step: PlanStep, physical_id: str, policy: DeletionPolicy) -> int:
    """Delete one physical object unless retained; a missing object counts as deleted."""
    if policy == DeletionPolicy.RETAIN:
        logger.info(f"Retaining {step.kind} {physical_id} of {step.logical_id} (deletion_policy: retain)")
        return 0
    try:
        _, attempts = call_with_retry(
            ctx.provider.delete_resource, step.kind, physical_id,
            policy=ctx.retry, description=f"delete {step.logical_id}", sleep=ctx.sleep,
        )
    except ResourceNotFoundError as e:
        logger.warning(f"{step.kind} {physical_id} of {step.logical_id} already gone: {e}")
        return e.attempts
    return attempts


def _delete(ctx: RunContext, step: PlanStep) -> Tuple[Optional[str], int]:
    with ctx.lock:
        applied = ctx.snapshot.get(step.logical_id)
    if applied is None:
        logger.debug(f"{step.logical_id} is not in state; nothing to delete")
        return step.physical_id, 0

    attempts = 0
    if applied.physical_id:
        attempts = _delete_physical(ctx, step, applied.physical_id, applied.deletion_policy)

    if step.operation.op == "replace":
        # Kept in state without a physical object until the new one is created
        with ctx.lock:
            node = (ctx.snapshot.get(step.logical_id) or applied).model_copy(deep=True)
            node.physical_id = None
            node.outputs = {}
            node.status = NodeStatus.PENDING
            _persist(ctx, node, step.logical_id)
    else:
        _persist(ctx, None, step.logical_id)
    return applied.physical_id, attempts


def _delete_deposed(ctx: RunContext, step: PlanStep) -> Tuple[Optional[str], int]:
    with ctx.lock:
        applied = ctx.snapshot.get(step.logical_id)
    policy = applied.deletion_policy if applied is not None else DeletionPolicy.DELETE
    attempts = _delete_physical(ctx, step, step.physical_id, policy)

    with ctx.lock:
        current = ctx.snapshot.get(step.logical_id)
        if current is not None and step.physical_id in current.deposed_ids():
            node = current.model_copy(deep=True)
            node.deposed = [d for d in node.deposed if d.physical_id != step.physical_id]
            _persist(ctx, node, step.logical_id)
    return step.physical_id, attempts


HANDLERS: Dict[StepAction, StepHandler] = {
    StepAction.CREATE: _create,
    StepAction.UPDATE: _update,
    StepAction.DELETE: _delete,
    StepAction.DELETE_DEPOSED: _delete_deposed,
}


def run_step(ctx: RunContext, step: PlanStep) -> StepResult:
    """
    Execute one step and classify its outcome.

    Any StackwrightError (exhausted retries, fatal provider error, reference
    resolution or state store failure) makes the step Failed.
    """
    ctx.set_status(step.logical_id, NodeStatus.APPLYING)
    logger.info(f"Applying {step.describe()}")
    try:
        physical_id, attempts = HANDLERS[step.action](ctx, step)
    except StackwrightError as e:
        ctx.set_status(step.logical_id, NodeStatus.FAILED)
        logger.error(f"Step {step.key} failed for resource '{step.logical_id}': {e}")
        return StepResult(
            step_key=step.key,
            logical_id=step.logical_id,
            action=step.action.value,
            outcome=StepOutcome.FAILED,
            attempts=getattr(e, "attempts", 0),
            physical_id=step.physical_id,
            error=str(e),
        )

    ctx.set_status(step.logical_id, NodeStatus.APPLIED)
    logger.info(f"Applied {step.describe()}" + (f" -> {physical_id}" if physical_id else ""))
    return StepResult(
        step_key=step.key,
        logical_id=step.logical_id,
        action=step.action.value,
        outcome=StepOutcome.SUCCEEDED,
        attempts=attempts,
        physical_id=physical_id,
    )


def _skipped(step: PlanStep) -> StepResult:
    return StepResult(
        step_key=step.key,
        logical_id=step.logical_id,
        action=step.action.value,
        outcome=StepOutcome.SKIPPED,
        physical_id=step.physical_id,
    )


def _run_sequential(plan: ExecutionPlan, ctx: RunContext) -> Dict[str, StepResult]:
    results: Dict[str, StepResult] = {}
    halted = False
    for step in plan.steps:
        if halted or ctx.cancelled:
            results[step.key] = _skipped(step)
            continue
        result = run_step(ctx, step)
        results[step.key] = result
        if result.outcome == StepOutcome.FAILED:
            halted = True
    return results


def _run_parallel(plan: ExecutionPlan, ctx: RunContext) -> Dict[str, StepResult]:
    results: Dict[str, StepResult] = {}
    pending: List[PlanStep] = list(plan.steps)
    succeeded = set()
    halted = False

    with ThreadPoolExecutor(max_workers=ctx.parallelism, thread_name_prefix="stackwright-step") as pool:
        running = {}
        while True:
            if not halted and not ctx.cancelled:
                for step in list(pending):
                    if len(running) >= ctx.parallelism:
                        break
                    if all(dep in succeeded for dep in step.depends_on):
                        pending.remove(step)
                        running[pool.submit(run_step, ctx, step)] = step
            if not running:
                break

            finished, _ = wait(running, return_when=FIRST_COMPLETED)
            for future in finished:
                step = running.pop(future)
                result = future.result()
                results[step.key] = result
                if result.outcome == StepOutcome.SUCCEEDED:
                    succeeded.add(step.key)
                else:
                    halted = True

    for step in pending:
        results[step.key] = _skipped(step)
    return results


def execute_plan(plan: ExecutionPlan, ctx: RunContext) -> ApplyResult:
    """
    Apply an execution plan.

    Args:
        plan: Ordered plan from the planner
        ctx: Run context (provider, store with loaded snapshot, desired graph)

    Returns:
        ApplyResult; succeeded is False on failure or cancellation
    """
    for step in plan.steps:
        ctx.set_status(step.logical_id, NodeStatus.PLANNED)

    logger.info(f"Run {ctx.run_id}: executing {len(plan.steps)} steps (parallelism {ctx.parallelism})")
    if ctx.parallelism > 1:
        results = _run_parallel(plan, ctx)
    else:
        results = _run_sequential(plan, ctx)

    ordered = [results[step.key] for step in plan.steps]
    skipped = [r for r in ordered if r.outcome == StepOutcome.SKIPPED]
    cancelled = ctx.cancelled and bool(skipped)
    if cancelled:
        with ctx.lock:
            ctx.store.commit()
        logger.warning(f"Run {ctx.run_id} cancelled; {len(skipped)} steps not started")

    result = ApplyResult(
        run_id=ctx.run_id,
        succeeded=all(r.outcome == StepOutcome.SUCCEEDED for r in ordered),
        cancelled=cancelled,
        steps=ordered,
        statuses=dict(ctx.statuses),
    )
    logger.info(f"Run {ctx.run_id} finished: {result.summary()}")
    return result

