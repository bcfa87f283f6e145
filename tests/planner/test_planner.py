"""Tests for plan ordering."""

import copy
import pytest
from stackwright.contracts.changes import StepAction
from stackwright.contracts.resources import DeposedObject, StateSnapshot
from stackwright.engine import plan_destroy, plan_stack
from stackwright.utils.errors import PlanCycleError


CYCLE_KINDS = {
    "Parent": {"replacement_required": ["name"], "replace_strategy": "destroy_before_create", "outputs": ["name"]},
    "Child": {"replacement_required": ["parent"], "replace_strategy": "create_before_destroy"},
}


@pytest.fixture
def replan(make_stack, applied_snapshot):
    """Plan a modified document against the state produced by the original."""
    def _replan(original, modified, **fields):
        snapshot = applied_snapshot(make_stack(original, **fields))
        return plan_stack(make_stack(modified, **fields), snapshot)
    return _replan


class TestApplyOrdering:
    """Test ordering of create, update and replace steps."""

    def test_creates_follow_dependencies(self, make_stack, bucket_table):
        """Dependencies are created before dependents."""
        plan = plan_stack(make_stack(bucket_table), StateSnapshot())

        assert plan.step_keys() == ["create:bucket", "create:table"]
        assert plan.steps[1].depends_on == ["create:bucket"]
        assert plan.summary() == {"create": 2, "update": 0, "replace": 0, "delete": 0}

    def test_noop_plan(self, make_stack, applied_snapshot, bucket_table):
        """No changes means an empty plan."""
        stack = make_stack(bucket_table)

        plan = plan_stack(stack, applied_snapshot(stack))

        assert plan.is_empty()

    def test_destroy_before_create_replace(self, replan, bucket_table):
        """The old object is deleted before the new one is created."""
        modified = copy.deepcopy(bucket_table)
        modified["table"]["properties"]["partition_key"] = "id"

        plan = replan(bucket_table, modified)

        assert plan.step_keys() == ["delete:table", "create:table"]
        assert plan.steps[0].physical_id == "table-pid"
        assert plan.steps[1].depends_on == ["delete:table"]

    def test_create_before_destroy_replace(self, replan, bucket_table):
        """New object first, dependents repointed, then the deposed object is deleted."""
        modified = copy.deepcopy(bucket_table)
        modified["bucket"]["properties"]["bucket_name"] = "assets-v2"

        plan = replan(bucket_table, modified)

        assert plan.step_keys() == ["create:bucket", "update:table", "delete-deposed:bucket:bucket-pid"]
        deposed = plan.steps[2]
        assert deposed.action == StepAction.DELETE_DEPOSED
        assert deposed.depends_on == ["create:bucket", "update:table"]

    def test_replace_chain_of_destroy_before_create(self, replan):
        """Dependents replaced alongside a dependency are deleted first and created last."""
        original = {
            "pool": {"kind": "CognitoUserPool", "properties": {"user_pool_name": "users"}},
            "client": {"kind": "CognitoUserPoolClient", "properties": {"user_pool": {"ref": "pool.user_pool_id"}}},
        }
        modified = copy.deepcopy(original)
        modified["pool"]["properties"]["user_pool_name"] = "members"

        plan = replan(original, modified)

        assert plan.step_keys() == ["delete:client", "delete:pool", "create:pool", "create:client"]

    def test_survivor_updated_before_removed_dependency(self, replan, bucket_table):
        """A node that stops referencing a removed node is updated before the delete."""
        modified = copy.deepcopy(bucket_table)
        del modified["bucket"]
        del modified["table"]["properties"]["bucket"]

        plan = replan(bucket_table, modified)

        assert plan.step_keys() == ["update:table", "delete:bucket"]

    def test_unsatisfiable_ordering(self, replan):
        """Mixed replace strategies that contradict each other raise PlanCycleError."""
        original = {
            "parent": {"kind": "Parent", "properties": {"name": "a"}},
            "child": {"kind": "Child", "properties": {"parent": "${parent.name}"}},
        }
        modified = copy.deepcopy(original)
        modified["parent"]["properties"]["name"] = "b"

        with pytest.raises(PlanCycleError) as exc_info:
            replan(original, modified, kinds=CYCLE_KINDS)

        assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]
        assert "delete:parent" in exc_info.value.cycle


class TestDestroyOrdering:
    """Test destroy plans."""

    def test_dependents_deleted_first(self, make_stack, applied_snapshot, bucket_table):
        """Destroy deletes in reverse dependency order."""
        plan = plan_destroy(applied_snapshot(make_stack(bucket_table)))

        assert plan.destroy
        assert plan.step_keys() == ["delete:table", "delete:bucket"]
        assert plan.steps[1].depends_on == ["delete:table"]

    def test_deposed_deleted_before_node(self, make_stack, applied_snapshot, bucket_table):
        """Deposed objects go before the node's own delete."""
        snapshot = applied_snapshot(make_stack(bucket_table))
        snapshot.resources["bucket"].deposed = [DeposedObject(physical_id="old-bucket", kind="S3Bucket")]

        plan = plan_destroy(snapshot)

        assert plan.step_keys() == ["delete:table", "delete-deposed:bucket:old-bucket", "delete:bucket"]

    def test_empty_state(self):
        """Destroying empty state plans nothing."""
        assert plan_destroy(StateSnapshot()).is_empty()
