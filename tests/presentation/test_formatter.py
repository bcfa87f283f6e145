"""Tests for human and JSON formatting."""

import copy
import json
from stackwright.contracts.resources import DeposedObject, StateSnapshot
from stackwright.contracts.results import ApplyResult, StepOutcome, StepResult
from stackwright.engine import plan_destroy, plan_stack
from stackwright.presentation.formatter import (
    format_apply_result,
    format_plan,
    format_resource,
    format_state_list,
    plan_to_dict,
    result_to_dict,
)


class TestFormatPlan:
    """Test plan rendering."""

    def test_create_plan(self, make_stack, bucket_table):
        """Each step is numbered with its marker; a summary line closes the plan."""
        text = format_plan(plan_stack(make_stack(bucket_table), StateSnapshot()), ascii_mode=True)

        assert "STACKWRIGHT PLAN" in text
        assert "  1. +   bucket (S3Bucket)" in text
        assert "  2. +   table (DynamoTable)" in text
        assert "Plan: 2 to create, 0 to update, 0 to replace, 0 to delete." in text

    def test_replace_plan(self, make_stack, applied_snapshot, bucket_table):
        """Replacements show strategy and reason; deposed deletes name the old id."""
        snapshot = applied_snapshot(make_stack(bucket_table))
        modified = copy.deepcopy(bucket_table)
        modified["bucket"]["properties"]["bucket_name"] = "assets-v2"

        text = format_plan(plan_stack(make_stack(modified), snapshot), ascii_mode=True)

        assert "-/+ bucket (S3Bucket) -> create (create_before_destroy): property 'bucket_name' requires replacement" in text
        assert "~   table (DynamoTable) -> bucket" in text
        assert "-   bucket (S3Bucket) -> delete deposed bucket-pid" in text
        assert "1 to update, 1 to replace" in text

    def test_empty_plan(self):
        """An empty plan says there is nothing to do."""
        text = format_plan(plan_destroy(StateSnapshot()), ascii_mode=True)

        assert "STACKWRIGHT DESTROY PLAN" in text
        assert "No changes." in text

    def test_unicode_box(self, monkeypatch):
        """Box drawing characters are used unless ASCII is requested."""
        monkeypatch.delenv("STACKWRIGHT_ASCII", raising=False)
        assert "┌" in format_plan(plan_destroy(StateSnapshot()))

        monkeypatch.setenv("STACKWRIGHT_ASCII", "1")
        assert "┌" not in format_plan(plan_destroy(StateSnapshot()))

    def test_plan_to_dict(self, make_stack, bucket_table):
        """JSON plans carry step keys and a summary."""
        data = plan_to_dict(plan_stack(make_stack(bucket_table), StateSnapshot()))

        assert [step["key"] for step in data["steps"]] == ["create:bucket", "create:table"]
        assert data["summary"]["create"] == 2
        assert data["steps"][0]["operation"]["op"] == "create"
        json.dumps(data)


class TestFormatApplyResult:
    """Test apply result rendering."""

    def _result(self, **fields):
        steps = [
            StepResult(step_key="create:bucket", logical_id="bucket", action="create",
                       outcome=StepOutcome.SUCCEEDED, attempts=3, physical_id="s3bucket-0001"),
            StepResult(step_key="create:table", logical_id="table", action="create",
                       outcome=StepOutcome.FAILED, attempts=1, error="quota exceeded"),
        ]
        return ApplyResult(run_id="abc123", steps=steps, **fields)

    def test_partial_failure(self):
        """Failed runs show the error and counts."""
        text = format_apply_result(self._result(succeeded=False), ascii_mode=True)

        assert "APPLY FAILED (partial) - run abc123" in text
        assert "[OK] create         bucket (s3bucket-0001) after 3 attempts" in text
        assert "quota exceeded" in text
        assert "1 applied, 1 failed, 0 skipped." in text

    def test_cancelled_with_outputs(self):
        """Cancelled runs are titled as such; outputs are listed when present."""
        result = self._result(succeeded=False, cancelled=True, outputs={"Url": "https://x", "Ids": [1, 2]})

        text = format_apply_result(result, ascii_mode=True)

        assert "APPLY CANCELLED" in text
        assert "  Ids = [1, 2]" in text
        assert "  Url = https://x" in text

    def test_result_to_dict(self):
        """JSON results carry summary counts."""
        data = result_to_dict(self._result(succeeded=False))

        assert data["summary"] == {"applied": 1, "failed": 1, "skipped": 0}
        assert data["steps"][1]["outcome"] == "failed"


class TestFormatState:
    """Test state rendering."""

    def test_state_list(self, make_stack, applied_snapshot, bucket_table):
        """One line per resource, deposed ids noted."""
        snapshot = applied_snapshot(make_stack(bucket_table))
        snapshot.resources["bucket"].deposed = [DeposedObject(physical_id="old", kind="S3Bucket")]

        lines = format_state_list(snapshot).splitlines()

        assert lines[0].startswith("bucket")
        assert "bucket-pid" in lines[0] and "(deposed: old)" in lines[0]
        assert lines[1].startswith("table")

    def test_empty_state(self):
        """Empty state is reported plainly."""
        assert format_state_list(StateSnapshot()) == "No resources in state."

    def test_resource(self, make_stack, applied_snapshot, bucket_table):
        """A resource shows identity, properties and outputs."""
        node = applied_snapshot(make_stack(bucket_table)).resources["table"]

        text = format_resource(node, ascii_mode=True)

        assert "physical_id:     table-pid" in text
        assert "depends on:      bucket" in text
        assert 'bucket = {"ref": "bucket"}' in text
        assert "  (none)" in text
