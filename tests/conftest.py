"""Shared fixtures for Stackwright tests."""

import pytest
from stackwright.contracts.resources import StateSnapshot
from stackwright.engine import build_stack
from stackwright.executor.retry import RetryPolicy
from stackwright.ingest.spec_loader import document_from_dict
from stackwright.kinds.registry import load_kind_registry
from stackwright.providers.local import LocalProvider
from stackwright.state.store import InMemoryStateStore


@pytest.fixture
def registry():
    """Built-in kind registry."""
    return load_kind_registry()


@pytest.fixture
def make_stack(registry):
    """Build a validated Stack from a resources mapping plus optional document fields."""
    def _make(resources, **fields):
        data = dict(fields)
        data["resources"] = resources
        return build_stack(document_from_dict(data), registry)
    return _make


@pytest.fixture
def bucket_table():
    """Bucket plus a table that references it."""
    return {
        "bucket": {"kind": "S3Bucket", "properties": {"bucket_name": "assets"}},
        "table": {
            "kind": "DynamoTable",
            "properties": {"table_name": "data", "partition_key": "pk", "bucket": {"ref": "bucket"}},
        },
    }


@pytest.fixture
def applied_snapshot():
    """Snapshot in which every node of a stack is applied with a fake physical id."""
    def _applied(stack):
        snapshot = StateSnapshot()
        for node in stack.graph.get_all_nodes():
            applied = node.model_copy(deep=True)
            applied.mark_applied(f"{node.logical_id}-pid", {})
            snapshot.resources[node.logical_id] = applied
        return snapshot
    return _applied


@pytest.fixture
def provider(registry):
    """Simulated in-memory provider."""
    return LocalProvider(kinds=registry)


@pytest.fixture
def store():
    """In-memory state store."""
    return InMemoryStateStore()


@pytest.fixture
def fast_retry():
    """Retry policy without delays."""
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0, jitter=0)


@pytest.fixture
def no_sleep():
    """Sleep replacement recording requested delays."""
    delays = []

    def _sleep(seconds):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep
