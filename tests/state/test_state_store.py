"""Tests for state stores."""

import json
import tempfile
from pathlib import Path
import pytest
from stackwright.contracts.resources import NodeStatus, ResourceNode, StateSnapshot
from stackwright.state.store import InMemoryStateStore, JsonFileStateStore
from stackwright.utils.errors import RunInProgressError, StateStoreError


def _applied(logical_id, physical_id):
    node = ResourceNode(logical_id=logical_id, kind="SnsTopic", properties={"topic_name": logical_id})
    node.mark_applied(physical_id, {"arn": f"arn:{physical_id}"})
    return node


@pytest.fixture
def state_path():
    """Temporary state file path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "nested" / "state.json"


class TestJsonFileStateStore:
    """Test the JSON file backend."""

    def test_missing_file_loads_empty(self, state_path):
        """No state file means empty state."""
        snapshot = JsonFileStateStore(state_path).load()

        assert snapshot.is_empty()
        assert snapshot.serial == 0

    def test_round_trip(self, state_path):
        """Committed nodes are read back by a new store."""
        store = JsonFileStateStore(state_path)
        store.load()
        store.save("alerts", _applied("alerts", "t-1"))
        store.save_outputs({"TopicArn": "arn:t-1"})
        store.commit()

        snapshot = JsonFileStateStore(state_path).load()

        assert snapshot.serial == 1
        assert snapshot.resources["alerts"].physical_id == "t-1"
        assert snapshot.resources["alerts"].status == NodeStatus.APPLIED
        assert snapshot.outputs == {"TopicArn": "arn:t-1"}

    def test_uncommitted_changes_not_persisted(self, state_path):
        """save() only stages; commit() persists."""
        store = JsonFileStateStore(state_path)
        store.load()
        store.save("alerts", _applied("alerts", "t-1"))

        assert not state_path.exists()

    def test_remove(self, state_path):
        """Removed nodes disappear after commit."""
        store = JsonFileStateStore(state_path)
        store.save("a", _applied("a", "t-1"))
        store.save("b", _applied("b", "t-2"))
        store.commit()
        store.remove("a")
        store.remove("missing")
        store.commit()

        assert set(JsonFileStateStore(state_path).load().resources) == {"b"}

    def test_unknown_fields_preserved(self, state_path):
        """Fields written by newer versions survive a load/commit cycle."""
        state_path.parent.mkdir(parents=True)
        data = StateSnapshot(resources={"a": _applied("a", "t-1")}).model_dump(mode="json")
        data["workspace"] = "blue"
        data["resources"]["a"]["drift"] = {"checked": True}
        state_path.write_text(json.dumps(data))

        store = JsonFileStateStore(state_path)
        store.load()
        store.commit()
        written = json.loads(state_path.read_text())

        assert written["workspace"] == "blue"
        assert written["resources"]["a"]["drift"] == {"checked": True}
        assert written["serial"] == 1

    def test_invalid_json(self, state_path):
        """A corrupt state file is a state store error."""
        state_path.parent.mkdir(parents=True)
        state_path.write_text("{not json")

        with pytest.raises(StateStoreError):
            JsonFileStateStore(state_path).load()

    def test_invalid_schema(self, state_path):
        """A state file with the wrong shape is a state store error."""
        state_path.parent.mkdir(parents=True)
        state_path.write_text(json.dumps({"serial": -4}))

        with pytest.raises(StateStoreError):
            JsonFileStateStore(state_path).load()

    def test_lock_conflict(self, state_path):
        """Two stores on the same file cannot both hold the run lock."""
        state_path.parent.mkdir(parents=True)
        first = JsonFileStateStore(state_path)
        second = JsonFileStateStore(state_path)

        with first.lock():
            with pytest.raises(RunInProgressError):
                with second.lock():
                    pass

        with second.lock():
            pass

    def test_no_temp_files_left(self, state_path):
        """Atomic writes leave only the state file behind."""
        store = JsonFileStateStore(state_path)
        store.commit()
        store.commit()

        assert [p.name for p in state_path.parent.iterdir()] == ["state.json"]


class TestInMemoryStateStore:
    """Test the in-memory backend."""

    def test_commit_and_reload(self):
        """Committed state is visible to later loads, not staged state."""
        store = InMemoryStateStore()
        store.save("a", _applied("a", "t-1"))
        store.commit()
        store.save("b", _applied("b", "t-2"))

        assert set(store.committed().resources) == {"a"}
        assert store.commits == 1
        assert set(store.load().resources) == {"a"}

    def test_initial_snapshot(self):
        """A store can start from an existing snapshot."""
        store = InMemoryStateStore(StateSnapshot(resources={"a": _applied("a", "t-1")}))

        assert store.load().resources["a"].physical_id == "t-1"

    def test_load_returns_copy(self):
        """Mutating a loaded snapshot does not touch the working copy."""
        store = InMemoryStateStore()
        loaded = store.load()
        loaded.resources["x"] = _applied("x", "t-9")

        assert "x" not in store.snapshot.resources

    def test_lock_is_exclusive(self):
        """A second lock attempt fails while the first is held."""
        store = InMemoryStateStore()

        with store.lock():
            with pytest.raises(RunInProgressError):
                with store.lock():
                    pass
