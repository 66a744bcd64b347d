"""Tests for the run state store."""

import json
from datetime import datetime, timezone

import pytest

from automation.state import ensure_state_dir, load_state, record_run, save_state


class TestLoadState:
    def test_missing_file(self, tmp_path):
        assert load_state(tmp_path / "nope.json") == {}

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        assert load_state(path) == {}

    def test_non_object_json(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2, 3]")
        assert load_state(path) == {}

    def test_directory_instead_of_file(self, tmp_path):
        assert load_state(tmp_path) == {}

    def test_valid_file(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"nightly": "2024-01-01T09:00:00+00:00"}))
        assert load_state(path) == {"nightly": "2024-01-01T09:00:00+00:00"}


class TestSaveState:
    def test_roundtrip_creates_parents(self, tmp_path):
        path = tmp_path / "deep" / "dir" / "state.json"
        save_state(path, {"a": "2024-01-01T09:00:00"})
        assert load_state(path) == {"a": "2024-01-01T09:00:00"}

    def test_atomic_write(self, tmp_path):
        """save_state goes through a .tmp file that does not linger."""
        path = tmp_path / "state.json"
        save_state(path, {"a": "x"})
        save_state(path, {"a": "y"})

        assert not (tmp_path / "state.json.tmp").exists()
        assert json.loads(path.read_text()) == {"a": "y"}

    def test_parent_is_a_file_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(OSError):
            save_state(blocker / "state.json", {})


class TestRecordRun:
    def test_updates_mapping_and_file(self, tmp_path):
        path = tmp_path / "state.json"
        state = {"other": "2024-01-01T00:00:00"}
        when = datetime(2024, 1, 2, 9, 0, 30, tzinfo=timezone.utc)

        record_run(path, state, "nightly", when)

        assert state["nightly"] == "2024-01-02T09:00:30+00:00"
        assert load_state(path) == state


class TestEnsureStateDir:
    def test_creates_parent(self, tmp_path):
        ensure_state_dir(tmp_path / "a" / "b" / "state.json")
        assert (tmp_path / "a" / "b").is_dir()
