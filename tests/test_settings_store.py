"""Tests for the JSON settings store and atomic writes."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from agentic_exec.persistence import (
    NoProjectError,
    PersistenceError,
    SettingsStore,
)
from agentic_exec.persistence._utils import atomic_write_json, read_json


class TestAtomicWrite:
    """Tests for atomic_write_json."""

    def test_creates_parent_and_writes(self, tmp_path: Path):
        path = tmp_path / "a" / "b" / "data.json"
        atomic_write_json(path, {"b": 1, "a": [1, 2]})
        assert json.loads(path.read_text()) == {"a": [1, 2], "b": 1}

    def test_keys_sorted(self, tmp_path: Path):
        path = tmp_path / "data.json"
        atomic_write_json(path, {"z": 1, "a": 2})
        assert path.read_text().index('"a"') < path.read_text().index('"z"')

    def test_failed_serialization_keeps_old_file(self, tmp_path: Path):
        """A value that cannot be serialized never touches the target."""
        path = tmp_path / "data.json"
        atomic_write_json(path, {"ok": True})

        with pytest.raises(TypeError):
            atomic_write_json(path, {"bad": object()})

        assert json.loads(path.read_text()) == {"ok": True}
        assert os.listdir(tmp_path) == ["data.json"]

    def test_failed_rename_removes_temp_file(self, tmp_path: Path):
        path = tmp_path / "data.json"
        with patch("agentic_exec.persistence._utils.os.replace", side_effect=OSError("boom")):
            with pytest.raises(OSError):
                atomic_write_json(path, {"x": 1})
        assert os.listdir(tmp_path) == []

    def test_read_missing(self, tmp_path: Path):
        assert read_json(tmp_path / "missing.json") is None


class TestSettingsStore:
    """Tests for SettingsStore scopes and namespaces."""

    def test_missing_file_reads_empty(self, store: SettingsStore):
        assert store.get("global", "approvals") == {}
        assert store.get("project", "approvals") == {}

    def test_global_round_trip(self, store: SettingsStore, settings_file: Path):
        store.put("global", "approvals", {"shell": ["make"]})
        assert store.get("global", "approvals") == {"shell": ["make"]}
        assert json.loads(settings_file.read_text()) == {"approvals": {"shell": ["make"]}}

    def test_project_nested_under_projects(self, store: SettingsStore, settings_file: Path):
        store.put("project", "approvals", {"shell": ["npm test"]})
        data = json.loads(settings_file.read_text())
        assert data == {"projects": {"demo": {"approvals": {"shell": ["npm test"]}}}}
        assert store.get("global", "approvals") == {}

    def test_get_returns_copy(self, store: SettingsStore):
        store.put("global", "approvals", {"shell": ["make"]})
        mapping = store.get("global", "approvals")
        mapping["shell"] = []
        assert store.get("global", "approvals") == {"shell": ["make"]}

    def test_other_keys_preserved(self, store: SettingsStore, settings_file: Path):
        settings_file.parent.mkdir(parents=True)
        settings_file.write_text(json.dumps({"log_level": "debug"}))
        store.put("global", "approvals", {"shell": []})
        data = json.loads(settings_file.read_text())
        assert data["log_level"] == "debug"

    def test_projects_isolated(self, settings_file: Path):
        SettingsStore(settings_file, project="one").put("project", "approvals", {"shell": ["a"]})
        other = SettingsStore(settings_file, project="two")
        assert other.get("project", "approvals") == {}

    def test_project_scope_without_project(self, store_no_project: SettingsStore):
        assert not store_no_project.has_project
        with pytest.raises(NoProjectError):
            store_no_project.get("project", "approvals")
        with pytest.raises(NoProjectError):
            store_no_project.put("project", "approvals", {})

    def test_unknown_scope(self, store: SettingsStore):
        with pytest.raises(ValueError):
            store.get("session", "approvals")

    def test_corrupt_file(self, store: SettingsStore, settings_file: Path):
        settings_file.parent.mkdir(parents=True)
        settings_file.write_text("[1, 2")
        with pytest.raises(PersistenceError):
            store.get("global", "approvals")

    def test_non_object_file(self, store: SettingsStore, settings_file: Path):
        settings_file.parent.mkdir(parents=True)
        settings_file.write_text("[]")
        with pytest.raises(PersistenceError):
            store.get("global", "approvals")

    def test_non_object_namespace(self, store: SettingsStore, settings_file: Path):
        settings_file.parent.mkdir(parents=True)
        settings_file.write_text(json.dumps({"approvals": ["make"]}))
        with pytest.raises(PersistenceError):
            store.get("global", "approvals")

    def test_unwritable_location(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = SettingsStore(blocker / "settings.json")
        with pytest.raises(PersistenceError):
            store.put("global", "approvals", {"shell": ["make"]})


class TestProjectRegistry:
    def test_register_and_lookup(self, store: SettingsStore, tmp_path: Path):
        store.register_project("demo", tmp_path)
        assert store.project_root() == tmp_path.resolve()
        assert store.project_root("demo") == tmp_path.resolve()
        assert store.projects() == ["demo"]

    def test_register_keeps_approvals(self, store: SettingsStore, tmp_path: Path):
        store.put("project", "approvals", {"shell": ["make"]})
        store.register_project("demo", tmp_path)
        assert store.get("project", "approvals") == {"shell": ["make"]}

    def test_unknown_project_root(self, store: SettingsStore, store_no_project: SettingsStore):
        assert store.project_root("missing") is None
        assert store_no_project.project_root() is None
