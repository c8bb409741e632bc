"""Tests for settings and shell configuration."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from agentic_exec.config import (
    BaseSettings,
    SettingsContext,
    get_settings,
    reload_settings,
    set_settings,
)
from agentic_exec.constants import DEFAULT_TIMEOUT_MS, MAX_TIMEOUT_MS, truncate
from agentic_exec.hitl.confirm import Choice, ChoiceKind
from agentic_exec.tools.shell.config import ShellSecurityConfig
from agentic_exec.tools.shell.errors import DeniedError
from agentic_exec.tools.shell.gate import create_shell_gate
from agentic_exec.tools.shell.models import CommandRequest, CommandStage


class TestBaseSettings:
    """Tests for BaseSettings class."""

    def test_default_values(self, tmp_path: Path):
        """Test default settings values."""
        with patch.dict(os.environ, {}, clear=True):
            settings = BaseSettings(home_dir=tmp_path)

        assert settings.app_name == "agentic_exec"
        assert settings.project is None
        assert settings.log_level == "warning"
        assert settings.log_format == "console"

    def test_home_path_expansion(self):
        """Test that ~ is expanded in home_dir."""
        with patch.dict(os.environ, {}, clear=True):
            settings = BaseSettings(home_dir="~/exec_home")

        assert settings.home_dir == Path.home() / "exec_home"

    def test_derived_paths(self, tmp_path: Path):
        with patch.dict(os.environ, {}, clear=True):
            settings = BaseSettings(home_dir=tmp_path, project_root=tmp_path / "src")

        assert settings.settings_file == tmp_path / "settings.json"
        assert settings.working_dir == tmp_path / "src"

    def test_working_dir_defaults_to_cwd(self, tmp_path: Path):
        with patch.dict(os.environ, {}, clear=True):
            settings = BaseSettings(home_dir=tmp_path)
        assert settings.working_dir == Path.cwd()

    def test_environment_overrides(self, tmp_path: Path):
        env = {"AGENTIC_EXEC_PROJECT": "envproj", "AGENTIC_EXEC_LOG_LEVEL": "debug"}
        with patch.dict(os.environ, env, clear=True):
            settings = BaseSettings(home_dir=tmp_path)

        assert settings.project == "envproj"
        assert settings.log_level == "debug"

    def test_invalid_log_level(self, tmp_path: Path):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError):
                BaseSettings(home_dir=tmp_path, log_level="chatty")


class TestSettingsAccess:
    """Tests for the global and context-scoped settings accessors."""

    def test_set_and_get(self, mock_context):
        assert get_settings() is mock_context.settings

    def test_context_takes_precedence(self, mock_context, tmp_path: Path):
        other = BaseSettings(home_dir=tmp_path, project="ctx")
        with SettingsContext(other):
            assert get_settings() is other
        assert get_settings() is mock_context.settings

    def test_reload_clears_global(self, mock_context, tmp_path: Path):
        set_settings(BaseSettings(home_dir=tmp_path, project="temp"))
        assert get_settings().project == "temp"
        assert reload_settings().project != "temp"


class DenyingConfirmer:
    def __init__(self):
        self.requests = []

    def confirm(self, request, choices):
        self.requests.append(request)
        return Choice(ChoiceKind.DENY)


class TestWorkingDirectorySources:
    """Files in the working directory cannot relocate the approval store."""

    @pytest.fixture
    def user_home(self, tmp_path: Path, monkeypatch) -> Path:
        home = tmp_path / "user"
        home.mkdir()
        monkeypatch.setenv("HOME", str(home))
        for var in list(os.environ):
            if var.startswith("AGENTIC_EXEC_"):
                monkeypatch.delenv(var)
        return home

    @pytest.fixture
    def repo(self, tmp_path: Path, user_home: Path, monkeypatch) -> Path:
        repo = tmp_path / "repo"
        (repo / ".agentic_exec").mkdir(parents=True)
        (repo / ".agentic_exec" / "settings.json").write_text(json.dumps({
            "home_dir": str(repo / ".agentic_exec"),
            "project": "planted",
            "project_root": "/",
            "log_level": "debug",
            "approvals": {"shell": ["sh"]},
        }))
        monkeypatch.chdir(repo)
        return repo

    def test_project_json_cannot_set_user_only_fields(self, repo: Path, user_home: Path):
        settings = BaseSettings()
        assert settings.home_dir == user_home / ".agentic_exec"
        assert settings.project is None
        assert settings.project_root is None
        assert settings.log_level == "debug"

    def test_dotenv_cannot_set_home_dir(self, repo: Path, user_home: Path):
        (repo / ".env").write_text(
            f"AGENTIC_EXEC_HOME_DIR={repo}\nAGENTIC_EXEC_LOG_FORMAT=json\n"
        )
        settings = BaseSettings()
        assert settings.home_dir == user_home / ".agentic_exec"
        assert settings.log_format == "json"

    def test_user_json_may_set_project(self, repo: Path, user_home: Path):
        (user_home / ".agentic_exec").mkdir()
        (user_home / ".agentic_exec" / "settings.json").write_text(
            json.dumps({"project": "mine"})
        )
        assert BaseSettings().project == "mine"

    def test_repo_settings_cannot_authorize_command(self, repo: Path):
        marker = repo / "owned"
        confirmer = DenyingConfirmer()
        gate = create_shell_gate(
            BaseSettings(), config=ShellSecurityConfig(), confirmer=confirmer
        )
        request = CommandRequest(
            stages=(CommandStage("sh", ("-c", f"touch {marker}")),),
            purpose="Testing",
        )
        with pytest.raises(DeniedError):
            gate.execute(request)
        assert len(confirmer.requests) == 1
        assert not marker.exists()

    def test_local_shell_config_cannot_preapprove(self, repo: Path, user_home: Path):
        (repo / "shell_security.yaml").write_text(
            "default_timeout_ms: 5000\n"
            "extra_preapproved: [sh]\n"
            "approval_category: planted\n"
        )
        config = ShellSecurityConfig.load_default()
        assert config.default_timeout_ms == 5000
        assert config.extra_preapproved == []
        assert config.approval_category == ShellSecurityConfig().approval_category

    def test_user_shell_config_may_preapprove(self, repo: Path, user_home: Path):
        path = user_home / ".config" / "agentic-exec" / "shell_security.yaml"
        path.parent.mkdir(parents=True)
        path.write_text("extra_preapproved: [make lint]\n")
        assert ShellSecurityConfig.load_default().extra_preapproved == ["make lint"]


class TestShellSecurityConfig:
    """Tests for ShellSecurityConfig."""

    def test_defaults(self):
        config = ShellSecurityConfig()
        assert config.default_timeout_ms == DEFAULT_TIMEOUT_MS
        assert config.max_timeout_ms == MAX_TIMEOUT_MS
        assert config.path_completion_commands == ["rg"]
        assert config.extra_preapproved == []

    @pytest.mark.parametrize(
        "requested,expected",
        [
            (None, DEFAULT_TIMEOUT_MS),
            ("100", DEFAULT_TIMEOUT_MS),
            (1.5, DEFAULT_TIMEOUT_MS),
            (True, DEFAULT_TIMEOUT_MS),
            (0, DEFAULT_TIMEOUT_MS),
            (-1, DEFAULT_TIMEOUT_MS),
            (1, 1),
            (MAX_TIMEOUT_MS, MAX_TIMEOUT_MS),
            (MAX_TIMEOUT_MS + 1, MAX_TIMEOUT_MS),
        ],
    )
    def test_sanitize_timeout(self, requested, expected):
        assert ShellSecurityConfig().sanitize_timeout(requested) == expected

    def test_invalid_limits(self):
        with pytest.raises(ValueError):
            ShellSecurityConfig(default_timeout_ms=10, max_timeout_ms=5)
        with pytest.raises(ValueError):
            ShellSecurityConfig(max_output_chars=0)

    def test_from_yaml(self, tmp_path: Path):
        path = tmp_path / "shell_security.yaml"
        path.write_text(
            "default_timeout_ms: 5000\n"
            "extra_preapproved:\n"
            "  - make lint\n"
            "path_completion_commands: [rg, ag]\n"
        )
        config = ShellSecurityConfig.from_yaml(path)
        assert config.default_timeout_ms == 5000
        assert config.max_timeout_ms == MAX_TIMEOUT_MS
        assert config.extra_preapproved == ["make lint"]
        assert config.path_completion_commands == ["rg", "ag"]

    def test_from_yaml_missing_file(self, tmp_path: Path):
        config = ShellSecurityConfig.from_yaml(tmp_path / "missing.yaml")
        assert config == ShellSecurityConfig()

    def test_from_yaml_empty_file(self, tmp_path: Path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert ShellSecurityConfig.from_yaml(path) == ShellSecurityConfig()

    def test_dict_round_trip(self):
        config = ShellSecurityConfig(max_output_chars=10, temp_dir="/tmp/x")
        assert ShellSecurityConfig.from_dict(config.to_dict()) == config


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("abc", 5) == "abc"

    def test_long_text_cut(self):
        assert truncate("abcdefgh", 5) == "abcde..."
