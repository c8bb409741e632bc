"""Shared test fixtures and utilities for agentic-exec tests.

Provides:
- MockContext for isolating tests from global state
- ScriptedConfirmer standing in for the interactive prompt
- Store, policy, runner and gate fixtures rooted in temp directories
"""

import os
import tempfile
from pathlib import Path
from typing import Generator, Sequence

import pytest
import structlog

from agentic_exec.config import (
    BaseSettings,
    reload_settings,
    set_context_settings,
    set_settings,
)
from agentic_exec.hitl.confirm import Choice, ChoiceKind, ConfirmationRequest
from agentic_exec.hitl.policy import ApprovalPolicy
from agentic_exec.persistence import SettingsStore
from agentic_exec.tools.shell.config import ShellSecurityConfig
from agentic_exec.tools.shell.gate import ShellGate
from agentic_exec.tools.shell.runner import PipelineRunner


class MockContext:
    """Context manager for isolating tests from global state.

    Handles:
    - Resetting global settings singleton
    - Providing a temporary home directory for settings.json
    - Clearing AGENTIC_EXEC_* environment variables

    Usage:
        with MockContext(project="demo") as ctx:
            settings = ctx.settings
            home = ctx.home_dir
    """

    def __init__(self, **settings_kwargs):
        self._settings_kwargs = settings_kwargs
        self._temp_dir: tempfile.TemporaryDirectory | None = None
        self._settings: BaseSettings | None = None
        self._original_env: dict[str, str] = {}

    def __enter__(self) -> "MockContext":
        self._temp_dir = tempfile.TemporaryDirectory()
        home = Path(self._temp_dir.name)

        for var in list(os.environ):
            if var.startswith("AGENTIC_EXEC_"):
                self._original_env[var] = os.environ.pop(var)

        self._settings = BaseSettings(
            home_dir=home / "home",
            project_root=home,
            **self._settings_kwargs,
        )
        set_settings(self._settings)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        set_context_settings(None)
        os.environ.update(self._original_env)
        reload_settings()
        if self._temp_dir:
            self._temp_dir.cleanup()

    @property
    def settings(self) -> BaseSettings:
        if self._settings is None:
            raise RuntimeError("MockContext not entered")
        return self._settings

    @property
    def home_dir(self) -> Path:
        return self.settings.home_dir


class ScriptedConfirmer:
    """Confirmer returning pre-scripted choices and recording every request."""

    def __init__(self, *choices: Choice):
        self._choices = list(choices)
        self.requests: list[ConfirmationRequest] = []
        self.offered: list[tuple[ChoiceKind, ...]] = []

    def confirm(
        self, request: ConfirmationRequest, choices: Sequence[ChoiceKind]
    ) -> Choice:
        self.requests.append(request)
        self.offered.append(tuple(choices))
        if not self._choices:
            raise AssertionError(f"Unexpected confirmation for {request.command_preview}")
        return self._choices.pop(0)

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture(autouse=True, scope="session")
def silent_logging() -> Generator[None, None, None]:
    """Keep structlog output out of test output; capture_logs still works."""
    structlog.configure(
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def mock_context() -> Generator[MockContext, None, None]:
    """Fixture providing an isolated test context."""
    with MockContext() as ctx:
        yield ctx


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    return tmp_path / "home" / "settings.json"


@pytest.fixture
def store(settings_file: Path) -> SettingsStore:
    """Store with an active project."""
    return SettingsStore(settings_file, project="demo")


@pytest.fixture
def store_no_project(settings_file: Path) -> SettingsStore:
    return SettingsStore(settings_file)


@pytest.fixture
def policy(store: SettingsStore) -> ApprovalPolicy:
    return ApprovalPolicy(store)


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Project root commands run in."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "hello.txt").write_text("hello\nworld\n")
    return root


@pytest.fixture
def staging_dir(tmp_path: Path) -> Path:
    """Parent of the runner's per-run temp directories."""
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def runner(work_dir: Path, staging_dir: Path) -> PipelineRunner:
    return PipelineRunner(cwd=work_dir, temp_dir=staging_dir)


@pytest.fixture
def make_gate(policy: ApprovalPolicy, runner: PipelineRunner):
    """Factory building a gate around a scripted confirmer."""

    def _make(
        *choices: Choice, policy_override: ApprovalPolicy | None = None
    ) -> tuple[ShellGate, ScriptedConfirmer]:
        confirmer = ScriptedConfirmer(*choices)
        gate = ShellGate(
            policy_override or policy,
            confirmer,
            runner,
            ShellSecurityConfig(),
        )
        return gate, confirmer

    return _make
