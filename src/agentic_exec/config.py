"""Base configuration for agentic-exec.

Settings Management:
    The module provides both global singleton and context-based settings:

    1. Global singleton (simple cases):
        set_settings(my_settings)
        settings = get_settings()

    2. Context-based (isolated contexts, tests):
        with SettingsContext(my_settings):
            settings = get_settings()  # Returns my_settings

Settings Loading Priority (highest to lowest):
    1. Constructor arguments
    2. Environment variables (AGENTIC_EXEC_* prefix)
    3. Project config (./.agentic_exec/settings.json, no home_dir, project
       or project_root)
    4. User config (~/.agentic_exec/settings.json)
    5. .env file (same restriction as project config)
    6. Default values

The user config file is shared with the approval store; keys that are not
settings fields (``approvals``, ``projects``) are ignored here.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Generator, Literal, Tuple, Type

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings as PydanticBaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

__all__ = [
    "BaseSettings",
    "SettingsContext",
    "get_settings",
    "set_settings",
    "set_context_settings",
    "reload_settings",
]

APP_NAME = "agentic_exec"


# Never taken from the working directory (project JSON, .env)
USER_ONLY_FIELDS = frozenset({"home_dir", "project", "project_root"})


class _RestrictedSource(PydanticBaseSettingsSource):
    """Wraps a settings source and drops user-only fields from it."""

    def __init__(self, source: PydanticBaseSettingsSource):
        super().__init__(source.settings_cls)
        self._source = source

    def get_field_value(self, field, field_name):
        return None, field_name, False

    def __call__(self) -> dict:
        return {
            key: value
            for key, value in self._source().items()
            if key not in USER_ONLY_FIELDS
        }


def _get_json_config_source(
    settings_cls: Type[PydanticBaseSettings],
    json_file: Path,
) -> PydanticBaseSettingsSource | None:
    """Create a JSON config source if the file exists."""
    if not json_file.exists():
        return None
    return JsonConfigSettingsSource(settings_cls, json_file=json_file)


class BaseSettings(PydanticBaseSettings):
    """Settings for agentic-exec.

    Groups application identity, the active project and logging. Shell
    execution limits live in ``ShellSecurityConfig`` since they are
    user-editable YAML rather than environment settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENTIC_EXEC_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = Field(
        default=APP_NAME,
        title="App Name",
        description="Application name, used for config directories",
    )

    home_dir: Path = Field(
        default_factory=lambda: Path.home() / f".{APP_NAME}",
        title="Home Directory",
        description="Directory holding settings.json with persisted approvals",
    )

    # Active project
    project: str | None = Field(
        default=None,
        title="Project",
        description="Name of the active project (enables project-scoped approvals)",
    )
    project_root: Path | None = Field(
        default=None,
        title="Project Root",
        description="Working directory for commands; defaults to the current directory",
    )

    # Logging configuration
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning",
        title="Log Level",
        description="Logging verbosity level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        title="Log Format",
        description="Log output format (console for dev, json for production)",
    )

    @field_validator("home_dir", "project_root", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path | None) -> Path | None:
        """Expand ~ in paths."""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    @property
    def settings_file(self) -> Path:
        """JSON file holding persisted approvals and the project registry."""
        return self.home_dir / "settings.json"

    @property
    def working_dir(self) -> Path:
        """Directory commands run in."""
        return self.project_root or Path.cwd()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[PydanticBaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources for layered JSON configuration.

        Note: JSON sources are only included if the files exist. The
        project JSON and .env sources live in the working directory and
        cannot set USER_ONLY_FIELDS.
        """
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
        ]

        project_json = _get_json_config_source(
            settings_cls,
            Path.cwd() / f".{APP_NAME}" / "settings.json",
        )
        if project_json:
            sources.append(_RestrictedSource(project_json))

        user_json = _get_json_config_source(
            settings_cls,
            Path.home() / f".{APP_NAME}" / "settings.json",
        )
        if user_json:
            sources.append(user_json)

        sources.append(_RestrictedSource(dotenv_settings))

        return tuple(sources)


# Context variable for settings (takes precedence over global singleton)
_settings_context: ContextVar[BaseSettings | None] = ContextVar(
    "settings_context", default=None
)

# Global settings instance holder (fallback when no context)
_settings_instance: BaseSettings | None = None


def get_settings() -> BaseSettings:
    """Get the current settings instance.

    Settings resolution order:
    1. Context variable (set via SettingsContext or set_context_settings)
    2. Global singleton (set via set_settings)
    3. Fresh BaseSettings instance (created on first access)
    """
    context_settings = _settings_context.get()
    if context_settings is not None:
        return context_settings

    global _settings_instance
    if _settings_instance is None:
        _settings_instance = BaseSettings()
    return _settings_instance


def set_settings(settings: BaseSettings) -> None:
    """Set the global settings instance.

    Args:
        settings: Settings instance to use globally
    """
    global _settings_instance
    _settings_instance = settings


def set_context_settings(settings: BaseSettings | None) -> Token:
    """Set settings for the current context.

    Args:
        settings: Settings to use in current context, or None to clear

    Returns:
        Token that can be used to reset the context variable.
    """
    return _settings_context.set(settings)


@contextmanager
def SettingsContext(settings: BaseSettings) -> Generator[BaseSettings, None, None]:
    """Context manager for isolated settings.

    Example:
        with SettingsContext(test_settings) as s:
            gate = create_shell_gate()  # Uses test_settings
    """
    token = _settings_context.set(settings)
    try:
        yield settings
    finally:
        _settings_context.reset(token)


def reload_settings() -> BaseSettings:
    """Reload settings (clears global singleton and context cache)."""
    global _settings_instance
    _settings_instance = None
    _settings_context.set(None)
    return get_settings()
