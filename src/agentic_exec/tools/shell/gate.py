"""The gate every agent-issued shell command passes through.

Order of checks for one request:

1. Validate the request shape.
2. Run the syntax guard over every command and argument of every stage.
3. Resolve executables (unknown commands fail before anyone is asked).
4. Derive the approval key from the first stage.
5. Skip the prompt for pre-approved or previously approved keys,
   otherwise ask the confirmer and record the answer.
6. Run the pipeline.
"""

from agentic_exec.config import BaseSettings, get_settings
from agentic_exec.constants import COMMAND_LOG_PREVIEW_LENGTH, truncate
from agentic_exec.hitl.confirm import (
    ChoiceKind,
    ConfirmationRequest,
    Confirmer,
    ConsoleConfirmer,
    available_choices,
)
from agentic_exec.hitl.policy import ApprovalKey, ApprovalPolicy
from agentic_exec.logging import Loggers
from agentic_exec.persistence import NoProjectError, PersistenceError, SettingsStore
from agentic_exec.tools.shell.config import ShellSecurityConfig
from agentic_exec.tools.shell.errors import (
    ApprovalScopeError,
    DeniedError,
    SyntaxRejectedError,
)
from agentic_exec.tools.shell.models import CommandRequest, CommandStage, ExecutionResult
from agentic_exec.tools.shell.prefix import derive_approval_key
from agentic_exec.tools.shell.runner import PipelineRunner
from agentic_exec.tools.shell.syntax_guard import first_dangerous

logger = Loggers.tools()


class ShellGate:
    """Composes syntax guard, approval policy, confirmer and runner.

    Raises from ``execute``:
        InvalidRequestError: Malformed request.
        SyntaxRejectedError: Dangerous shell syntax in a command or argument.
        CommandNotFoundError / CommandPermissionError: Unusable executable.
        DeniedError: The user declined.
        ApprovalScopeError: Project approval chosen without a project.
    """

    def __init__(
        self,
        policy: ApprovalPolicy,
        confirmer: Confirmer,
        runner: PipelineRunner,
        config: ShellSecurityConfig | None = None,
    ):
        self.policy = policy
        self.confirmer = confirmer
        self.runner = runner
        self.config = config or ShellSecurityConfig()

    def check_syntax(self, request: CommandRequest) -> None:
        """Reject the request if any command or argument is dangerous.

        Raises:
            SyntaxRejectedError: On the first dangerous string.
        """
        texts = [text for stage in request.stages for text in stage.argv]
        hit = first_dangerous(texts)
        if hit is not None:
            text, result = hit
            logger.warning(
                "shell_syntax_rejected",
                text=truncate(repr(text), COMMAND_LOG_PREVIEW_LENGTH),
                reason=result.reason,
            )
            raise SyntaxRejectedError(text, result.reason or "dangerous syntax")

    def approval_key(self, request: CommandRequest) -> ApprovalKey:
        """Approval key of ``request`` after executable resolution."""
        stages = self.runner.prepare(request.stages)
        return derive_approval_key(_keyed_stage(request.stages[0], stages[0]))

    def execute(self, request: CommandRequest) -> ExecutionResult:
        """Check, authorize and run ``request``."""
        request.validate()
        self.check_syntax(request)

        stages = self.runner.prepare(request.stages)
        key = derive_approval_key(_keyed_stage(request.stages[0], stages[0]))
        warnings = self._authorize(request, stages, key)

        timeout_ms = self.config.sanitize_timeout(request.timeout_ms)
        result = self.runner.run(stages, timeout_ms, request.operator)
        result.warnings.extend(warnings)
        return result

    def _authorize(
        self,
        request: CommandRequest,
        stages: tuple[CommandStage, ...],
        key: ApprovalKey,
    ) -> list[str]:
        """Return warnings to attach to the result; raise when not allowed."""
        if self.policy.is_preapproved(key):
            logger.debug("shell_preapproved", key=str(key))
            return []
        scope = self.policy.lookup(key)
        if scope is not None:
            logger.debug("shell_previously_approved", key=str(key), scope=scope.value)
            return []

        preview = CommandRequest(stages, request.purpose, operator=request.operator).display()
        logger.info(
            "shell_approval_prompt",
            key=str(key),
            command=truncate(preview, COMMAND_LOG_PREVIEW_LENGTH),
        )
        choice = self.confirmer.confirm(
            ConfirmationRequest(request.purpose, preview, key),
            available_choices(self.policy.has_project),
        )

        # Anything but a recognized approving choice is a denial
        kind = getattr(choice, "kind", None)
        feedback = getattr(choice, "feedback", None)
        if not isinstance(feedback, str):
            feedback = None
        if not isinstance(kind, ChoiceKind) or not kind.approves:
            logger.info("shell_denied", key=str(key), with_feedback=bool(feedback))
            raise DeniedError(preview, feedback)

        if kind.scope is None:
            logger.info("shell_approved_once", key=str(key))
            return []

        try:
            self.policy.approve(kind.scope, key)
        except NoProjectError as e:
            raise ApprovalScopeError(str(key)) from e
        except PersistenceError as e:
            return [
                f"Approval of '{key}' could not be saved ({e}); "
                "it applies to this session only."
            ]
        return []


def _keyed_stage(requested: CommandStage, prepared: CommandStage) -> CommandStage:
    """Stage the approval key is derived from.

    A command found through PATH keys on the name the caller gave. A
    command given as a path keys on its resolved absolute path.
    """
    parts = requested.command.split()
    name = parts[0] if parts else requested.command
    if "/" in name or name.startswith("~"):
        return prepared
    return CommandStage(name, prepared.args)


def create_shell_gate(
    settings: BaseSettings | None = None,
    config: ShellSecurityConfig | None = None,
    confirmer: Confirmer | None = None,
) -> ShellGate:
    """Build a gate wired to the settings store and a console confirmer.

    Args:
        settings: Settings to use (defaults to ``get_settings()``)
        config: Shell configuration (defaults to ``load_default()``)
        confirmer: Confirmation UI (defaults to ``ConsoleConfirmer``)
    """
    settings = settings or get_settings()
    config = config or ShellSecurityConfig.load_default()

    store = SettingsStore(settings.settings_file, project=settings.project)
    policy = ApprovalPolicy(
        store,
        category=config.approval_category,
        extra_preapproved=config.extra_preapproved,
    )
    cwd = settings.project_root or store.project_root() or settings.working_dir
    runner = PipelineRunner(
        cwd=cwd,
        temp_dir=config.temp_dir,
        max_output_chars=config.max_output_chars,
        path_completion_commands=config.path_completion_commands,
    )
    return ShellGate(policy, confirmer or ConsoleConfirmer(), runner, config)
