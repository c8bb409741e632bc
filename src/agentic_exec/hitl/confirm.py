"""Interactive confirmation of shell commands."""

import sys
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from agentic_exec.hitl.policy import ApprovalKey, ApprovalScope
from agentic_exec.logging import Loggers

logger = Loggers.approvals()

NOT_INTERACTIVE_FEEDBACK = (
    "The application is not running in an interactive terminal, so the user "
    "cannot approve commands. Only pre-approved commands can run; ask the "
    "user to approve this command ahead of time or run it themselves."
)


class ChoiceKind(Enum):
    """Answers a user can give to a confirmation prompt."""

    APPROVE_ONCE = "approve_once"
    APPROVE_SESSION = "approve_session"
    APPROVE_PROJECT = "approve_project"
    APPROVE_GLOBAL = "approve_global"
    DENY = "deny"
    DENY_WITH_FEEDBACK = "deny_with_feedback"

    @property
    def approves(self) -> bool:
        return self.value.startswith("approve_")

    @property
    def scope(self) -> ApprovalScope | None:
        """Scope the approval is recorded at, None for once or deny."""
        return _CHOICE_SCOPES.get(self)


_CHOICE_SCOPES = {
    ChoiceKind.APPROVE_SESSION: ApprovalScope.SESSION,
    ChoiceKind.APPROVE_PROJECT: ApprovalScope.PROJECT,
    ChoiceKind.APPROVE_GLOBAL: ApprovalScope.GLOBAL,
}


@dataclass(frozen=True)
class Choice:
    """The user's answer, with optional feedback for the agent."""

    kind: ChoiceKind
    feedback: str | None = None


@dataclass(frozen=True)
class ConfirmationRequest:
    """What the user is asked to approve."""

    description: str
    command_preview: str
    key: ApprovalKey


class Confirmer(Protocol):
    """Asks the user whether a command may run."""

    def confirm(
        self, request: ConfirmationRequest, choices: Sequence[ChoiceKind]
    ) -> Choice:
        ...


def available_choices(has_project: bool) -> tuple[ChoiceKind, ...]:
    """Choices to offer; project approval only with an active project."""
    choices = [ChoiceKind.APPROVE_ONCE, ChoiceKind.APPROVE_SESSION]
    if has_project:
        choices.append(ChoiceKind.APPROVE_PROJECT)
    choices += [
        ChoiceKind.APPROVE_GLOBAL,
        ChoiceKind.DENY,
        ChoiceKind.DENY_WITH_FEEDBACK,
    ]
    return tuple(choices)


def _is_interactive_terminal() -> bool:
    try:
        return sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False


class ConsoleConfirmer:
    """Prompts on the terminal with a rich panel.

    Prompts are serialized so concurrent tool calls never interleave
    their questions. When stdin is not a terminal every request is denied
    with feedback explaining why.
    """

    _LABELS = {
        ChoiceKind.APPROVE_ONCE: ("o", "Approve once", "green"),
        ChoiceKind.APPROVE_SESSION: ("s", "Approve '{key}' for this session", "green"),
        ChoiceKind.APPROVE_PROJECT: ("p", "Approve '{key}' for this project", "green"),
        ChoiceKind.APPROVE_GLOBAL: ("g", "Approve '{key}' everywhere", "green"),
        ChoiceKind.DENY: ("d", "Deny", "red"),
        ChoiceKind.DENY_WITH_FEEDBACK: ("f", "Deny with feedback", "red"),
    }

    def __init__(self, console: Console | None = None, interactive: bool | None = None):
        """Initialize the confirmer.

        Args:
            console: Console to render to (defaults to stderr)
            interactive: Override terminal detection
        """
        self._console = console or Console(stderr=True)
        self._interactive = interactive
        self._lock = threading.Lock()

    @property
    def interactive(self) -> bool:
        if self._interactive is not None:
            return self._interactive
        return _is_interactive_terminal()

    def confirm(
        self, request: ConfirmationRequest, choices: Sequence[ChoiceKind]
    ) -> Choice:
        """Ask the user about ``request``, offering only ``choices``."""
        if not self.interactive:
            logger.info("shell_confirm_auto_denied", key=str(request.key))
            return Choice(ChoiceKind.DENY_WITH_FEEDBACK, NOT_INTERACTIVE_FEEDBACK)

        with self._lock:
            self._render(request, choices)
            by_letter = {self._LABELS[kind][0]: kind for kind in choices}
            prompt = escape(f"Choice [{'/'.join(by_letter)}]")
            while True:
                try:
                    answer = self._console.input(f"[bold cyan]{prompt}[/bold cyan]: ")
                except (EOFError, KeyboardInterrupt):
                    return Choice(ChoiceKind.DENY)

                kind = by_letter.get(answer.strip().lower())
                if kind is None:
                    self._console.print("[yellow]Please pick one of the listed letters.[/yellow]")
                    continue

                if kind is ChoiceKind.DENY_WITH_FEEDBACK:
                    try:
                        feedback = self._console.input("[bold]Feedback for the agent[/bold]: ")
                    except (EOFError, KeyboardInterrupt):
                        return Choice(ChoiceKind.DENY)
                    return Choice(kind, feedback.strip() or None)
                return Choice(kind)

    def _render(self, request: ConfirmationRequest, choices: Sequence[ChoiceKind]) -> None:
        body = Group(
            Text(request.description, style="bold"),
            Text(""),
            Text(f"$ {request.command_preview}", style="cyan"),
            Text(f"Approval key: {request.key}", style="dim"),
        )
        options = Text()
        for i, kind in enumerate(choices):
            letter, label, style = self._LABELS[kind]
            if i:
                options.append("\n")
            options.append(f"[{letter}] {label.format(key=request.key)}", style=style)

        self._console.print()
        self._console.print(
            Panel(body, title="[bold red]Shell command approval[/bold red]", border_style="red")
        )
        self._console.print(Panel(options, title="Choices", border_style="cyan"))
