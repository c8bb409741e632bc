"""Tests for the console confirmer."""

import io

import pytest
from rich.console import Console

from agentic_exec.hitl.confirm import (
    NOT_INTERACTIVE_FEEDBACK,
    Choice,
    ChoiceKind,
    ConfirmationRequest,
    ConsoleConfirmer,
    available_choices,
)
from agentic_exec.hitl.policy import ApprovalKey, ApprovalScope

REQUEST = ConfirmationRequest(
    description="Run the test suite",
    command_preview="/usr/bin/npm test",
    key=ApprovalKey.of("npm", "test"),
)


def scripted_console(monkeypatch, *answers):
    """Console writing to a buffer whose input() replays ``answers``."""
    console = Console(file=io.StringIO(), width=100)
    replies = list(answers)
    prompts = []

    def fake_input(prompt=""):
        prompts.append(prompt)
        if not replies:
            raise EOFError
        reply = replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    monkeypatch.setattr(console, "input", fake_input)
    return console, prompts


class TestChoices:
    def test_with_project(self):
        assert available_choices(True) == (
            ChoiceKind.APPROVE_ONCE,
            ChoiceKind.APPROVE_SESSION,
            ChoiceKind.APPROVE_PROJECT,
            ChoiceKind.APPROVE_GLOBAL,
            ChoiceKind.DENY,
            ChoiceKind.DENY_WITH_FEEDBACK,
        )

    def test_without_project(self):
        assert ChoiceKind.APPROVE_PROJECT not in available_choices(False)
        assert len(available_choices(False)) == 5

    def test_kind_properties(self):
        assert ChoiceKind.APPROVE_ONCE.approves
        assert ChoiceKind.APPROVE_ONCE.scope is None
        assert ChoiceKind.APPROVE_PROJECT.scope is ApprovalScope.PROJECT
        assert not ChoiceKind.DENY.approves
        assert ChoiceKind.DENY_WITH_FEEDBACK.scope is None


class TestConsoleConfirmer:
    def test_not_interactive_denies_with_feedback(self):
        confirmer = ConsoleConfirmer(Console(file=io.StringIO()), interactive=False)
        choice = confirmer.confirm(REQUEST, available_choices(True))
        assert choice == Choice(ChoiceKind.DENY_WITH_FEEDBACK, NOT_INTERACTIVE_FEEDBACK)

    @pytest.mark.parametrize(
        "answer,kind",
        [
            ("o", ChoiceKind.APPROVE_ONCE),
            ("s", ChoiceKind.APPROVE_SESSION),
            ("P", ChoiceKind.APPROVE_PROJECT),
            (" g ", ChoiceKind.APPROVE_GLOBAL),
            ("d", ChoiceKind.DENY),
        ],
    )
    def test_letters(self, monkeypatch, answer, kind):
        console, _ = scripted_console(monkeypatch, answer)
        confirmer = ConsoleConfirmer(console, interactive=True)
        assert confirmer.confirm(REQUEST, available_choices(True)) == Choice(kind)

    def test_renders_request(self, monkeypatch):
        console, prompts = scripted_console(monkeypatch, "o")
        ConsoleConfirmer(console, interactive=True).confirm(REQUEST, available_choices(True))

        rendered = console.file.getvalue()
        assert "Run the test suite" in rendered
        assert "$ /usr/bin/npm test" in rendered
        assert "Approve 'npm test' for this project" in rendered
        assert "o/s/p/g/d/f" in prompts[0]

    def test_unoffered_letter_asks_again(self, monkeypatch):
        console, prompts = scripted_console(monkeypatch, "p", "x", "s")
        confirmer = ConsoleConfirmer(console, interactive=True)
        choice = confirmer.confirm(REQUEST, available_choices(False))
        assert choice == Choice(ChoiceKind.APPROVE_SESSION)
        assert len(prompts) == 3

    def test_feedback(self, monkeypatch):
        console, _ = scripted_console(monkeypatch, "f", "  run make test instead ")
        confirmer = ConsoleConfirmer(console, interactive=True)
        choice = confirmer.confirm(REQUEST, available_choices(True))
        assert choice == Choice(ChoiceKind.DENY_WITH_FEEDBACK, "run make test instead")

    def test_empty_feedback(self, monkeypatch):
        console, _ = scripted_console(monkeypatch, "f", "")
        confirmer = ConsoleConfirmer(console, interactive=True)
        choice = confirmer.confirm(REQUEST, available_choices(True))
        assert choice == Choice(ChoiceKind.DENY_WITH_FEEDBACK, None)

    @pytest.mark.parametrize("error", [EOFError(), KeyboardInterrupt()])
    def test_interrupted_prompt_denies(self, monkeypatch, error):
        console, _ = scripted_console(monkeypatch, error)
        confirmer = ConsoleConfirmer(console, interactive=True)
        assert confirmer.confirm(REQUEST, available_choices(True)) == Choice(ChoiceKind.DENY)
