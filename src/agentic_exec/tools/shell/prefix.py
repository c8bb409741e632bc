"""Approval key derivation for command stages.

For tools whose first positional argument selects a subcommand (``git log``,
``npm test``) the key includes that subcommand, so approving ``git log``
does not approve ``git push``. For any other command the key is the command
alone: its first argument is usually a file, and ``rm`` is ``rm`` whatever
it deletes.
"""

import os

from agentic_exec.hitl.policy import ApprovalKey
from agentic_exec.tools.shell.errors import InvalidRequestError
from agentic_exec.tools.shell.models import CommandStage

SUBCOMMAND_FAMILIES = frozenset({
    "aws", "az", "brew", "cargo", "docker", "gcloud", "gh", "git", "go",
    "helm", "just", "kubectl", "make", "mix", "npm", "pip", "pip3", "pnpm",
    "poetry", "rye", "terraform", "uv", "yarn",
})


def command_basename(command: str) -> str:
    """``/usr/bin/git`` -> ``git``."""
    return os.path.basename(command.rstrip("/")) or command


def find_first_positional(args: tuple[str, ...] | list[str]) -> str | None:
    """Return the first argument that is not a flag or a flag's value.

    ``--opt=value`` and ``--no-opt`` stand alone. Any other flag is assumed
    to take the following token as its value unless that token is itself a
    flag, so ``git -C repo log`` yields ``log``.
    """
    i = 0
    while i < len(args):
        arg = args[i]
        if not arg.startswith("-"):
            return arg
        if "=" in arg or arg.startswith("--no-"):
            i += 1
        elif i + 1 < len(args) and not args[i + 1].startswith("-"):
            i += 2
        else:
            i += 1
    return None


def derive_approval_key(stage: CommandStage) -> ApprovalKey:
    """Derive the approval key of a stage.

    A bare command name is the command bit. A command given as a path
    keys on its absolute normalized path, so ``./cat`` never shares the
    approval of ``cat``. Subcommand families add the first positional
    argument. Later pipeline stages never contribute.

    Raises:
        InvalidRequestError: If the command contains whitespace.
    """
    command = stage.command
    if "/" in command:
        command = os.path.abspath(command)
    if any(ch.isspace() for ch in command):
        raise InvalidRequestError(f"Command name may not contain whitespace: {command!r}")
    if command_basename(command) in SUBCOMMAND_FAMILIES:
        subcommand = find_first_positional(stage.args)
        if subcommand:
            return ApprovalKey.of(command, subcommand)
    return ApprovalKey.of(command)
