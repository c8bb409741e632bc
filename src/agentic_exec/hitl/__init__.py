"""Human-in-the-Loop approvals for agent-issued shell commands.

The policy caches approval decisions per command fingerprint; the
confirmer asks the user when the policy has no answer.
"""

from agentic_exec.hitl.policy import (
    ApprovalKey,
    ApprovalPolicy,
    ApprovalRecord,
    ApprovalScope,
    PREAPPROVED_COMMANDS,
    PREAPPROVED_SUBCOMMANDS,
    default_preapproved,
)
from agentic_exec.hitl.confirm import (
    Choice,
    ChoiceKind,
    ConfirmationRequest,
    Confirmer,
    ConsoleConfirmer,
    NOT_INTERACTIVE_FEEDBACK,
    available_choices,
)

__all__ = [
    # Policy
    "ApprovalKey",
    "ApprovalPolicy",
    "ApprovalRecord",
    "ApprovalScope",
    "PREAPPROVED_COMMANDS",
    "PREAPPROVED_SUBCOMMANDS",
    "default_preapproved",
    # Confirmation
    "Choice",
    "ChoiceKind",
    "ConfirmationRequest",
    "Confirmer",
    "ConsoleConfirmer",
    "NOT_INTERACTIVE_FEEDBACK",
    "available_choices",
]
