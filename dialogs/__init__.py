"""Resumable multi-step conversation flows."""
from dialogs.engine import (
    DialogContext,
    DialogError,
    DialogSet,
    DialogTurnResult,
    DialogTurnStatus,
    StepOutcome,
    StepOutcomeKind,
    WaterfallDialog,
    WaterfallStepContext,
    complete,
    proceed,
    retry,
    suspend,
)
from dialogs.create_issue import CreateIssueDialog

__all__ = [
    "DialogContext", "DialogError", "DialogSet", "DialogTurnResult", "DialogTurnStatus",
    "StepOutcome", "StepOutcomeKind", "WaterfallDialog", "WaterfallStepContext",
    "complete", "proceed", "retry", "suspend",
    "CreateIssueDialog",
]
