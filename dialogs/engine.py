"""
Dialog Engine — Stack-based waterfall state machine.

A waterfall dialog is a fixed list of async steps. Each step returns a
tagged StepOutcome:

  SUSPEND   send a prompt, park the cursor after this step, end the turn
            (with `retry`, park it on this step so the reply comes back here)
  PROCEED   advance the cursor and run the next step now with `value`
  COMPLETE  pop the dialog and hand `value` to the parent (or the caller)

Running frames live on a DialogState stack persisted in conversation
state, so a flow started in one turn resumes in the next: the reply to a
prompt becomes `step.result` for the step after the one that prompted.

Architecture:
  Dispatcher → DialogSet.create_context(turn) → DialogContext
    → continue_dialog() routes the turn's text into the active frame
    → steps run until one suspends or the stack empties
    → DialogTurnResult(status, result) returned to the dispatcher

A step that raises leaves its frame untouched on the stack and the error
propagates to the caller; nothing is retried.
"""
from __future__ import annotations

import structlog
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from channels.base import TurnContext
from context.state import StatePropertyAccessor
from models.schemas import DialogFrame, DialogState, SuggestedAction

logger = structlog.get_logger()

MAX_STEPS_PER_TURN = 50  # prevent runaway PROCEED chains


class DialogError(Exception):
    """Raised for unknown dialogs, duplicate registrations and runaway flows."""


class DialogTurnStatus(str, Enum):
    EMPTY = "empty"            # no active dialog
    WAITING = "waiting"        # active dialog suspended on a prompt
    COMPLETE = "complete"      # dialog finished and was popped
    CANCELLED = "cancelled"    # stack was cancelled


@dataclass
class DialogTurnResult:
    status: DialogTurnStatus
    result: Any = None


# ──────────────────────────────────────────────────────────────
#  Step outcomes
# ──────────────────────────────────────────────────────────────

class StepOutcomeKind(str, Enum):
    SUSPEND = "suspend"
    PROCEED = "proceed"
    COMPLETE = "complete"


@dataclass(frozen=True)
class StepOutcome:
    kind: StepOutcomeKind
    value: Any = None
    prompt: Optional[str] = None
    suggested_actions: tuple[SuggestedAction, ...] = ()
    child_dialog_id: str = ""              # SUSPEND while a child dialog runs
    child_options: Optional[dict[str, Any]] = None
    repeat: bool = False                   # SUSPEND without advancing the cursor


def suspend(prompt: str, suggested_actions: list[SuggestedAction] = None) -> StepOutcome:
    return StepOutcome(StepOutcomeKind.SUSPEND, prompt=prompt,
                       suggested_actions=tuple(suggested_actions or ()))


def retry(prompt: str, suggested_actions: list[SuggestedAction] = None) -> StepOutcome:
    """Prompt again and feed the reply back into the same step."""
    return StepOutcome(StepOutcomeKind.SUSPEND, prompt=prompt,
                       suggested_actions=tuple(suggested_actions or ()), repeat=True)


def proceed(value: Any = None) -> StepOutcome:
    return StepOutcome(StepOutcomeKind.PROCEED, value=value)


def complete(value: Any = None) -> StepOutcome:
    return StepOutcome(StepOutcomeKind.COMPLETE, value=value)


# ──────────────────────────────────────────────────────────────
#  Waterfall dialog
# ──────────────────────────────────────────────────────────────

class WaterfallStepContext:
    """What a step sees: the turn, its frame's options/values and the incoming result."""

    def __init__(self, dc: DialogContext, frame: DialogFrame, index: int, result: Any):
        self.context = dc
        self.turn = dc.turn
        self.index = index
        self.result = result
        self.options = frame.options
        self.values = frame.values
        self.dialog_id = frame.dialog_id

    def begin_dialog(self, dialog_id: str, options: dict[str, Any] = None) -> StepOutcome:
        """Suspend this dialog while a child runs; the child's result feeds the next step."""
        return StepOutcome(StepOutcomeKind.SUSPEND, child_dialog_id=dialog_id,
                           child_options=dict(options or {}))


WaterfallStep = Callable[[WaterfallStepContext], Awaitable[StepOutcome]]


class WaterfallDialog:
    """A named, fixed, linear sequence of steps."""

    def __init__(self, dialog_id: str, steps: list[WaterfallStep] = None):
        self.id = dialog_id
        self.steps: list[WaterfallStep] = list(steps or [])

    async def run_step(self, dc: DialogContext, frame: DialogFrame, index: int, result: Any) -> StepOutcome:
        outcome = await self.steps[index](WaterfallStepContext(dc, frame, index, result))
        if not isinstance(outcome, StepOutcome):
            raise DialogError(f"Step {index} of '{self.id}' returned {type(outcome).__name__}, not StepOutcome")
        return outcome


# ──────────────────────────────────────────────────────────────
#  Dialog set & context
# ──────────────────────────────────────────────────────────────

class DialogSet:
    """Registry of dialogs bound to the DialogState property they persist into."""

    def __init__(self, dialog_state: StatePropertyAccessor):
        if dialog_state is None:
            raise ValueError("DialogSet requires a dialog state accessor")
        self._dialog_state = dialog_state
        self._dialogs: dict[str, WaterfallDialog] = {}

    def add(self, dialog: WaterfallDialog) -> DialogSet:
        if dialog.id in self._dialogs:
            raise DialogError(f"Dialog '{dialog.id}' is already registered")
        self._dialogs[dialog.id] = dialog
        logger.debug("dialog_registered", dialog_id=dialog.id, steps=len(dialog.steps))
        return self

    def find(self, dialog_id: str) -> Optional[WaterfallDialog]:
        return self._dialogs.get(dialog_id)

    async def create_context(self, turn: TurnContext) -> DialogContext:
        state = await self._dialog_state.get(turn, DialogState)
        return DialogContext(self, turn, state)


class DialogContext:
    """Drives the dialog stack for one turn."""

    def __init__(self, dialogs: DialogSet, turn: TurnContext, state: DialogState):
        self.dialogs = dialogs
        self.turn = turn
        self.state = state

    @property
    def stack(self) -> list[DialogFrame]:
        return self.state.stack

    @property
    def active_dialog(self) -> Optional[DialogFrame]:
        return self.stack[-1] if self.stack else None

    # ── Stack operations ──────────────────────────────────────

    async def push_dialog(self, dialog_id: str, options: dict[str, Any] = None) -> DialogTurnResult:
        frame = self._push(dialog_id, options)
        return await self._run(frame, None)

    async def continue_dialog(self) -> DialogTurnResult:
        frame = self.active_dialog
        if frame is None:
            return DialogTurnResult(DialogTurnStatus.EMPTY)
        return await self._run(frame, self.turn.activity.text)

    async def end_dialog(self, result: Any = None) -> DialogTurnResult:
        """Pop the active frame; resume its parent with `result` if there is one."""
        if not self.stack:
            return DialogTurnResult(DialogTurnStatus.EMPTY)
        frame = self.stack.pop()
        logger.info("dialog_ended", dialog_id=frame.dialog_id, depth=len(self.stack))

        parent = self.active_dialog
        if parent is None:
            return DialogTurnResult(DialogTurnStatus.COMPLETE, result)
        return await self._run(parent, result)

    async def cancel_all_dialogs(self) -> DialogTurnResult:
        if not self.stack:
            return DialogTurnResult(DialogTurnStatus.EMPTY)
        cancelled = [f.dialog_id for f in self.stack]
        self.stack.clear()
        logger.info("dialogs_cancelled", dialog_ids=cancelled)
        return DialogTurnResult(DialogTurnStatus.CANCELLED)

    async def reprompt_dialog(self) -> None:
        frame = self.active_dialog
        if frame is not None and frame.prompt:
            await self.turn.send_activity(frame.prompt, frame.prompt_actions)

    # ── Execution ─────────────────────────────────────────────

    def _find(self, dialog_id: str) -> WaterfallDialog:
        dialog = self.dialogs.find(dialog_id)
        if dialog is None:
            raise DialogError(f"Dialog '{dialog_id}' is not registered")
        return dialog

    def _push(self, dialog_id: str, options: Optional[dict[str, Any]]) -> DialogFrame:
        self._find(dialog_id)
        frame = DialogFrame(dialog_id=dialog_id, options=dict(options or {}))
        self.stack.append(frame)
        logger.info("dialog_pushed", dialog_id=dialog_id, depth=len(self.stack))
        return frame

    async def _run(self, frame: DialogFrame, result: Any) -> DialogTurnResult:
        steps_run = 0
        while True:
            dialog = self._find(frame.dialog_id)
            if frame.step_cursor >= len(dialog.steps):
                return await self.end_dialog(result)

            if steps_run >= MAX_STEPS_PER_TURN:
                raise DialogError(f"Dialog '{dialog.id}' exceeded {MAX_STEPS_PER_TURN} steps in one turn")

            index = frame.step_cursor
            outcome = await dialog.run_step(self, frame, index, result)
            steps_run += 1

            if outcome.kind == StepOutcomeKind.COMPLETE:
                return await self.end_dialog(outcome.value)

            frame.step_cursor = index if outcome.repeat else index + 1
            frame.prompt = None
            frame.prompt_actions = []

            if outcome.kind == StepOutcomeKind.SUSPEND:
                if outcome.child_dialog_id:
                    frame = self._push(outcome.child_dialog_id, outcome.child_options)
                    result = None
                    continue

                frame.prompt = outcome.prompt
                frame.prompt_actions = list(outcome.suggested_actions)
                if outcome.prompt:
                    await self.turn.send_activity(outcome.prompt, frame.prompt_actions)
                logger.debug("dialog_waiting", dialog_id=dialog.id, step=index)
                return DialogTurnResult(DialogTurnStatus.WAITING)

            # PROCEED
            result = outcome.value
