# pizzabot/ordering/dialogs.py
"""
Dialog stack.

A conversation's active interaction is a LIFO stack of frames; the top frame
is the one the next user message is fed to. The stack is a frozen value: each
operation returns a new stack.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class DialogId(str, Enum):
    MAIN = "dialog-main"
    ORDER_TYPE = "dialog-order"
    QUANTITY = "dialog-pizza-quantity"
    TOPPINGS = "dialog-toppings"
    ADDRESS = "dialog-address"
    SUMMARY = "dialog-summary"
    QNA = "dialog-multi-turn"


# number of steps per dialog; MAIN only dispatches, the rest prompt then process
STEP_COUNT: Dict[DialogId, int] = {
    DialogId.MAIN: 1,
    DialogId.ORDER_TYPE: 2,
    DialogId.QUANTITY: 2,
    DialogId.TOPPINGS: 2,
    DialogId.ADDRESS: 2,
    DialogId.SUMMARY: 2,
    DialogId.QNA: 2,
}


class TurnStatus(str, Enum):
    EMPTY = "empty"
    WAITING = "waiting"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class OrderPhase(str, Enum):
    AWAITING_ORDER_TYPE = "AwaitingOrderType"
    AWAITING_QUANTITY = "AwaitingQuantity"
    AWAITING_TOPPINGS = "AwaitingToppings"
    AWAITING_ADDRESS = "AwaitingAddress"
    AWAITING_CONFIRMATION = "AwaitingConfirmation"
    DONE = "Done"
    CANCELLED = "Cancelled"


_PHASE_BY_DIALOG = {
    DialogId.ORDER_TYPE: OrderPhase.AWAITING_ORDER_TYPE,
    DialogId.QUANTITY: OrderPhase.AWAITING_QUANTITY,
    DialogId.TOPPINGS: OrderPhase.AWAITING_TOPPINGS,
    DialogId.ADDRESS: OrderPhase.AWAITING_ADDRESS,
    DialogId.SUMMARY: OrderPhase.AWAITING_CONFIRMATION,
}


class DialogFrame(BaseModel):
    model_config = ConfigDict(frozen=True)

    dialog_id: DialogId
    step_index: int = 0
    # 0 until the frame's prompt has been shown, then 1, 2, ... per retry
    attempt_count: int = 0
    options: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_last_step(self) -> bool:
        return self.step_index >= STEP_COUNT[self.dialog_id] - 1

    def advanced(self) -> "DialogFrame":
        return self.model_copy(update={"step_index": self.step_index + 1, "attempt_count": 0})

    def prompted(self) -> "DialogFrame":
        return self.model_copy(update={"attempt_count": self.attempt_count + 1})


class DialogStack(BaseModel):
    model_config = ConfigDict(frozen=True)

    frames: Tuple[DialogFrame, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.frames

    @property
    def top(self) -> Optional[DialogFrame]:
        return self.frames[-1] if self.frames else None

    def push(self, dialog_id: DialogId, options: Optional[Dict[str, Any]] = None) -> "DialogStack":
        frame = DialogFrame(dialog_id=dialog_id, options=dict(options or {}))
        return DialogStack(frames=self.frames + (frame,))

    def pop(self) -> "DialogStack":
        return DialogStack(frames=self.frames[:-1])

    def replace(self, dialog_id: DialogId, options: Optional[Dict[str, Any]] = None) -> "DialogStack":
        return self.pop().push(dialog_id, options)

    def with_top(self, frame: DialogFrame) -> "DialogStack":
        if not self.frames:
            raise IndexError("dialog stack is empty")
        return DialogStack(frames=self.frames[:-1] + (frame,))

    def cleared(self) -> "DialogStack":
        return DialogStack()

    def phase(self, cancelled: bool = False) -> OrderPhase:
        """Order phase the stack is in; an empty stack is Done unless it was cancelled."""
        if cancelled:
            return OrderPhase.CANCELLED
        top = self.top
        if top is None:
            return OrderPhase.DONE
        return _PHASE_BY_DIALOG.get(top.dialog_id, OrderPhase.DONE)
