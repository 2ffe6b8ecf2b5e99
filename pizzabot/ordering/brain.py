# pizzabot/ordering/brain.py
"""
Order dialog state machine.

``DialogEngine`` is the transition function: given the current ``DialogTurn``
(profile + dialog stack + replies so far) and the user's text, it returns the
next ``DialogTurn``. Nothing is mutated in place; the caller persists whatever
comes back.

Every sub-dialog has two steps: a prompt step that shows the prompt and then
validates replies until one is accepted, and a process step that acknowledges
the slot and hands control back to the main dispatch step.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Sequence, Tuple

import structlog

from .dialogs import DialogFrame, DialogId, DialogStack, OrderPhase, TurnStatus
from .finalizer import OrderFinalizer
from .messages import (
    ADDRESS_PROMPT,
    ADDRESS_RETRY,
    CHOICE_RETRY,
    CONFIRM_CHOICES,
    CONFIRM_PROMPT,
    NO_TOPPINGS_ACK,
    ORDER_TYPE_ACK,
    ORDER_TYPE_PROMPT,
    ORDER_TYPE_RETRY,
    QNA_UNAVAILABLE,
    QUANTITY_ACK,
    QUANTITY_PROMPT,
    QUANTITY_RETRY,
    SERVICE_APOLOGY,
    SUMMARY_INTRO,
    TOPPINGS_ACK,
    TOPPINGS_PROMPT,
    TOPPINGS_RETRY,
    Reply,
    build_summary,
    text_reply,
)
from .prices import PriceLookupUnavailable
from .profile import ConversationProfile, Slots
from .qna import QnAAnswer, QnAContext, QnAResolver, QnAUnavailable
from .validators import PromptValidators, Validation, recognize_choice

LOGGER = structlog.get_logger(__name__)

# initial prompt, retry prompt
SLOT_PROMPTS: Dict[DialogId, Tuple[str, str]] = {
    DialogId.ORDER_TYPE: (ORDER_TYPE_PROMPT, ORDER_TYPE_RETRY),
    DialogId.QUANTITY: (QUANTITY_PROMPT, QUANTITY_RETRY),
    DialogId.TOPPINGS: (TOPPINGS_PROMPT, TOPPINGS_RETRY),
    DialogId.ADDRESS: (ADDRESS_PROMPT, ADDRESS_RETRY),
}


@dataclass(frozen=True)
class DialogTurn:
    profile: ConversationProfile
    stack: DialogStack = field(default_factory=DialogStack)
    replies: Tuple[Reply, ...] = ()
    status: TurnStatus = TurnStatus.WAITING

    @property
    def phase(self) -> OrderPhase:
        return self.stack.phase(cancelled=self.status == TurnStatus.CANCELLED)

    def say(self, *replies: Reply) -> "DialogTurn":
        texts = [r.text for r in replies if r.text]
        return replace(self, replies=self.replies + tuple(replies), profile=self.profile.log_bot(*texts))

    def with_profile(self, profile: ConversationProfile) -> "DialogTurn":
        return replace(self, profile=profile)

    def with_frame(self, frame: DialogFrame) -> "DialogTurn":
        return replace(self, stack=self.stack.with_top(frame))


def next_dialog(slots: Slots) -> DialogId:
    """Which sub-dialog fills the first missing slot; Summary once nothing is missing."""
    if slots.order_type is None:
        return DialogId.ORDER_TYPE
    if slots.quantity is None:
        return DialogId.QUANTITY
    # an empty tuple means "no toppings" and counts as filled
    if slots.toppings is None:
        return DialogId.TOPPINGS
    if slots.needs_address and not slots.address:
        return DialogId.ADDRESS
    return DialogId.SUMMARY


class DialogEngine:
    def __init__(
        self,
        validators: PromptValidators,
        finalizer: OrderFinalizer,
        qna: QnAResolver,
        currency: str = "NIS",
    ):
        self.validators = validators
        self.finalizer = finalizer
        self.qna = qna
        self.currency = currency

    # -------------------
    # Stack operations
    # -------------------
    async def continue_dialog(self, turn: DialogTurn, text: str) -> DialogTurn:
        if turn.stack.is_empty:
            return replace(turn, status=TurnStatus.EMPTY)
        return await self._run(replace(turn, status=TurnStatus.WAITING), text)

    async def begin(self, turn: DialogTurn, dialog_id: DialogId, options: Optional[Dict[str, Any]] = None) -> DialogTurn:
        turn = replace(turn, stack=turn.stack.push(dialog_id, options), status=TurnStatus.WAITING)
        return await self._run(turn, "")

    async def replace_dialog(
        self, turn: DialogTurn, dialog_id: DialogId, options: Optional[Dict[str, Any]] = None
    ) -> DialogTurn:
        turn = replace(turn, stack=turn.stack.replace(dialog_id, options))
        return await self._run(turn, "")

    async def end_dialog(self, turn: DialogTurn) -> DialogTurn:
        stack = turn.stack.pop()
        if stack.is_empty:
            return replace(turn, stack=stack, status=TurnStatus.COMPLETE)
        # resume the parent at its next step
        return await self._next_step(replace(turn, stack=stack), "")

    def cancel_all(self, turn: DialogTurn) -> DialogTurn:
        return replace(turn, stack=turn.stack.cleared(), status=TurnStatus.CANCELLED)

    async def _next_step(self, turn: DialogTurn, text: str, choice: Optional[str] = None) -> DialogTurn:
        frame = turn.stack.top
        if frame.is_last_step:
            return await self.end_dialog(turn)
        return await self._run(turn.with_frame(frame.advanced()), text, choice)

    # -------------------
    # Transition function
    # -------------------
    async def _run(self, turn: DialogTurn, text: str, choice: Optional[str] = None) -> DialogTurn:
        frame = turn.stack.top
        if frame.dialog_id == DialogId.MAIN:
            return await self._dispatch(turn)
        if frame.step_index == 0:
            return await self._prompt_step(turn, frame, text)
        return await self._process_step(turn, frame, text, choice)

    async def _dispatch(self, turn: DialogTurn) -> DialogTurn:
        target = next_dialog(turn.profile.slots)
        LOGGER.debug("dispatch", conversation_id=turn.profile.identity.conversation_id, next=target.value)
        return await self.replace_dialog(turn, target)

    # -------------------
    # Prompt steps
    # -------------------
    def _prompt(self, turn: DialogTurn, frame: DialogFrame) -> Tuple[Reply, ...]:
        if frame.dialog_id == DialogId.SUMMARY:
            slots = turn.profile.slots
            return (
                text_reply(SUMMARY_INTRO),
                text_reply(build_summary(slots)),
                text_reply(CONFIRM_PROMPT.format(price=slots.price, currency=self.currency), CONFIRM_CHOICES),
            )
        if frame.dialog_id == DialogId.QNA:
            ctx = _qna_context(frame)
            return (text_reply(frame.options.get("answer", ""), [f.text for f in ctx.follow_ups]),)
        return (text_reply(SLOT_PROMPTS[frame.dialog_id][0]),)

    def _retry(self, frame: DialogFrame) -> Reply:
        if frame.dialog_id == DialogId.SUMMARY:
            return text_reply(CHOICE_RETRY, CONFIRM_CHOICES)
        if frame.dialog_id == DialogId.QNA:
            return text_reply(CHOICE_RETRY, [f.text for f in _qna_context(frame).follow_ups])
        return text_reply(SLOT_PROMPTS[frame.dialog_id][1])

    async def _validate(self, turn: DialogTurn, frame: DialogFrame, text: str) -> Validation:
        profile = turn.profile
        if frame.dialog_id == DialogId.ORDER_TYPE:
            return await self.validators.order_type(text, profile)
        if frame.dialog_id == DialogId.QUANTITY:
            return await self.validators.quantity(text, profile)
        if frame.dialog_id == DialogId.TOPPINGS:
            return await self.validators.toppings_reply(text, profile)
        if frame.dialog_id == DialogId.ADDRESS:
            return await self.validators.address(text, profile)

        choices: Sequence[str] = CONFIRM_CHOICES
        if frame.dialog_id == DialogId.QNA:
            choices = [f.text for f in _qna_context(frame).follow_ups]
        picked = recognize_choice(text, choices)
        return Validation(accepted=picked is not None, profile=profile, choice=picked)

    async def _prompt_step(self, turn: DialogTurn, frame: DialogFrame, text: str) -> DialogTurn:
        if frame.attempt_count == 0:
            if frame.dialog_id == DialogId.SUMMARY and turn.profile.slots.price is None:
                try:
                    turn = turn.with_profile(await self.finalizer.quote(turn.profile))
                except PriceLookupUnavailable as exc:
                    LOGGER.error("quote_failed", conversation_id=turn.profile.identity.conversation_id, error=str(exc))
                    # frame stays unprompted: the next message quotes again
                    return turn.say(text_reply(SERVICE_APOLOGY))
            return turn.say(*self._prompt(turn, frame)).with_frame(frame.prompted())

        result = await self._validate(turn, frame, text)
        if result.accepted:
            return await self._next_step(turn.with_profile(result.profile), text, result.choice)

        LOGGER.debug(
            "reply_rejected",
            conversation_id=turn.profile.identity.conversation_id,
            dialog=frame.dialog_id.value,
            attempt=frame.attempt_count,
        )
        if result.service_failed:
            turn = turn.say(text_reply(SERVICE_APOLOGY))
        return turn.say(self._retry(frame)).with_frame(frame.prompted())

    # -------------------
    # Process steps
    # -------------------
    async def _process_step(
        self, turn: DialogTurn, frame: DialogFrame, text: str, choice: Optional[str]
    ) -> DialogTurn:
        slots = turn.profile.slots
        if frame.dialog_id == DialogId.ORDER_TYPE:
            turn = turn.say(text_reply(ORDER_TYPE_ACK.format(order_type=slots.order_type.value)))
        elif frame.dialog_id == DialogId.QUANTITY:
            turn = turn.say(text_reply(QUANTITY_ACK))
        elif frame.dialog_id == DialogId.TOPPINGS:
            turn = turn.say(text_reply(TOPPINGS_ACK if slots.toppings else NO_TOPPINGS_ACK))
        elif frame.dialog_id == DialogId.SUMMARY:
            return await self._confirm(turn, choice)
        elif frame.dialog_id == DialogId.QNA:
            return await self._follow_up(turn, frame, choice or text)
        return await self.replace_dialog(turn, DialogId.MAIN)

    async def _confirm(self, turn: DialogTurn, choice: Optional[str]) -> DialogTurn:
        if choice == "yes":
            profile = await self.finalizer.submit(turn.profile)
            return await self.end_dialog(turn.with_profile(profile))
        return self.cancel_all(turn.with_profile(self.finalizer.cancel(turn.profile)))

    async def _follow_up(self, turn: DialogTurn, frame: DialogFrame, question: str) -> DialogTurn:
        try:
            answer = await self.qna.resolve_answer(question, _qna_context(frame))
        except QnAUnavailable as exc:
            LOGGER.error("qna_follow_up_failed", conversation_id=turn.profile.identity.conversation_id, error=str(exc))
            return await self.end_dialog(turn.say(text_reply(QNA_UNAVAILABLE)))

        if answer.is_multi_turn:
            return await self.replace_dialog(turn, DialogId.QNA, qna_options(answer, question))
        return await self.end_dialog(turn.say(text_reply(answer.answer)))


def qna_options(answer: QnAAnswer, question: str) -> Dict[str, Any]:
    return {"answer": answer.answer, "context": answer.context_for(question).model_dump(mode="json")}


def _qna_context(frame: DialogFrame) -> QnAContext:
    return QnAContext.model_validate(frame.options.get("context") or {"previous_qna_id": "", "previous_user_query": ""})
