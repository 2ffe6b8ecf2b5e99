# pizzabot/bot.py
from __future__ import annotations

from typing import Awaitable, Callable

import structlog

from .ordering.brain import DialogEngine, DialogTurn, qna_options
from .ordering.dialogs import DialogId, TurnStatus
from .ordering.menu import ToppingMenu
from .ordering.messages import (
    GIF_TITLE,
    ORDER_CANCELLED,
    ORDER_FAILURE,
    QNA_FALLBACK,
    SERVICE_APOLOGY,
    WELCOME,
    Reply,
    animation_card,
    completion_text,
    text_reply,
)
from .ordering.nlu import Classifier, ClassificationResult, ClassifierUnavailable, order_type_for_intent
from .ordering.profile import ConversationProfile, OrderStatus, TurnLog
from .ordering.qna import QnAResolver, QnAUnavailable
from .ordering.stores import ProfileStore
from .schemas import Activity

LOGGER = structlog.get_logger(__name__)

DEFAULT_USER = "defaultUser"

Send = Callable[[Reply], Awaitable[None]]


class PizzaBot:
    """Per-turn entry point: loads conversation state, runs the dialog engine, sends, saves."""

    def __init__(
        self,
        engine: DialogEngine,
        classifier: Classifier,
        qna: QnAResolver,
        profiles: ProfileStore,
        toppings: ToppingMenu,
        bot_name: str = "PizzaBot",
        order_phone: str = "",
        pizza_gif: str = "",
    ):
        self.engine = engine
        self.classifier = classifier
        self.qna = qna
        self.profiles = profiles
        self.toppings = toppings
        self.bot_name = bot_name
        self.order_phone = order_phone
        self.pizza_gif = pizza_gif

    async def handle_turn(self, activity: Activity, send: Send) -> None:
        if activity.is_message:
            await self._on_message(activity, send)
        elif activity.is_membership_update and activity.members_added[0].name != self.bot_name:
            await self._on_member_added(activity, send)

    # -------------------
    # Conversation update
    # -------------------
    async def _on_member_added(self, activity: Activity, send: Send) -> None:
        conversation_id = activity.conversation.id
        if await self.profiles.get_profile(conversation_id) is not None:
            return

        member = activity.members_added[0]
        user = member.name or DEFAULT_USER
        await self.profiles.set_profile(conversation_id, ConversationProfile.new(user, conversation_id))
        await send(text_reply(WELCOME.format(name=user)))
        await self.profiles.open_conversation_log(conversation_id, user)
        LOGGER.info("conversation_started", conversation_id=conversation_id, user=user)

    # -------------------
    # Message
    # -------------------
    async def _on_message(self, activity: Activity, send: Send) -> None:
        conversation_id = activity.conversation.id
        text = activity.text or ""
        log = LOGGER.bind(conversation_id=conversation_id)

        profile = await self.profiles.get_profile(conversation_id)
        if profile is None:
            profile = ConversationProfile.new(activity.from_.name or DEFAULT_USER, conversation_id)
        stack = await self.profiles.get_dialog_stack(conversation_id)

        turn = await self.engine.continue_dialog(DialogTurn(profile=profile, stack=stack), text)
        if turn.status == TurnStatus.EMPTY:
            turn = await self._start(turn, text)
        turn = self._settle(turn)
        log.debug("turn_resolved", status=turn.status.value, phase=turn.phase.value)

        for reply in turn.replies:
            await send(reply)

        # store the user message with this turn's bot messages, then clear for the next turn
        turn_log = turn.profile.turn_log.model_copy(update={"user_utterance": text})
        await self.profiles.save_turn_log(conversation_id, turn_log)
        profile = turn.profile.model_copy(update={"turn_log": TurnLog()})

        await self.profiles.save_state(conversation_id, profile, turn.stack)

    def _settle(self, turn: DialogTurn) -> DialogTurn:
        if turn.status == TurnStatus.COMPLETE:
            outcome = turn.profile.outcome
            if outcome.status == OrderStatus.SUCCESS:
                turn = turn.say(text_reply(completion_text(outcome.order_type)))
                if self.pizza_gif:
                    turn = turn.say(animation_card(GIF_TITLE, self.pizza_gif))
            elif outcome.status == OrderStatus.FAILURE:
                turn = turn.say(text_reply(ORDER_FAILURE.format(phone=self.order_phone)))
            return turn.with_profile(turn.profile.reset())
        if turn.status == TurnStatus.CANCELLED:
            turn = turn.say(text_reply(ORDER_CANCELLED))
            return turn.with_profile(turn.profile.reset())
        return turn

    async def _start(self, turn: DialogTurn, text: str) -> DialogTurn:
        """No dialog is active: classify and either start an order or ask the Q&A service."""
        try:
            prediction = await self.classifier.classify(text)
        except ClassifierUnavailable as exc:
            LOGGER.error("classifier_unavailable", conversation_id=turn.profile.identity.conversation_id, error=str(exc))
            return turn.say(text_reply(SERVICE_APOLOGY))

        if prediction.is_pizza_intent:
            profile = self.seed_slots(turn.profile, prediction)
            return await self.engine.begin(turn.with_profile(profile), DialogId.MAIN)
        return await self._answer(turn, text)

    def seed_slots(self, profile: ConversationProfile, prediction: ClassificationResult) -> ConversationProfile:
        values = {}
        order_type = order_type_for_intent(prediction.top_intent)
        if order_type is not None:
            values["order_type"] = order_type
        qty = prediction.quantity()
        if qty is not None:
            values["quantity"] = qty
        known = self.toppings.resolve(prediction.topping_values())
        if known:
            values["toppings"] = tuple(known)
        return profile.with_slots(**values) if values else profile

    async def _answer(self, turn: DialogTurn, text: str) -> DialogTurn:
        try:
            answer = await self.qna.resolve_answer(text)
        except QnAUnavailable as exc:
            LOGGER.warning("qna_unavailable", conversation_id=turn.profile.identity.conversation_id, error=str(exc))
            return turn.say(text_reply(QNA_FALLBACK))

        if answer.is_multi_turn:
            return await self.engine.begin(turn, DialogId.QNA, qna_options(answer, text))
        return turn.say(text_reply(answer.answer))
