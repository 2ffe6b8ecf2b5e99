"""End-to-end conversations through PizzaBot with fake collaborators."""

import pytest

from pizzabot.ordering.dialogs import DialogId
from pizzabot.ordering.messages import (
    ADDRESS_PROMPT,
    ADDRESS_RETRY,
    CHOICE_RETRY,
    NO_TOPPINGS_ACK,
    ORDER_CANCELLED,
    ORDER_FAILURE,
    ORDER_TYPE_PROMPT,
    ORDER_TYPE_RETRY,
    QNA_FALLBACK,
    QNA_UNAVAILABLE,
    QUANTITY_ACK,
    QUANTITY_PROMPT,
    QUANTITY_RETRY,
    SERVICE_APOLOGY,
    SUMMARY_INTRO,
    TOPPINGS_ACK,
    TOPPINGS_PROMPT,
    TOPPINGS_RETRY,
    completion_text,
)
from pizzabot.ordering.nlu import ADD_TOPPINGS, NO, NONE, PIZZA_DELIVERY, PIZZA_ORDER, PIZZA_PICKUP
from pizzabot.ordering.profile import OrderType, Outcome, Slots, TurnLog
from pizzabot.ordering.qna import FollowUp, QnAAnswer
from pizzabot.ordering.stores import OrderRecord

from .conftest import PIZZA_GIF, prediction

CONV = "conv-1"


def confirm_text(price: int) -> str:
    return f"Would you like to approve the order for a total of {price} NIS?"


@pytest.fixture
def order_phrases(classifier):
    classifier.results.update(
        {
            "I'd like to order a pizza delivery": prediction(PIZZA_DELIVERY),
            "I want pizza": prediction(PIZZA_ORDER),
            "delivery": prediction(PIZZA_DELIVERY),
            "two": prediction(NONE, quantity=2),
            "3": prediction(NONE, quantity=3),
            "lots": prediction(NONE),
            "olives and onions": prediction(ADD_TOPPINGS, toppings=["olives", "onions"]),
            "olives": prediction(ADD_TOPPINGS, toppings=["olives"]),
            "anchovies": prediction(ADD_TOPPINGS, toppings=["anchovies"]),
            "no thanks": prediction(NO),
            "2 pickup pizzas with olives": prediction(PIZZA_PICKUP, quantity=2, toppings=["olives"]),
        }
    )
    return classifier


async def to_summary(chat):
    """Walk a delivery order up to the confirmation question."""
    await chat.say("I'd like to order a pizza delivery")
    await chat.say("two")
    await chat.say("olives and onions")
    return await chat.say("1 Main St")


class TestOrderFlow:
    """Slot filling from the first message to a submitted order."""

    @pytest.mark.asyncio
    async def test_full_delivery_order(self, chat, order_phrases, orders, profiles):
        assert await chat.texts("I'd like to order a pizza delivery") == [QUANTITY_PROMPT]
        assert await chat.texts("two") == [QUANTITY_ACK, TOPPINGS_PROMPT]
        assert await chat.texts("olives and onions") == [TOPPINGS_ACK, ADDRESS_PROMPT]

        summary = await chat.say("1 Main St")
        assert [r.text for r in summary] == [
            SUMMARY_INTRO,
            "a delivery of 2 pizzas with olives, onions to 1 Main St",
            confirm_text(120),
        ]
        assert summary[-1].choices == ("yes", "no")

        done = await chat.say("yes")
        assert done[0].text == completion_text(OrderType.DELIVERY)
        assert done[-1].attachments[0].content["media"][0]["url"] == PIZZA_GIF

        assert orders.records == [
            OrderRecord(
                type="delivery",
                quantity=2,
                toppings="olives, onions",
                price=120,
                username="Dana",
                user_address="1 Main St",
            )
        ]

    @pytest.mark.asyncio
    async def test_completed_order_resets_profile_but_keeps_identity(self, chat, order_phrases, profiles):
        await to_summary(chat)
        await chat.say("yes")

        profile = profiles.profiles[CONV]
        assert profile.slots == Slots()
        assert profile.outcome == Outcome()
        assert profile.identity.user_id == "Dana"
        assert profile.identity.conversation_id == CONV
        assert profiles.stacks[CONV].is_empty

    @pytest.mark.asyncio
    async def test_seeded_pickup_goes_straight_to_summary(self, chat, order_phrases, orders):
        texts = await chat.texts("2 pickup pizzas with olives")
        assert texts == [SUMMARY_INTRO, "a pickup of 2 pizzas with olives", confirm_text(110)]

        assert await chat.texts("yes") == [completion_text(OrderType.PICKUP)]
        assert orders.records[0].price == 110
        assert orders.records[0].user_address == ""

    @pytest.mark.asyncio
    async def test_sub_dialogs_follow_the_fixed_order(self, chat, order_phrases):
        assert await chat.texts("I want pizza") == [ORDER_TYPE_PROMPT]
        assert await chat.texts("delivery") == ["Great! delivery it is", QUANTITY_PROMPT]
        assert await chat.texts("3") == [QUANTITY_ACK, TOPPINGS_PROMPT]
        assert await chat.texts("no thanks") == [NO_TOPPINGS_ACK, ADDRESS_PROMPT]
        assert await chat.texts("Herzl 5") == [
            SUMMARY_INTRO,
            "a delivery of 3 pizzas with no toppings to Herzl 5",
            confirm_text(150),
        ]

    @pytest.mark.asyncio
    async def test_new_order_after_completion_starts_fresh(self, chat, order_phrases):
        await to_summary(chat)
        await chat.say("yes")

        assert await chat.texts("I'd like to order a pizza delivery") == [QUANTITY_PROMPT]


class TestRetries:
    """Rejected replies re-prompt and never touch the slots."""

    @pytest.mark.asyncio
    async def test_unrecognized_quantity_keeps_slots(self, chat, order_phrases, profiles):
        await chat.say("I'd like to order a pizza delivery")

        assert await chat.texts("lots") == [QUANTITY_RETRY]
        assert profiles.profiles[CONV].slots == Slots(order_type=OrderType.DELIVERY)

        # the initial prompt is never shown again
        assert await chat.texts("lots") == [QUANTITY_RETRY]
        top = profiles.stacks[CONV].top
        assert top.dialog_id == DialogId.QUANTITY
        assert top.attempt_count == 3

        assert await chat.texts("two") == [QUANTITY_ACK, TOPPINGS_PROMPT]

    @pytest.mark.asyncio
    async def test_order_type_without_delivery_or_pickup_is_rejected(self, chat, order_phrases):
        await chat.say("I want pizza")
        assert await chat.texts("I want pizza") == [ORDER_TYPE_RETRY]

    @pytest.mark.asyncio
    async def test_unknown_toppings_are_rejected(self, chat, order_phrases, profiles):
        await chat.say("I'd like to order a pizza delivery")
        await chat.say("two")

        assert await chat.texts("anchovies") == [TOPPINGS_RETRY]
        assert profiles.profiles[CONV].slots.toppings is None

    @pytest.mark.asyncio
    async def test_classifier_failure_during_prompt(self, chat, order_phrases):
        await chat.say("I'd like to order a pizza delivery")
        order_phrases.down = True

        assert await chat.texts("two") == [SERVICE_APOLOGY, QUANTITY_RETRY]

    @pytest.mark.asyncio
    async def test_blank_address_is_rejected(self, chat, order_phrases):
        await chat.say("I'd like to order a pizza delivery")
        await chat.say("two")
        await chat.say("olives")

        assert await chat.texts("   ") == [ADDRESS_RETRY]

    @pytest.mark.asyncio
    async def test_confirmation_needs_yes_or_no(self, chat, order_phrases, orders):
        await to_summary(chat)

        replies = await chat.say("maybe")
        assert [r.text for r in replies] == [CHOICE_RETRY]
        assert replies[0].choices == ("yes", "no")
        assert orders.records == []

    @pytest.mark.asyncio
    async def test_confirmation_accepts_a_longer_yes(self, chat, order_phrases, orders):
        await to_summary(chat)
        await chat.say("yes please")
        assert len(orders.records) == 1


class TestOutcomes:
    """Cancellation and failure paths end the order and reset the profile."""

    @pytest.mark.asyncio
    async def test_declining_cancels(self, chat, order_phrases, orders, profiles):
        await to_summary(chat)

        assert await chat.texts("no") == [ORDER_CANCELLED]
        assert orders.records == []
        assert profiles.profiles[CONV].slots == Slots()
        assert profiles.stacks[CONV].is_empty

    @pytest.mark.asyncio
    async def test_submission_failure_apologizes_with_phone(self, chat, order_phrases, orders, profiles):
        await to_summary(chat)
        orders.fail = True

        replies = await chat.say("yes")
        assert [r.text for r in replies] == [ORDER_FAILURE.format(phone="03-6324422")]
        assert not any(r.attachments for r in replies)

        profile = profiles.profiles[CONV]
        assert profile.slots == Slots()
        assert profile.outcome == Outcome()
        assert profile.identity.user_id == "Dana"

    @pytest.mark.asyncio
    async def test_price_cache_down_keeps_the_order(self, chat, order_phrases, prices, profiles):
        stored = dict(prices.prices)
        prices.prices = {}

        assert await chat.texts("2 pickup pizzas with olives") == [SERVICE_APOLOGY]
        assert profiles.profiles[CONV].slots == Slots(order_type=OrderType.PICKUP, quantity=2, toppings=("olives",))
        assert profiles.stacks[CONV].top.dialog_id == DialogId.SUMMARY

        # the next message quotes again
        prices.prices = stored
        assert await chat.texts("hello?") == [SUMMARY_INTRO, "a pickup of 2 pizzas with olives", confirm_text(110)]

    @pytest.mark.asyncio
    async def test_price_cache_down_still_asks_for_address(self, chat, order_phrases, prices, profiles):
        await chat.say("I'd like to order a pizza delivery")
        await chat.say("two")
        prices.prices = {}

        assert await chat.texts("olives") == [TOPPINGS_ACK, ADDRESS_PROMPT]
        assert await chat.texts("1 Main St") == [SERVICE_APOLOGY]
        assert profiles.profiles[CONV].slots.address == "1 Main St"

    @pytest.mark.asyncio
    async def test_failed_state_save_leaves_previous_state(self, chat, order_phrases, profiles, orders):
        await to_summary(chat)

        async def broken_save(conversation_id, profile, stack):
            raise RuntimeError("database is down")

        profiles.save_state = broken_save
        with pytest.raises(RuntimeError):
            await chat.say("no")

        # neither half of the turn was stored
        assert profiles.profiles[CONV].slots.address == "1 Main St"
        assert profiles.stacks[CONV].top.dialog_id == DialogId.SUMMARY

    @pytest.mark.asyncio
    async def test_yes_with_lost_slots_fails_cleanly(self, chat, order_phrases, profiles, orders):
        await to_summary(chat)
        profiles.profiles[CONV] = profiles.profiles[CONV].reset()

        assert await chat.texts("yes") == [ORDER_FAILURE.format(phone="03-6324422")]
        assert orders.records == []
        assert profiles.stacks[CONV].is_empty


class TestConversationStart:
    @pytest.mark.asyncio
    async def test_welcome_is_sent_once(self, chat, profiles):
        assert [r.text for r in await chat.join()] == ["Hi there Dana. How can I help you?"]
        assert await chat.join() == []
        assert profiles.log_users[CONV] == "Dana"

    @pytest.mark.asyncio
    async def test_bot_joining_is_ignored(self, chat, profiles):
        assert await chat.join(name="PizzaBot") == []
        assert CONV not in profiles.profiles

    @pytest.mark.asyncio
    async def test_message_without_join_creates_profile(self, chat, order_phrases, profiles):
        await chat.say("I'd like to order a pizza delivery")
        assert profiles.profiles[CONV].identity.user_id == "Dana"

    @pytest.mark.asyncio
    async def test_classifier_down_with_no_dialog(self, chat, classifier, qna):
        classifier.down = True

        assert await chat.texts("hello") == [SERVICE_APOLOGY]
        assert qna.calls == []


class TestQuestions:
    """Messages that are not orders go to the Q&A service."""

    @pytest.mark.asyncio
    async def test_single_answer(self, chat, qna, profiles):
        qna.answers["when do you open?"] = QnAAnswer(answer="We open at 11:00", answer_id="7")

        assert await chat.texts("when do you open?") == ["We open at 11:00"]
        assert profiles.stacks[CONV].is_empty

    @pytest.mark.asyncio
    async def test_no_answer_falls_back(self, chat):
        assert await chat.texts("what is the meaning of life") == [QNA_FALLBACK]

    @pytest.mark.asyncio
    async def test_multi_turn_answer(self, chat, qna, profiles):
        qna.answers["what are your hours?"] = QnAAnswer(
            answer="Which hours?",
            answer_id="10",
            follow_ups=[FollowUp(id="11", text="Delivery hours"), FollowUp(id="12", text="Pickup hours")],
        )
        qna.answers["Delivery hours"] = QnAAnswer(answer="Until 23:00", answer_id="11")

        first = await chat.say("what are your hours?")
        assert first[0].text == "Which hours?"
        assert first[0].choices == ("Delivery hours", "Pickup hours")
        assert profiles.stacks[CONV].top.dialog_id == DialogId.QNA

        assert await chat.texts("Delivery hours") == ["Until 23:00"]
        question, context = qna.calls[-1]
        assert question == "Delivery hours"
        assert context.previous_qna_id == "10"
        assert context.previous_user_query == "what are your hours?"
        assert profiles.stacks[CONV].is_empty

    @pytest.mark.asyncio
    async def test_multi_turn_follow_up_service_down(self, chat, qna):
        qna.answers["what are your hours?"] = QnAAnswer(
            answer="Which hours?", answer_id="10", follow_ups=[FollowUp(id="11", text="Delivery hours")]
        )
        await chat.say("what are your hours?")
        qna.down = True

        assert await chat.texts("Delivery hours") == [QNA_UNAVAILABLE]


class TestTurnLog:
    @pytest.mark.asyncio
    async def test_turn_is_logged_and_cleared(self, chat, order_phrases, profiles):
        await chat.say("I'd like to order a pizza delivery")

        assert profiles.logs[CONV] == [
            TurnLog(user_utterance="I'd like to order a pizza delivery", bot_utterances=(QUANTITY_PROMPT,))
        ]
        assert profiles.profiles[CONV].turn_log == TurnLog()
