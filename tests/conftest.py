"""Shared fakes for the dialog tests: no network, no Redis, no database."""

from typing import Dict, List, Optional, Tuple

import pytest

from pizzabot.config import Settings
from pizzabot.main import build_bot
from pizzabot.ordering.menu import ToppingMenu
from pizzabot.ordering.messages import Reply
from pizzabot.ordering.nlu import (
    NUMBER_ENTITY,
    TOPPINGS_ENTITY,
    ClassificationResult,
    ClassifierUnavailable,
    Entity,
)
from pizzabot.ordering.prices import PIZZA_ITEM, TOPPING_ITEM, PriceLookupUnavailable
from pizzabot.ordering.qna import QnAAnswer, QnAContext, QnAUnavailable
from pizzabot.ordering.stores import MemoryProfileStore, OrderRecord, OrderSubmissionError
from pizzabot.schemas import Activity

PIZZA_GIF = "https://example.com/pizza.gif"


def prediction(intent: str, quantity: Optional[int] = None, toppings: Optional[List[str]] = None) -> ClassificationResult:
    """Build a classifier result the way LUIS would report it."""
    entities = []
    if quantity is not None:
        entities.append(
            Entity(type=NUMBER_ENTITY, entity=str(quantity), resolution={"subtype": "integer", "value": str(quantity)})
        )
    if toppings:
        entities.append(Entity(type=TOPPINGS_ENTITY, entity=" ".join(toppings), resolution={"values": toppings}))
    return ClassificationResult(top_intent=intent, entities=entities)


class FakeClassifier:
    def __init__(self, results: Optional[Dict[str, ClassificationResult]] = None):
        self.results = dict(results or {})
        self.down = False
        self.calls: List[str] = []

    async def classify(self, text: str) -> ClassificationResult:
        self.calls.append(text)
        if self.down:
            raise ClassifierUnavailable("classifier is down")
        return self.results.get(text, ClassificationResult())


class FakeQnA:
    def __init__(self, answers: Optional[Dict[str, QnAAnswer]] = None):
        self.answers = dict(answers or {})
        self.down = False
        self.calls: List[Tuple[str, Optional[QnAContext]]] = []

    async def resolve_answer(self, question: str, context: Optional[QnAContext] = None) -> QnAAnswer:
        self.calls.append((question, context))
        if self.down or question not in self.answers:
            raise QnAUnavailable("no answer")
        return self.answers[question]


class FakePrices:
    def __init__(self, prices: Optional[Dict[str, int]] = None):
        self.prices = dict(prices if prices is not None else {PIZZA_ITEM: 50, TOPPING_ITEM: 5})

    async def lookup_price(self, item: str) -> int:
        if item not in self.prices:
            raise PriceLookupUnavailable(f"no price for {item}")
        return self.prices[item]


class FakeOrders:
    def __init__(self):
        self.records: List[OrderRecord] = []
        self.fail = False

    async def submit_order(self, record: OrderRecord) -> str:
        if self.fail:
            raise OrderSubmissionError("database is down")
        self.records.append(record)
        return f"order-{len(self.records)}"


class Chat:
    """Drives one conversation through the bot and collects what it sends back."""

    def __init__(self, bot, conversation_id: str = "conv-1", user: str = "Dana"):
        self.bot = bot
        self.conversation_id = conversation_id
        self.user = user
        self.sent: List[Reply] = []

    async def _deliver(self, activity: Activity) -> List[Reply]:
        replies: List[Reply] = []

        async def send(reply: Reply) -> None:
            replies.append(reply)

        await self.bot.handle_turn(activity, send)
        self.sent.extend(replies)
        return replies

    async def join(self, name: Optional[str] = None) -> List[Reply]:
        member = {"id": "user-1", "name": name or self.user}
        return await self._deliver(
            Activity.model_validate(
                {"type": "conversationUpdate", "conversation": {"id": self.conversation_id}, "membersAdded": [member]}
            )
        )

    async def say(self, text: str) -> List[Reply]:
        return await self._deliver(
            Activity.model_validate(
                {
                    "type": "message",
                    "text": text,
                    "from": {"id": "user-1", "name": self.user},
                    "conversation": {"id": self.conversation_id},
                }
            )
        )

    async def texts(self, text: str) -> List[str]:
        return [r.text for r in await self.say(text) if r.text]


@pytest.fixture
def toppings():
    return ToppingMenu(["olives", "mushrooms", "onions", "tuna"])


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def qna():
    return FakeQnA()


@pytest.fixture
def prices():
    return FakePrices()


@pytest.fixture
def orders():
    return FakeOrders()


@pytest.fixture
def profiles():
    return MemoryProfileStore()


@pytest.fixture
def settings():
    return Settings(bot_name="PizzaBot", order_phone="03-6324422", pizza_gif=PIZZA_GIF, currency="NIS")


@pytest.fixture
def bot(settings, classifier, qna, profiles, prices, orders, toppings):
    return build_bot(
        settings,
        classifier=classifier,
        qna=qna,
        profiles=profiles,
        prices=prices,
        orders=orders,
        toppings=toppings,
    )


@pytest.fixture
def chat(bot):
    return Chat(bot)
