# pizzabot/ordering/profile.py
"""
Per-conversation order profile.

Every model here is frozen: a dialog step never edits a profile in place, it
builds the next one with ``model_copy(update=...)`` (or the helpers below) and
hands it on.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class OrderType(str, Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class OrderStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    conversation_id: str


class Slots(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_type: Optional[OrderType] = None
    quantity: Optional[int] = Field(default=None, gt=0)
    # None = not asked yet, () = asked and declined
    toppings: Optional[Tuple[str, ...]] = None
    address: Optional[str] = None
    price: Optional[int] = None

    @property
    def is_priceable(self) -> bool:
        return self.order_type is not None and self.quantity is not None and self.toppings is not None

    @property
    def needs_address(self) -> bool:
        return self.order_type == OrderType.DELIVERY

    def fill(self, **values) -> "Slots":
        """Return a copy with ``values`` set; touching a priced input drops the quote."""
        update = dict(values)
        if "toppings" in update and update["toppings"] is not None:
            update["toppings"] = tuple(update["toppings"])
        if {"order_type", "quantity", "toppings"} & set(update) and "price" not in update:
            update["price"] = None
        return self.model_copy(update=update)


class TurnLog(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_utterance: Optional[str] = None
    bot_utterances: Tuple[str, ...] = ()

    def with_bot(self, *messages: str) -> "TurnLog":
        return self.model_copy(update={"bot_utterances": self.bot_utterances + tuple(messages)})


class Outcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Optional[OrderStatus] = None
    # kept so the completion message can be phrased after the slots are gone
    order_type: Optional[OrderType] = None


class ConversationProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity: Identity
    slots: Slots = Field(default_factory=Slots)
    turn_log: TurnLog = Field(default_factory=TurnLog)
    outcome: Outcome = Field(default_factory=Outcome)

    @classmethod
    def new(cls, user_id: str, conversation_id: str) -> "ConversationProfile":
        return cls(identity=Identity(user_id=user_id, conversation_id=conversation_id))

    def with_slots(self, **values) -> "ConversationProfile":
        return self.model_copy(update={"slots": self.slots.fill(**values)})

    def with_outcome(self, status: OrderStatus) -> "ConversationProfile":
        return self.model_copy(update={"outcome": Outcome(status=status, order_type=self.slots.order_type)})

    def log_bot(self, *messages: str) -> "ConversationProfile":
        return self.model_copy(update={"turn_log": self.turn_log.with_bot(*messages)})

    def reset(self) -> "ConversationProfile":
        """Drop every slot and the outcome; the identity and this turn's log survive."""
        return ConversationProfile(identity=self.identity, turn_log=self.turn_log)

    def reset_slots(self) -> "ConversationProfile":
        """Drop the slots but keep the outcome for the completion message."""
        return self.model_copy(update={"slots": Slots()})
