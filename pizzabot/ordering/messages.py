# pizzabot/ordering/messages.py
from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from .profile import OrderType, Slots

ANIMATION_CARD = "application/vnd.microsoft.card.animation"

WELCOME = "Hi there {name}. How can I help you?"
SERVICE_APOLOGY = "I'm sorry for the inconvenience but I can't help you right now. Please try to contact me later"
QNA_FALLBACK = "That doesn't mean anything to me :/ Can you try to be more specific?"
QNA_UNAVAILABLE = "Sorry for the inconvenience but QnA is not available :/"
CHOICE_RETRY = "Please make a choice from the list"

ORDER_TYPE_PROMPT = "No problem! would you like to make a delivery or a pickup?"
ORDER_TYPE_RETRY = "Your answer is unclear to me. is that a delivery or a pickup?"
ORDER_TYPE_ACK = "Great! {order_type} it is"

QUANTITY_PROMPT = "How many pizzas would you like to order?"
QUANTITY_RETRY = "I can't figure out the amount you want. Please try again"
QUANTITY_ACK = "Alright!"

TOPPINGS_PROMPT = "What toppings would you like to add on your pizza?"
TOPPINGS_RETRY = "Unfortunately we don't have these toppings. Would you like anything else?"
TOPPINGS_ACK = "I like your choice! we will add to your pizza the toppings we offer."
NO_TOPPINGS_ACK = "Plain pizza sounds perfect!"

ADDRESS_PROMPT = "Where should I deliver your order?"
ADDRESS_RETRY = "I need an address to deliver your order. Where should I deliver it?"

SUMMARY_INTRO = "We are almost done! I just want to validate that everything is OK with your order"
CONFIRM_PROMPT = "Would you like to approve the order for a total of {price} {currency}?"
CONFIRM_CHOICES = ("yes", "no")

DELIVERY_ETA = "You should expect your delivery in the next 30-40 minutes"
PICKUP_ETA = "You will be able to pick-up your order in 15-20 minutes"
ORDER_SUCCESS = "Thank you for your order! {eta}"
ORDER_FAILURE = (
    "It's embarrassing but we can't process your order at the moment. Sorry for the inconvenience. "
    "You can try and call our place at {phone} or try me again later."
)
ORDER_CANCELLED = "Your order is cancelled. feel free to reach me if you would like to make a new one"
GIF_TITLE = "Bon Apetite!"


class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    content_type: str
    content: Dict[str, Any]


class Reply(BaseModel):
    """One outbound message: plain text, optional choices, optional card attachments."""

    model_config = ConfigDict(frozen=True)

    text: Optional[str] = None
    choices: Tuple[str, ...] = ()
    attachments: Tuple[Attachment, ...] = ()


def text_reply(text: str, choices: Sequence[str] = ()) -> Reply:
    return Reply(text=text, choices=tuple(choices))


def animation_card(title: str, url: str) -> Reply:
    card = Attachment(content_type=ANIMATION_CARD, content={"title": title, "media": [{"url": url}]})
    return Reply(attachments=(card,))


def toppings_phrase(toppings: Sequence[str]) -> str:
    return ", ".join(toppings) if toppings else "no toppings"


def build_summary(slots: Slots) -> str:
    """e.g. "a delivery of 2 pizzas with olives, onions to 1 Main St" """
    qty = slots.quantity or 0
    qty_phrase = f"{qty} pizzas" if qty > 1 else "a pizza"
    order_type = slots.order_type.value if slots.order_type else ""
    address = f" to {slots.address}" if slots.order_type == OrderType.DELIVERY and slots.address else ""
    return f"a {order_type} of {qty_phrase} with {toppings_phrase(slots.toppings or ())}{address}"


def completion_text(order_type: Optional[OrderType]) -> str:
    eta = DELIVERY_ETA if order_type == OrderType.DELIVERY else PICKUP_ETA
    return ORDER_SUCCESS.format(eta=eta)
