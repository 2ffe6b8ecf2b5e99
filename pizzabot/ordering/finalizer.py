# pizzabot/ordering/finalizer.py
from __future__ import annotations

import structlog

from .prices import PriceLookup, PriceLookupUnavailable, quote
from .profile import ConversationProfile, OrderStatus
from .stores import OrderRecord, OrderStore, OrderSubmissionError

LOGGER = structlog.get_logger(__name__)


def order_record(profile: ConversationProfile, price: int) -> OrderRecord:
    slots = profile.slots
    return OrderRecord(
        type=slots.order_type.value if slots.order_type else "",
        quantity=slots.quantity or 0,
        toppings=", ".join(slots.toppings or ()),
        price=price,
        username=profile.identity.user_id,
        user_address=slots.address or "",
    )


class OrderFinalizer:
    def __init__(self, prices: PriceLookup, orders: OrderStore):
        self.prices = prices
        self.orders = orders

    async def quote(self, profile: ConversationProfile) -> ConversationProfile:
        """Price the order once type, quantity and toppings are known. Raises PriceLookupUnavailable."""
        slots = profile.slots
        if not slots.is_priceable:
            return profile
        price = await quote(self.prices, slots.quantity, len(slots.toppings))
        return profile.with_slots(price=price)

    async def submit(self, profile: ConversationProfile) -> ConversationProfile:
        """
        Record the confirmed order. Success or failure lands in ``outcome``;
        either way the slots are cleared before returning.
        """
        log = LOGGER.bind(conversation_id=profile.identity.conversation_id)
        if not profile.slots.is_priceable:
            log.error("order_incomplete", slots=profile.slots.model_dump(mode="json"))
            return profile.with_outcome(OrderStatus.FAILURE).reset_slots()
        try:
            priced = profile if profile.slots.price is not None else await self.quote(profile)
            order_id = await self.orders.submit_order(order_record(priced, priced.slots.price))
        except (OrderSubmissionError, PriceLookupUnavailable) as exc:
            log.error("order_submit_failed", error=str(exc))
            done = profile.with_outcome(OrderStatus.FAILURE)
        else:
            log.info("order_submitted", order_id=order_id, price=priced.slots.price)
            done = priced.with_outcome(OrderStatus.SUCCESS)
        return done.reset_slots()

    def cancel(self, profile: ConversationProfile) -> ConversationProfile:
        return profile.reset()
