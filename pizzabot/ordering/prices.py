# pizzabot/ordering/prices.py
from __future__ import annotations

from typing import Protocol

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

LOGGER = structlog.get_logger(__name__)

PIZZA_ITEM = "pizza"
TOPPING_ITEM = "topping"


class PriceLookupUnavailable(Exception):
    """A price could not be read from the cache."""


class PriceLookup(Protocol):
    async def lookup_price(self, item: str) -> int: ...


def calculate_total(quantity: int, topping_count: int, pizza_price: int, topping_price: int) -> int:
    one_pizza = pizza_price + topping_count * topping_price
    return quantity * one_pizza


async def quote(prices: PriceLookup, quantity: int, topping_count: int) -> int:
    pizza_price = await prices.lookup_price(PIZZA_ITEM)
    topping_price = await prices.lookup_price(TOPPING_ITEM)
    return calculate_total(quantity, topping_count, pizza_price, topping_price)


class RedisPriceLookup:
    """Point-in-time reads of item prices stored as plain integers."""

    def __init__(self, client: Redis, key_prefix: str = ""):
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, item: str) -> str:
        return f"{self.key_prefix}{item}"

    async def lookup_price(self, item: str) -> int:
        key = self._key(item)
        try:
            raw = await self.client.get(key)
        except RedisError as exc:
            LOGGER.error("price_lookup_failed", key=key, error=str(exc))
            raise PriceLookupUnavailable(f"price of {item} is unavailable") from exc

        if raw is None:
            LOGGER.error("price_missing", key=key)
            raise PriceLookupUnavailable(f"no price stored for {item}")
        try:
            return int(raw)
        except ValueError as exc:
            LOGGER.error("price_not_integer", key=key, raw=str(raw))
            raise PriceLookupUnavailable(f"price of {item} is not an integer") from exc

    async def set_price(self, item: str, price: int) -> None:
        await self.client.set(self._key(item), int(price))
