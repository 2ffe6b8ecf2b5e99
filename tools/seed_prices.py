# tools/seed_prices.py
from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict

from redis.asyncio import Redis

from pizzabot.ordering.prices import RedisPriceLookup

# default menu shipped with the bot
MENU_PATH = Path(__file__).resolve().parents[1] / "data" / "menu.json"


async def seed(prices: Dict[str, Any], redis_url: str) -> int:
    client = Redis.from_url(redis_url)
    lookup = RedisPriceLookup(client)
    made = 0
    try:
        for item, price in prices.items():
            try:
                value = int(price)
            except (TypeError, ValueError):
                print(f"SKIP (not an integer): {item}={price!r}")
                continue

            await lookup.set_price(item, value)
            print(f"OK  {item}  ->  {value}")
            made += 1
    finally:
        await client.aclose()
    return made


def main() -> None:
    parser = argparse.ArgumentParser(description="Copy menu prices into the Redis price cache.")
    parser.add_argument("--menu", default=os.getenv("MENU_PATH", str(MENU_PATH)))
    parser.add_argument("--redis-url", default=os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    args = parser.parse_args()

    menu_path = Path(args.menu)
    if not menu_path.exists():
        raise SystemExit(f"No menu.json found at {menu_path}")

    data = json.loads(menu_path.read_text(encoding="utf-8"))
    prices = data.get("prices") or {}
    if not prices:
        raise SystemExit(f"No prices in {menu_path}")

    made = asyncio.run(seed(prices, args.redis_url))
    print(f"\nDone. Stored {made} prices in: {args.redis_url}")


if __name__ == "__main__":
    main()
