# pizzabot/ai_intent.py
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import structlog
from openai import AsyncOpenAI, OpenAIError

from .ordering.nlu import (
    ADD_TOPPINGS,
    NO,
    NONE,
    NUMBER_ENTITY,
    PIZZA_DELIVERY,
    PIZZA_ORDER,
    PIZZA_PICKUP,
    TOPPINGS_ENTITY,
    ClassificationResult,
    ClassifierUnavailable,
    Entity,
)

LOGGER = structlog.get_logger(__name__)

SYSTEM = """You are an intent parser for a pizza ordering bot.
Convert the user's message into ONE JSON object that matches the provided JSON schema.
Rules:
- pizzaDelivery / pizzaPickup when the user wants a pizza and says how they get it; pizzaOrder when they just want pizza.
- addToppings when the user names toppings; "no" when the user declines or says no.
- Never invent toppings. If the message is not about ordering pizza, use intent "None".
- Keep it concise and robust to typos/slang.
"""

# JSON Schema for Structured Outputs
COMMAND_SCHEMA: Dict[str, Any] = {
    "type": "json_schema",
    "name": "pizza_classification",
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "intent": {
                "type": "string",
                "enum": [ADD_TOPPINGS, PIZZA_DELIVERY, PIZZA_ORDER, PIZZA_PICKUP, NO, NONE],
            },
            "quantity": {"type": ["integer", "null"], "minimum": 1},
            "toppings": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["intent", "quantity", "toppings"],
    },
    "strict": True,
}


def command_to_classification(cmd: Dict[str, Any]) -> ClassificationResult:
    intent = str(cmd.get("intent") or NONE).strip() or NONE
    entities: List[Entity] = []

    qty: Optional[int] = cmd.get("quantity")
    if isinstance(qty, int) and qty > 0:
        entities.append(
            Entity(type=NUMBER_ENTITY, entity=str(qty), resolution={"subtype": "integer", "value": str(qty)})
        )

    toppings = [str(t).strip() for t in (cmd.get("toppings") or []) if str(t).strip()]
    if toppings:
        entities.append(Entity(type=TOPPINGS_ENTITY, entity=", ".join(toppings), resolution={"values": toppings}))

    return ClassificationResult(top_intent=intent, entities=entities)


class OpenAIClassifier:
    """LLM-backed drop-in for the LUIS classifier."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-5-mini", toppings_hint: Optional[List[str]] = None):
        self._client = client
        self.model = model
        # first 60 menu names only
        self.toppings_hint = list(toppings_hint or [])[:60]

    async def classify(self, text: str) -> ClassificationResult:
        payload = {"message": text or "", "known_toppings": self.toppings_hint}
        try:
            resp = await self._client.responses.create(
                model=self.model,
                input=[
                    {"role": "system", "content": SYSTEM},
                    {"role": "user", "content": json.dumps(payload, ensure_ascii=False)},
                ],
                # structured output against COMMAND_SCHEMA
                text={"format": COMMAND_SCHEMA},
            )
        except OpenAIError as exc:
            LOGGER.error("openai_classify_failed", error=str(exc))
            raise ClassifierUnavailable("OpenAI classifier is not available") from exc

        try:
            cmd = json.loads(resp.output_text)
        except (TypeError, ValueError) as exc:
            LOGGER.error("openai_classify_bad_output", error=str(exc))
            raise ClassifierUnavailable("Unreadable classifier output") from exc
        return command_to_classification(cmd if isinstance(cmd, dict) else {})
