# pizzabot/ordering/nlu.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

import httpx
import structlog
from pydantic import BaseModel, Field

from .profile import OrderType

LOGGER = structlog.get_logger(__name__)

# classifier intents
ADD_TOPPINGS = "addToppings"
PIZZA_DELIVERY = "pizzaDelivery"
PIZZA_ORDER = "pizzaOrder"
PIZZA_PICKUP = "pizzaPickup"
NO = "no"
NONE = "None"

# every order intent carries this marker
PIZZA_MARKER = "pizza"

# classifier entities
NUMBER_ENTITY = "builtin.number"
TOPPINGS_ENTITY = "toppings"


class ClassifierUnavailable(Exception):
    """The classification service could not be reached or answered badly."""


class Entity(BaseModel):
    type: str
    entity: str = ""
    resolution: Dict[str, Any] = Field(default_factory=dict)


class ClassificationResult(BaseModel):
    top_intent: str = NONE
    entities: List[Entity] = Field(default_factory=list)

    @property
    def is_pizza_intent(self) -> bool:
        return PIZZA_MARKER in self.top_intent

    def quantity(self) -> Optional[int]:
        """Last positive integer the classifier found, if any."""
        found: Optional[int] = None
        for ent in self.entities:
            if ent.type != NUMBER_ENTITY or ent.resolution.get("subtype") != "integer":
                continue
            try:
                value = int(str(ent.resolution.get("value", "")).strip())
            except ValueError:
                continue
            if value > 0:
                found = value
        return found

    def topping_values(self) -> List[str]:
        out: List[str] = []
        for ent in self.entities:
            if ent.type == TOPPINGS_ENTITY:
                out.extend(str(v) for v in (ent.resolution.get("values") or []) if v)
        return out


def order_type_for_intent(intent: str) -> Optional[OrderType]:
    if intent == PIZZA_DELIVERY:
        return OrderType.DELIVERY
    if intent == PIZZA_PICKUP:
        return OrderType.PICKUP
    return None


class Classifier(Protocol):
    async def classify(self, text: str) -> ClassificationResult: ...


def parse_luis_prediction(body: Dict[str, Any]) -> ClassificationResult:
    top = (body.get("topScoringIntent") or {}).get("intent") or NONE
    entities = [Entity.model_validate(e) for e in (body.get("entities") or []) if isinstance(e, dict) and e.get("type")]
    return ClassificationResult(top_intent=str(top), entities=entities)


class LuisClassifier:
    """Thin async client for the LUIS prediction endpoint."""

    def __init__(self, url: str, subscription_key: str, client: httpx.AsyncClient):
        self.url = url
        self.subscription_key = subscription_key
        self._client = client

    async def classify(self, text: str) -> ClassificationResult:
        params = {"verbose": "true", "subscription-key": self.subscription_key, "q": text or ""}
        try:
            response = await self._client.get(self.url, params=params)
        except httpx.HTTPError as exc:
            LOGGER.error("luis_unreachable", error=str(exc))
            raise ClassifierUnavailable("LUIS is not available") from exc

        if response.status_code != 200:
            LOGGER.error("luis_bad_status", status_code=response.status_code, body=response.text[:200])
            raise ClassifierUnavailable("Bad status from LUIS")

        try:
            return parse_luis_prediction(response.json())
        except ValueError as exc:
            LOGGER.error("luis_bad_payload", error=str(exc))
            raise ClassifierUnavailable("Unreadable LUIS prediction") from exc
