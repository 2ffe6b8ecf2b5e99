# pizzabot/ordering/validators.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import structlog

from .menu import ToppingMenu
from .nlp import basic_normalize, fuzzy_best_key
from .nlu import ADD_TOPPINGS, NO, PIZZA_ORDER, Classifier, ClassificationResult, ClassifierUnavailable, order_type_for_intent
from .profile import ConversationProfile

LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Validation:
    accepted: bool
    profile: ConversationProfile
    # classifier was down for this attempt
    service_failed: bool = False
    choice: Optional[str] = None


def _reject(profile: ConversationProfile, service_failed: bool = False) -> Validation:
    return Validation(accepted=False, profile=profile, service_failed=service_failed)


class PromptValidators:
    """Reply validators for the slot prompts. A rejection always hands back the profile untouched."""

    def __init__(self, classifier: Classifier, toppings: ToppingMenu):
        self.classifier = classifier
        self.toppings = toppings

    async def _classify(self, text: str, profile: ConversationProfile) -> Optional[ClassificationResult]:
        try:
            return await self.classifier.classify(text)
        except ClassifierUnavailable as exc:
            LOGGER.error(
                "classifier_unavailable",
                conversation_id=profile.identity.conversation_id,
                error=str(exc),
            )
            return None

    async def order_type(self, text: str, profile: ConversationProfile) -> Validation:
        result = await self._classify(text, profile)
        if result is None:
            return _reject(profile, service_failed=True)

        # the generic order intent doesn't say delivery or pickup
        if result.top_intent == PIZZA_ORDER:
            return _reject(profile)
        order_type = order_type_for_intent(result.top_intent)
        if order_type is None:
            return _reject(profile)
        return Validation(accepted=True, profile=profile.with_slots(order_type=order_type))

    async def quantity(self, text: str, profile: ConversationProfile) -> Validation:
        result = await self._classify(text, profile)
        if result is None:
            return _reject(profile, service_failed=True)

        qty = result.quantity()
        if qty is None:
            return _reject(profile)
        return Validation(accepted=True, profile=profile.with_slots(quantity=qty))

    async def toppings_reply(self, text: str, profile: ConversationProfile) -> Validation:
        result = await self._classify(text, profile)
        if result is None:
            return _reject(profile, service_failed=True)

        if result.top_intent == NO:
            return Validation(accepted=True, profile=profile.with_slots(toppings=()))
        if result.top_intent != ADD_TOPPINGS:
            return _reject(profile)

        known = self.toppings.resolve(result.topping_values())
        if not known:
            LOGGER.debug("toppings_not_on_menu", values=result.topping_values())
            return _reject(profile)
        return Validation(accepted=True, profile=profile.with_slots(toppings=tuple(known)))

    async def address(self, text: str, profile: ConversationProfile) -> Validation:
        if not (text or "").strip():
            return _reject(profile)
        return Validation(accepted=True, profile=profile.with_slots(address=text))


def recognize_choice(text: str, choices: Sequence[str]) -> Optional[str]:
    """Match a reply to one of ``choices`` by text, 1-based position, or a close spelling."""
    q = basic_normalize(text)
    if not q or not choices:
        return None

    by_key = {basic_normalize(c): c for c in choices}
    if q in by_key:
        return by_key[q]
    if q.isdigit() and 1 <= int(q) <= len(choices):
        return choices[int(q) - 1]
    # "yes please", "no thanks"
    first = q.split()[0]
    if first in by_key:
        return by_key[first]

    best = fuzzy_best_key(list(by_key.keys()), q, cutoff=0.8)
    return by_key[best] if best else None
