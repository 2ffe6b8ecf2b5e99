# pizzabot/ordering/nlp.py
"""Text cleanup for matching free-text toppings against the menu."""
from __future__ import annotations

import difflib
import re
from typing import Dict, List, Optional, Sequence

# spelling variants and typos -> menu name
_TOPPING_ALIASES: Dict[str, str] = {
    "olive": "olives",
    "olivs": "olives",
    "black olives": "olives",
    "green olives": "olives",
    "mushroom": "mushrooms",
    "mashrooms": "mushrooms",
    "shrooms": "mushrooms",
    "onion": "onions",
    "red onion": "onions",
    "pepper": "peppers",
    "bell peppers": "peppers",
    "tomato": "tomatoes",
    "pineapples": "pineapple",
    "corn": "sweetcorn",
    "extra cheese": "cheese",
    "pepperonni": "pepperoni",
    "peperoni": "pepperoni",
}

# "olives, onions & corn", "tuna with olives"
_LIST_SEPARATORS = re.compile(r"\s*(?:[,&+]|\band\b|\bwith\b)\s*", re.IGNORECASE)
_NON_WORD = re.compile(r"[^\w\s]+")
_SPACES = re.compile(r"\s+")

_GREETING_OR_ASK = re.compile(
    r"^\s*(?:hi|hello|hey|please|pls|plz|add|i\s*want|i\s*would\s*like|i'?d\s*like|can\s*i\s*(?:get|have))\b[,\s]*",
    re.IGNORECASE,
)
_DETERMINER = re.compile(r"^\s*(?:some|a|an|the|extra)\b[,\s]*", re.IGNORECASE)
_POLITE_TAIL = re.compile(r"\b(?:please|pls|plz)\b\.?\s*$", re.IGNORECASE)


def default_synonyms() -> Dict[str, str]:
    return dict(_TOPPING_ALIASES)


def basic_normalize(s: str) -> str:
    """Lowercase, punctuation to spaces, single spaces."""
    return _SPACES.sub(" ", _NON_WORD.sub(" ", (s or "").lower())).strip()


def strip_filler_prefix(raw: str) -> str:
    """'hi, can I get some olives please' -> 'olives'"""
    s = (raw or "").strip()
    prev = None
    while s != prev:
        prev, s = s, _GREETING_OR_ASK.sub("", s).strip()
    s = _DETERMINER.sub("", s).strip()
    return _POLITE_TAIL.sub("", s).strip()


def apply_synonyms(s: str, synonyms: Dict[str, str]) -> str:
    """Rewrite aliases to menu names, longest alias first so 'black olives' beats 'olive'."""
    if not s or not synonyms:
        return s
    for alias in sorted(synonyms, key=len, reverse=True):
        target = synonyms[alias]
        if not alias or not target:
            continue
        # lookarounds rather than \b so aliases ending in digits still match
        s = re.sub(rf"(?<!\w){re.escape(basic_normalize(alias))}(?!\w)", basic_normalize(target), s)
    return _SPACES.sub(" ", s).strip()


def normalize_text(s: str, synonyms: Dict[str, str]) -> str:
    cleaned = basic_normalize(strip_filler_prefix(basic_normalize(s)))
    return apply_synonyms(cleaned, synonyms)


def split_items(msg: str) -> List[str]:
    return [p.strip() for p in _LIST_SEPARATORS.split(msg or "") if p and p.strip()]


def fuzzy_best_key(keys: Sequence[str], query: str, cutoff: float = 0.72) -> Optional[str]:
    """Closest key by difflib ratio, or None below ``cutoff``."""
    q = (query or "").strip().lower()
    if not q or not keys:
        return None
    if q in keys:
        return q
    best = difflib.get_close_matches(q, list(keys), n=1, cutoff=cutoff)
    return best[0] if best else None
