# pizzabot/ordering/menu.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .nlp import apply_synonyms, basic_normalize, default_synonyms, fuzzy_best_key, normalize_text, split_items


def menu_synonyms(menu: Dict[str, Any]) -> Dict[str, str]:
    meta = menu.get("meta") or {}
    custom = meta.get("synonyms") or {}
    merged = default_synonyms()
    if isinstance(custom, dict):
        merged.update({str(k).lower(): str(v).lower() for k, v in custom.items()})
    return merged


def currency_name(menu: Dict[str, Any], default: str = "NIS") -> str:
    return str((menu.get("meta") or {}).get("currency") or default).upper()


class ToppingMenu:
    """
    Bounded toppings vocabulary. Classifier output is free text; only names
    that resolve to an entry here ever reach the order.
    """

    def __init__(self, names: Iterable[str], synonyms: Optional[Dict[str, str]] = None):
        self.synonyms = dict(synonyms) if synonyms is not None else default_synonyms()
        self._by_key: Dict[str, str] = {}
        for nm in names:
            nm = str(nm or "").strip()
            if not nm:
                continue
            key = apply_synonyms(basic_normalize(nm), self.synonyms)
            if key:
                self._by_key[key] = nm

    @classmethod
    def from_menu(cls, menu: Dict[str, Any]) -> "ToppingMenu":
        names: List[str] = []
        for t in menu.get("toppings") or []:
            if isinstance(t, dict):
                names.append(str(t.get("name") or ""))
            elif isinstance(t, str):
                names.append(t)
        return cls(names, menu_synonyms(menu))

    @property
    def names(self) -> List[str]:
        return list(self._by_key.values())

    def find(self, text: str) -> Optional[str]:
        q = normalize_text(text, self.synonyms)
        if not q:
            return None
        if q in self._by_key:
            return self._by_key[q]

        # fuzzy (start strict, then slightly looser)
        keys = list(self._by_key.keys())
        for cutoff in (0.85, 0.78):
            best = fuzzy_best_key(keys, q, cutoff=cutoff)
            if best:
                return self._by_key[best]
        return None

    def resolve(self, values: Iterable[str]) -> List[str]:
        """Known toppings in first-mention order, duplicates dropped."""
        out: List[str] = []
        for raw in values:
            for part in split_items(str(raw or "")):
                hit = self.find(part)
                if hit and hit not in out:
                    out.append(hit)
        return out
