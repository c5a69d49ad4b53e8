from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from analysis._transactions_support import Clock
from domain.models import Category, CorrectionEntry
from domain.schemas import CategorizationResult
from infrastructure.persistence.correction_store import CorrectionStore, InMemoryCorrectionStore

logger = logging.getLogger(__name__)

MAX_CORRECTIONS = 40
MAX_TOKENS = 4
MIN_TOKEN_LENGTH = 3
LEARNED_CONFIDENCE = 0.92
MAX_RULE_CONFIDENCE = 0.95

_TOKEN_SPLIT_RE = re.compile(r"[^a-zа-я0-9]+")


@dataclass(frozen=True)
class CategoryRule:
    category: Category
    keywords: tuple[str, ...]
    priority: int


# Table order breaks score ties.
DEFAULT_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        Category.COFFEE,
        ("starbucks", "coffee", "кофе", "coffeeshop", "кофейня", "cafe", "кафе"),
        10,
    ),
    CategoryRule(
        Category.TRANSPORT,
        ("taxi", "uber", "bolt", "яндекс.такси", "метро", "metro", "бензин", "gas", "автобус", "bus",
         "parking", "парковка"),
        9,
    ),
    CategoryRule(
        Category.FOOD,
        ("restaurant", "ресторан", "макдональдс", "kfc", "burger", "pizza", "пицца", "delivery", "доставка",
         "glovo", "wolt", "supermarket", "магазин", "grocery"),
        8,
    ),
    CategoryRule(
        Category.SUBSCRIPTIONS,
        ("netflix", "spotify", "youtube", "premium", "subscription", "подписка", "apple music", "icloud"),
        10,
    ),
    CategoryRule(
        Category.ENTERTAINMENT,
        ("cinema", "кино", "theater", "театр", "concert", "концерт", "game", "игра", "steam", "playstation"),
        7,
    ),
    CategoryRule(
        Category.SHOPPING,
        ("amazon", "ozon", "wildberries", "kaspi", "market", "shop", "магазин", "store"),
        6,
    ),
    CategoryRule(
        Category.UTILITIES,
        ("electricity", "электричество", "water", "вода", "gas", "газ", "internet", "интернет", "mobile",
         "мобильная связь"),
        9,
    ),
    CategoryRule(
        Category.HEALTHCARE,
        ("pharmacy", "аптека", "hospital", "больница", "doctor", "врач", "clinic", "клиника", "medical",
         "медицина"),
        8,
    ),
    CategoryRule(
        Category.EDUCATION,
        ("course", "курс", "udemy", "coursera", "education", "образование", "book", "книга", "university",
         "университет"),
        7,
    ),
    CategoryRule(
        Category.GIFTS,
        ("gift", "подарок", "present", "flowers", "цветы"),
        8,
    ),
)


def extract_tokens(description: str) -> tuple[str, ...]:
    tokens = [token for token in _TOKEN_SPLIT_RE.split(description.lower()) if len(token) >= MIN_TOKEN_LENGTH]
    return tuple(tokens[:MAX_TOKENS])


class CategorizationEngine:
    """
    Keyword-rule categorizer with a small learned override list.

    Lookup order:
      1. learned corrections, newest first (first token hit wins)
      2. keyword rules, summed priority per category
      3. amount bands when nothing matched
    """

    def __init__(
        self,
        store: CorrectionStore | None = None,
        rules: Sequence[CategoryRule] = DEFAULT_RULES,
        small_amount_threshold: float = 2000.0,
        medium_amount_threshold: float = 10000.0,
        now: Clock = datetime.now,
    ) -> None:
        self._store = store or InMemoryCorrectionStore()
        self._rules = tuple(rules)
        self._small_amount_threshold = small_amount_threshold
        self._medium_amount_threshold = medium_amount_threshold
        self._now = now
        self._lock = threading.Lock()
        self._corrections: tuple[CorrectionEntry, ...] = ()
        self.reload_corrections()

    @property
    def corrections(self) -> tuple[CorrectionEntry, ...]:
        return self._corrections

    def reload_corrections(self) -> None:
        try:
            loaded = self._store.load()
        except Exception:
            logger.exception("Failed to load categorization corrections; continuing with current list")
            return
        with self._lock:
            self._corrections = tuple(loaded[:MAX_CORRECTIONS])
        logger.info("Categorization corrections loaded count=%d", len(self._corrections))

    def categorize(self, description: str, amount: float) -> CategorizationResult:
        normalized = (description or "").lower()

        learned = self._learned_category(normalized)
        if learned is not None:
            return CategorizationResult(category=learned, confidence=LEARNED_CONFIDENCE)

        matches: list[tuple[Category, int]] = []
        for rule in self._rules:
            score = sum(rule.priority for keyword in rule.keywords if keyword.lower() in normalized)
            if score > 0:
                matches.append((rule.category, score))

        if not matches:
            return self._categorize_by_amount(amount)

        matches.sort(key=lambda m: m[1], reverse=True)
        top_category, top_score = matches[0]
        alternatives = [category for category, _ in matches[1:3]]
        return CategorizationResult(
            category=top_category,
            confidence=min(top_score / 20, MAX_RULE_CONFIDENCE),
            alternatives=alternatives or None,
        )

    def learn_from_correction(
        self,
        description: str,
        suggested_category: Category,
        correct_category: Category,
    ) -> None:
        if not description or suggested_category == correct_category:
            return

        tokens = extract_tokens(description)
        if not tokens:
            return

        entry = CorrectionEntry(tokens=tokens, category=correct_category, updated_at=self._now())
        with self._lock:
            kept = [existing for existing in self._corrections if existing.key() != entry.key()]
            self._corrections = tuple([entry, *kept][:MAX_CORRECTIONS])
            snapshot = self._corrections
            try:
                self._store.save(snapshot)
            except Exception:
                logger.exception("Failed to persist categorization corrections count=%d", len(snapshot))

        logger.info(
            "Learned correction tokens=%s suggested=%s correct=%s total=%d",
            "|".join(tokens),
            suggested_category.value,
            correct_category.value,
            len(snapshot),
        )

    def _learned_category(self, normalized_description: str) -> Category | None:
        for entry in self._corrections:
            if entry.matches(normalized_description):
                return entry.category
        return None

    def _categorize_by_amount(self, amount: float) -> CategorizationResult:
        if amount <= self._small_amount_threshold:
            return CategorizationResult(category=Category.COFFEE, confidence=0.3)
        if amount <= self._medium_amount_threshold:
            return CategorizationResult(category=Category.FOOD, confidence=0.4)
        return CategorizationResult(category=Category.OTHER, confidence=0.2)
