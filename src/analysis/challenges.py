from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from analysis._transactions_support import Clock, budget_spent, category_window_total, expenses, since, total
from domain.models import Category, ChallengeKind
from domain.schemas import Badge, Budget, Challenge, ChallengeTemplate, Transaction

logger = logging.getLogger(__name__)

BUDGET_PROBLEM_RATIO = 0.8
WEEKLY_GROWTH_RATIO = 1.3
TARGET_RATIO = 0.7
TRENDING_CATEGORIES: tuple[Category, ...] = (
    Category.COFFEE,
    Category.TRANSPORT,
    Category.FOOD,
    Category.SHOPPING,
)


@dataclass(frozen=True)
class ChallengeBlueprint:
    kind: ChallengeKind
    title: str
    description: str
    duration_days: int
    badge: Badge
    target_category: Category | None = None

    def completion_key(self) -> tuple[str, str]:
        return self.kind.value, self.target_category.value if self.target_category else "general"


CHALLENGE_CATALOG: tuple[ChallengeBlueprint, ...] = (
    ChallengeBlueprint(
        kind=ChallengeKind.CATEGORY,
        title="A week without coffee shops",
        description="Don't spend money on coffee outside home for a whole week",
        duration_days=7,
        target_category=Category.COFFEE,
        badge=Badge(
            id="coffee-breaker",
            name="Coffee Breaker",
            icon="☕",
            description="A week without takeaway coffee",
            category=Category.COFFEE,
        ),
    ),
    ChallengeBlueprint(
        kind=ChallengeKind.CATEGORY,
        title="Transport saver",
        description="Cut your transport spending by 30%",
        duration_days=7,
        target_category=Category.TRANSPORT,
        badge=Badge(
            id="transport-ninja",
            name="Transport Ninja",
            icon="🚲",
            description="A week of saving on transport",
            category=Category.TRANSPORT,
        ),
    ),
    ChallengeBlueprint(
        kind=ChallengeKind.CATEGORY,
        title="Cooking at home",
        description="Don't order food delivery for 5 days in a row",
        duration_days=5,
        target_category=Category.FOOD,
        badge=Badge(
            id="home-chef",
            name="Home Chef",
            icon="👨‍🍳",
            description="5 days without food delivery",
            category=Category.FOOD,
        ),
    ),
    ChallengeBlueprint(
        kind=ChallengeKind.SPENDING,
        title="Minimalist",
        description="Keep your daily spending under the target for a week",
        duration_days=7,
        badge=Badge(
            id="minimalist",
            name="Minimalist",
            icon="✨",
            description="A week of minimal spending",
        ),
    ),
    ChallengeBlueprint(
        kind=ChallengeKind.CATEGORY,
        title="No impulse buys",
        description="Only buy what you planned to buy",
        duration_days=7,
        target_category=Category.SHOPPING,
        badge=Badge(
            id="smart-shopper",
            name="Smart Shopper",
            icon="🛍️",
            description="A week without impulse purchases",
            category=Category.SHOPPING,
        ),
    ),
    ChallengeBlueprint(
        kind=ChallengeKind.SAVING,
        title="Piggy bank",
        description="Put aside 10% of every income",
        duration_days=14,
        badge=Badge(
            id="saver",
            name="Saver",
            icon="💰",
            description="Two weeks of saving",
        ),
    ),
)


class ChallengeGenerator:
    """
    Offers one savings challenge aimed at the user's weak spots.

    Selection is random among eligible templates; pass a seeded `rng` for
    reproducible picks.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        catalog: Sequence[ChallengeBlueprint] = CHALLENGE_CATALOG,
        now: Clock = datetime.now,
    ) -> None:
        self._rng = rng or random.Random()
        self._catalog = tuple(catalog)
        self._now = now

    def generate(
        self,
        transactions: list[Transaction],
        budgets: list[Budget],
        completed_challenges: list[Challenge],
    ) -> ChallengeTemplate | None:
        now = self._now()
        candidates = self.eligible_blueprints(transactions, budgets, completed_challenges)
        if not candidates:
            logger.info("No challenge offered: no eligible templates")
            return None

        blueprint = self._rng.choice(candidates)
        target_amount: float | None = None
        if blueprint.target_category is not None:
            weekly = category_window_total(transactions, blueprint.target_category, now, 7)
            target_amount = round(weekly * TARGET_RATIO)
        elif blueprint.kind == ChallengeKind.SPENDING:
            target_amount = round(self._average_daily_spending(transactions, now) * TARGET_RATIO)

        logger.info(
            "Challenge offered kind=%s target_category=%s candidates=%d",
            blueprint.kind.value,
            blueprint.target_category.value if blueprint.target_category else "general",
            len(candidates),
        )
        return ChallengeTemplate(
            title=blueprint.title,
            description=blueprint.description,
            kind=blueprint.kind,
            target_category=blueprint.target_category,
            target_amount=target_amount,
            duration_days=blueprint.duration_days,
            start_date=now,
            end_date=now + timedelta(days=blueprint.duration_days),
            badge=blueprint.badge,
        )

    def eligible_blueprints(
        self,
        transactions: list[Transaction],
        budgets: list[Budget],
        completed_challenges: Iterable[Challenge],
    ) -> list[ChallengeBlueprint]:
        problems = self.find_problem_categories(transactions, budgets)
        completed = {challenge.completion_key() for challenge in completed_challenges}
        return [
            blueprint for blueprint in self._catalog
            if blueprint.completion_key() not in completed
            and (blueprint.target_category is None or blueprint.target_category in problems)
        ]

    def find_problem_categories(self, transactions: list[Transaction], budgets: list[Budget]) -> set[Category]:
        now = self._now()
        problems: set[Category] = set()
        for budget in budgets:
            if budget_spent(budget, transactions) / budget.limit >= BUDGET_PROBLEM_RATIO:
                problems.add(budget.category)

        for category in TRENDING_CATEGORIES:
            last_week = category_window_total(transactions, category, now, 7)
            previous_week = category_window_total(transactions, category, now, 7, offset=7)
            if last_week > previous_week * WEEKLY_GROWTH_RATIO:
                problems.add(category)
        return problems

    @staticmethod
    def _average_daily_spending(transactions: list[Transaction], now: datetime) -> float:
        return total(since(expenses(transactions), now - timedelta(days=30))) / 30
