from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta

from analysis._transactions_support import (
    WEEKS_PER_MONTH,
    Clock,
    between,
    budget_spent,
    expenses,
    month_bounds,
    previous_month,
    since,
    total,
)
from domain.models import Category, InsightKind, Priority, Trend, category_label
from domain.schemas import Budget, Goal, Insight, SpendingPattern, Transaction
from infrastructure.formatting import AmountFormatter, CurrencyFormatter

logger = logging.getLogger(__name__)

MAX_INSIGHTS = 5
PATTERN_CATEGORIES: tuple[Category, ...] = (
    Category.FOOD,
    Category.TRANSPORT,
    Category.SHOPPING,
    Category.ENTERTAINMENT,
    Category.COFFEE,
    Category.SUBSCRIPTIONS,
)
MIN_PATTERN_HISTORY = 5
PATTERN_TREND_THRESHOLD = 0.15


class CoachingEngine:
    """Turns budget, goal and trend observations into ranked insight cards."""

    def __init__(self, formatter: AmountFormatter | None = None, now: Clock = datetime.now) -> None:
        self._formatter = formatter or CurrencyFormatter()
        self._now = now

    def generate_insights(
        self,
        transactions: list[Transaction],
        budgets: list[Budget],
        goals: list[Goal],
    ) -> list[Insight]:
        now = self._now()
        stamp = int(now.timestamp())
        insights: list[Insight] = []
        insights.extend(self._budget_insights(transactions, budgets, now, stamp))
        insights.extend(self._trend_insights(transactions, now, stamp))
        insights.extend(self._goal_insights(goals, now, stamp))
        insights.extend(self._comparison_insights(transactions, now, stamp))
        insights.extend(self._top_category_insights(transactions, now, stamp))
        logger.info(
            "Coaching insights generated=%d transactions=%d budgets=%d goals=%d",
            len(insights), len(transactions), len(budgets), len(goals),
        )
        return insights[:MAX_INSIGHTS]

    def analyze_patterns(self, transactions: list[Transaction]) -> list[SpendingPattern]:
        now = self._now()
        thirty_days_ago = now - timedelta(days=30)
        sixty_days_ago = now - timedelta(days=60)

        patterns: list[SpendingPattern] = []
        for category in PATTERN_CATEGORIES:
            category_txns = expenses(transactions, category)
            if len(category_txns) < MIN_PATTERN_HISTORY:
                continue

            monthly_total = total(since(category_txns, thirty_days_ago))
            previous_total = total(between(category_txns, sixty_days_ago, thirty_days_ago))

            trend = Trend.STABLE
            if monthly_total > previous_total * (1 + PATTERN_TREND_THRESHOLD):
                trend = Trend.INCREASING
            elif monthly_total < previous_total * (1 - PATTERN_TREND_THRESHOLD):
                trend = Trend.DECREASING

            patterns.append(
                SpendingPattern(
                    category=category,
                    average_daily=monthly_total / 30,
                    average_weekly=monthly_total / WEEKS_PER_MONTH,
                    average_monthly=monthly_total,
                    previous_monthly=previous_total,
                    trend=trend,
                )
            )
        return patterns

    # ---- insight builders, in priority order ----

    def _budget_insights(
        self, transactions: list[Transaction], budgets: list[Budget], now: datetime, stamp: int
    ) -> list[Insight]:
        fmt = self._formatter.format
        insights: list[Insight] = []
        for budget in budgets:
            spent = budget_spent(budget, transactions)
            percentage = spent / budget.limit * 100
            if percentage < 90:
                continue
            label = category_label(budget.category)
            daily_cut = max((spent - budget.limit * 0.8) / 7, 0)
            insights.append(
                Insight(
                    id=f"budget-{budget.id}-{stamp}",
                    kind=InsightKind.COACHING,
                    title=f"Your {label} budget is almost used up",
                    message=(
                        f"You have spent {round(percentage)}% of the limit. "
                        f"{fmt(budget.limit - spent)} left until the end of the period."
                    ),
                    actionable=f"Try to cut {label} spending by {fmt(daily_cut)} a day.",
                    priority=Priority.HIGH,
                    category=budget.category,
                    date=now,
                )
            )
        return insights

    def _trend_insights(self, transactions: list[Transaction], now: datetime, stamp: int) -> list[Insight]:
        fmt = self._formatter.format
        insights: list[Insight] = []
        for pattern in self.analyze_patterns(transactions):
            if pattern.trend != Trend.INCREASING:
                continue
            label = category_label(pattern.category)
            if pattern.previous_monthly > 0:
                growth = round((pattern.average_monthly / pattern.previous_monthly - 1) * 100)
                message = f"Over the last 30 days spending went up by {growth}% compared with the month before."
            else:
                message = f"You spent {fmt(pattern.average_monthly)} over the last 30 days, up from nothing the month before."
            insights.append(
                Insight(
                    id=f"trend-{pattern.category.value}-{stamp}",
                    kind=InsightKind.COACHING,
                    title=f"Spending on {label} is growing",
                    message=message,
                    actionable=f"Try setting a limit of {fmt(pattern.average_monthly * 1.1)} for this month.",
                    priority=Priority.MEDIUM,
                    category=pattern.category,
                    date=now,
                )
            )
        return insights

    def _goal_insights(self, goals: list[Goal], now: datetime, stamp: int) -> list[Insight]:
        fmt = self._formatter.format
        insights: list[Insight] = []
        for goal in goals:
            progress = goal.progress * 100
            if not 75 <= progress < 100:
                continue
            insights.append(
                Insight(
                    id=f"goal-{goal.id}-{stamp}",
                    kind=InsightKind.COACHING,
                    title=f'Almost there with "{goal.name}"!',
                    message=(
                        f"You have already saved {round(progress)}% of the goal. "
                        f"Only {fmt(goal.remaining)} to go."
                    ),
                    actionable=self._goal_pace_text(goal, now),
                    priority=Priority.HIGH,
                    date=now,
                )
            )
        return insights

    def _goal_pace_text(self, goal: Goal, now: datetime) -> str:
        if goal.created_at is not None:
            days_elapsed = (now - goal.created_at).days
            if days_elapsed > 0 and goal.current_amount > 0:
                daily_pace = goal.current_amount / days_elapsed
                return f"{math.ceil(goal.remaining / daily_pace)} more days at the current pace."
        return "Keep your regular contributions going to close the gap."

    def _comparison_insights(self, transactions: list[Transaction], now: datetime, stamp: int) -> list[Insight]:
        this_month = self._monthly_total(transactions, now.year, now.month)
        last_month = self._monthly_total(transactions, *previous_month(now.year, now.month))
        if last_month <= 0:
            return []

        difference = (this_month - last_month) / last_month * 100
        if difference < -10:
            return [
                Insight(
                    id=f"comparison-{stamp}",
                    kind=InsightKind.COMPARISON,
                    title="Great savings!",
                    message=f"This month you spent {abs(round(difference))}% less than last month.",
                    actionable=f"You saved {self._formatter.format(last_month - this_month)}. Keep it up!",
                    priority=Priority.LOW,
                    date=now,
                )
            ]
        if difference > 20:
            return [
                Insight(
                    id=f"comparison-{stamp}",
                    kind=InsightKind.COMPARISON,
                    title="Spending went up",
                    message=f"This month your expenses are {round(difference)}% higher than last month.",
                    actionable="Check the categories that grew the most and try to trim them.",
                    priority=Priority.MEDIUM,
                    date=now,
                )
            ]
        return []

    def _top_category_insights(self, transactions: list[Transaction], now: datetime, stamp: int) -> list[Insight]:
        totals: dict[Category, float] = defaultdict(float)
        for txn in since(expenses(transactions), now - timedelta(days=30)):
            totals[txn.category] += txn.amount

        overall = sum(totals.values())
        if overall <= 0:
            return []

        top_category, top_amount = max(totals.items(), key=lambda item: item[1])
        return [
            Insight(
                id=f"top-category-{stamp}",
                kind=InsightKind.PREDICTION,
                title="Your biggest spending category",
                message=f"{category_label(top_category).capitalize()}: {self._formatter.format(top_amount)} over the last month.",
                actionable=f"That is {round(top_amount / overall * 100)}% of all your spending.",
                priority=Priority.LOW,
                category=top_category,
                date=now,
            )
        ]

    @staticmethod
    def _monthly_total(transactions: list[Transaction], year: int, month_number: int) -> float:
        start, end = month_bounds(year, month_number)
        return total(t for t in expenses(transactions) if start <= t.date <= end)
