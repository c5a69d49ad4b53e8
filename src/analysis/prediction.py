from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from statistics import mean

from analysis._transactions_support import (
    WEEKS_PER_MONTH,
    Clock,
    amount_stats,
    between,
    expenses,
    most_recent,
    since,
    total,
)
from domain.models import Category, RiskLevel, TransactionKind, Trend
from domain.schemas import Budget, BufferRecommendation, Goal, GoalETA, SpendingPrediction, Transaction
from infrastructure.formatting import AmountFormatter, CurrencyFormatter

logger = logging.getLogger(__name__)

TREND_THRESHOLD = 0.15
TREND_MULTIPLIERS = {
    Trend.INCREASING: 1.1,
    Trend.DECREASING: 0.9,
    Trend.STABLE: 1.0,
}
BUFFER_HISTORY = 30
MIN_BUFFER_HISTORY = 5


class PredictionEngine:
    """Trailing-average projections for category spend, budget buffers and savings goals."""

    def __init__(self, formatter: AmountFormatter | None = None, now: Clock = datetime.now) -> None:
        self._formatter = formatter or CurrencyFormatter()
        self._now = now

    def predict_spending(
        self,
        transactions: list[Transaction],
        category: Category,
        days_ahead: int = 30,
    ) -> SpendingPrediction:
        category_txns = expenses(transactions, category)
        if not category_txns:
            return SpendingPrediction(
                predicted_amount=0,
                confidence=0,
                trend=Trend.STABLE,
                recommendation="Not enough data for a forecast yet.",
            )

        now = self._now()
        oldest = min(t.date for t in category_txns)
        days_covered = max((now - oldest).days, 1)
        avg_daily_spend = total(category_txns) / days_covered

        thirty_days_ago = now - timedelta(days=30)
        sixty_days_ago = now - timedelta(days=60)
        recent = since(category_txns, thirty_days_ago)
        older = between(category_txns, sixty_days_ago, thirty_days_ago)
        recent_avg = mean(t.amount for t in recent) if recent else 0.0
        older_avg = mean(t.amount for t in older) if older else recent_avg

        trend = Trend.STABLE
        if recent_avg > older_avg * (1 + TREND_THRESHOLD):
            trend = Trend.INCREASING
        elif recent_avg < older_avg * (1 - TREND_THRESHOLD):
            trend = Trend.DECREASING
        multiplier = TREND_MULTIPLIERS[trend]

        if trend == Trend.INCREASING:
            recommendation = (
                f"Spending is rising. Try cutting it by {round((multiplier - 1) * 100)}% this month."
            )
        elif trend == Trend.DECREASING:
            recommendation = "Great job, spending is going down. Keep it up."
        else:
            recommendation = "Spending is stable. Everything is under control."

        predicted = round(avg_daily_spend * days_ahead * multiplier)
        confidence = min(len(category_txns) / 20, 0.9)
        logger.debug(
            "predict_spending category=%s txns=%d trend=%s predicted=%s",
            category.value, len(category_txns), trend.value, predicted,
        )
        return SpendingPrediction(
            predicted_amount=predicted,
            confidence=confidence,
            trend=trend,
            recommendation=recommendation,
        )

    def recommend_buffer(self, budget: Budget, transactions: list[Transaction]) -> BufferRecommendation:
        history = most_recent(expenses(transactions, budget.category), BUFFER_HISTORY)
        if len(history) < MIN_BUFFER_HISTORY:
            return BufferRecommendation(
                recommended_buffer=round(budget.limit * 0.1),
                reason="Standard 10% buffer (insufficient history)",
            )

        avg, std_dev = amount_stats([t.amount for t in history])
        cv = std_dev / avg if avg > 0 else 0.0

        if cv > 0.5:
            percent, reason = 0.2, "High volatility in spending, a larger buffer is safer"
        elif cv > 0.3:
            percent, reason = 0.15, "Medium volatility, a slightly larger buffer"
        else:
            percent, reason = 0.1, "Stable spending, standard buffer"

        logger.debug("recommend_buffer budget_id=%s cv=%.3f percent=%.2f", budget.id, cv, percent)
        return BufferRecommendation(recommended_buffer=round(budget.limit * percent), reason=reason)

    def calculate_goal_eta(self, goal: Goal, transactions: list[Transaction]) -> GoalETA:
        now = self._now()
        today = now.date()
        remaining = goal.remaining
        if remaining <= 0:
            return GoalETA(
                estimated_date=today,
                recommended_weekly_saving=0,
                risk_level=RiskLevel.LOW,
                note="Goal already reached!",
            )

        recent = since(transactions, now - timedelta(days=30))
        recent_income = total(t for t in recent if t.kind == TransactionKind.INCOME)
        recent_expenses = total(t for t in recent if t.kind == TransactionKind.EXPENSE)
        weekly_potential = (recent_income - recent_expenses) / WEEKS_PER_MONTH

        # Keep 30% slack on the raw potential, but never plan for more than a year.
        recommended = max(round(weekly_potential * 0.7), math.ceil(remaining / 52), 1)
        weeks_needed = math.ceil(remaining / recommended)
        estimated_date = today + timedelta(days=weeks_needed * 7)

        days_until_deadline = (goal.deadline - today).days
        days_needed = weeks_needed * 7

        if days_until_deadline <= 0:
            risk = RiskLevel.HIGH
            note = (
                f"The deadline has passed; {self._formatter.format(remaining)} is still needed to reach the goal."
            )
        elif days_needed <= days_until_deadline * 0.7:
            risk = RiskLevel.LOW
            note = "The goal is easily reachable at the current saving pace."
        elif days_needed <= days_until_deadline * 1.2:
            risk = RiskLevel.MEDIUM
            note = "It will take some discipline, but the goal is reachable."
        else:
            risk = RiskLevel.HIGH
            required_weekly = remaining / (days_until_deadline / 7)
            note = f"To reach the goal on time, save {self._formatter.format(required_weekly)} per week."

        logger.debug(
            "calculate_goal_eta goal_id=%s remaining=%s weekly=%s weeks=%d risk=%s",
            goal.id, remaining, recommended, weeks_needed, risk.value,
        )
        return GoalETA(
            estimated_date=estimated_date,
            recommended_weekly_saving=recommended,
            risk_level=risk,
            note=note,
        )
