from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Category(str, Enum):
    FOOD = "food"
    TRANSPORT = "transport"
    SHOPPING = "shopping"
    ENTERTAINMENT = "entertainment"
    UTILITIES = "utilities"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    GIFTS = "gifts"
    COFFEE = "coffee"
    SUBSCRIPTIONS = "subscriptions"
    INCOME = "income"
    OTHER = "other"


class TransactionKind(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class BudgetPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


Severity = Priority
RiskLevel = Priority


class InsightKind(str, Enum):
    COACHING = "coaching"
    ANOMALY = "anomaly"
    PREDICTION = "prediction"
    COMPARISON = "comparison"


class AnomalyKind(str, Enum):
    UNUSUAL_AMOUNT = "unusual_amount"
    DUPLICATE = "duplicate"
    UNUSUAL_LOCATION = "unusual_location"
    UNUSUAL_TIME = "unusual_time"


class ChallengeKind(str, Enum):
    SPENDING = "spending"
    SAVING = "saving"
    CATEGORY = "category"


# Used inside message templates ("Spending on {label} ...").
CATEGORY_LABELS: dict[Category, str] = {
    Category.FOOD: "food",
    Category.TRANSPORT: "transport",
    Category.SHOPPING: "shopping",
    Category.ENTERTAINMENT: "entertainment",
    Category.UTILITIES: "utilities",
    Category.HEALTHCARE: "healthcare",
    Category.EDUCATION: "education",
    Category.GIFTS: "gifts",
    Category.COFFEE: "coffee",
    Category.SUBSCRIPTIONS: "subscriptions",
    Category.INCOME: "income",
    Category.OTHER: "other expenses",
}


def category_label(category: Category) -> str:
    return CATEGORY_LABELS.get(category, category.value)


@dataclass(frozen=True)
class CorrectionEntry:
    """A learned override: any of `tokens` found in a description maps it to `category`."""

    tokens: tuple[str, ...]
    category: Category
    updated_at: datetime

    def key(self) -> tuple[tuple[str, ...], Category]:
        return self.tokens, self.category

    def matches(self, normalized_description: str) -> bool:
        return any(token and token in normalized_description for token in self.tokens)
