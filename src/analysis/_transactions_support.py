from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, time, timedelta
from statistics import mean, pstdev
from typing import Callable, Iterable, Sequence

from domain.models import Category
from domain.schemas import Budget, Transaction

Clock = Callable[[], datetime]

WEEKS_PER_MONTH = 4.33


def expenses(transactions: Iterable[Transaction], category: Category | None = None) -> list[Transaction]:
    return [
        t for t in transactions
        if t.is_expense and (category is None or t.category == category)
    ]


def since(transactions: Iterable[Transaction], cutoff: datetime) -> list[Transaction]:
    return [t for t in transactions if t.date >= cutoff]


def between(transactions: Iterable[Transaction], start: datetime, end: datetime) -> list[Transaction]:
    """Transactions with start <= date < end."""
    return [t for t in transactions if start <= t.date < end]


def total(transactions: Iterable[Transaction]) -> float:
    return sum(t.amount for t in transactions)


def most_recent(transactions: Iterable[Transaction], limit: int) -> list[Transaction]:
    return sorted(transactions, key=lambda t: t.date, reverse=True)[:limit]


def amount_stats(amounts: Sequence[float]) -> tuple[float, float]:
    """Mean and population standard deviation."""
    if not amounts:
        return 0.0, 0.0
    return mean(amounts), pstdev(amounts)


def category_window_total(
    transactions: Iterable[Transaction],
    category: Category,
    now: datetime,
    days: int,
    offset: int = 0,
) -> float:
    """Category expense total for the inclusive window [now - days - offset, now - offset]."""
    start = now - timedelta(days=days + offset)
    end = now - timedelta(days=offset)
    return total(t for t in expenses(transactions, category) if start <= t.date <= end)


def budget_spent(budget: Budget, transactions: Iterable[Transaction]) -> float:
    return total(t for t in expenses(transactions, budget.category) if budget.covers(t))


def month_bounds(year: int, month_number: int) -> tuple[datetime, datetime]:
    start = date(year, month_number, 1)
    end = date(year, month_number, monthrange(year, month_number)[1])
    return datetime.combine(start, time.min), datetime.combine(end, time.max)


def previous_month(year: int, month_number: int) -> tuple[int, int]:
    if month_number == 1:
        return year - 1, 12
    return year, month_number - 1
