from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime

from analysis._transactions_support import Clock, amount_stats, expenses, most_recent
from domain.models import AnomalyKind, Category, Severity
from domain.schemas import AnomalyAlert, Transaction
from infrastructure.formatting import AmountFormatter, CurrencyFormatter

logger = logging.getLogger(__name__)

MAX_ALERTS = 10
MIN_CATEGORY_HISTORY = 5
RECENT_PER_CATEGORY = 5
RECENT_FOR_TIME_CHECK = 20
NIGHT_HOURS = range(2, 6)


class AnomalyDetector:
    """Flags duplicate charges, outlier amounts and off-hours spending."""

    def __init__(self, formatter: AmountFormatter | None = None, now: Clock = datetime.now) -> None:
        self._formatter = formatter or CurrencyFormatter()
        self._now = now

    def detect(self, transactions: list[Transaction]) -> list[AnomalyAlert]:
        now = self._now()
        alerts = [
            *self.find_duplicates(transactions, now),
            *self.find_unusual_amounts(transactions, now),
            *self.find_unusual_times(transactions, now),
        ]
        logger.info("Anomaly detection transactions=%d alerts=%d", len(transactions), len(alerts))
        return alerts[:MAX_ALERTS]

    def find_duplicates(self, transactions: list[Transaction], now: datetime) -> list[AnomalyAlert]:
        groups: dict[tuple[date, float], list[Transaction]] = defaultdict(list)
        for txn in transactions:
            groups[(txn.day, txn.amount)].append(txn)

        alerts: list[AnomalyAlert] = []
        for (_, amount), group in groups.items():
            if len(group) < 2:
                continue
            first = group[0]
            alerts.append(
                AnomalyAlert(
                    id=f"duplicate-{first.id}",
                    transaction_id=first.id,
                    kind=AnomalyKind.DUPLICATE,
                    severity=Severity.MEDIUM,
                    message=f"Found {len(group)} similar transactions of {self._formatter.format(amount)} on the same day",
                    suggestion="Check whether the bank charged this operation twice.",
                    date=now,
                )
            )
        return alerts

    def find_unusual_amounts(self, transactions: list[Transaction], now: datetime) -> list[AnomalyAlert]:
        by_category: dict[Category, list[Transaction]] = defaultdict(list)
        for txn in expenses(transactions):
            by_category[txn.category].append(txn)

        alerts: list[AnomalyAlert] = []
        for category, history in by_category.items():
            if len(history) < MIN_CATEGORY_HISTORY:
                continue
            avg, std_dev = amount_stats([t.amount for t in history])
            for txn in most_recent(history, RECENT_PER_CATEGORY):
                # Must clear both the sigma band and twice the mean.
                if txn.amount > avg + 2 * std_dev and txn.amount > avg * 2:
                    alerts.append(
                        AnomalyAlert(
                            id=f"unusual-{txn.id}",
                            transaction_id=txn.id,
                            kind=AnomalyKind.UNUSUAL_AMOUNT,
                            severity=Severity.HIGH,
                            message=(
                                f"Unusually large amount: {self._formatter.format(txn.amount)} "
                                f"against an average of {self._formatter.format(avg)}"
                            ),
                            suggestion="Make sure this is not a mistake or a fraudulent charge.",
                            date=now,
                        )
                    )
        return alerts

    def find_unusual_times(self, transactions: list[Transaction], now: datetime) -> list[AnomalyAlert]:
        alerts: list[AnomalyAlert] = []
        for txn in most_recent(transactions, RECENT_FOR_TIME_CHECK):
            hour = txn.date.hour
            if txn.is_expense and hour in NIGHT_HOURS:
                alerts.append(
                    AnomalyAlert(
                        id=f"time-{txn.id}",
                        transaction_id=txn.id,
                        kind=AnomalyKind.UNUSUAL_TIME,
                        severity=Severity.MEDIUM,
                        message=f"Transaction at an unusual time: {hour}:00",
                        suggestion="Review this operation, it may not be your purchase.",
                        date=now,
                    )
                )
        return alerts
