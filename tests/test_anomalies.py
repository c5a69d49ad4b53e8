from __future__ import annotations

import unittest
from datetime import datetime, timedelta

from analysis.anomalies import AnomalyDetector
from analysis.prediction import PredictionEngine
from domain.models import AnomalyKind, Category, Severity, TransactionKind, Trend
from domain.schemas import Transaction

NOW = datetime(2024, 5, 20, 12, 0)


def _txn(
    id: str,
    when: datetime | str,
    amount: float,
    category: Category = Category.FOOD,
    kind: TransactionKind = TransactionKind.EXPENSE,
) -> Transaction:
    return Transaction(id=id, amount=amount, category=category, description=id, date=when, kind=kind)


def _baseline(count: int = 50) -> list[Transaction]:
    """Alternating 800/1200 food expenses: mean 1000, stddev 200."""
    start = datetime(2024, 3, 1, 12, 0)
    return [
        _txn(f"b{i}", start + timedelta(days=i), 800 if i % 2 == 0 else 1200)
        for i in range(count)
    ]


class DuplicateDetectionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.detector = AnomalyDetector(now=lambda: NOW)

    def test_same_day_same_amount_yields_one_alert(self) -> None:
        txns = [
            _txn("d1", datetime(2024, 5, 1, 10, 0), 5000),
            _txn("d2", datetime(2024, 5, 1, 14, 30), 5000),
        ]

        alerts = self.detector.detect(txns)

        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0].kind, AnomalyKind.DUPLICATE)
        self.assertEqual(alerts[0].severity, Severity.MEDIUM)
        self.assertEqual(alerts[0].transaction_id, "d1")
        self.assertEqual(alerts[0].id, "duplicate-d1")
        self.assertFalse(alerts[0].dismissed)

    def test_different_days_or_amounts_are_not_duplicates(self) -> None:
        txns = [
            _txn("a", "2024-05-01", 5000),
            _txn("b", "2024-05-02", 5000),
            _txn("c", "2024-05-02", 5001),
        ]

        self.assertEqual(self.detector.detect(txns), [])

    def test_alerts_are_capped_at_ten(self) -> None:
        txns = []
        for i in range(15):
            day = datetime(2024, 4, 1, 12, 0) + timedelta(days=i)
            txns.append(_txn(f"x{i}", day, 100 + i))
            txns.append(_txn(f"y{i}", day, 100 + i))

        self.assertEqual(len(self.detector.detect(txns)), 10)


class UnusualAmountTests(unittest.TestCase):
    def setUp(self) -> None:
        self.detector = AnomalyDetector(now=lambda: NOW)

    def test_large_outlier_is_flagged(self) -> None:
        txns = _baseline() + [_txn("big", datetime(2024, 5, 19, 12, 0), 3000)]

        alerts = self.detector.detect(txns)

        self.assertEqual([a.transaction_id for a in alerts], ["big"])
        self.assertEqual(alerts[0].kind, AnomalyKind.UNUSUAL_AMOUNT)
        self.assertEqual(alerts[0].severity, Severity.HIGH)
        self.assertIn("3 000", alerts[0].message)

    def test_amount_below_double_mean_is_not_flagged(self) -> None:
        txns = _baseline() + [_txn("mid", datetime(2024, 5, 19, 12, 0), 1500)]

        self.assertEqual(self.detector.detect(txns), [])

    def test_only_recent_transactions_are_checked(self) -> None:
        old_outlier = _txn("old", datetime(2024, 2, 1, 12, 0), 3000)
        txns = [old_outlier] + _baseline()

        self.assertEqual(self.detector.detect(txns), [])

    def test_small_categories_are_skipped(self) -> None:
        txns = [_txn(f"c{i}", datetime(2024, 5, i + 1, 12, 0), 100, Category.COFFEE) for i in range(3)]
        txns.append(_txn("c-big", datetime(2024, 5, 10, 12, 0), 90000, Category.COFFEE))

        self.assertEqual(self.detector.detect(txns), [])


class UnusualTimeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.detector = AnomalyDetector(now=lambda: NOW)

    def test_night_expenses_are_flagged(self) -> None:
        txns = [
            _txn("n1", datetime(2024, 5, 10, 2, 0), 100),
            _txn("n2", datetime(2024, 5, 11, 5, 59), 200),
            _txn("morning", datetime(2024, 5, 12, 6, 0), 300),
            _txn("late", datetime(2024, 5, 13, 1, 59), 400),
            _txn("refund", datetime(2024, 5, 14, 3, 0), 500, Category.INCOME, TransactionKind.INCOME),
        ]

        alerts = self.detector.detect(txns)

        self.assertEqual({a.transaction_id for a in alerts}, {"n1", "n2"})
        self.assertTrue(all(a.kind == AnomalyKind.UNUSUAL_TIME for a in alerts))
        self.assertTrue(all(a.severity == Severity.MEDIUM for a in alerts))

    def test_only_twenty_most_recent_are_checked(self) -> None:
        night = _txn("night", datetime(2024, 4, 1, 3, 0), 100)
        recent = [_txn(f"r{i}", datetime(2024, 5, 1, 12, 0) + timedelta(days=i), 10 + i) for i in range(20)]

        self.assertEqual(self.detector.detect([night, *recent]), [])

    def test_alert_kinds_are_emitted_in_fixed_order(self) -> None:
        txns = _baseline() + [
            _txn("big", datetime(2024, 5, 19, 3, 0), 3000),
            _txn("dup1", datetime(2024, 5, 18, 12, 0), 777, Category.OTHER),
            _txn("dup2", datetime(2024, 5, 18, 13, 0), 777, Category.OTHER),
        ]

        kinds = [a.kind for a in self.detector.detect(txns)]

        self.assertEqual(kinds, [AnomalyKind.DUPLICATE, AnomalyKind.UNUSUAL_AMOUNT, AnomalyKind.UNUSUAL_TIME])


class FoodOutlierScenarioTests(unittest.TestCase):
    def test_outlier_is_flagged_and_prediction_reports_confidence(self) -> None:
        txns = [
            _txn("f1", "2024-04-10", 5000),
            _txn("f2", "2024-04-17", 4900),
            _txn("f3", "2024-04-24", 5100),
            _txn("f4", "2024-05-01", 5000),
            _txn("f5", "2024-05-08", 5200),
            _txn("f6", "2024-05-15", 15000),
        ]

        alerts = AnomalyDetector(now=lambda: NOW).detect(txns)
        prediction = PredictionEngine(now=lambda: NOW).predict_spending(txns, Category.FOOD, 30)

        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0].transaction_id, "f6")
        self.assertEqual(alerts[0].kind, AnomalyKind.UNUSUAL_AMOUNT)
        self.assertEqual(alerts[0].severity, Severity.HIGH)
        self.assertIn(prediction.trend, {Trend.STABLE, Trend.INCREASING})
        self.assertAlmostEqual(prediction.confidence, min(6 / 20, 0.9))


if __name__ == "__main__":
    unittest.main()
