from __future__ import annotations

import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path
from unittest.mock import Mock

from analysis.anomalies import AnomalyDetector
from analysis.categorization import CategorizationEngine
from analysis.challenges import ChallengeGenerator
from analysis.coaching import CoachingEngine
from analysis.prediction import PredictionEngine
from application.service import FinanceAIService, build_service
from domain.models import Category, RiskLevel, Trend
from domain.schemas import Budget, CategorizationResult, Goal, Transaction
from infrastructure.persistence.correction_store import InMemoryCorrectionStore, JsonFileCorrectionStore
from infrastructure.settings import Settings

NOW = datetime(2024, 5, 20, 12, 0)


def _spied_service(ai_enabled: bool) -> tuple[FinanceAIService, dict[str, Mock]]:
    engines = {
        "categorizer": Mock(spec=CategorizationEngine),
        "predictor": Mock(spec=PredictionEngine),
        "anomaly_detector": Mock(spec=AnomalyDetector),
        "coach": Mock(spec=CoachingEngine),
        "challenge_generator": Mock(spec=ChallengeGenerator),
    }
    return FinanceAIService(ai_enabled=ai_enabled, now=lambda: NOW, **engines), engines


class DisabledServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.service, self.engines = _spied_service(ai_enabled=False)
        self.txns = [Transaction(id="t1", amount=100, category=Category.FOOD, date="2024-05-01")]
        self.budget = Budget(id="b1", category=Category.FOOD, limit=5000, start_date="2024-05-01", end_date="2024-05-31")
        self.goal = Goal(id="g1", name="Trip", target_amount=12000, current_amount=0, deadline="2024-12-31")

    def test_every_method_returns_neutral_value(self) -> None:
        categorized = self.service.categorize_transaction("Starbucks", 1500)
        self.assertEqual(categorized.category, Category.OTHER)
        self.assertEqual(categorized.confidence, 0)

        self.assertIsNone(self.service.learn_from_correction("acme", Category.SHOPPING, Category.FOOD))

        prediction = self.service.predict_spending(self.txns, Category.FOOD, 30)
        self.assertEqual(prediction.predicted_amount, 0)
        self.assertEqual(prediction.trend, Trend.STABLE)
        self.assertIn("disabled", prediction.recommendation)

        buffer = self.service.recommend_buffer(self.budget, self.txns)
        self.assertEqual(buffer.recommended_buffer, 500)

        eta = self.service.calculate_goal_eta(self.goal, self.txns)
        self.assertEqual(eta.recommended_weekly_saving, 1000)
        self.assertEqual(eta.risk_level, RiskLevel.MEDIUM)
        self.assertEqual(eta.estimated_date, date(2024, 8, 18))

        self.assertEqual(self.service.generate_insights(self.txns, [self.budget], [self.goal]), [])
        self.assertEqual(self.service.analyze_spending_patterns(self.txns), [])
        self.assertEqual(self.service.detect_anomalies(self.txns), [])
        self.assertIsNone(self.service.generate_challenge(self.txns, [self.budget], []))

        for name, engine in self.engines.items():
            self.assertEqual(engine.method_calls, [], name)

    def test_toggle_routes_to_engines_again(self) -> None:
        self.engines["categorizer"].categorize.return_value = CategorizationResult(
            category=Category.COFFEE, confidence=0.95
        )

        self.service.set_ai_enabled(True)
        result = self.service.categorize_transaction("Starbucks", 1500)

        self.assertTrue(self.service.ai_enabled)
        self.assertEqual(result.category, Category.COFFEE)
        self.engines["categorizer"].categorize.assert_called_once_with("Starbucks", 1500)


class EnabledServiceTests(unittest.TestCase):
    def test_calls_are_delegated(self) -> None:
        service, engines = _spied_service(ai_enabled=True)
        txns: list[Transaction] = []

        service.learn_from_correction("acme", Category.SHOPPING, Category.FOOD)
        service.predict_spending(txns, Category.FOOD)
        service.detect_anomalies(txns)
        service.analyze_spending_patterns(txns)
        service.generate_insights(txns, [], [])
        service.generate_challenge(txns, [], [])

        engines["categorizer"].learn_from_correction.assert_called_once_with("acme", Category.SHOPPING, Category.FOOD)
        engines["predictor"].predict_spending.assert_called_once_with(txns, Category.FOOD, 30)
        engines["anomaly_detector"].detect.assert_called_once_with(txns)
        engines["coach"].analyze_patterns.assert_called_once_with(txns)
        engines["coach"].generate_insights.assert_called_once_with(txns, [], [])
        engines["challenge_generator"].generate.assert_called_once_with(txns, [], [])


class BuildServiceTests(unittest.TestCase):
    def test_settings_disable_ai(self) -> None:
        service = build_service(Settings(ai_enabled=False), store=InMemoryCorrectionStore())

        self.assertFalse(service.ai_enabled)

    def test_json_store_persists_corrections_across_instances(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            settings = Settings(corrections_path=Path(tmp) / "corrections.json")

            first = build_service(settings)
            first.learn_from_correction("acme market", Category.SHOPPING, Category.FOOD)
            second = build_service(settings)

            result = second.categorize_transaction("ACME market downtown", 50000)
            self.assertEqual(result.category, Category.FOOD)
            self.assertAlmostEqual(result.confidence, 0.92)
            self.assertIsInstance(JsonFileCorrectionStore(settings.corrections_path).load()[0].updated_at, datetime)


if __name__ == "__main__":
    unittest.main()
