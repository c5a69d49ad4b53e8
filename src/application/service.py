from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta

from analysis._transactions_support import Clock
from analysis.anomalies import AnomalyDetector
from analysis.categorization import CategorizationEngine
from analysis.challenges import ChallengeGenerator
from analysis.coaching import CoachingEngine
from analysis.prediction import PredictionEngine
from domain.models import Category, RiskLevel, Trend
from domain.schemas import (
    AnomalyAlert,
    Budget,
    BufferRecommendation,
    CategorizationResult,
    Challenge,
    ChallengeTemplate,
    Goal,
    GoalETA,
    Insight,
    SpendingPattern,
    SpendingPrediction,
    Transaction,
)
from infrastructure.formatting import CurrencyFormatter
from infrastructure.persistence.correction_store import (
    CorrectionStore,
    InMemoryCorrectionStore,
    JsonFileCorrectionStore,
)
from infrastructure.settings import Settings

logger = logging.getLogger(__name__)


class FinanceAIService:
    """
    Single entry point for the analysis engines.

    `ai_enabled` is an opt-out switch: while it is off every method answers
    with a neutral placeholder and no engine is called.
    """

    def __init__(
        self,
        categorizer: CategorizationEngine,
        predictor: PredictionEngine,
        anomaly_detector: AnomalyDetector,
        coach: CoachingEngine,
        challenge_generator: ChallengeGenerator,
        ai_enabled: bool = True,
        now: Clock = datetime.now,
    ):
        self._categorizer = categorizer
        self._predictor = predictor
        self._anomaly_detector = anomaly_detector
        self._coach = coach
        self._challenge_generator = challenge_generator
        self._ai_enabled = ai_enabled
        self._now = now

    @property
    def ai_enabled(self) -> bool:
        return self._ai_enabled

    def set_ai_enabled(self, enabled: bool) -> None:
        logger.info("AI features %s", "enabled" if enabled else "disabled")
        self._ai_enabled = enabled

    def categorize_transaction(self, description: str, amount: float) -> CategorizationResult:
        if not self._ai_enabled:
            return CategorizationResult(category=Category.OTHER, confidence=0)
        return self._categorizer.categorize(description, amount)

    def learn_from_correction(
        self,
        description: str,
        suggested_category: Category,
        correct_category: Category,
    ) -> None:
        if not self._ai_enabled:
            logger.info("Skipping correction learning: AI disabled")
            return
        self._categorizer.learn_from_correction(description, suggested_category, correct_category)

    def predict_spending(
        self,
        transactions: list[Transaction],
        category: Category,
        days_ahead: int = 30,
    ) -> SpendingPrediction:
        if not self._ai_enabled:
            return SpendingPrediction(
                predicted_amount=0,
                confidence=0,
                trend=Trend.STABLE,
                recommendation="AI predictions are disabled",
            )
        return self._predictor.predict_spending(transactions, category, days_ahead)

    def recommend_buffer(self, budget: Budget, transactions: list[Transaction]) -> BufferRecommendation:
        if not self._ai_enabled:
            return BufferRecommendation(recommended_buffer=round(budget.limit * 0.1), reason="Standard 10% buffer")
        return self._predictor.recommend_buffer(budget, transactions)

    def calculate_goal_eta(self, goal: Goal, transactions: list[Transaction]) -> GoalETA:
        if not self._ai_enabled:
            # Default three-month plan.
            return GoalETA(
                estimated_date=self._now().date() + timedelta(days=90),
                recommended_weekly_saving=max(goal.remaining, 0) / 12,
                risk_level=RiskLevel.MEDIUM,
                note="AI calculations are disabled. Showing a standard three-month plan.",
            )
        return self._predictor.calculate_goal_eta(goal, transactions)

    def generate_insights(
        self,
        transactions: list[Transaction],
        budgets: list[Budget],
        goals: list[Goal],
    ) -> list[Insight]:
        if not self._ai_enabled:
            return []
        return self._coach.generate_insights(transactions, budgets, goals)

    def analyze_spending_patterns(self, transactions: list[Transaction]) -> list[SpendingPattern]:
        if not self._ai_enabled:
            return []
        return self._coach.analyze_patterns(transactions)

    def detect_anomalies(self, transactions: list[Transaction]) -> list[AnomalyAlert]:
        if not self._ai_enabled:
            return []
        return self._anomaly_detector.detect(transactions)

    def generate_challenge(
        self,
        transactions: list[Transaction],
        budgets: list[Budget],
        completed_challenges: list[Challenge],
    ) -> ChallengeTemplate | None:
        if not self._ai_enabled:
            return None
        return self._challenge_generator.generate(transactions, budgets, completed_challenges)


def build_service(settings: Settings | None = None, store: CorrectionStore | None = None) -> FinanceAIService:
    settings = settings or Settings.from_env()
    if store is None:
        store = (
            JsonFileCorrectionStore(settings.corrections_path)
            if settings.corrections_path is not None
            else InMemoryCorrectionStore()
        )
    formatter = CurrencyFormatter(symbol=settings.currency_symbol)
    logger.info(
        "Building FinanceAIService ai_enabled=%s store=%s currency=%s",
        settings.ai_enabled,
        type(store).__name__,
        settings.currency_symbol,
    )
    return FinanceAIService(
        categorizer=CategorizationEngine(
            store=store,
            small_amount_threshold=settings.small_amount_threshold,
            medium_amount_threshold=settings.medium_amount_threshold,
        ),
        predictor=PredictionEngine(formatter=formatter),
        anomaly_detector=AnomalyDetector(formatter=formatter),
        coach=CoachingEngine(formatter=formatter),
        challenge_generator=ChallengeGenerator(rng=random.Random(settings.random_seed)),
        ai_enabled=settings.ai_enabled,
    )
