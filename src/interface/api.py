from __future__ import annotations

from typing import List, Optional

from fastapi import FastAPI

from application.service import FinanceAIService, build_service
from domain.schemas import (
    AIToggleRequest,
    AnomalyAlert,
    BufferRecommendation,
    BufferRequest,
    CategorizationResult,
    CategorizeRequest,
    ChallengeTemplate,
    CorrectionRequest,
    FinanceSnapshot,
    GoalETA,
    GoalETARequest,
    Insight,
    SpendingPattern,
    SpendingPrediction,
    SpendingPredictionRequest,
)


def create_app(service: FinanceAIService | None = None) -> FastAPI:
    app = FastAPI(title="Finance AI Engine")
    app.state.service = service or build_service()

    def _service() -> FinanceAIService:
        return app.state.service

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "ai_enabled": _service().ai_enabled}

    @app.put("/settings/ai")
    def toggle_ai(request: AIToggleRequest) -> dict[str, bool]:
        _service().set_ai_enabled(request.enabled)
        return {"ai_enabled": _service().ai_enabled}

    @app.post("/categorize", response_model=CategorizationResult)
    def categorize(request: CategorizeRequest) -> CategorizationResult:
        return _service().categorize_transaction(request.description, request.amount)

    @app.post("/corrections", status_code=204)
    def learn(request: CorrectionRequest) -> None:
        _service().learn_from_correction(request.description, request.suggested_category, request.correct_category)

    @app.post("/predictions/spending", response_model=SpendingPrediction)
    def predict_spending(request: SpendingPredictionRequest) -> SpendingPrediction:
        return _service().predict_spending(request.transactions, request.category, request.days_ahead)

    @app.post("/budgets/buffer", response_model=BufferRecommendation)
    def recommend_buffer(request: BufferRequest) -> BufferRecommendation:
        return _service().recommend_buffer(request.budget, request.transactions)

    @app.post("/goals/eta", response_model=GoalETA)
    def goal_eta(request: GoalETARequest) -> GoalETA:
        return _service().calculate_goal_eta(request.goal, request.transactions)

    @app.post("/insights", response_model=List[Insight])
    def insights(snapshot: FinanceSnapshot) -> list[Insight]:
        return _service().generate_insights(snapshot.transactions, snapshot.budgets, snapshot.goals)

    @app.post("/patterns", response_model=List[SpendingPattern])
    def patterns(snapshot: FinanceSnapshot) -> list[SpendingPattern]:
        return _service().analyze_spending_patterns(snapshot.transactions)

    @app.post("/anomalies", response_model=List[AnomalyAlert])
    def anomalies(snapshot: FinanceSnapshot) -> list[AnomalyAlert]:
        return _service().detect_anomalies(snapshot.transactions)

    @app.post("/challenges", response_model=Optional[ChallengeTemplate])
    def challenge(snapshot: FinanceSnapshot) -> ChallengeTemplate | None:
        return _service().generate_challenge(snapshot.transactions, snapshot.budgets, snapshot.completed_challenges)

    return app
