from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from domain.models import (
    AnomalyKind,
    BudgetPeriod,
    Category,
    ChallengeKind,
    InsightKind,
    Priority,
    RiskLevel,
    Severity,
    TransactionKind,
    Trend,
)


def _coerce_datetime(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            # Day bucketing is done on local calendar days.
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return value
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return value
        return _coerce_datetime(parsed)
    return value


def _coerce_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return _coerce_datetime(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        # Canonical format first.
        for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y"):
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        coerced = _coerce_datetime(text)
        if isinstance(coerced, datetime):
            return coerced.date()
    return value


# ---- input records ----

class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str
    amount: float = Field(ge=0)
    category: Category = Category.OTHER
    description: str = ""
    date: datetime
    kind: TransactionKind = TransactionKind.EXPENSE
    ai_suggested: Optional[bool] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Any:
        return _coerce_datetime(value)

    @property
    def is_expense(self) -> bool:
        return self.kind == TransactionKind.EXPENSE

    @property
    def day(self) -> date:
        return self.date.date()


class Budget(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str
    category: Category
    limit: float = Field(gt=0)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    start_date: date
    end_date: date

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def coerce_dates(cls, value: Any) -> Any:
        return _coerce_date(value)

    @model_validator(mode="after")
    def validate_order(self) -> "Budget":
        if self.start_date >= self.end_date:
            raise ValueError("budget start_date must be before end_date")
        return self

    def covers(self, transaction: Transaction) -> bool:
        return self.start_date <= transaction.day <= self.end_date


class Goal(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str
    name: str
    target_amount: float = Field(gt=0)
    current_amount: float = Field(default=0, ge=0)
    deadline: date
    category: str = "general"
    created_at: Optional[datetime] = None

    @field_validator("deadline", mode="before")
    @classmethod
    def coerce_deadline(cls, value: Any) -> Any:
        return _coerce_date(value)

    @field_validator("created_at", mode="before")
    @classmethod
    def coerce_created_at(cls, value: Any) -> Any:
        return _coerce_datetime(value)

    @property
    def remaining(self) -> float:
        return self.target_amount - self.current_amount

    @property
    def progress(self) -> float:
        return self.current_amount / self.target_amount


class Badge(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str
    name: str
    icon: str
    description: str
    category: Union[Category, str] = "general"


class ChallengeTemplate(BaseModel):
    """A challenge offered to the user before acceptance: no id, progress or streak yet."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    title: str
    description: str
    kind: ChallengeKind
    target_category: Optional[Category] = None
    target_amount: Optional[float] = None
    duration_days: int = Field(gt=0)
    start_date: datetime
    end_date: datetime
    badge: Optional[Badge] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def coerce_dates(cls, value: Any) -> Any:
        return _coerce_datetime(value)

    def completion_key(self) -> tuple[str, str]:
        return self.kind.value, self.target_category.value if self.target_category else "general"


class Challenge(ChallengeTemplate):
    id: str
    progress: float = 0
    streak: int = 0
    completed: bool = False


# ---- engine results ----

class CategorizationResult(BaseModel):
    category: Category
    confidence: float = Field(ge=0, le=1)
    alternatives: Optional[List[Category]] = None


class SpendingPrediction(BaseModel):
    predicted_amount: float
    confidence: float
    trend: Trend
    recommendation: str


class BufferRecommendation(BaseModel):
    recommended_buffer: float
    reason: str


class GoalETA(BaseModel):
    estimated_date: date
    recommended_weekly_saving: float
    risk_level: RiskLevel
    note: str


class SpendingPattern(BaseModel):
    category: Category
    average_daily: float
    average_weekly: float
    average_monthly: float
    previous_monthly: float = 0
    trend: Trend


class Insight(BaseModel):
    id: str
    kind: InsightKind
    title: str
    message: str
    actionable: str
    priority: Priority
    category: Optional[Category] = None
    date: datetime
    read: bool = False

    def mark_read(self) -> "Insight":
        return self.model_copy(update={"read": True})


class AnomalyAlert(BaseModel):
    id: str
    transaction_id: str
    kind: AnomalyKind
    severity: Severity
    message: str
    suggestion: str
    date: datetime
    dismissed: bool = False


# ---- API request bodies ----

class CategorizeRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    description: str
    amount: float = Field(ge=0)


class CorrectionRequest(BaseModel):
    description: str
    suggested_category: Category
    correct_category: Category


class SpendingPredictionRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    transactions: List[Transaction] = Field(default_factory=list)
    category: Category
    days_ahead: int = Field(default=30, gt=0)


class BufferRequest(BaseModel):
    budget: Budget
    transactions: List[Transaction] = Field(default_factory=list)


class GoalETARequest(BaseModel):
    goal: Goal
    transactions: List[Transaction] = Field(default_factory=list)


class FinanceSnapshot(BaseModel):
    """Everything the persistence collaborator hands over for one analysis pass."""

    transactions: List[Transaction] = Field(default_factory=list)
    budgets: List[Budget] = Field(default_factory=list)
    goals: List[Goal] = Field(default_factory=list)
    completed_challenges: List[Challenge] = Field(default_factory=list)


class AIToggleRequest(BaseModel):
    enabled: bool
