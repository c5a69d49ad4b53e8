from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, raw)
        return None


@dataclass(frozen=True)
class Settings:
    ai_enabled: bool = True
    currency_symbol: str = "₸"
    # Amount-only fallback bands, in the app's default currency.
    small_amount_threshold: float = 2000.0
    medium_amount_threshold: float = 10000.0
    corrections_path: Path | None = None
    random_seed: int | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        raw_path = os.getenv("FINANCE_CORRECTIONS_PATH", "").strip()
        return cls(
            ai_enabled=_env_bool("FINANCE_AI_ENABLED", True),
            currency_symbol=os.getenv("FINANCE_CURRENCY_SYMBOL", "₸"),
            small_amount_threshold=_env_float("FINANCE_SMALL_AMOUNT_THRESHOLD", 2000.0),
            medium_amount_threshold=_env_float("FINANCE_MEDIUM_AMOUNT_THRESHOLD", 10000.0),
            corrections_path=Path(raw_path).expanduser() if raw_path else None,
            random_seed=_env_int("FINANCE_RANDOM_SEED"),
        )
