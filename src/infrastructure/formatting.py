from __future__ import annotations

from abc import ABC, abstractmethod


class AmountFormatter(ABC):
    """Renders raw amounts for insight and alert templates."""

    @abstractmethod
    def format(self, amount: float) -> str:
        raise NotImplementedError


class CurrencyFormatter(AmountFormatter):
    def __init__(self, symbol: str = "₸", thousands_separator: str = " ") -> None:
        self._symbol = symbol
        self._separator = thousands_separator

    def format(self, amount: float) -> str:
        grouped = f"{round(amount):,}".replace(",", self._separator)
        return f"{grouped} {self._symbol}".strip()
