"""Profit and loss arithmetic for positions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from riskmind.models import Position


@dataclass(frozen=True)
class PnL:
    pnl: float
    pnl_percent: float


class PnLCalculator:
    """Pure P&L helpers; percentages are 0 when the base is 0."""

    @staticmethod
    def realized(entry_price: float, exit_price: float, quantity: float) -> PnL:
        pnl = (exit_price - entry_price) * quantity
        pnl_percent = (exit_price - entry_price) / entry_price * 100 if entry_price != 0 else 0.0
        return PnL(pnl=pnl, pnl_percent=pnl_percent)

    def unrealized(self, entry_price: float, current_price: float, quantity: float) -> PnL:
        return self.realized(entry_price, current_price, quantity)

    def for_position(self, position: Position) -> PnL:
        return self.unrealized(position.entry_price, position.current_price, position.quantity)

    def portfolio(self, positions: Iterable[Position]) -> PnL:
        """Total P&L; percent is relative to total invested (entry * quantity)."""
        total_pnl = 0.0
        total_investment = 0.0
        for position in positions:
            total_pnl += self.for_position(position).pnl
            total_investment += position.entry_price * position.quantity
        percent = total_pnl / total_investment * 100 if total_investment != 0 else 0.0
        return PnL(pnl=total_pnl, pnl_percent=percent)

    @staticmethod
    def margin_utilization(exposed_value: float, available_margin: float) -> float:
        if available_margin == 0:
            return 0.0
        return exposed_value / available_margin * 100

    @staticmethod
    def exposure(current_price: float, quantity: float) -> float:
        return current_price * quantity

    @staticmethod
    def expected_pnl(current_price: float, target_price: float, quantity: float) -> float:
        return (target_price - current_price) * quantity
