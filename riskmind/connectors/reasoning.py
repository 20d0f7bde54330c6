"""LLM-assisted risk interpretation and decision review."""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from riskmind.connectors.base import TextGenerator
from riskmind.models import Decision, ReviewResult, RiskAssessment, ValidatedTick

RISK_ANALYST_ROLE = "You are a professional financial risk analyst specializing in Indian stock markets."
REVIEWER_ROLE = "You are a senior financial advisor validating AI-generated trading decisions."

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class ReasoningService:
    """Wrap a text generator with prompts and deterministic fallbacks.

    Neither method raises on backend failure: interpretation falls back to a
    one-line numeric summary and review falls back to a low-confidence approval.
    """

    def __init__(self, generator: TextGenerator | None = None) -> None:
        self.generator = generator
        self._log = structlog.get_logger(__name__)

    async def interpret_risk(
        self,
        tick: ValidatedTick,
        risk: RiskAssessment,
        detailed: bool = False,
    ) -> str:
        if self.generator is None:
            return self.fallback_interpretation(risk)
        prompt = self._interpretation_prompt(tick, risk, detailed)
        try:
            text = await self.generator.complete(prompt, system=RISK_ANALYST_ROLE)
        except Exception as exc:
            self._log.warning("risk_interpretation_failed", symbol=tick.symbol, error=str(exc))
            return self.fallback_interpretation(risk)
        return text.strip()

    async def review_decision(
        self,
        tick: ValidatedTick,
        decision: Decision,
        pnl_percent: float = 0.0,
    ) -> ReviewResult:
        if self.generator is None:
            return self.fallback_review()
        prompt = self._review_prompt(tick, decision, pnl_percent)
        try:
            response = await self.generator.complete(prompt, system=REVIEWER_ROLE)
        except Exception as exc:
            self._log.warning("decision_review_failed", symbol=decision.symbol, error=str(exc))
            return self.fallback_review()
        result = self._parse_review(response)
        self._log.info(
            "decision_reviewed",
            symbol=decision.symbol,
            verdict=result.verdict,
            confidence=result.confidence,
        )
        return result

    @staticmethod
    def fallback_review() -> ReviewResult:
        return ReviewResult(
            confidence=0.5,
            concerns="LLM validation unavailable",
            verdict="APPROVE",
            reasoning="Proceeding with rule-based validation",
        )

    @staticmethod
    def fallback_interpretation(risk: RiskAssessment) -> str:
        return (
            f"Risk Level: {risk.risk_level.value} ({risk.risk_score * 100:.0f}%). "
            f"Volatility: {risk.factors.volatility * 100:.1f}%."
        )

    @staticmethod
    def _interpretation_prompt(tick: ValidatedTick, risk: RiskAssessment, detailed: bool) -> str:
        if not detailed:
            return (
                f"Analyze risk for {tick.symbol}: Risk={risk.risk_score:.2f}, "
                f"Vol={risk.factors.volatility * 100:.2f}%, VaR=₹{risk.factors.var95:.2f}.\n"
                "Provide ONE sentence explaining the key risk concern."
            )
        return (
            "You are a financial risk assessment expert analyzing Indian stock market data.\n\n"
            f"Given the following risk metrics for {tick.symbol}:\n"
            f"- Risk Score: {risk.risk_score:.2f} (0-1 scale, higher = riskier)\n"
            f"- Risk Level: {risk.risk_level.value}\n"
            f"- Volatility: {risk.factors.volatility * 100:.2f}%\n"
            f"- Value at Risk (95%): ₹{risk.factors.var95:.2f}\n"
            f"- Current Price: ₹{tick.price:.2f}\n\n"
            "Provide a concise professional interpretation (2-3 sentences) that:\n"
            "1. Explains what this risk level means for the position\n"
            "2. Highlights the most concerning metric\n"
            "3. Suggests immediate attention if risk is critical\n"
        )

    @staticmethod
    def _review_prompt(tick: ValidatedTick, decision: Decision, pnl_percent: float) -> str:
        volatility = tick.volatility_30d if tick.volatility_30d is not None else 0.0
        return (
            "You are validating a trading decision made by an AI system.\n\n"
            f"Stock: {decision.symbol}\n"
            f"Recommended Action: {decision.action.value}\n"
            f"Urgency: {decision.urgency}/10\n\n"
            "Context:\n"
            f"- Risk Score: {decision.risk_score:.2f}\n"
            f"- Current Price: ₹{tick.price:.2f}\n"
            f"- P&L: {pnl_percent:.2f}%\n"
            f"- Volatility: {volatility * 100:.2f}%\n\n"
            f"Rationale: {decision.rationale}\n\n"
            "Respond ONLY with JSON:\n"
            "{\n"
            '  "confidence": 0.85,\n'
            '  "concerns": "None or brief concern",\n'
            '  "verdict": "APPROVE|REVIEW_NEEDED",\n'
            '  "reasoning": "One sentence explanation"\n'
            "}\n"
        )

    def _parse_review(self, raw: str) -> ReviewResult:
        match = _JSON_OBJECT.search(raw)
        if match:
            try:
                data = json.loads(match.group(0))
            except json.JSONDecodeError:
                self._log.warning("review_response_not_json")
            else:
                if isinstance(data, dict):
                    return self._review_from_payload(data)
        lowered = raw.lower()
        return ReviewResult(
            confidence=0.8 if "confident" in lowered else 0.6,
            concerns="None",
            verdict="REVIEW_NEEDED" if "review" in lowered else "APPROVE",
            reasoning=raw[:100],
        )

    @staticmethod
    def _review_from_payload(data: dict[str, Any]) -> ReviewResult:
        try:
            confidence = float(data.get("confidence") or 0.7)
        except (TypeError, ValueError):
            confidence = 0.7
        verdict = str(data.get("verdict") or "APPROVE").upper()
        if verdict not in {"APPROVE", "REVIEW_NEEDED"}:
            verdict = "APPROVE"
        return ReviewResult(
            confidence=max(0.0, min(1.0, confidence)),
            concerns=str(data.get("concerns") or "None"),
            verdict=verdict,
            reasoning=str(data.get("reasoning") or "Decision appears reasonable"),
        )
