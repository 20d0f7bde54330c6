"""Decision rationale prose: LLM-backed generator plus templated fallback."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from riskmind.connectors.base import TextGenerator
from riskmind.models import ActionType

ADVISOR_ROLE = (
    "You are a professional financial advisor specializing in Indian stock markets."
)

DECISION_RATIONALE_PROMPT = """\
You are a professional financial advisor analyzing Indian stock markets. Provide a clear, concise rationale for the trading decision.

**Stock Analysis:**
- Symbol: {symbol}
- Sector: {sector}
- Current Price: ₹{current_price:.2f}
- Entry Price: ₹{entry_price:.2f}
- Change: {change_percent:.2f}%

**Performance:**
- Profit/Loss: {pnl_percent:.2f}% (₹{pnl_amount:.2f})
- Position Size: {quantity:g} shares (₹{exposure:.2f})

**Risk Metrics:**
- Risk Score: {risk_score:.2f}/1.0 ({risk_level})
- Volatility (30d): {volatility_pct:.2f}%
- Sentiment: {sentiment_text} ({sentiment_label})
- Value at Risk (95%): ₹{var95:.2f}

**Recommended Action: {action}**
**Urgency: {urgency}/10**

**Task:**
Provide a 3-sentence rationale covering:
1. **Why this action is recommended** based on the metrics above
2. **Risks if the recommendation is ignored**
3. **Expected outcome** if the action is taken

Be specific, data-driven, and actionable. Use Indian Rupee (₹) for amounts."""


@dataclass(frozen=True)
class NarrativeContext:
    """Structured inputs handed to a narrative generator."""

    symbol: str
    current_price: float
    entry_price: float
    change_percent: float
    pnl_percent: float
    pnl_amount: float
    quantity: float
    exposure: float
    risk_score: float
    risk_level: str
    volatility: float
    var95: float
    action: ActionType
    urgency: int
    sentiment: float | None = None
    sector: str | None = None


def sentiment_label(sentiment: float | None) -> str:
    if sentiment is None:
        return "Neutral"
    if sentiment > 0.5:
        return "Very Positive"
    if sentiment > 0.2:
        return "Positive"
    if sentiment > -0.2:
        return "Neutral"
    if sentiment > -0.5:
        return "Negative"
    return "Very Negative"


def render_prompt(context: NarrativeContext) -> str:
    return DECISION_RATIONALE_PROMPT.format(
        symbol=context.symbol,
        sector=context.sector or "Unknown",
        current_price=context.current_price,
        entry_price=context.entry_price,
        change_percent=context.change_percent,
        pnl_percent=context.pnl_percent,
        pnl_amount=context.pnl_amount,
        quantity=context.quantity,
        exposure=context.exposure,
        risk_score=context.risk_score,
        risk_level=context.risk_level,
        volatility_pct=context.volatility * 100,
        sentiment_text=f"{context.sentiment:.2f}" if context.sentiment is not None else "N/A",
        sentiment_label=sentiment_label(context.sentiment),
        var95=context.var95,
        action=context.action.value,
        urgency=context.urgency,
    )


def fallback_rationale(context: NarrativeContext) -> str:
    """Templated rationale built only from numeric thresholds."""
    parts = [f"Recommended action: {context.action.value}. "]
    if context.risk_score > 0.7:
        parts.append(
            f"High risk level ({context.risk_score * 100:.0f}%) indicates increased downside potential. "
        )
    if context.pnl_percent < -10:
        parts.append(f"Position is showing significant loss of {context.pnl_percent:.1f}%. ")
    if context.sentiment is not None and context.sentiment < -0.2:
        parts.append("Negative market sentiment adds to risk factors. ")
    parts.append("Taking action now may help protect capital and optimize portfolio performance.")
    return "".join(parts)


class LLMNarrativeGenerator:
    """Narrative generator backed by a chat-completion text generator.

    Errors from the backend propagate; the decision engine owns the fallback.
    """

    def __init__(self, generator: TextGenerator) -> None:
        self.generator = generator
        self._log = structlog.get_logger(__name__)

    async def generate(self, context: NarrativeContext) -> str:
        self._log.info("narrative_requested", symbol=context.symbol, action=context.action.value)
        text = await self.generator.complete(render_prompt(context), system=ADVISOR_ROLE)
        return text.strip()
