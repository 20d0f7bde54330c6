"""RiskMind trading-decision core."""

__version__ = "0.1.0"
