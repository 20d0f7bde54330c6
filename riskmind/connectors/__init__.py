"""External collaborator connectors."""

from riskmind.connectors.base import ReferenceDataSource, TextGenerator, UniverseSource
from riskmind.connectors.llm import ChatCompletionClient
from riskmind.connectors.market_data import CsvMarketData
from riskmind.connectors.reasoning import ReasoningService

__all__ = [
    "ChatCompletionClient",
    "CsvMarketData",
    "ReasoningService",
    "ReferenceDataSource",
    "TextGenerator",
    "UniverseSource",
]
