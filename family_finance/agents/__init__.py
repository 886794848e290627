"""AI agents package."""

from family_finance.agents.ai_agents import (
    FinancialAnalysisAgent,
    ReceiptExtractionAgent,
)

__all__ = ["FinancialAnalysisAgent", "ReceiptExtractionAgent"]
