"""Read-only selectors."""

from settlement_kernel.selectors.record_selector import RecordSelector
from settlement_kernel.selectors.summary_selector import PeriodSummarySelector

__all__ = ["RecordSelector", "PeriodSummarySelector"]
