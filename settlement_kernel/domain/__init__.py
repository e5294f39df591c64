"""Pure domain core: clock, period filter, DTOs and balance arithmetic."""

from settlement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from settlement_kernel.domain.dtos import (
    DeductionLine,
    DeliveryLine,
    FarmerBalance,
    MonthSummary,
    OutstandingDeduction,
    PendingDelivery,
    PriceInfo,
    SettlementResult,
    TransactionInfo,
)
from settlement_kernel.domain.period import PeriodFilter, month_label

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "PeriodFilter",
    "month_label",
    "PendingDelivery",
    "OutstandingDeduction",
    "DeliveryLine",
    "DeductionLine",
    "FarmerBalance",
    "SettlementResult",
    "PriceInfo",
    "TransactionInfo",
    "MonthSummary",
]
