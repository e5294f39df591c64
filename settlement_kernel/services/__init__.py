"""Kernel services (write side and balance calculator)."""

from settlement_kernel.services.balance_service import BalanceService
from settlement_kernel.services.price_service import PriceService
from settlement_kernel.services.retry_service import RetryService
from settlement_kernel.services.settlement_service import SettlementService

__all__ = [
    "BalanceService",
    "PriceService",
    "RetryService",
    "SettlementService",
]
