"""Persisted entities of the settlement kernel."""

from settlement_kernel.models.deduction import DeductionRecord, DeductionStatus
from settlement_kernel.models.delivery import DeliveryRecord, DeliveryStatus
from settlement_kernel.models.farmer import Farmer
from settlement_kernel.models.payment_transaction import PaymentTransaction
from settlement_kernel.models.price_config import MILK_PRICE_KEY, PriceConfig

__all__ = [
    "Farmer",
    "DeliveryRecord",
    "DeliveryStatus",
    "DeductionRecord",
    "DeductionStatus",
    "PriceConfig",
    "MILK_PRICE_KEY",
    "PaymentTransaction",
]
