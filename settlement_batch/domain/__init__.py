"""Pure types for bulk settlement."""

from settlement_batch.domain.types import (
    BulkSettlementReport,
    CancellationToken,
    FarmerOutcome,
    FarmerOutcomeKind,
)

__all__ = [
    "BulkSettlementReport",
    "CancellationToken",
    "FarmerOutcome",
    "FarmerOutcomeKind",
]
