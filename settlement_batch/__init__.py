"""
Settlement Batch

Bulk settlement across all farmers and the SettlementOrchestrator
composition root.
"""

from settlement_batch.domain.types import (
    BulkSettlementReport,
    CancellationToken,
    FarmerOutcome,
    FarmerOutcomeKind,
)
from settlement_batch.orchestrator import SettlementOrchestrator
from settlement_batch.services.bulk_settlement import BulkSettlementExecutor

__all__ = [
    "BulkSettlementExecutor",
    "BulkSettlementReport",
    "CancellationToken",
    "FarmerOutcome",
    "FarmerOutcomeKind",
    "SettlementOrchestrator",
]
