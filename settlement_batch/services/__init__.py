"""Bulk settlement services."""

from settlement_batch.services.bulk_settlement import BulkSettlementExecutor

__all__ = ["BulkSettlementExecutor"]
