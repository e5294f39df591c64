"""
Settlement Kernel

Cooperative milk settlement engine:
- Pending deliveries and outstanding feed deductions become one payment
  transaction per farmer
- Atomic, idempotent settlement with optimistic conflict detection
- Immutable payment ledger
- Snapshotted price-per-liter
"""

__version__ = "0.1.0"
