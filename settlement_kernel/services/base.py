"""
BaseService -- abstract base for kernel services.

Responsibility:
    Provides the common constructor and session-handling contract.  Services
    receive a SQLAlchemy ``Session`` and use ``session.flush()``; the caller
    owns commit/rollback unless a service explicitly documents an
    ``auto_commit`` mode (SettlementService).
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.
    """

    def __init__(self, session: Session):
        self.session = session
