"""
Enrollment Payment Ledger

This module provides:
- Fee assessments per enrollment (read-only to the ledger)
- Payment transactions with a PENDING -> COMPLETED / FAILED lifecycle
- Compare-and-set gateway callbacks that never double-count
- Balance snapshots, fee breakdowns and transaction histories
- In-memory and SQLAlchemy-backed stores
"""

from .models import (
    PaymentStatus,
    FeeAssessment,
    PaymentTransaction,
    BalanceSnapshot,
    describe,
)
from .reporting import ReportingService
from .service import LedgerService

__all__ = [
    "PaymentStatus",
    "FeeAssessment",
    "PaymentTransaction",
    "BalanceSnapshot",
    "describe",
    "LedgerService",
    "ReportingService",
]
