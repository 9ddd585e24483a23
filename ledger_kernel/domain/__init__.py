"""
Pure domain layer.

This module contains data transfer objects, the posting policy table and
the product ledger adapters.  Nothing here opens a session, reads the clock
or performs I/O; enum types are shared with the models.
"""

from ledger_kernel.domain.adapters import (
    AdapterRegistry,
    FixedDepositAdapter,
    LoanAdapter,
    ProductLedgerAdapter,
    RecurringDepositAdapter,
    SavingsAdapter,
)
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    BalanceDelta,
    BusinessEvent,
    DateRange,
    GLAccountInfo,
    LedgerBalance,
    PostingRecord,
    ProductAccountRef,
    ReconciliationResult,
)
from ledger_kernel.domain.posting_policy import (
    POSTING_RULES,
    LegRole,
    PostingRule,
    rule_for,
)

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # DTOs
    "ProductAccountRef",
    "BusinessEvent",
    "BalanceDelta",
    "GLAccountInfo",
    "PostingRecord",
    "LedgerBalance",
    "DateRange",
    "ReconciliationResult",
    # Policy
    "LegRole",
    "PostingRule",
    "POSTING_RULES",
    "rule_for",
    # Adapters
    "ProductLedgerAdapter",
    "SavingsAdapter",
    "FixedDepositAdapter",
    "LoanAdapter",
    "RecurringDepositAdapter",
    "AdapterRegistry",
]
