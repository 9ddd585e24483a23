"""Kernel services: registry, accounts, journal, posting engine."""

from ledger_kernel.services.account_locks import AccountLockManager
from ledger_kernel.services.account_service import (
    AccountService,
    CustomerDirectory,
    ProductAccountInfo,
)
from ledger_kernel.services.coa_registry import ChartOfAccountsRegistry
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.posting_engine import PostingEngine
from ledger_kernel.services.reconciliation_service import ReconciliationService
from ledger_kernel.services.tenant_service import TenantInfo, TenantService

__all__ = [
    "AccountLockManager",
    "AccountService",
    "CustomerDirectory",
    "ProductAccountInfo",
    "ChartOfAccountsRegistry",
    "JournalService",
    "PostingEngine",
    "ReconciliationService",
    "TenantInfo",
    "TenantService",
]
