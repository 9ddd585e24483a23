"""Domain models for the ledger kernel."""

from ledger_kernel.models.gl_account import (
    NORMAL_BALANCE,
    ROLE_CLASSIFICATION,
    AccountClassification,
    GLAccount,
    LedgerRole,
    NormalBalance,
    ProductType,
)
from ledger_kernel.models.posting import Posting, TransactionType
from ledger_kernel.models.product_account import (
    AccountStatus,
    FixedDepositAccount,
    PRODUCT_ACCOUNT_MODELS,
    LoanAccount,
    ProductAccount,
    RecurringDepositAccount,
    SavingsAccount,
)
from ledger_kernel.models.tenant import Tenant

__all__ = [
    "Tenant",
    "GLAccount",
    "AccountClassification",
    "NormalBalance",
    "NORMAL_BALANCE",
    "ProductType",
    "LedgerRole",
    "ROLE_CLASSIFICATION",
    "AccountStatus",
    "SavingsAccount",
    "FixedDepositAccount",
    "LoanAccount",
    "RecurringDepositAccount",
    "ProductAccount",
    "PRODUCT_ACCOUNT_MODELS",
    "Posting",
    "TransactionType",
]
