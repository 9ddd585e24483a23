"""
PostingPolicy -- Fixed transaction-type to leg-role table.

Responsibility:
    Maps each TransactionType to the pair of leg roles (debit, credit) that
    its posting uses.  One leg is always the product's control account; the
    other is a tenant-wide role account resolved through the Chart of
    Accounts registry.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Every posting has exactly one debit leg and one credit leg.
    - Exactly one leg of every rule is PRODUCT_CONTROL.

    Type             | Debit            | Credit
    -----------------|------------------|-----------------
    DEPOSIT          | CASH             | PRODUCT_CONTROL
    WITHDRAWAL       | PRODUCT_CONTROL  | CASH
    INTEREST_CREDIT  | INTEREST_EXPENSE | PRODUCT_CONTROL
    INTEREST_DEBIT   | PRODUCT_CONTROL  | INTEREST_INCOME
    FEE              | PRODUCT_CONTROL  | FEE_INCOME
    PENALTY          | PRODUCT_CONTROL  | PENALTY_INCOME

    A loan disbursement is a WITHDRAWAL: the loan portfolio control account
    (debit-normal) is debited and cash is credited.
"""

from dataclasses import dataclass
from enum import Enum

from ledger_kernel.models.gl_account import LedgerRole, NormalBalance
from ledger_kernel.models.posting import TransactionType


class LegRole(str, Enum):
    """Where a posting leg is resolved from."""

    PRODUCT_CONTROL = "product_control"
    CASH = LedgerRole.CASH.value
    INTEREST_EXPENSE = LedgerRole.INTEREST_EXPENSE.value
    INTEREST_INCOME = LedgerRole.INTEREST_INCOME.value
    FEE_INCOME = LedgerRole.FEE_INCOME.value
    PENALTY_INCOME = LedgerRole.PENALTY_INCOME.value

    @property
    def ledger_role(self) -> LedgerRole:
        """The registry role for a counter leg."""
        if self is LegRole.PRODUCT_CONTROL:
            raise ValueError("PRODUCT_CONTROL is resolved from the product account")
        return LedgerRole(self.value)


@dataclass(frozen=True)
class PostingRule:
    debit: LegRole
    credit: LegRole

    @property
    def control_side(self) -> NormalBalance:
        """Side on which the product control account appears."""
        if self.debit is LegRole.PRODUCT_CONTROL:
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT

    @property
    def counter_role(self) -> LegRole:
        if self.debit is LegRole.PRODUCT_CONTROL:
            return self.credit
        return self.debit


POSTING_RULES: dict[TransactionType, PostingRule] = {
    TransactionType.DEPOSIT: PostingRule(LegRole.CASH, LegRole.PRODUCT_CONTROL),
    TransactionType.WITHDRAWAL: PostingRule(LegRole.PRODUCT_CONTROL, LegRole.CASH),
    TransactionType.INTEREST_CREDIT: PostingRule(LegRole.INTEREST_EXPENSE, LegRole.PRODUCT_CONTROL),
    TransactionType.INTEREST_DEBIT: PostingRule(LegRole.PRODUCT_CONTROL, LegRole.INTEREST_INCOME),
    TransactionType.FEE: PostingRule(LegRole.PRODUCT_CONTROL, LegRole.FEE_INCOME),
    TransactionType.PENALTY: PostingRule(LegRole.PRODUCT_CONTROL, LegRole.PENALTY_INCOME),
}


def rule_for(transaction_type: TransactionType) -> PostingRule:
    """Return the posting rule for a transaction type.

    Raises:
        ValueError: For a value that is not a TransactionType.
    """
    return POSTING_RULES[TransactionType(transaction_type)]
