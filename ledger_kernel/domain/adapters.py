"""
ProductLedgerAdapter -- Balance mechanics of the four product variants.

Responsibility:
    Each adapter owns one product type's balance-bearing column and knows
    how a business event changes it.  The posting engine never touches a
    product balance except through an adapter.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Adapters receive
    ORM rows loaded by the engine and mutate them only in apply_delta() and
    transition(); flushing and committing stay with the caller.

Invariants enforced:
    - The delta sign follows double-entry polarity: +amount when the control
      leg of the posting rule sits on the control account's normal side,
      -amount otherwise.  Deposit products have credit-normal LIABILITY
      control accounts; loans have a debit-normal ASSET control account.
    - No balance may end below zero.  A loan outstanding may reach exactly
      zero.
    - Lifecycle: ACTIVE <-> DORMANT, ACTIVE/DORMANT -> CLOSED.  CLOSED is
      terminal and requires a zero balance.
    - Loan disbursement is a one-time WITHDRAWAL for exactly loan_amount.

Failure modes:
    - InsufficientFundsError when the resulting balance would be negative.
    - AccountNotActiveError when posting to a non-ACTIVE account.
    - InvalidStatusTransitionError for a disallowed lifecycle move.
    - UnsupportedTransactionError, AlreadyDisbursedError, InvalidAmountError
      for loan disbursement rule violations.
"""

from abc import ABC
from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.dtos import BalanceDelta, BusinessEvent
from ledger_kernel.domain.posting_policy import rule_for
from ledger_kernel.exceptions import (
    AccountNotActiveError,
    AlreadyDisbursedError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStatusTransitionError,
    UnsupportedTransactionError,
)
from ledger_kernel.models.gl_account import (
    NORMAL_BALANCE,
    AccountClassification,
    ProductType,
)
from ledger_kernel.models.posting import TransactionType
from ledger_kernel.models.product_account import (
    AccountStatus,
    FixedDepositAccount,
    LoanAccount,
    ProductAccount,
    RecurringDepositAccount,
    SavingsAccount,
)

_ALLOWED_TRANSITIONS: dict[AccountStatus, frozenset[AccountStatus]] = {
    AccountStatus.ACTIVE: frozenset({AccountStatus.DORMANT, AccountStatus.CLOSED}),
    AccountStatus.DORMANT: frozenset({AccountStatus.ACTIVE, AccountStatus.CLOSED}),
    AccountStatus.CLOSED: frozenset(),
}


class ProductLedgerAdapter(ABC):
    """
    Capability interface shared by the four product variants.

    Contract:
        Subclasses declare which ORM model they handle, which column holds
        the balance, and the classification of their control account.
        compute_delta() is pure; apply_delta() and transition() mutate the
        row they are given and nothing else.
    """

    product_type: ClassVar[ProductType]
    model: ClassVar[type]
    balance_field: ClassVar[str]
    control_classification: ClassVar[AccountClassification]

    def balance_of(self, account: ProductAccount) -> Decimal:
        return getattr(account, self.balance_field)

    def control_account_id(self, account: ProductAccount) -> UUID:
        """The GL control account captured at opening."""
        return account.gl_account_id

    def ensure_active(self, account: ProductAccount) -> None:
        status = AccountStatus(account.status)
        if status != AccountStatus.ACTIVE:
            raise AccountNotActiveError(account.account_number, status.value)

    def check_supported(self, account: ProductAccount, event: BusinessEvent) -> None:
        """Reject events this variant cannot carry."""
        if event.is_disbursement:
            raise UnsupportedTransactionError(
                self.product_type.value,
                TransactionType(event.transaction_type).value,
                "disbursement applies to loan accounts only",
            )

    def compute_delta(self, account: ProductAccount, event: BusinessEvent) -> BalanceDelta:
        """
        Map a business event to a signed balance change.

        Preconditions: event.amount has already been validated.
        Postconditions: No side effects.

        Raises:
            InsufficientFundsError: If the resulting balance would be negative.
        """
        self.check_supported(account, event)

        rule = rule_for(event.transaction_type)
        normal_side = NORMAL_BALANCE[self.control_classification]
        amount = Decimal(event.amount)
        signed = amount if rule.control_side == normal_side else -amount

        current = self.balance_of(account)
        if current + signed < ZERO:
            raise InsufficientFundsError(
                account.account_number,
                available=str(current),
                requested=str(amount),
            )
        return BalanceDelta(signed_amount=signed, field=self.balance_field)

    def apply_delta(
        self,
        account: ProductAccount,
        delta: BalanceDelta,
        event: BusinessEvent,
        now: datetime,
    ) -> Decimal:
        """Apply a computed delta to the row and return the new balance."""
        new_balance = getattr(account, delta.field) + delta.signed_amount
        setattr(account, delta.field, new_balance)
        return new_balance

    def transition(self, account: ProductAccount, new_status: AccountStatus) -> None:
        """
        Move the account to ``new_status``.

        Raises:
            InvalidStatusTransitionError: If the move is not allowed, or the
                account is being closed with a non-zero balance.
        """
        current = AccountStatus(account.status)
        target = AccountStatus(new_status)
        if target not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransitionError(
                account.account_number, current.value, target.value
            )
        if target == AccountStatus.CLOSED and self.balance_of(account) != ZERO:
            raise InvalidStatusTransitionError(
                account.account_number,
                current.value,
                target.value,
                reason=f"balance {self.balance_of(account)} must be zero to close",
            )
        account.status = target.value


class SavingsAdapter(ProductLedgerAdapter):
    product_type = ProductType.SAVINGS
    model = SavingsAccount
    balance_field = "balance"
    control_classification = AccountClassification.LIABILITY


class FixedDepositAdapter(ProductLedgerAdapter):
    product_type = ProductType.FIXED_DEPOSIT
    model = FixedDepositAccount
    balance_field = "principal_amount"
    control_classification = AccountClassification.LIABILITY


class RecurringDepositAdapter(ProductLedgerAdapter):
    product_type = ProductType.RECURRING_DEPOSIT
    model = RecurringDepositAccount
    balance_field = "total_deposited"
    control_classification = AccountClassification.LIABILITY


class LoanAdapter(ProductLedgerAdapter):
    """
    Loan variant.

    The control account is the debit-normal loan portfolio, so a repayment
    (DEPOSIT) reduces the outstanding balance and the disbursement
    (WITHDRAWAL) raises it from zero to loan_amount.  Nothing else may post
    to a loan before it is disbursed.
    """

    product_type = ProductType.LOAN
    model = LoanAccount
    balance_field = "outstanding_balance"
    control_classification = AccountClassification.ASSET

    def check_supported(self, account: LoanAccount, event: BusinessEvent) -> None:
        tx_type = TransactionType(event.transaction_type)
        if event.is_disbursement:
            if tx_type != TransactionType.WITHDRAWAL:
                raise UnsupportedTransactionError(
                    self.product_type.value,
                    tx_type.value,
                    "a disbursement must be a withdrawal",
                )
            self.check_disbursement(account, event.amount)
            return

        if tx_type == TransactionType.WITHDRAWAL:
            raise UnsupportedTransactionError(
                self.product_type.value,
                tx_type.value,
                "loan withdrawals are only accepted as the disbursement",
            )
        if not account.is_disbursed:
            raise UnsupportedTransactionError(
                self.product_type.value,
                tx_type.value,
                "loan has not been disbursed",
            )

    def check_disbursement(self, account: LoanAccount, amount: Decimal) -> None:
        """
        Raises:
            AlreadyDisbursedError: On a second disbursement.
            InvalidAmountError: If amount differs from loan_amount.
        """
        if account.is_disbursed:
            raise AlreadyDisbursedError(account.account_number)
        if Decimal(amount) != account.loan_amount:
            raise InvalidAmountError(
                str(amount),
                f"disbursement must equal the loan amount {account.loan_amount}",
            )

    def apply_delta(
        self,
        account: LoanAccount,
        delta: BalanceDelta,
        event: BusinessEvent,
        now: datetime,
    ) -> Decimal:
        new_balance = super().apply_delta(account, delta, event, now)
        if event.is_disbursement:
            account.disbursed_at = now
        return new_balance


class AdapterRegistry:
    """Lookup of the adapter for each product type."""

    def __init__(self, adapters: list[ProductLedgerAdapter] | None = None):
        if adapters is None:
            adapters = [
                SavingsAdapter(),
                FixedDepositAdapter(),
                LoanAdapter(),
                RecurringDepositAdapter(),
            ]
        self._adapters: dict[ProductType, ProductLedgerAdapter] = {
            adapter.product_type: adapter for adapter in adapters
        }

    def get(self, product_type: ProductType) -> ProductLedgerAdapter:
        """
        Raises:
            UnsupportedTransactionError: If no adapter handles the type.
        """
        try:
            return self._adapters[ProductType(product_type)]
        except (KeyError, ValueError):
            raise UnsupportedTransactionError(
                str(product_type), "*", "no adapter registered for product type"
            ) from None

    def for_model(self, model: type) -> ProductLedgerAdapter:
        for adapter in self._adapters.values():
            if adapter.model is model:
                return adapter
        raise KeyError(model.__name__)

