"""
Module: ledger_kernel.models.product_account
Responsibility: ORM persistence for the four customer product account
    variants -- savings, fixed deposit, loan, recurring deposit.
Architecture position: Kernel > Models.  May import from db/base.py and
    models/gl_account.py only.

Invariants enforced:
    - (tenant_id, account_number) unique per variant table.
    - gl_account_id (the control account link) is fixed at opening and
      immutable (ORM listeners in db/immutability.py).
    - version is an optimistic counter (SQLAlchemy version_id_col); an
      UPDATE against a stale version raises StaleDataError.
    - Balance columns are Numeric(20, 2) and never negative (CHECK).

Failure modes:
    - IntegrityError on duplicate account number or negative balance.
    - StaleDataError if a row is updated outside its commit unit.

Audit relevance:
    The balance columns are a materialized cache of the posting journal.
    needs_reconciliation marks accounts whose cache can no longer be trusted
    until replayed against the journal.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.models.gl_account import ProductType


class AccountStatus(str, Enum):
    """Lifecycle status of a product account.

    Contract: ACTIVE <-> DORMANT, ACTIVE/DORMANT -> CLOSED.
    Guarantees: CLOSED is terminal.
    """

    ACTIVE = "active"
    DORMANT = "dormant"
    CLOSED = "closed"


class ProductAccountColumns:
    """Columns shared by every product account table.

    A column mixin, not a shared record: each variant maps to its own table
    and names its own balance column.
    """

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    # Owned by the customer-management collaborator; trusted as validated
    customer_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    account_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Control account link, fixed at opening
    gl_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("gl_accounts.id"),
        nullable=False,
    )

    status: Mapped[AccountStatus] = mapped_column(
        String(10),
        default=AccountStatus.ACTIVE,
        nullable=False,
    )

    # Sequence of the last posting applied to this account
    last_posting_seq: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        nullable=False,
    )

    needs_reconciliation: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.account_number} ({self.status})>"


class SavingsAccount(ProductAccountColumns, TrackedBase):
    """Savings account; balance held in ``balance``."""

    __tablename__ = "savings_accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "account_number", name="uq_savings_account_number"),
        CheckConstraint("balance >= 0", name="ck_savings_balance_non_negative"),
    )

    balance: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        default=Decimal("0.00"),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class FixedDepositAccount(ProductAccountColumns, TrackedBase):
    """Fixed deposit; balance held in ``principal_amount``."""

    __tablename__ = "fixed_deposit_accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "account_number", name="uq_fixed_deposit_account_number"),
        CheckConstraint("principal_amount >= 0", name="ck_fixed_deposit_principal_non_negative"),
    )

    principal_amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        default=Decimal("0.00"),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class LoanAccount(ProductAccountColumns, TrackedBase):
    """
    Loan account; balance held in ``outstanding_balance``.

    outstanding_balance starts at zero and is set from loan_amount by the
    one-time disbursement.
    """

    __tablename__ = "loan_accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "account_number", name="uq_loan_account_number"),
        CheckConstraint("outstanding_balance >= 0", name="ck_loan_outstanding_non_negative"),
        CheckConstraint("loan_amount > 0", name="ck_loan_amount_positive"),
    )

    loan_amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        nullable=False,
    )

    outstanding_balance: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        default=Decimal("0.00"),
        nullable=False,
    )

    disbursed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_disbursed(self) -> bool:
        return self.disbursed_at is not None


class RecurringDepositAccount(ProductAccountColumns, TrackedBase):
    """Recurring deposit; balance held in ``total_deposited``."""

    __tablename__ = "recurring_deposit_accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "account_number", name="uq_recurring_deposit_account_number"),
        CheckConstraint("total_deposited >= 0", name="ck_recurring_deposit_total_non_negative"),
    )

    total_deposited: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        default=Decimal("0.00"),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __mapper_args__ = {"version_id_col": version}


ProductAccount = SavingsAccount | FixedDepositAccount | LoanAccount | RecurringDepositAccount


PRODUCT_ACCOUNT_MODELS: dict[ProductType, type] = {
    ProductType.SAVINGS: SavingsAccount,
    ProductType.FIXED_DEPOSIT: FixedDepositAccount,
    ProductType.LOAN: LoanAccount,
    ProductType.RECURRING_DEPOSIT: RecurringDepositAccount,
}
