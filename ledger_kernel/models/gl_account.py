"""
Module: ledger_kernel.models.gl_account
Responsibility: ORM persistence for the tenant-scoped Chart of Accounts (CoA)
    -- the target of every posting leg.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (tenant_id, code) is unique (uq_gl_account_tenant_code).
    - At most one ACTIVE account per (tenant, classification, product_type)
      when product_type is set (partial unique index uq_gl_active_control).
    - At most one ACTIVE account per (tenant, ledger_role) when ledger_role
      is set (partial unique index uq_gl_active_role).
    - Structural fields are immutable after insert (ORM listeners in
      db/immutability.py); only name and is_active may change.

Failure modes:
    - IntegrityError on duplicate code or a second active control/role
      account (translated to DuplicateCodeError / AmbiguousMappingError by
      ChartOfAccountsRegistry).
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class AccountClassification(str, Enum):
    """Account classification in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    INCOME = "income"
    EXPENSE = "expense"
    EQUITY = "equity"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


NORMAL_BALANCE: dict[AccountClassification, NormalBalance] = {
    AccountClassification.ASSET: NormalBalance.DEBIT,
    AccountClassification.EXPENSE: NormalBalance.DEBIT,
    AccountClassification.LIABILITY: NormalBalance.CREDIT,
    AccountClassification.INCOME: NormalBalance.CREDIT,
    AccountClassification.EQUITY: NormalBalance.CREDIT,
}


class ProductType(str, Enum):
    """Customer product categories mirrored in the general ledger."""

    SAVINGS = "savings"
    FIXED_DEPOSIT = "fixed_deposit"
    LOAN = "loan"
    RECURRING_DEPOSIT = "recurring_deposit"


class LedgerRole(str, Enum):
    """Counter-leg roles used by the posting policy table."""

    CASH = "cash"
    INTEREST_EXPENSE = "interest_expense"
    INTEREST_INCOME = "interest_income"
    FEE_INCOME = "fee_income"
    PENALTY_INCOME = "penalty_income"


# Classification each ledger role must carry
ROLE_CLASSIFICATION: dict[LedgerRole, AccountClassification] = {
    LedgerRole.CASH: AccountClassification.ASSET,
    LedgerRole.INTEREST_EXPENSE: AccountClassification.EXPENSE,
    LedgerRole.INTEREST_INCOME: AccountClassification.INCOME,
    LedgerRole.FEE_INCOME: AccountClassification.INCOME,
    LedgerRole.PENALTY_INCOME: AccountClassification.INCOME,
}


class GLAccount(TrackedBase):
    """
    Chart of Accounts entry for one tenant.

    Contract:
        A GL account belongs to exactly one tenant.  Accounts tagged with a
        product_type act as the control account of that product category;
        accounts tagged with a ledger_role act as the counter-leg for the
        posting policy table.  Neither tag may change after creation.

    Non-goals:
        - No hierarchy, currency, or period data; reporting is out of scope.
    """

    __tablename__ = "gl_accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_gl_account_tenant_code"),
        Index(
            "uq_gl_active_control",
            "tenant_id",
            "classification",
            "product_type",
            unique=True,
            postgresql_where=text("is_active AND product_type IS NOT NULL"),
            sqlite_where=text("is_active AND product_type IS NOT NULL"),
        ),
        Index(
            "uq_gl_active_role",
            "tenant_id",
            "ledger_role",
            unique=True,
            postgresql_where=text("is_active AND ledger_role IS NOT NULL"),
            sqlite_where=text("is_active AND ledger_role IS NOT NULL"),
        ),
        Index("idx_gl_account_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    classification: Mapped[AccountClassification] = mapped_column(
        String(20),
        nullable=False,
    )

    # Non-null only for product control accounts
    product_type: Mapped[ProductType | None] = mapped_column(
        String(30),
        nullable=True,
    )

    # Non-null only for policy counter-leg accounts
    ledger_role: Mapped[LedgerRole | None] = mapped_column(
        String(30),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<GLAccount {self.code}: {self.name}>"

    @property
    def normal_balance(self) -> NormalBalance:
        """Normal balance side derived from the classification."""
        return NORMAL_BALANCE[AccountClassification(self.classification)]
