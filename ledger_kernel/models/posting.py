"""
Module: ledger_kernel.models.posting
Responsibility: ORM persistence for postings -- the append-only transaction
    journal and the single source of financial truth.
Architecture position: Kernel > Models.  May import from db/base.py and
    models/gl_account.py only.

Invariants enforced:
    - Idempotency: UNIQUE (tenant_id, idempotency_key).  NULL keys are not
      constrained.
    - Double entry: CHECK amount > 0 and CHECK debit_account_id <>
      credit_account_id.
    - Per-account ordering: UNIQUE (product_type, product_account_id,
      account_seq) -- two commits can never claim the same slot.
    - Immutability: ORM listeners (db/immutability.py) reject every UPDATE
      and DELETE.

Failure modes:
    - IntegrityError on a duplicate idempotency key or sequence slot.
    - ImmutabilityViolationError on UPDATE/DELETE.

Audit relevance:
    Product balances are a cache of these rows; reconciliation replays them.
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
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.models.gl_account import ProductType


class TransactionType(str, Enum):
    """Business event types that produce a posting."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    INTEREST_CREDIT = "interest_credit"
    INTEREST_DEBIT = "interest_debit"
    FEE = "fee"
    PENALTY = "penalty"


class Posting(TrackedBase):
    """
    One committed double-entry posting.

    Contract:
        Exactly one debit leg and one credit leg, both GL accounts of the
        posting's tenant, for a strictly positive amount.  Never updated or
        deleted -- corrections are new offsetting postings.
    """

    __tablename__ = "postings"

    __table_args__ = (
        UniqueConstraint("tenant_id", "idempotency_key", name="uq_posting_idempotency"),
        UniqueConstraint(
            "product_type",
            "product_account_id",
            "account_seq",
            name="uq_posting_account_seq",
        ),
        CheckConstraint("amount > 0", name="ck_posting_amount_positive"),
        CheckConstraint(
            "debit_account_id <> credit_account_id",
            name="ck_posting_distinct_legs",
        ),
        Index("idx_posting_tenant_debit", "tenant_id", "debit_account_id"),
        Index("idx_posting_tenant_credit", "tenant_id", "credit_account_id"),
        Index("idx_posting_product_account", "product_type", "product_account_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(20),
        nullable=False,
    )

    debit_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("gl_accounts.id"),
        nullable=False,
    )

    credit_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("gl_accounts.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        nullable=False,
    )

    posted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Back-reference to the originating product account
    product_type: Mapped[ProductType | None] = mapped_column(
        String(30),
        nullable=True,
    )

    product_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    account_seq: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
    )

    idempotency_key: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    is_disbursement: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<Posting {self.transaction_type} {self.amount} "
            f"dr={self.debit_account_id} cr={self.credit_account_id}>"
        )
