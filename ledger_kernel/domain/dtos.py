"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the engine boundary:
    ProductAccountRef and BusinessEvent (input), BalanceDelta (adapter
    output), GLAccountInfo, PostingRecord and LedgerBalance (read side),
    DateRange and ReconciliationResult.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers.

Invariants enforced:
    - Callers never receive ORM entities; every service returns one of these.
    - Monetary fields are Decimal, never float.

Data flow:
    BusinessEvent -> BalanceDelta -> Posting (ORM) -> PostingRecord
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.models.gl_account import (
    AccountClassification,
    LedgerRole,
    NormalBalance,
    ProductType,
)
from ledger_kernel.models.posting import TransactionType

if TYPE_CHECKING:
    from ledger_kernel.models.gl_account import GLAccount
    from ledger_kernel.models.posting import Posting


def as_utc(value: datetime) -> datetime:
    """Normalize a stored timestamp to aware UTC.

    SQLite hands back naive datetimes for timezone-aware columns.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True)
class ProductAccountRef:
    """Reference to one product account: (product type, account number)."""

    product_type: ProductType
    account_number: str

    def __str__(self) -> str:
        return f"{ProductType(self.product_type).value}:{self.account_number}"


@dataclass(frozen=True)
class BusinessEvent:
    """
    A financial event against one product account.

    Contract:
        ``amount`` is a Decimal; the engine validates it before anything else.
        ``is_disbursement`` is only meaningful for WITHDRAWAL on a loan.
    """

    transaction_type: TransactionType
    account: ProductAccountRef
    amount: Decimal
    idempotency_key: str | None = None
    description: str | None = None
    is_disbursement: bool = False


@dataclass(frozen=True)
class BalanceDelta:
    """Signed change to a product balance and the column it applies to."""

    signed_amount: Decimal
    field: str


@dataclass(frozen=True)
class GLAccountInfo:
    """Read-side view of a Chart of Accounts entry."""

    id: UUID
    tenant_id: UUID
    code: str
    name: str
    classification: AccountClassification
    product_type: ProductType | None
    ledger_role: LedgerRole | None
    is_active: bool

    @property
    def normal_balance(self) -> NormalBalance:
        from ledger_kernel.models.gl_account import NORMAL_BALANCE

        return NORMAL_BALANCE[self.classification]

    @classmethod
    def from_model(cls, model: GLAccount) -> GLAccountInfo:
        return cls(
            id=model.id,
            tenant_id=model.tenant_id,
            code=model.code,
            name=model.name,
            classification=AccountClassification(model.classification),
            product_type=ProductType(model.product_type) if model.product_type else None,
            ledger_role=LedgerRole(model.ledger_role) if model.ledger_role else None,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class PostingRecord:
    """
    A committed posting.

    Contract:
        The read-side DTO for one journal row, enriched with the GL codes of
        both legs and the product account number.

    Guarantees:
        - Immutable (frozen dataclass).
        - Two reads of the same row compare equal (``posted_at`` is always
          aware UTC, enum fields are always enum members).
    """

    id: UUID
    tenant_id: UUID
    transaction_type: TransactionType
    debit_account_id: UUID
    debit_account_code: str
    credit_account_id: UUID
    credit_account_code: str
    amount: Decimal
    posted_at: datetime
    product_type: ProductType | None
    product_account_id: UUID | None
    account_number: str | None
    account_seq: int | None
    idempotency_key: str | None
    description: str | None
    is_disbursement: bool

    @classmethod
    def from_model(
        cls,
        model: Posting,
        debit_account_code: str,
        credit_account_code: str,
        account_number: str | None,
    ) -> PostingRecord:
        return cls(
            id=model.id,
            tenant_id=model.tenant_id,
            transaction_type=TransactionType(model.transaction_type),
            debit_account_id=model.debit_account_id,
            debit_account_code=debit_account_code,
            credit_account_id=model.credit_account_id,
            credit_account_code=credit_account_code,
            amount=model.amount,
            posted_at=as_utc(model.posted_at),
            product_type=ProductType(model.product_type) if model.product_type else None,
            product_account_id=model.product_account_id,
            account_number=account_number,
            account_seq=model.account_seq,
            idempotency_key=model.idempotency_key,
            description=model.description,
            is_disbursement=model.is_disbursement,
        )


@dataclass(frozen=True)
class LedgerBalance:
    """Debit and credit totals of one GL account, signed by its normal side."""

    gl_account_id: UUID
    debit_total: Decimal
    credit_total: Decimal
    normal_balance: NormalBalance

    @property
    def balance(self) -> Decimal:
        if self.normal_balance == NormalBalance.DEBIT:
            return self.debit_total - self.credit_total
        return self.credit_total - self.debit_total


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range for statements."""

    start: date | None = None
    end: date | None = None

    def __post_init__(self) -> None:
        if self.start and self.end and self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}")


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of replaying the journal against a cached product balance."""

    account: ProductAccountRef
    cached_balance: Decimal
    journal_balance: Decimal
    posting_count: int
    flagged: bool

    @property
    def is_balanced(self) -> bool:
        return self.cached_balance == self.journal_balance

    @property
    def difference(self) -> Decimal:
        return self.cached_balance - self.journal_balance
