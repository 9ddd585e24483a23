"""
JournalService -- Sole write path to the posting journal.

Responsibility:
    Validates the double-entry shape of a posting and inserts it, stamping
    the next per-account sequence number and the clock time.

Architecture position:
    Kernel > Services -- imperative shell, flush-only (BaseService).
    Called by PostingEngine inside its commit unit; nothing else writes
    postings.

Invariants enforced:
    - Exactly one debit and one credit leg, distinct, both active GL
      accounts of the posting's tenant, for a strictly positive amount.
    - account_seq is one above the product account's last_posting_seq, and
      last_posting_seq is advanced in the same flush.
    - Postings are never updated or deleted (db/immutability.py).

Failure modes:
    - InvalidLegsError / GLAccountInactiveError before insert.
    - IntegrityError on flush for a duplicate idempotency key or sequence
      slot; the caller resolves it.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.db.types import validate_amount
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import GLAccountInfo
from ledger_kernel.exceptions import GLAccountInactiveError, InvalidLegsError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.gl_account import ProductType
from ledger_kernel.models.posting import Posting, TransactionType
from ledger_kernel.models.product_account import ProductAccount
from ledger_kernel.services.base import BaseService

logger = get_logger("services.journal")


def validate_legs(tenant_id: UUID, debit: GLAccountInfo, credit: GLAccountInfo) -> None:
    """
    Check that two resolved legs may form one posting for ``tenant_id``.

    Raises:
        InvalidLegsError: If the legs coincide or belong to another tenant.
        GLAccountInactiveError: If either leg is inactive.
    """
    if debit.id == credit.id:
        raise InvalidLegsError(debit.code, credit.code, "debit and credit legs are the same account")
    for leg in (debit, credit):
        if leg.tenant_id != tenant_id:
            raise InvalidLegsError(debit.code, credit.code, f"account {leg.code} belongs to another tenant")
        if not leg.is_active:
            raise GLAccountInactiveError(leg.code)


class JournalService(BaseService[Posting]):
    """
    Appends postings.

    Contract:
        append() flushes one Posting and advances the product account's
        sequence; the caller commits.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def append(
        self,
        tenant_id: UUID,
        transaction_type: TransactionType,
        debit: GLAccountInfo,
        credit: GLAccountInfo,
        amount: Decimal,
        product_type: ProductType,
        account: ProductAccount,
        idempotency_key: str | None = None,
        description: str | None = None,
        is_disbursement: bool = False,
    ) -> Posting:
        """
        Insert one posting against ``account``.

        Preconditions: ``account`` is loaded in this session under the
            caller's commit unit.
        Postconditions: The posting and the advanced sequence are flushed.
        """
        amount = validate_amount(amount)
        validate_legs(tenant_id, debit, credit)

        seq = account.last_posting_seq + 1
        posting = Posting(
            tenant_id=tenant_id,
            transaction_type=TransactionType(transaction_type).value,
            debit_account_id=debit.id,
            credit_account_id=credit.id,
            amount=amount,
            posted_at=self._clock.now(),
            product_type=ProductType(product_type).value,
            product_account_id=account.id,
            account_seq=seq,
            idempotency_key=idempotency_key,
            description=description,
            is_disbursement=is_disbursement,
        )
        account.last_posting_seq = seq
        self.session.add(posting)
        self.session.flush()

        logger.debug(
            "posting_appended",
            extra={
                "posting_id": str(posting.id),
                "account_seq": seq,
                "debit_code": debit.code,
                "credit_code": credit.code,
            },
        )
        return posting
