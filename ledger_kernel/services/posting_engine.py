"""
PostingEngine -- Atomic product-balance + journal commits.

Responsibility:
    Turns a BusinessEvent against one product account into one balanced
    posting and commits it together with the product balance mutation.
    Owns the per-account commit unit, idempotent replay, and the
    reconciliation flag for failed commits.

Architecture position:
    Kernel > Services -- the outermost kernel component.  Unlike the
    flush-only services it owns its sessions: it takes a session factory
    and opens a short read session for validation and a separate session
    for the commit unit.

Pipeline:
    0. validate_amount()                          -> InvalidAmountError
    1. load product account (tenant-scoped)       -> NotFoundError
    2. adapter.ensure_active()                    -> AccountNotActiveError
    3. idempotency lookup                         -> replay existing posting
    4. resolve legs (policy table + registry)     -> InvalidLegsError
    5. adapter.compute_delta()                    -> InsufficientFundsError
    6. commit unit: lock, SELECT ... FOR UPDATE, re-run 2/3/5, append
       posting, apply delta, commit
    7. return PostingRecord

Invariants enforced:
    - Atomicity: the posting row and the product balance change commit in
      one database transaction or not at all.
    - Per-account linearizability: commits to one account are serialized by
      AccountLockManager plus the row lock; account_seq follows commit order.
    - Idempotency: a reused key returns the original posting unchanged,
      including under concurrent submission (unique constraint fallback).
    - Tenant isolation: every lookup is scoped by tenant_id.

Failure modes:
    - Steps 0-5 and the re-checks in step 6 raise typed, retryable errors
      and leave no trace.
    - LockTimeoutError (retryable) if the commit lock is not acquired.
    - CommitIntegrityError (fatal) for any failure after the first write of
      step 6: the transaction is rolled back, the account is flagged
      needs_reconciliation and a CRITICAL log is emitted.

Audit relevance:
    Structured events: posting_started, posting_completed, posting_rejected,
    posting_replayed, commit_integrity_failure, account_status_changed.
"""

import time
from decimal import Decimal
from typing import TYPE_CHECKING, NoReturn
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.db.types import validate_amount
from ledger_kernel.domain.adapters import AdapterRegistry, ProductLedgerAdapter
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    BusinessEvent,
    DateRange,
    GLAccountInfo,
    PostingRecord,
    ProductAccountRef,
)
from ledger_kernel.domain.posting_policy import LegRole, rule_for
from ledger_kernel.exceptions import (
    CommitIntegrityError,
    IntegrityFault,
    InvalidLegsError,
    LedgerKernelError,
    NotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.gl_account import GLAccount, ProductType
from ledger_kernel.models.posting import TransactionType
from ledger_kernel.models.product_account import (
    PRODUCT_ACCOUNT_MODELS,
    AccountStatus,
    ProductAccount,
)
from ledger_kernel.selectors.account_selector import AccountSelector, account_query
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.account_locks import (
    DEFAULT_LOCK_TIMEOUT,
    AccountLockManager,
    default_lock_manager,
)
from ledger_kernel.services.coa_registry import ChartOfAccountsRegistry
from ledger_kernel.services.journal_service import JournalService, validate_legs

if TYPE_CHECKING:
    from ledger_config.schema import LedgerConfig

logger = get_logger("services.posting_engine")


class PostingEngine:
    """
    Posts business events against product accounts.

    Contract:
        Thread-safe: any number of threads may share one engine.  Every call
        opens and closes its own sessions.

    Guarantees:
        - post() returns only after the posting is committed.
        - A failed post() leaves balances and journal unchanged, except
          for the needs_reconciliation flag after a CommitIntegrityError.

    Non-goals:
        - No interest computation, statements rendering, or reversal
          workflow.  Corrections are new offsetting postings.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        adapters: AdapterRegistry | None = None,
        locks: AccountLockManager | None = None,
        lock_timeout: float | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._adapters = adapters or AdapterRegistry()
        self._locks = locks or default_lock_manager
        self._lock_timeout = lock_timeout if lock_timeout is not None else DEFAULT_LOCK_TIMEOUT

    @classmethod
    def from_config(
        cls,
        session_factory: sessionmaker[Session],
        config: "LedgerConfig",
        **kwargs,
    ) -> "PostingEngine":
        """Engine with the commit-lock timeout of ``config.posting``."""
        return cls(
            session_factory,
            lock_timeout=config.posting.lock_timeout_seconds,
            **kwargs,
        )

    # -- Public API ------------------------------------------------------------

    def post(self, tenant_id: UUID, event: BusinessEvent) -> PostingRecord:
        """
        Post one business event.

        Returns:
            The committed PostingRecord, or the original one when the
            idempotency key was already used.

        Raises:
            InvalidAmountError, NotFoundError, AccountNotActiveError,
            InsufficientFundsError, UnsupportedTransactionError,
            AlreadyDisbursedError, InvalidLegsError, GLAccountInactiveError,
            AmbiguousMappingError, LockTimeoutError: validation failures;
                nothing was written.
            CommitIntegrityError: the commit unit failed after writing began.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            tenant_id=str(tenant_id),
            account_ref=str(event.account),
            idempotency_key=event.idempotency_key,
        ):
            logger.info(
                "posting_started",
                extra={
                    "transaction_type": TransactionType(event.transaction_type).value,
                    "amount": str(event.amount),
                    "is_disbursement": event.is_disbursement,
                },
            )
            t0 = time.monotonic()

            try:
                record = self._post(tenant_id, event)
            except IntegrityFault:
                raise
            except LedgerKernelError as exc:
                logger.warning(
                    "posting_rejected",
                    extra={
                        "error_code": exc.code,
                        "reason": str(exc),
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                raise

            logger.info(
                "posting_completed",
                extra={
                    "posting_id": str(record.id),
                    "account_seq": record.account_seq,
                    "debit_code": record.debit_account_code,
                    "credit_code": record.credit_account_code,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return record

    def disburse(
        self,
        tenant_id: UUID,
        account_number: str,
        amount: Decimal,
        idempotency_key: str | None = None,
    ) -> PostingRecord:
        """Disburse a loan: a one-time WITHDRAWAL for the full loan amount."""
        return self.post(
            tenant_id,
            BusinessEvent(
                transaction_type=TransactionType.WITHDRAWAL,
                account=ProductAccountRef(ProductType.LOAN, account_number),
                amount=amount,
                idempotency_key=idempotency_key,
                description="Loan disbursement",
                is_disbursement=True,
            ),
        )

    def change_status(
        self,
        tenant_id: UUID,
        ref: ProductAccountRef,
        new_status: AccountStatus,
    ) -> AccountStatus:
        """
        Move a product account through its lifecycle.

        Runs under the same commit unit as post(), so a status change never
        interleaves with a posting to the same account.

        Raises:
            NotFoundError: If the account does not exist for the tenant.
            InvalidStatusTransitionError: If the move is not allowed.
            LockTimeoutError: If the commit lock is not acquired.
        """
        adapter = self._adapters.get(ref.product_type)
        account_id = self._account_id(tenant_id, ref)

        with self._locks.hold(
            tenant_id, ref.product_type, account_id, ref.account_number, self._lock_timeout
        ):
            with self._session_factory() as session:
                account = self._lock_row(session, tenant_id, ref)
                old_status = AccountStatus(account.status)
                adapter.transition(account, new_status)
                session.commit()

        logger.info(
            "account_status_changed",
            extra={
                "tenant_id": str(tenant_id),
                "account_ref": str(ref),
                "from_status": old_status.value,
                "to_status": AccountStatus(new_status).value,
            },
        )
        return AccountStatus(new_status)

    def get_balance(self, tenant_id: UUID, ref: ProductAccountRef) -> Decimal:
        """The committed product balance of ``ref``."""
        with self._session_factory() as session:
            return AccountSelector(session).get_balance(tenant_id, ref)

    def get_statement(
        self,
        tenant_id: UUID,
        ref: ProductAccountRef,
        date_range: DateRange | None = None,
    ) -> list[PostingRecord]:
        """Postings of ``ref`` ordered by account sequence."""
        with self._session_factory() as session:
            account = AccountSelector(session).get(tenant_id, ref)
            return JournalSelector(session).statement(
                tenant_id,
                ref.product_type,
                account.id,
                account.account_number,
                date_range,
            )

    # -- Pipeline ------------------------------------------------------------------

    def _post(self, tenant_id: UUID, event: BusinessEvent) -> PostingRecord:
        amount = validate_amount(event.amount)
        ref = event.account
        adapter = self._adapters.get(ref.product_type)

        # Steps 1-5 against a plain read; nothing is written here
        with self._session_factory() as session:
            account = AccountSelector(session).get(tenant_id, ref)
            adapter.ensure_active(account)

            if event.idempotency_key is not None:
                existing = JournalSelector(session).get_by_idempotency_key(
                    tenant_id, event.idempotency_key
                )
                if existing is not None:
                    return self._replayed(existing, event)

            debit, credit = self._resolve_legs(session, tenant_id, adapter, account, event)
            adapter.compute_delta(account, event)
            account_id = account.id

        return self._commit(tenant_id, event, amount, adapter, account_id, debit, credit)

    def _resolve_legs(
        self,
        session: Session,
        tenant_id: UUID,
        adapter: ProductLedgerAdapter,
        account: ProductAccount,
        event: BusinessEvent,
    ) -> tuple[GLAccountInfo, GLAccountInfo]:
        rule = rule_for(event.transaction_type)

        control_model = session.get(GLAccount, adapter.control_account_id(account))
        if control_model is None:
            raise InvalidLegsError(
                str(adapter.control_account_id(account)),
                rule.counter_role.value,
                "control account does not exist",
            )
        control = GLAccountInfo.from_model(control_model)
        counter = ChartOfAccountsRegistry(session).resolve_role_account(
            tenant_id, rule.counter_role.ledger_role
        )

        if rule.debit is LegRole.PRODUCT_CONTROL:
            debit, credit = control, counter
        else:
            debit, credit = counter, control
        validate_legs(tenant_id, debit, credit)
        return debit, credit

    def _commit(
        self,
        tenant_id: UUID,
        event: BusinessEvent,
        amount: Decimal,
        adapter: ProductLedgerAdapter,
        account_id: UUID,
        debit: GLAccountInfo,
        credit: GLAccountInfo,
    ) -> PostingRecord:
        ref = event.account
        with self._locks.hold(
            tenant_id, ref.product_type, account_id, ref.account_number, self._lock_timeout
        ):
            with self._session_factory() as session:
                # Re-run steps 2, 3 and 5 against the locked row
                account = self._lock_row(session, tenant_id, ref)
                adapter.ensure_active(account)
                journal = JournalSelector(session)
                if event.idempotency_key is not None:
                    existing = journal.get_by_idempotency_key(tenant_id, event.idempotency_key)
                    if existing is not None:
                        session.rollback()
                        return self._replayed(existing, event)
                delta = adapter.compute_delta(account, event)

                try:
                    adapter.apply_delta(account, delta, event, self._clock.now())
                    posting = JournalService(session, self._clock).append(
                        tenant_id,
                        event.transaction_type,
                        debit,
                        credit,
                        amount,
                        ref.product_type,
                        account,
                        idempotency_key=event.idempotency_key,
                        description=event.description,
                        is_disbursement=event.is_disbursement,
                    )
                    session.commit()
                except IntegrityError as exc:
                    session.rollback()
                    if event.idempotency_key is not None:
                        existing = journal.get_by_idempotency_key(tenant_id, event.idempotency_key)
                        if existing is not None:
                            return self._replayed(existing, event)
                    self._integrity_fault(tenant_id, adapter, account_id, ref, exc)
                except Exception as exc:
                    session.rollback()
                    self._integrity_fault(tenant_id, adapter, account_id, ref, exc)

                return PostingRecord.from_model(
                    posting,
                    debit_account_code=debit.code,
                    credit_account_code=credit.code,
                    account_number=ref.account_number,
                )

    def _lock_row(self, session: Session, tenant_id: UUID, ref: ProductAccountRef) -> ProductAccount:
        account = session.execute(
            account_query(tenant_id, ref).with_for_update()
        ).scalar_one_or_none()
        if account is None:
            raise NotFoundError("ProductAccount", str(ref))
        return account

    def _account_id(self, tenant_id: UUID, ref: ProductAccountRef) -> UUID:
        with self._session_factory() as session:
            return AccountSelector(session).get(tenant_id, ref).id

    def _replayed(self, existing: PostingRecord, event: BusinessEvent) -> PostingRecord:
        mismatch = (
            existing.transaction_type != TransactionType(event.transaction_type)
            or existing.amount != Decimal(event.amount)
            or existing.product_type != ProductType(event.account.product_type)
            or existing.account_number != event.account.account_number
        )
        if mismatch:
            logger.warning(
                "idempotency_key_payload_mismatch",
                extra={
                    "posting_id": str(existing.id),
                    "original_amount": str(existing.amount),
                    "original_type": existing.transaction_type.value,
                    "original_account": existing.account_number,
                },
            )
        logger.info(
            "posting_replayed",
            extra={"posting_id": str(existing.id), "account_seq": existing.account_seq},
        )
        return existing

    def _integrity_fault(
        self,
        tenant_id: UUID,
        adapter: ProductLedgerAdapter,
        account_id: UUID,
        ref: ProductAccountRef,
        cause: Exception,
    ) -> NoReturn:
        """Flag the account and raise CommitIntegrityError from ``cause``."""
        model = PRODUCT_ACCOUNT_MODELS[adapter.product_type]
        try:
            with self._session_factory() as session:
                session.execute(
                    update(model)
                    .where(model.id == account_id)
                    .values(needs_reconciliation=True)
                    .execution_options(synchronize_session=False)
                )
                session.commit()
        except Exception:
            logger.exception(
                "reconciliation_flag_failed",
                extra={"account_id": str(account_id)},
            )

        logger.critical(
            "commit_integrity_failure",
            extra={
                "account_id": str(account_id),
                "cause_type": type(cause).__name__,
                "cause": str(cause),
            },
            exc_info=cause,
        )
        raise CommitIntegrityError(
            str(tenant_id),
            ref.account_number,
            f"{type(cause).__name__}: {cause}",
        ) from cause
