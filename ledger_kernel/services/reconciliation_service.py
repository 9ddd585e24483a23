"""
ReconciliationService -- Replay the journal against cached balances.

Responsibility:
    Recomputes a product account's balance from its postings and compares
    it with the cached balance column.  Mismatches flag the account
    (needs_reconciliation); a clean replay may clear the flag.

Architecture position:
    Kernel > Services.  Owns its sessions like PostingEngine and takes the
    same per-account commit unit, so a replay never observes a half-applied
    posting.

Invariants enforced:
    - The replay is signed by the control account's normal balance, the
      same polarity the adapters apply.  For a deposit product the cached
      balance equals credits minus debits on its control account; for a
      loan it equals debits minus credits.
    - The flag is only cleared when cached and replayed balances agree,
      inside the same commit unit as the replay that proved it.

Failure modes:
    - NotFoundError for an unknown account.
    - LockTimeoutError if the commit unit is not acquired.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.domain.adapters import AdapterRegistry
from ledger_kernel.domain.dtos import ProductAccountRef, ReconciliationResult
from ledger_kernel.exceptions import NotFoundError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.selectors.account_selector import AccountSelector, account_query
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.account_locks import (
    DEFAULT_LOCK_TIMEOUT,
    AccountLockManager,
    default_lock_manager,
)

if TYPE_CHECKING:
    from ledger_config.schema import LedgerConfig

logger = get_logger("services.reconciliation")


class ReconciliationService:
    """Per-account journal replay."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        locks: AccountLockManager | None = None,
        adapters: AdapterRegistry | None = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ):
        self._session_factory = session_factory
        self._locks = locks or default_lock_manager
        self._adapters = adapters or AdapterRegistry()
        self._lock_timeout = lock_timeout

    @classmethod
    def from_config(
        cls,
        session_factory: sessionmaker[Session],
        config: "LedgerConfig",
        **kwargs,
    ) -> "ReconciliationService":
        return cls(
            session_factory,
            lock_timeout=config.posting.lock_timeout_seconds,
            **kwargs,
        )

    def reconcile(self, tenant_id: UUID, ref: ProductAccountRef) -> ReconciliationResult:
        """
        Compare the cached balance of ``ref`` with its journal replay.

        Postconditions: On mismatch the account is flagged
            needs_reconciliation and the flag is committed.
        """
        return self._replay(tenant_id, ref, clear=False)

    def clear_flag(self, tenant_id: UUID, ref: ProductAccountRef) -> ReconciliationResult:
        """
        Clear needs_reconciliation after a clean replay.

        The replay and the clear happen under one hold of the commit unit,
        so a flag raised by a concurrent failed commit is never lost.
        Returns the replay result; the flag stays set when balances differ.
        """
        return self._replay(tenant_id, ref, clear=True)

    def _replay(
        self, tenant_id: UUID, ref: ProductAccountRef, clear: bool
    ) -> ReconciliationResult:
        adapter = self._adapters.get(ref.product_type)
        with self._session_factory() as session:
            account_id = AccountSelector(session).get(tenant_id, ref).id

        with LogContext.bind(tenant_id=str(tenant_id), account_ref=str(ref)):
            with self._locks.hold(
                tenant_id, ref.product_type, account_id, ref.account_number, self._lock_timeout
            ):
                with self._session_factory() as session:
                    account = session.execute(
                        account_query(tenant_id, ref).with_for_update()
                    ).scalar_one_or_none()
                    if account is None:
                        raise NotFoundError("ProductAccount", str(ref))

                    journal = JournalSelector(session)
                    replay = journal.sum_by_account(
                        tenant_id,
                        adapter.control_account_id(account),
                        product_type=adapter.product_type,
                        product_account_id=account.id,
                    )
                    count = journal.count_for_account(tenant_id, adapter.product_type, account.id)
                    cached = adapter.balance_of(account)

                    flagged = account.needs_reconciliation
                    if cached != replay.balance:
                        account.needs_reconciliation = True
                        flagged = True
                        session.commit()
                        logger.error(
                            "reconciliation_mismatch",
                            extra={
                                "cached_balance": str(cached),
                                "journal_balance": str(replay.balance),
                                "posting_count": count,
                            },
                        )
                    elif clear and flagged:
                        account.needs_reconciliation = False
                        flagged = False
                        session.commit()
                        logger.info("reconciliation_flag_cleared", extra={"balance": str(cached)})
                    else:
                        logger.info(
                            "reconciliation_balanced",
                            extra={"balance": str(cached), "posting_count": count},
                        )

        return ReconciliationResult(
            account=ref,
            cached_balance=cached,
            journal_balance=replay.balance,
            posting_count=count,
            flagged=flagged,
        )
