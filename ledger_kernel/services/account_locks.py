"""
AccountLockManager -- In-process per-account commit serialization.

Responsibility:
    Hands out one lock per (tenant, product type, account id) so that all
    commits against the same product account inside this process are
    linearized.  The database row lock (SELECT ... FOR UPDATE) extends the
    same guarantee across processes on PostgreSQL.

Architecture position:
    Kernel > Services -- infrastructure used by PostingEngine and
    ReconciliationService.

Invariants enforced:
    - Two holders of the same key never overlap.
    - Distinct accounts never contend with each other.

Failure modes:
    - LockTimeoutError when the lock is not acquired within the timeout.
      Nothing has been written at that point, so the caller may retry.
"""

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from ledger_kernel.exceptions import LockTimeoutError
from ledger_kernel.models.gl_account import ProductType

DEFAULT_LOCK_TIMEOUT = 10.0

LockKey = tuple[UUID, str, UUID]


class AccountLockManager:
    """
    Registry of per-account locks.

    Locks are held weakly: an entry lives only while some thread holds or
    waits on it, so the registry does not grow with every account touched.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[LockKey, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def _lock_for(self, key: LockKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(
        self,
        tenant_id: UUID,
        product_type: ProductType,
        account_id: UUID,
        account_number: str,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> Iterator[None]:
        """
        Hold the commit lock of one product account.

        Raises:
            LockTimeoutError: If the lock is not acquired within ``timeout``
                seconds.
        """
        lock = self._lock_for((tenant_id, ProductType(product_type).value, account_id))
        if not lock.acquire(timeout=timeout):
            raise LockTimeoutError(account_number, timeout)
        try:
            yield
        finally:
            lock.release()


# Shared by every engine in the process unless one is injected
default_lock_manager = AccountLockManager()
