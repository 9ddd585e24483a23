"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every flush-only service in the kernel layer.  Concrete services
    receive a SQLAlchemy ``Session`` that they use via ``session.flush()``
    and never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    The posting engine and the reconciliation service are the only
    components that own sessions; they take a session factory instead.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit.  The caller owns commit/rollback.

Failure modes:
    - If a subclass commits on its own, the product balance and the
      journal row could be committed apart.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for flush-only kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT commit.  The one rollback a service issues is after an
          IntegrityError on flush, before translating it to a typed error;
          the session is unusable until then anyway.
        - Does NOT provide query-only (read) methods; those belong
          in ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
