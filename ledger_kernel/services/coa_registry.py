"""
ChartOfAccountsRegistry -- Tenant-scoped Chart of Accounts.

Responsibility:
    Registers GL accounts per tenant and resolves the unique active GL
    account for a (classification, product type) control mapping or a
    ledger role.  Resolution is the only way the posting engine finds the
    counter leg of a posting.

Architecture position:
    Kernel > Services -- imperative shell, flush-only (BaseService).

Invariants enforced:
    - (tenant, code) is unique.
    - At most one active GL account per (tenant, classification,
      product_type) and per (tenant, ledger_role).  Checked before insert
      and backed by partial unique indexes.
    - A ledger role carries its required classification.
    - Registration is serialized per tenant within the process, so the
      pre-insert checks and the insert cannot interleave.
    - A GL account of another tenant is reported exactly like a missing one.

Failure modes:
    - DuplicateCodeError, AmbiguousMappingError, ClassificationMismatchError
      on registration.  A unique violation raised by the database is
      translated into the same errors; the session is rolled back first.
    - NotFoundError when no active account matches a mapping.
    - AmbiguousMappingError when more than one active account matches.
"""

import threading
import weakref
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.domain.dtos import GLAccountInfo
from ledger_kernel.exceptions import (
    AmbiguousMappingError,
    ClassificationMismatchError,
    DuplicateCodeError,
    NotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.gl_account import (
    ROLE_CLASSIFICATION,
    AccountClassification,
    GLAccount,
    LedgerRole,
    ProductType,
)
from ledger_kernel.services.base import BaseService

if TYPE_CHECKING:
    from ledger_config.schema import ChartTemplate

logger = get_logger("services.coa_registry")

# Held weakly; a tenant entry disappears once no registration holds it
_tenant_locks: weakref.WeakValueDictionary[UUID, threading.Lock] = weakref.WeakValueDictionary()
_tenant_locks_guard = threading.Lock()


def _registration_lock(tenant_id: UUID) -> threading.Lock:
    with _tenant_locks_guard:
        lock = _tenant_locks.get(tenant_id)
        if lock is None:
            lock = threading.Lock()
            _tenant_locks[tenant_id] = lock
        return lock


class ChartOfAccountsRegistry(BaseService[GLAccount]):
    """
    Chart of Accounts registry for all tenants.

    Contract:
        Every method takes the tenant explicitly; nothing is resolved
        across tenants.  Results are GLAccountInfo DTOs.

    Non-goals:
        - No hierarchy, reporting, or period handling.
    """

    # -- Resolution ----------------------------------------------------------

    def _single_active(self, tenant_id: UUID, mapping: str, *criteria) -> GLAccount:
        matches = list(
            self.session.execute(
                select(GLAccount).where(
                    GLAccount.tenant_id == tenant_id,
                    GLAccount.is_active.is_(True),
                    *criteria,
                )
            ).scalars()
        )
        if not matches:
            raise NotFoundError("GLAccount", mapping)
        if len(matches) > 1:
            raise AmbiguousMappingError(str(tenant_id), mapping, len(matches))
        return matches[0]

    def resolve_control_account(
        self,
        tenant_id: UUID,
        classification: AccountClassification,
        product_type: ProductType,
    ) -> GLAccountInfo:
        """
        The unique active control account for a product category.

        Raises:
            NotFoundError: If no active account matches.
            AmbiguousMappingError: If more than one active account matches.
        """
        classification = AccountClassification(classification)
        product_type = ProductType(product_type)
        account = self._single_active(
            tenant_id,
            f"{classification.value}/{product_type.value}",
            GLAccount.classification == classification.value,
            GLAccount.product_type == product_type.value,
        )
        return GLAccountInfo.from_model(account)

    def resolve_role_account(self, tenant_id: UUID, ledger_role: LedgerRole) -> GLAccountInfo:
        """
        The unique active account playing ``ledger_role``.

        Raises:
            NotFoundError: If no active account matches.
            AmbiguousMappingError: If more than one active account matches.
        """
        ledger_role = LedgerRole(ledger_role)
        account = self._single_active(
            tenant_id,
            f"role/{ledger_role.value}",
            GLAccount.ledger_role == ledger_role.value,
        )
        return GLAccountInfo.from_model(account)

    # -- Lookup ----------------------------------------------------------------

    def _find_by_code(self, tenant_id: UUID, code: str) -> GLAccount | None:
        return self.session.execute(
            select(GLAccount).where(
                GLAccount.tenant_id == tenant_id,
                GLAccount.code == code,
            )
        ).scalar_one_or_none()

    def _get_model_by_code(self, tenant_id: UUID, code: str) -> GLAccount:
        account = self._find_by_code(tenant_id, code)
        if account is None:
            raise NotFoundError("GLAccount", code)
        return account

    def get_account(self, tenant_id: UUID, account_id: UUID) -> GLAccountInfo:
        """
        Raises:
            NotFoundError: If the account is missing or belongs to another tenant.
        """
        account = self.session.get(GLAccount, account_id)
        if account is None or account.tenant_id != tenant_id:
            raise NotFoundError("GLAccount", str(account_id))
        return GLAccountInfo.from_model(account)

    def get_account_by_code(self, tenant_id: UUID, code: str) -> GLAccountInfo:
        return GLAccountInfo.from_model(self._get_model_by_code(tenant_id, code))

    def list_accounts(self, tenant_id: UUID, active_only: bool = False) -> list[GLAccountInfo]:
        query = select(GLAccount).where(GLAccount.tenant_id == tenant_id)
        if active_only:
            query = query.where(GLAccount.is_active.is_(True))
        accounts = self.session.execute(query.order_by(GLAccount.code)).scalars()
        return [GLAccountInfo.from_model(account) for account in accounts]

    # -- Registration ------------------------------------------------------------

    def _check_single_active(
        self,
        tenant_id: UUID,
        classification: AccountClassification,
        product_type: ProductType | None,
        ledger_role: LedgerRole | None,
        exclude_id: UUID | None = None,
    ) -> None:
        checks = []
        if product_type is not None:
            checks.append(
                (
                    f"{classification.value}/{product_type.value}",
                    [
                        GLAccount.classification == classification.value,
                        GLAccount.product_type == product_type.value,
                    ],
                )
            )
        if ledger_role is not None:
            checks.append((f"role/{ledger_role.value}", [GLAccount.ledger_role == ledger_role.value]))

        for mapping, criteria in checks:
            query = select(GLAccount.id).where(
                GLAccount.tenant_id == tenant_id,
                GLAccount.is_active.is_(True),
                *criteria,
            )
            if exclude_id is not None:
                query = query.where(GLAccount.id != exclude_id)
            existing = len(self.session.execute(query).all())
            if existing:
                raise AmbiguousMappingError(str(tenant_id), mapping, existing + 1)

    def register_account(
        self,
        tenant_id: UUID,
        code: str,
        name: str,
        classification: AccountClassification,
        product_type: ProductType | None = None,
        ledger_role: LedgerRole | None = None,
    ) -> GLAccountInfo:
        """
        Register a GL account for a tenant.

        Preconditions: The tenant exists.
        Postconditions: The account is flushed and active.

        Raises:
            DuplicateCodeError: If (tenant, code) already exists.
            AmbiguousMappingError: If an active account already holds the
                same control mapping or ledger role.
            ClassificationMismatchError: If ledger_role requires a different
                classification.
        """
        classification = AccountClassification(classification)
        product_type = ProductType(product_type) if product_type is not None else None
        ledger_role = LedgerRole(ledger_role) if ledger_role is not None else None

        if ledger_role is not None:
            expected = ROLE_CLASSIFICATION[ledger_role]
            if classification != expected:
                raise ClassificationMismatchError(
                    ledger_role.value, expected.value, classification.value
                )

        with _registration_lock(tenant_id):
            if self._find_by_code(tenant_id, code) is not None:
                raise DuplicateCodeError(str(tenant_id), code)
            self._check_single_active(tenant_id, classification, product_type, ledger_role)

            account = GLAccount(
                tenant_id=tenant_id,
                code=code,
                name=name,
                classification=classification.value,
                product_type=product_type.value if product_type else None,
                ledger_role=ledger_role.value if ledger_role else None,
                is_active=True,
            )
            self.session.add(account)
            try:
                self.session.flush()
            except IntegrityError:
                # Registered by another process between check and insert
                self.session.rollback()
                if self._find_by_code(tenant_id, code) is not None:
                    raise DuplicateCodeError(str(tenant_id), code) from None
                self._check_single_active(tenant_id, classification, product_type, ledger_role)
                raise

        logger.info(
            "gl_account_registered",
            extra={
                "tenant_id": str(tenant_id),
                "account_code": code,
                "classification": classification.value,
                "product_type": product_type.value if product_type else None,
                "ledger_role": ledger_role.value if ledger_role else None,
            },
        )
        return GLAccountInfo.from_model(account)

    def seed_chart(self, tenant_id: UUID, template: "ChartTemplate") -> list[GLAccountInfo]:
        """Register every account of a configured chart template."""
        registered = [
            self.register_account(
                tenant_id,
                code=entry.code,
                name=entry.name,
                classification=entry.classification,
                product_type=entry.product_type,
                ledger_role=entry.ledger_role,
            )
            for entry in template.accounts
        ]
        logger.info(
            "chart_seeded",
            extra={
                "tenant_id": str(tenant_id),
                "template": template.name,
                "account_count": len(registered),
            },
        )
        return registered

    # -- Activation ----------------------------------------------------------------

    def deactivate_account(self, tenant_id: UUID, code: str) -> GLAccountInfo:
        account = self._get_model_by_code(tenant_id, code)
        account.is_active = False
        self.session.flush()
        logger.info(
            "gl_account_deactivated",
            extra={"tenant_id": str(tenant_id), "account_code": code},
        )
        return GLAccountInfo.from_model(account)

    def reactivate_account(self, tenant_id: UUID, code: str) -> GLAccountInfo:
        """
        Raises:
            AmbiguousMappingError: If another active account now holds the
                same mapping.
        """
        with _registration_lock(tenant_id):
            account = self._get_model_by_code(tenant_id, code)
            if not account.is_active:
                self._check_single_active(
                    tenant_id,
                    AccountClassification(account.classification),
                    ProductType(account.product_type) if account.product_type else None,
                    LedgerRole(account.ledger_role) if account.ledger_role else None,
                    exclude_id=account.id,
                )
                account.is_active = True
                self.session.flush()
        logger.info(
            "gl_account_reactivated",
            extra={"tenant_id": str(tenant_id), "account_code": code},
        )
        return GLAccountInfo.from_model(account)
