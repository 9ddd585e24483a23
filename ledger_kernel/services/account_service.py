"""
AccountService -- Product account opening.

Responsibility:
    Opens savings, fixed deposit, loan and recurring deposit accounts.  The
    product's GL control account is resolved through the registry once,
    at opening, and captured on the row; it never changes afterwards.

Architecture position:
    Kernel > Services -- imperative shell, flush-only (BaseService).

Invariants enforced:
    - (tenant, account number) unique per product table.
    - Accounts open ACTIVE with a zero balance.  Loans carry their
      loan_amount and stay at zero outstanding until disbursed.
    - The customer is checked against the tenant's customer directory when
      one is configured.

Failure modes:
    - DuplicateAccountNumberError for a reused account number.
    - NotFoundError / AmbiguousMappingError from control resolution.
    - NotFoundError when the customer directory does not know the customer.
    - InvalidAmountError for a missing or malformed loan amount.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.types import validate_amount
from ledger_kernel.domain.adapters import AdapterRegistry
from ledger_kernel.domain.dtos import ProductAccountRef
from ledger_kernel.exceptions import (
    DuplicateAccountNumberError,
    InvalidAmountError,
    NotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.gl_account import ProductType
from ledger_kernel.models.product_account import AccountStatus, ProductAccount
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.coa_registry import ChartOfAccountsRegistry

logger = get_logger("services.account")


class CustomerDirectory(Protocol):
    """Customer-management collaborator: does this customer exist for the tenant?"""

    def exists(self, tenant_id: UUID, customer_id: str) -> bool: ...


@dataclass(frozen=True)
class ProductAccountInfo:
    id: UUID
    tenant_id: UUID
    product_type: ProductType
    account_number: str
    customer_id: str
    gl_account_id: UUID
    status: AccountStatus
    balance: Decimal
    loan_amount: Decimal | None
    needs_reconciliation: bool

    @property
    def ref(self) -> ProductAccountRef:
        return ProductAccountRef(self.product_type, self.account_number)


class AccountService(BaseService):
    """
    Service for opening and reading product accounts.

    Contract:
        Public methods return ProductAccountInfo DTOs, not ORM rows.
    """

    def __init__(
        self,
        session: Session,
        registry: ChartOfAccountsRegistry | None = None,
        customers: CustomerDirectory | None = None,
        adapters: AdapterRegistry | None = None,
    ):
        super().__init__(session)
        self._registry = registry or ChartOfAccountsRegistry(session)
        self._customers = customers
        self._adapters = adapters or AdapterRegistry()

    def _to_dto(self, product_type: ProductType, account: ProductAccount) -> ProductAccountInfo:
        adapter = self._adapters.get(product_type)
        return ProductAccountInfo(
            id=account.id,
            tenant_id=account.tenant_id,
            product_type=product_type,
            account_number=account.account_number,
            customer_id=account.customer_id,
            gl_account_id=account.gl_account_id,
            status=AccountStatus(account.status),
            balance=adapter.balance_of(account),
            loan_amount=getattr(account, "loan_amount", None),
            needs_reconciliation=account.needs_reconciliation,
        )

    def open_account(
        self,
        tenant_id: UUID,
        product_type: ProductType,
        customer_id: str,
        account_number: str,
        loan_amount: Decimal | None = None,
    ) -> ProductAccountInfo:
        """
        Open a product account and link it to the product's control account.

        Args:
            loan_amount: Required for loans, rejected for every other product.

        Raises:
            DuplicateAccountNumberError: If the number is taken for the tenant.
            NotFoundError: If no control account is configured, or the
                customer is unknown to the customer directory.
            AmbiguousMappingError: If the control mapping is ambiguous.
            InvalidAmountError: For a missing, superfluous or malformed
                loan amount.
        """
        product_type = ProductType(product_type)
        adapter = self._adapters.get(product_type)
        ref = ProductAccountRef(product_type, account_number)

        extra_fields: dict = {}
        if product_type == ProductType.LOAN:
            if loan_amount is None:
                raise InvalidAmountError("None", "a loan amount is required to open a loan")
            extra_fields["loan_amount"] = validate_amount(loan_amount)
        elif loan_amount is not None:
            raise InvalidAmountError(str(loan_amount), "loan amount only applies to loans")

        if self._customers is not None and not self._customers.exists(tenant_id, customer_id):
            raise NotFoundError("Customer", customer_id)

        if AccountSelector(self.session).find(tenant_id, ref) is not None:
            raise DuplicateAccountNumberError(account_number)

        control = self._registry.resolve_control_account(
            tenant_id, adapter.control_classification, product_type
        )

        account = adapter.model(
            tenant_id=tenant_id,
            customer_id=customer_id,
            account_number=account_number,
            gl_account_id=control.id,
            status=AccountStatus.ACTIVE.value,
            last_posting_seq=0,
            needs_reconciliation=False,
            **{adapter.balance_field: Decimal("0.00")},
            **extra_fields,
        )
        self.session.add(account)
        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            raise DuplicateAccountNumberError(account_number) from None

        logger.info(
            "account_opened",
            extra={
                "tenant_id": str(tenant_id),
                "account_ref": str(ref),
                "control_code": control.code,
            },
        )
        return self._to_dto(product_type, account)

    def get_account(self, tenant_id: UUID, ref: ProductAccountRef) -> ProductAccountInfo:
        """
        Raises:
            NotFoundError: If the account does not exist for this tenant.
        """
        account = AccountSelector(self.session).get(tenant_id, ref)
        return self._to_dto(ProductType(ref.product_type), account)
