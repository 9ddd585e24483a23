"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Read-only lookup of product accounts and their cached
    balances.
Architecture position: Kernel > Selectors.  Inherits BaseSelector.

Invariants enforced:
    - Tenant scoping: an account number is resolved within one tenant only;
      a foreign tenant's account raises the same NotFoundError as a missing
      one, so callers cannot probe other tenants.
    - Exception to the selector DTO convention: find() and get() return
      the ORM row.  Its only callers are services inside the kernel that
      need the row id or update the row in their own session; nothing
      outside the kernel receives it.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.adapters import AdapterRegistry
from ledger_kernel.domain.dtos import ProductAccountRef
from ledger_kernel.exceptions import NotFoundError
from ledger_kernel.models.gl_account import ProductType
from ledger_kernel.models.product_account import PRODUCT_ACCOUNT_MODELS, ProductAccount
from ledger_kernel.selectors.base import BaseSelector

_ADAPTERS = AdapterRegistry()


def account_query(tenant_id: UUID, ref: ProductAccountRef):
    """SELECT for the product row behind ``ref`` within ``tenant_id``."""
    model = PRODUCT_ACCOUNT_MODELS[ProductType(ref.product_type)]
    return select(model).where(
        model.tenant_id == tenant_id,
        model.account_number == ref.account_number,
    )


class AccountSelector(BaseSelector):
    """
    Tenant-scoped product account reads.

    Contract:
        find() and get() hand back the ORM row for the engine and services
        to load under their own session; get_balance() returns a Decimal.
    """

    def find(self, tenant_id: UUID, ref: ProductAccountRef) -> ProductAccount | None:
        return self.session.execute(account_query(tenant_id, ref)).scalar_one_or_none()

    def get(self, tenant_id: UUID, ref: ProductAccountRef) -> ProductAccount:
        """
        Raises:
            NotFoundError: If the account does not exist for this tenant.
        """
        account = self.find(tenant_id, ref)
        if account is None:
            raise NotFoundError("ProductAccount", str(ref))
        return account

    def get_balance(self, tenant_id: UUID, ref: ProductAccountRef) -> Decimal:
        """The cached product balance of ``ref``."""
        account = self.get(tenant_id, ref)
        return _ADAPTERS.get(ref.product_type).balance_of(account)
