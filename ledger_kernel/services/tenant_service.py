"""
TenantService -- Tenant registration and resolution.

Responsibility:
    Creates tenants and resolves a tenant code to its id.  The tenant id is
    the isolation key threaded through every other kernel call.

Architecture position:
    Kernel > Services -- imperative shell, flush-only (BaseService).
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.exceptions import DuplicateTenantError, NotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.tenant import Tenant
from ledger_kernel.services.base import BaseService

logger = get_logger("services.tenant")


@dataclass(frozen=True)
class TenantInfo:
    id: UUID
    code: str
    name: str


class TenantService(BaseService[Tenant]):
    """Service for managing tenants."""

    def _to_dto(self, tenant: Tenant) -> TenantInfo:
        return TenantInfo(id=tenant.id, code=tenant.code, name=tenant.name)

    def create_tenant(self, code: str, name: str) -> TenantInfo:
        """
        Register a new tenant.

        Raises:
            DuplicateTenantError: If the code is already in use.
        """
        if self.find_by_code(code) is not None:
            raise DuplicateTenantError(code)
        tenant = Tenant(code=code, name=name)
        self.session.add(tenant)
        self.session.flush()
        logger.info("tenant_created", extra={"tenant_id": str(tenant.id), "tenant_code": code})
        return self._to_dto(tenant)

    def get(self, tenant_id: UUID) -> TenantInfo:
        tenant = self.session.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant", str(tenant_id))
        return self._to_dto(tenant)

    def find_by_code(self, code: str) -> TenantInfo | None:
        tenant = self.session.execute(
            select(Tenant).where(Tenant.code == code)
        ).scalar_one_or_none()
        return self._to_dto(tenant) if tenant is not None else None

    def get_by_code(self, code: str) -> TenantInfo:
        """
        Raises:
            NotFoundError: If no tenant has this code.
        """
        tenant = self.find_by_code(code)
        if tenant is None:
            raise NotFoundError("Tenant", code)
        return tenant
