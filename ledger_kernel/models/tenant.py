"""
Module: ledger_kernel.models.tenant
Responsibility: ORM persistence for tenants -- the isolation boundary of the
    ledger.  Every other entity carries a tenant_id referencing this table.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Tenant.code is globally unique (uq_tenant_code).
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class Tenant(TrackedBase):
    """
    A microfinance institution using the ledger.

    Contract:
        id is the stable identifier threaded through every kernel call;
        code is a short human-readable alias (e.g. "org-001").
    """

    __tablename__ = "tenants"

    __table_args__ = (
        UniqueConstraint("code", name="uq_tenant_code"),
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Tenant {self.code}>"
