"""Tests for TenantService."""

from uuid import uuid4

import pytest

from ledger_kernel.exceptions import DuplicateTenantError, NotFoundError
from ledger_kernel.services.tenant_service import TenantService


def test_create_and_resolve(session, db_engine):
    service = TenantService(session)
    created = service.create_tenant("org-100", "Village Savings Group")

    assert service.get(created.id) == created
    assert service.get_by_code("org-100").id == created.id


def test_duplicate_code_rejected(session, tenants):
    with pytest.raises(DuplicateTenantError) as exc_info:
        TenantService(session).create_tenant("org-001", "Imposter")
    assert exc_info.value.code == "DUPLICATE_TENANT"


def test_unknown_tenant(session, db_engine):
    service = TenantService(session)
    assert service.find_by_code("org-404") is None
    with pytest.raises(NotFoundError):
        service.get_by_code("org-404")
    with pytest.raises(NotFoundError):
        service.get(uuid4())
