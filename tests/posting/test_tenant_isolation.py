"""
Tenant isolation.

Two tenants share account numbers and GL codes; nothing one tenant does
may be visible to, or change, the other.
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import ProductAccountRef
from ledger_kernel.exceptions import InvalidLegsError, NotFoundError
from ledger_kernel.models.gl_account import ProductType
from ledger_kernel.models.posting import TransactionType
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.coa_registry import ChartOfAccountsRegistry
from ledger_kernel.services.journal_service import validate_legs


@pytest.fixture
def shared_ref(tenants, open_account):
    ref = ProductAccountRef(ProductType.SAVINGS, "SAV0001")
    for t in tenants:
        open_account(t.id, ProductType.SAVINGS, "SAV0001")
    return ref


class TestTenantIsolation:
    def test_same_account_number_in_two_tenants(self, posting_engine, tenants, shared_ref, post_event):
        tenant_a, tenant_b = tenants
        post_event(tenant_a.id, TransactionType.DEPOSIT, shared_ref, "300.00")

        assert posting_engine.get_balance(tenant_a.id, shared_ref) == Decimal("300.00")
        assert posting_engine.get_balance(tenant_b.id, shared_ref) == Decimal("0.00")
        assert posting_engine.get_statement(tenant_b.id, shared_ref) == []

    def test_postings_use_own_tenant_gl_accounts(
        self, session, tenants, shared_ref, post_event
    ):
        tenant_a, tenant_b = tenants
        record = post_event(tenant_a.id, TransactionType.DEPOSIT, shared_ref, "300.00")

        registry = ChartOfAccountsRegistry(session)
        a_ids = {a.id for a in registry.list_accounts(tenant_a.id)}
        b_ids = {a.id for a in registry.list_accounts(tenant_b.id)}
        assert {record.debit_account_id, record.credit_account_id} <= a_ids
        assert not {record.debit_account_id, record.credit_account_id} & b_ids

    def test_account_of_other_tenant_is_invisible(self, posting_engine, tenant, other_tenant, open_account, post_event):
        ref = ProductAccountRef(ProductType.SAVINGS, "SAV0500")
        open_account(other_tenant.id, ProductType.SAVINGS, "SAV0500")

        with pytest.raises(NotFoundError):
            post_event(tenant.id, TransactionType.DEPOSIT, ref, "10.00")
        with pytest.raises(NotFoundError):
            posting_engine.get_balance(tenant.id, ref)

    def test_sum_by_account_rejects_foreign_gl_account(
        self, session, tenants, shared_ref, post_event
    ):
        tenant_a, tenant_b = tenants
        post_event(tenant_a.id, TransactionType.DEPOSIT, shared_ref, "300.00")
        a_cash = ChartOfAccountsRegistry(session).get_account_by_code(tenant_a.id, "coa-001")

        journal = JournalSelector(session)
        assert journal.sum_by_account(tenant_a.id, a_cash.id).balance == Decimal("300.00")
        with pytest.raises(NotFoundError):
            journal.sum_by_account(tenant_b.id, a_cash.id)

    def test_cross_tenant_legs_rejected(self, session, tenants):
        tenant_a, tenant_b = tenants
        registry = ChartOfAccountsRegistry(session)
        a_cash = registry.get_account_by_code(tenant_a.id, "coa-001")
        b_savings = registry.get_account_by_code(tenant_b.id, "coa-003")

        with pytest.raises(InvalidLegsError):
            validate_legs(tenant_a.id, a_cash, b_savings)

    def test_idempotency_lookup_is_tenant_scoped(self, session, tenants, shared_ref, post_event):
        tenant_a, tenant_b = tenants
        post_event(tenant_a.id, TransactionType.DEPOSIT, shared_ref, "1.00", idempotency_key="k-1")

        journal = JournalSelector(session)
        assert journal.get_by_idempotency_key(tenant_a.id, "k-1") is not None
        assert journal.get_by_idempotency_key(tenant_b.id, "k-1") is None

    def test_posting_lookup_by_id_is_tenant_scoped(self, session, tenants, shared_ref, post_event):
        tenant_a, tenant_b = tenants
        record = post_event(tenant_a.id, TransactionType.DEPOSIT, shared_ref, "42.00")

        journal = JournalSelector(session)
        found = journal.get_posting(tenant_a.id, record.id)
        assert found == record
        assert found.account_number == "SAV0001"
        with pytest.raises(NotFoundError):
            journal.get_posting(tenant_b.id, record.id)
