"""
End-to-end posting scenarios.

Each test drives PostingEngine against a real database and checks both
sides of the commit: the product balance and the journal.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import BusinessEvent, DateRange, ProductAccountRef
from ledger_kernel.exceptions import (
    AccountNotActiveError,
    AlreadyDisbursedError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStatusTransitionError,
    NotFoundError,
    UnsupportedTransactionError,
)
from ledger_kernel.models.gl_account import ProductType
from ledger_kernel.models.posting import TransactionType
from ledger_kernel.models.product_account import AccountStatus


class TestSavingsPostings:
    def test_deposit_increases_balance(self, posting_engine, tenant, savings_ref, post_event, gl_ids):
        record = post_event(tenant.id, TransactionType.DEPOSIT, savings_ref, "1000.00")

        assert posting_engine.get_balance(tenant.id, savings_ref) == Decimal("6000.00")
        assert record.debit_account_code == "coa-001"
        assert record.credit_account_code == "coa-003"
        assert record.debit_account_id == gl_ids["coa-001"]
        assert record.credit_account_id == gl_ids["coa-003"]
        assert record.amount == Decimal("1000.00")
        assert record.account_number == "SAV0001"
        assert record.account_seq == 2

    def test_withdrawal_decreases_balance(self, posting_engine, tenant, savings_ref, post_event):
        record = post_event(tenant.id, TransactionType.WITHDRAWAL, savings_ref, "1500.00")

        assert posting_engine.get_balance(tenant.id, savings_ref) == Decimal("3500.00")
        assert record.debit_account_code == "coa-003"
        assert record.credit_account_code == "coa-001"

    def test_overdraft_rejected_without_trace(self, posting_engine, tenant, savings_ref, post_event):
        post_event(tenant.id, TransactionType.DEPOSIT, savings_ref, "1000.00")

        with pytest.raises(InsufficientFundsError) as exc_info:
            post_event(tenant.id, TransactionType.WITHDRAWAL, savings_ref, "7000.00")

        assert Decimal(exc_info.value.available) == Decimal("6000.00")
        assert Decimal(exc_info.value.requested) == Decimal("7000.00")
        assert posting_engine.get_balance(tenant.id, savings_ref) == Decimal("6000.00")
        assert len(posting_engine.get_statement(tenant.id, savings_ref)) == 2

    def test_withdraw_entire_balance(self, posting_engine, tenant, savings_ref, post_event):
        post_event(tenant.id, TransactionType.WITHDRAWAL, savings_ref, "5000.00")
        assert posting_engine.get_balance(tenant.id, savings_ref) == Decimal("0.00")

    @pytest.mark.parametrize(
        "tx_type, expected_balance, debit_code, credit_code",
        [
            (TransactionType.INTEREST_CREDIT, "5010.00", "coa-006", "coa-003"),
            (TransactionType.INTEREST_DEBIT, "4990.00", "coa-003", "coa-007"),
            (TransactionType.FEE, "4990.00", "coa-003", "coa-008"),
            (TransactionType.PENALTY, "4990.00", "coa-003", "coa-009"),
        ],
    )
    def test_charges_and_interest(
        self,
        posting_engine,
        tenant,
        savings_ref,
        post_event,
        tx_type,
        expected_balance,
        debit_code,
        credit_code,
    ):
        record = post_event(tenant.id, tx_type, savings_ref, "10.00")

        assert posting_engine.get_balance(tenant.id, savings_ref) == Decimal(expected_balance)
        assert record.debit_account_code == debit_code
        assert record.credit_account_code == credit_code

    @pytest.mark.parametrize("amount", ["0", "-5.00", "10.001"])
    def test_invalid_amounts_rejected(self, posting_engine, tenant, savings_ref, post_event, amount):
        with pytest.raises(InvalidAmountError):
            post_event(tenant.id, TransactionType.DEPOSIT, savings_ref, amount)
        assert posting_engine.get_balance(tenant.id, savings_ref) == Decimal("5000.00")

    def test_unknown_account_is_not_found(self, tenant, savings_ref, post_event):
        missing = ProductAccountRef(ProductType.SAVINGS, "SAV9999")
        with pytest.raises(NotFoundError):
            post_event(tenant.id, TransactionType.DEPOSIT, missing, "10.00")

    def test_disbursement_flag_rejected_on_savings(self, posting_engine, tenant, savings_ref):
        event = BusinessEvent(
            transaction_type=TransactionType.WITHDRAWAL,
            account=savings_ref,
            amount=Decimal("10.00"),
            is_disbursement=True,
        )
        with pytest.raises(UnsupportedTransactionError):
            posting_engine.post(tenant.id, event)


class TestOtherDepositProducts:
    @pytest.mark.parametrize(
        "product_type, number, control_code",
        [
            (ProductType.FIXED_DEPOSIT, "FD0001", "coa-004"),
            (ProductType.RECURRING_DEPOSIT, "RD0001", "coa-005"),
        ],
    )
    def test_deposit_credits_product_control(
        self, posting_engine, tenant, open_account, post_event, product_type, number, control_code
    ):
        ref = ProductAccountRef(product_type, number)
        open_account(tenant.id, product_type, number)

        record = post_event(tenant.id, TransactionType.DEPOSIT, ref, "2500.00")

        assert record.credit_account_code == control_code
        assert record.debit_account_code == "coa-001"
        assert posting_engine.get_balance(tenant.id, ref) == Decimal("2500.00")


class TestLoanPostings:
    def test_disbursement(self, posting_engine, tenant, loan_ref):
        record = posting_engine.disburse(tenant.id, "LN0001", Decimal("100000.00"))

        assert record.debit_account_code == "coa-002"
        assert record.credit_account_code == "coa-001"
        assert record.transaction_type == TransactionType.WITHDRAWAL
        assert record.is_disbursement
        assert posting_engine.get_balance(tenant.id, loan_ref) == Decimal("100000.00")

    def test_second_disbursement_rejected(self, posting_engine, tenant, loan_ref):
        posting_engine.disburse(tenant.id, "LN0001", Decimal("100000.00"))
        with pytest.raises(AlreadyDisbursedError):
            posting_engine.disburse(tenant.id, "LN0001", Decimal("100000.00"))
        assert len(posting_engine.get_statement(tenant.id, loan_ref)) == 1

    def test_partial_disbursement_rejected(self, posting_engine, tenant, loan_ref):
        with pytest.raises(InvalidAmountError):
            posting_engine.disburse(tenant.id, "LN0001", Decimal("50000.00"))
        assert posting_engine.get_balance(tenant.id, loan_ref) == Decimal("0.00")

    def test_repayment_reduces_outstanding(self, posting_engine, tenant, loan_ref, post_event):
        posting_engine.disburse(tenant.id, "LN0001", Decimal("100000.00"))

        record = post_event(tenant.id, TransactionType.DEPOSIT, loan_ref, "2500.00")

        assert record.debit_account_code == "coa-001"
        assert record.credit_account_code == "coa-002"
        assert posting_engine.get_balance(tenant.id, loan_ref) == Decimal("97500.00")

    def test_overpayment_rejected(self, posting_engine, tenant, loan_ref, post_event):
        posting_engine.disburse(tenant.id, "LN0001", Decimal("100000.00"))
        with pytest.raises(InsufficientFundsError):
            post_event(tenant.id, TransactionType.DEPOSIT, loan_ref, "100000.01")

    def test_interest_accrual_increases_outstanding(self, posting_engine, tenant, loan_ref, post_event):
        posting_engine.disburse(tenant.id, "LN0001", Decimal("100000.00"))

        record = post_event(tenant.id, TransactionType.INTEREST_DEBIT, loan_ref, "1200.00")

        assert record.debit_account_code == "coa-002"
        assert record.credit_account_code == "coa-007"
        assert posting_engine.get_balance(tenant.id, loan_ref) == Decimal("101200.00")

    def test_posting_before_disbursement_rejected(self, tenant, loan_ref, post_event):
        with pytest.raises(UnsupportedTransactionError):
            post_event(tenant.id, TransactionType.FEE, loan_ref, "50.00")

    def test_plain_withdrawal_rejected(self, posting_engine, tenant, loan_ref, post_event):
        posting_engine.disburse(tenant.id, "LN0001", Decimal("100000.00"))
        with pytest.raises(UnsupportedTransactionError):
            post_event(tenant.id, TransactionType.WITHDRAWAL, loan_ref, "10.00")


class TestStatusLifecycle:
    def test_dormant_account_rejects_postings(self, posting_engine, tenant, savings_ref, post_event):
        posting_engine.change_status(tenant.id, savings_ref, AccountStatus.DORMANT)

        with pytest.raises(AccountNotActiveError) as exc_info:
            post_event(tenant.id, TransactionType.DEPOSIT, savings_ref, "10.00")
        assert exc_info.value.status == "dormant"

        posting_engine.change_status(tenant.id, savings_ref, AccountStatus.ACTIVE)
        post_event(tenant.id, TransactionType.DEPOSIT, savings_ref, "10.00")
        assert posting_engine.get_balance(tenant.id, savings_ref) == Decimal("5010.00")

    def test_close_requires_zero_balance(self, posting_engine, tenant, savings_ref, post_event):
        with pytest.raises(InvalidStatusTransitionError):
            posting_engine.change_status(tenant.id, savings_ref, AccountStatus.CLOSED)

        post_event(tenant.id, TransactionType.WITHDRAWAL, savings_ref, "5000.00")
        posting_engine.change_status(tenant.id, savings_ref, AccountStatus.CLOSED)

        with pytest.raises(AccountNotActiveError):
            post_event(tenant.id, TransactionType.DEPOSIT, savings_ref, "10.00")

    def test_closed_is_terminal(self, posting_engine, tenant, open_account):
        ref = ProductAccountRef(ProductType.SAVINGS, "SAV0002")
        open_account(tenant.id, ProductType.SAVINGS, "SAV0002")
        posting_engine.change_status(tenant.id, ref, AccountStatus.CLOSED)

        with pytest.raises(InvalidStatusTransitionError):
            posting_engine.change_status(tenant.id, ref, AccountStatus.ACTIVE)

    def test_status_change_logged(self, posting_engine, tenant, savings_ref, captured_logs):
        posting_engine.change_status(tenant.id, savings_ref, AccountStatus.DORMANT)

        events = [r for r in captured_logs() if r["message"] == "account_status_changed"]
        assert len(events) == 1
        assert events[0]["from_status"] == "active"
        assert events[0]["to_status"] == "dormant"


class TestStatement:
    def test_statement_in_sequence_order(self, posting_engine, tenant, savings_ref, post_event):
        post_event(tenant.id, TransactionType.DEPOSIT, savings_ref, "100.00")
        post_event(tenant.id, TransactionType.WITHDRAWAL, savings_ref, "50.00")
        post_event(tenant.id, TransactionType.FEE, savings_ref, "5.00")

        statement = posting_engine.get_statement(tenant.id, savings_ref)

        assert [r.account_seq for r in statement] == [1, 2, 3, 4]
        assert [r.transaction_type for r in statement] == [
            TransactionType.DEPOSIT,
            TransactionType.DEPOSIT,
            TransactionType.WITHDRAWAL,
            TransactionType.FEE,
        ]
        assert all(r.account_number == "SAV0001" for r in statement)

    def test_statement_date_range(self, posting_engine, tenant, savings_ref, post_event, clock):
        clock.advance_days(10)
        post_event(tenant.id, TransactionType.DEPOSIT, savings_ref, "100.00")
        clock.advance_days(10)
        post_event(tenant.id, TransactionType.DEPOSIT, savings_ref, "200.00")

        window = DateRange(start=date(2024, 1, 5), end=date(2024, 1, 15))
        statement = posting_engine.get_statement(tenant.id, savings_ref, window)

        assert [r.amount for r in statement] == [Decimal("100.00")]

    def test_statement_range_is_inclusive(self, posting_engine, tenant, savings_ref):
        day = DateRange(start=date(2024, 1, 1), end=date(2024, 1, 1))
        statement = posting_engine.get_statement(tenant.id, savings_ref, day)
        assert len(statement) == 1

    def test_statement_of_fresh_account_is_empty(self, posting_engine, tenant, open_account):
        ref = ProductAccountRef(ProductType.SAVINGS, "SAV0003")
        open_account(tenant.id, ProductType.SAVINGS, "SAV0003")
        assert posting_engine.get_statement(tenant.id, ref) == []

    def test_statement_of_unknown_account(self, posting_engine, tenant, tenants):
        with pytest.raises(NotFoundError):
            posting_engine.get_statement(tenant.id, ProductAccountRef(ProductType.LOAN, "LN404"))


class TestPostingLogs:
    def test_completed_posting_logged(self, tenant, savings_ref, post_event, captured_logs):
        record = post_event(tenant.id, TransactionType.DEPOSIT, savings_ref, "10.00")

        logs = captured_logs()
        started = [r for r in logs if r["message"] == "posting_started"]
        completed = [r for r in logs if r["message"] == "posting_completed"]
        assert len(started) == 1 and len(completed) == 1
        assert completed[0]["posting_id"] == str(record.id)
        assert completed[0]["account_ref"] == "savings:SAV0001"
        assert completed[0]["correlation_id"] == started[0]["correlation_id"]

    def test_rejection_logged(self, tenant, savings_ref, post_event, captured_logs):
        with pytest.raises(InsufficientFundsError):
            post_event(tenant.id, TransactionType.WITHDRAWAL, savings_ref, "9999.00")

        rejected = [r for r in captured_logs() if r["message"] == "posting_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["error_code"] == "INSUFFICIENT_FUNDS"
        assert rejected[0]["level"] == "WARNING"

    def test_unknown_tenant(self, posting_engine, savings_ref):
        with pytest.raises(NotFoundError):
            posting_engine.post(
                uuid4(),
                BusinessEvent(TransactionType.DEPOSIT, savings_ref, Decimal("1.00")),
            )
