"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only queries over the posting journal -- single
    postings, idempotency lookups, per-account statements and GL account
    sums.  Every result is a DTO.
Architecture position: Kernel > Selectors.  Inherits BaseSelector.

Invariants enforced:
    - Tenant scoping: every query filters on tenant_id; a posting of another
      tenant is indistinguishable from a missing one.
    - Statement ordering: by account_seq, the per-account commit order.
    - GL balances are computed from postings at query time, never stored.

Failure modes:
    - NotFoundError from get_posting() for missing or foreign postings.
"""

from datetime import UTC, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import aliased

from ledger_kernel.db.types import to_money
from ledger_kernel.domain.dtos import DateRange, LedgerBalance, PostingRecord
from ledger_kernel.exceptions import NotFoundError
from ledger_kernel.models.gl_account import (
    NORMAL_BALANCE,
    AccountClassification,
    GLAccount,
    ProductType,
)
from ledger_kernel.models.posting import Posting
from ledger_kernel.models.product_account import PRODUCT_ACCOUNT_MODELS
from ledger_kernel.selectors.base import BaseSelector


class JournalSelector(BaseSelector[Posting]):
    """
    Read-only access to postings.

    Contract:
        Returns PostingRecord / LedgerBalance DTOs enriched with the GL codes
        of both legs.
    """

    def _records_query(self):
        debit = aliased(GLAccount)
        credit = aliased(GLAccount)
        return (
            select(
                Posting,
                debit.code.label("debit_code"),
                credit.code.label("credit_code"),
            )
            .join(debit, Posting.debit_account_id == debit.id)
            .join(credit, Posting.credit_account_id == credit.id)
        )

    def _account_number(
        self,
        product_type: ProductType | None,
        product_account_id: UUID | None,
    ) -> str | None:
        if product_type is None or product_account_id is None:
            return None
        model = PRODUCT_ACCOUNT_MODELS[ProductType(product_type)]
        return self.session.execute(
            select(model.account_number).where(model.id == product_account_id)
        ).scalar_one_or_none()

    def _to_record(self, row, account_number: str | None = None) -> PostingRecord:
        posting = row.Posting
        if account_number is None:
            account_number = self._account_number(
                posting.product_type, posting.product_account_id
            )
        return PostingRecord.from_model(
            posting,
            debit_account_code=row.debit_code,
            credit_account_code=row.credit_code,
            account_number=account_number,
        )

    def get_posting(self, tenant_id: UUID, posting_id: UUID) -> PostingRecord:
        """
        Raises:
            NotFoundError: If no posting with this id exists for the tenant.
        """
        row = self.session.execute(
            self._records_query().where(
                Posting.tenant_id == tenant_id,
                Posting.id == posting_id,
            )
        ).one_or_none()
        if row is None:
            raise NotFoundError("Posting", str(posting_id))
        return self._to_record(row)

    def get_by_idempotency_key(
        self,
        tenant_id: UUID,
        idempotency_key: str,
    ) -> PostingRecord | None:
        """The posting committed under (tenant, key), or None."""
        row = self.session.execute(
            self._records_query().where(
                Posting.tenant_id == tenant_id,
                Posting.idempotency_key == idempotency_key,
            )
        ).one_or_none()
        if row is None:
            return None
        return self._to_record(row)

    def statement(
        self,
        tenant_id: UUID,
        product_type: ProductType,
        product_account_id: UUID,
        account_number: str,
        date_range: DateRange | None = None,
    ) -> list[PostingRecord]:
        """
        Postings of one product account in commit order.

        Args:
            date_range: Optional inclusive calendar-date filter on posted_at
                (UTC days).
        """
        query = self._records_query().where(
            Posting.tenant_id == tenant_id,
            Posting.product_type == ProductType(product_type).value,
            Posting.product_account_id == product_account_id,
        )
        if date_range is not None:
            if date_range.start is not None:
                query = query.where(
                    Posting.posted_at >= datetime.combine(date_range.start, time.min, tzinfo=UTC)
                )
            if date_range.end is not None:
                end_exclusive = datetime.combine(
                    date_range.end + timedelta(days=1), time.min, tzinfo=UTC
                )
                query = query.where(Posting.posted_at < end_exclusive)

        rows = self.session.execute(query.order_by(Posting.account_seq)).all()
        return [self._to_record(row, account_number) for row in rows]

    def sum_by_account(
        self,
        tenant_id: UUID,
        gl_account_id: UUID,
        product_type: ProductType | None = None,
        product_account_id: UUID | None = None,
    ) -> LedgerBalance:
        """
        Debit and credit totals of one GL account.

        When product_type and product_account_id are given, only postings
        originating from that product account are summed -- the journal
        replay used by reconciliation.

        Raises:
            NotFoundError: If the GL account does not belong to the tenant.
        """
        classification = self.session.execute(
            select(GLAccount.classification).where(
                GLAccount.tenant_id == tenant_id,
                GLAccount.id == gl_account_id,
            )
        ).scalar_one_or_none()
        if classification is None:
            raise NotFoundError("GLAccount", str(gl_account_id))

        debit_sum = func.sum(
            case(
                (Posting.debit_account_id == gl_account_id, Posting.amount),
                else_=Decimal("0"),
            )
        ).label("debit_total")

        credit_sum = func.sum(
            case(
                (Posting.credit_account_id == gl_account_id, Posting.amount),
                else_=Decimal("0"),
            )
        ).label("credit_total")

        query = select(debit_sum, credit_sum).where(
            Posting.tenant_id == tenant_id,
            (Posting.debit_account_id == gl_account_id)
            | (Posting.credit_account_id == gl_account_id),
        )
        if product_type is not None:
            query = query.where(Posting.product_type == ProductType(product_type).value)
        if product_account_id is not None:
            query = query.where(Posting.product_account_id == product_account_id)

        row = self.session.execute(query).one()
        return LedgerBalance(
            gl_account_id=gl_account_id,
            debit_total=to_money(row.debit_total),
            credit_total=to_money(row.credit_total),
            normal_balance=NORMAL_BALANCE[AccountClassification(classification)],
        )

    def count_for_account(
        self,
        tenant_id: UUID,
        product_type: ProductType,
        product_account_id: UUID,
    ) -> int:
        return self.session.execute(
            select(func.count(Posting.id)).where(
                Posting.tenant_id == tenant_id,
                Posting.product_type == ProductType(product_type).value,
                Posting.product_account_id == product_account_id,
            )
        ).scalar_one()
