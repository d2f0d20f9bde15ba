from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from ledger.crud.crud_request import (
    approve_transaction_request,
    check_transition,
    create_transaction_request,
    read_db_requests,
    reject_transaction_request,
)
from ledger.db.core import (
    TransactionDB, TransactionRequestDB, RequestStatus, TransactionType, Currency,
)
from ledger.errors import AuthorizationError, ConcurrencyError, ConflictError, NotFoundError, ValidationError
from ledger.models.request import TransactionRequestCreate
from ledger.models.transaction import CurrencyEnum


@pytest.fixture
def pending_request(db, account, partner_account, categories):
    return create_transaction_request(db, TransactionRequestCreate(
        from_account_id=account.id,
        to_account_id=partner_account.id,
        category_id=categories["groceries"].id,
        amount=Decimal("64.5"),
        currency=CurrencyEnum.EUR,
        request_date=date(2024, 6, 12),
        description="Half of the groceries",
    ), acting_account_ids=[account.id])


class TestTransitions:

    @pytest.mark.parametrize("target", [RequestStatus.APPROVED, RequestStatus.REJECTED])
    def test_pending_can_be_decided(self, target):
        check_transition(RequestStatus.PENDING, target)

    @pytest.mark.parametrize("current", [RequestStatus.APPROVED, RequestStatus.REJECTED])
    @pytest.mark.parametrize("target", [RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.PENDING])
    def test_terminal_states_are_final(self, current, target):
        with pytest.raises(ConflictError) as exc_info:
            check_transition(current, target)
        assert exc_info.value.message == f"Request is already {current.value.lower()}"


class TestCreateRequest:

    def test_created_pending(self, pending_request):
        assert pending_request.status == RequestStatus.PENDING
        assert pending_request.amount == Decimal("64.50")
        assert pending_request.decided_at is None

    def test_must_send_from_own_account(self, db, account, partner_account, categories):
        with pytest.raises(AuthorizationError):
            create_transaction_request(db, TransactionRequestCreate(
                from_account_id=partner_account.id,
                to_account_id=account.id,
                category_id=categories["groceries"].id,
                amount=Decimal("10"),
                request_date=date(2024, 6, 1),
            ), acting_account_ids=[account.id])

    def test_cannot_request_from_self(self, db, account, categories):
        with pytest.raises(ConflictError):
            create_transaction_request(db, TransactionRequestCreate(
                from_account_id=account.id,
                to_account_id=account.id,
                category_id=categories["groceries"].id,
                amount=Decimal("10"),
                request_date=date(2024, 6, 1),
            ), acting_account_ids=[account.id])

    def test_category_must_be_for_expenses(self, db, account, partner_account, categories):
        with pytest.raises(ValidationError) as excinfo:
            create_transaction_request(db, TransactionRequestCreate(
                from_account_id=account.id,
                to_account_id=partner_account.id,
                category_id=categories["salary"].id,
                amount=Decimal("100"),
                request_date=date(2024, 6, 1),
            ), acting_account_ids=[account.id])

        assert "category_id" in excinfo.value.field_errors
        assert db.query(TransactionRequestDB).count() == 0

    def test_listing_by_recipient_and_status(self, db, pending_request, partner_account, account):
        assert read_db_requests(db, [partner_account.id], RequestStatus.PENDING) == [pending_request]
        assert read_db_requests(db, [partner_account.id], RequestStatus.APPROVED) == []
        assert read_db_requests(db, [account.id]) == []


class TestApprove:

    def test_approve_records_expense_for_recipient(self, db, pending_request, partner_account):
        request, transaction = approve_transaction_request(db, pending_request.id, [partner_account.id])

        assert request.status == RequestStatus.APPROVED
        assert request.decided_at is not None
        assert transaction.account_id == partner_account.id
        assert transaction.transaction_type == TransactionType.EXPENSE
        assert transaction.amount == Decimal("64.50")
        assert transaction.currency == Currency.EUR
        assert transaction.transaction_date == date(2024, 6, 12)
        assert transaction.month == date(2024, 6, 1)
        assert transaction.is_recurring is False

    def test_second_decision_is_refused(self, db, pending_request, partner_account):
        approve_transaction_request(db, pending_request.id, [partner_account.id])

        with pytest.raises(ConflictError, match="Request is already approved"):
            approve_transaction_request(db, pending_request.id, [partner_account.id])
        with pytest.raises(ConflictError, match="Request is already approved"):
            reject_transaction_request(db, pending_request.id, [partner_account.id])

        assert db.query(TransactionDB).count() == 1

    def test_only_recipient_can_approve(self, db, pending_request, account):
        with pytest.raises(AuthorizationError):
            approve_transaction_request(db, pending_request.id, [account.id])
        assert db.query(TransactionDB).count() == 0

    def test_unknown_request(self, db, partner_account):
        with pytest.raises(NotFoundError):
            approve_transaction_request(db, 777, [partner_account.id])

    def test_failed_ledger_write_leaves_request_pending(self, db, pending_request, partner_account):
        """The status change and the ledger write commit together or not at all."""
        broken = TransactionDB(
            account_id=partner_account.id,
            category_id=None,
            transaction_type=TransactionType.EXPENSE,
            amount=Decimal("64.50"),
            currency=Currency.EUR,
            transaction_date=date(2024, 6, 12),
            month=date(2024, 6, 1),
        )

        with patch("ledger.crud.crud_request._ledger_entry_for", return_value=broken):
            with pytest.raises(IntegrityError):
                approve_transaction_request(db, pending_request.id, [partner_account.id])

        stored = db.query(TransactionRequestDB).filter(TransactionRequestDB.id == pending_request.id).one()
        assert stored.status == RequestStatus.PENDING
        assert stored.decided_at is None
        assert db.query(TransactionDB).count() == 0

    def test_concurrent_decision_is_detected(self, db, session_factory, pending_request, partner_account):
        other = session_factory()
        try:
            # Loaded before the first decision lands
            other.query(TransactionRequestDB).filter(TransactionRequestDB.id == pending_request.id).one()

            approve_transaction_request(db, pending_request.id, [partner_account.id])

            with pytest.raises(ConcurrencyError):
                reject_transaction_request(other, pending_request.id, [partner_account.id])
        finally:
            other.close()

        stored = db.query(TransactionRequestDB).filter(TransactionRequestDB.id == pending_request.id).one()
        assert stored.status == RequestStatus.APPROVED


class TestReject:

    def test_reject_writes_nothing_to_the_ledger(self, db, pending_request, partner_account):
        request = reject_transaction_request(db, pending_request.id, [partner_account.id])

        assert request.status == RequestStatus.REJECTED
        assert request.decided_at is not None
        assert db.query(TransactionDB).count() == 0

    def test_rejected_request_cannot_be_approved(self, db, pending_request, partner_account):
        reject_transaction_request(db, pending_request.id, [partner_account.id])
        with pytest.raises(ConflictError, match="Request is already rejected"):
            approve_transaction_request(db, pending_request.id, [partner_account.id])

    def test_only_recipient_can_reject(self, db, pending_request, account):
        with pytest.raises(AuthorizationError):
            reject_transaction_request(db, pending_request.id, [account.id])
