from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError
from sqlalchemy import and_, or_, func
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ledger.db.core import (
    SharedExpenseDB, ExpenseParticipantDB, TransactionDB, UserDB, SplitType, PaymentStatus, Currency
)
from ledger.errors import NotFoundError, AuthorizationError, ConflictError, ValidationError
from ledger.models.sharing import ShareExpenseCreate
from ledger.services.splits import ParticipantInput, compute_shares
from ledger.logging_config import get_logger

logger = get_logger(__name__)


# ===== SHARING =====

def share_expense(db: Session, owner_id: int, share_data: ShareExpenseCreate) -> SharedExpenseDB:
    """Split one of the owner's transactions with other users"""

    owner = db.query(UserDB).filter(UserDB.id == owner_id).first()
    if not owner:
        raise NotFoundError("User", owner_id)

    transaction = db.query(TransactionDB).filter(TransactionDB.id == share_data.transaction_id).first()
    if not transaction:
        raise NotFoundError("Transaction", share_data.transaction_id)
    if transaction.account.user_id != owner_id:
        raise AuthorizationError("You do not have access to this transaction")
    if transaction.shared_expense is not None:
        raise ConflictError("This transaction is already shared")

    participant_emails = [p.email.lower() for p in share_data.participants]
    if owner.email.lower() in participant_emails:
        raise ConflictError("Expenses can only be shared with others.")

    users = db.query(UserDB).filter(func.lower(UserDB.email).in_(participant_emails)).all()
    found = {user.email.lower() for user in users}
    missing = [email for email in participant_emails if email not in found]
    if missing:
        raise ValidationError.fields({"participants": [f"Users not found: {', '.join(missing)}"]})

    split_type = SplitType(share_data.split_type.value)
    total = transaction.amount

    if split_type == SplitType.FIXED:
        fixed_total = sum((p.share_amount or Decimal("0") for p in share_data.participants), Decimal("0"))
        if fixed_total > total:
            raise ValidationError.fields({"participants": [
                f"Total share amounts ({fixed_total:.2f}) cannot exceed transaction total ({total:.2f})"
            ]})

    shares = compute_shares(
        split_type,
        total,
        [ParticipantInput(p.email, p.share_percentage, p.share_amount) for p in share_data.participants],
        [user.email for user in users],
    )

    shared_expense = SharedExpenseDB(
        transaction_id=transaction.id,
        owner_id=owner_id,
        split_type=split_type,
        total_amount=total,
        currency=transaction.currency,
        description=share_data.description,
    )
    for user in users:
        share = shares[user.email.lower()]
        shared_expense.participants.append(ExpenseParticipantDB(
            participant_id=user.id,
            share_amount=share.amount,
            share_percentage=share.percentage,
            status=PaymentStatus.PENDING,
        ))

    try:
        db.add(shared_expense)
        db.commit()
        db.refresh(shared_expense)
    except IntegrityError:
        db.rollback()
        raise ConflictError("This transaction is already shared")

    logger.info(f"Transaction {transaction.id} shared with {len(users)} participant(s) using {split_type.value} split")
    return shared_expense


def read_shared_expenses(db: Session, owner_id: int) -> List[SharedExpenseDB]:
    return db.query(SharedExpenseDB).options(joinedload(SharedExpenseDB.participants)).filter(
        SharedExpenseDB.owner_id == owner_id
    ).order_by(SharedExpenseDB.created_at.desc()).all()


def read_shares_for_participant(db: Session, user_id: int,
                                status: Optional[PaymentStatus] = None) -> List[ExpenseParticipantDB]:
    """Shares other users assigned to ``user_id``, newest expense first"""
    query = db.query(ExpenseParticipantDB).join(SharedExpenseDB).options(
        joinedload(ExpenseParticipantDB.shared_expense).joinedload(SharedExpenseDB.owner)
    ).filter(ExpenseParticipantDB.participant_id == user_id)
    if status is not None:
        query = query.filter(ExpenseParticipantDB.status == status)
    return query.order_by(SharedExpenseDB.created_at.desc(), ExpenseParticipantDB.id.desc()).all()


def _read_participant(db: Session, participant_record_id: int) -> ExpenseParticipantDB:
    participant = db.query(ExpenseParticipantDB).filter(ExpenseParticipantDB.id == participant_record_id).first()
    if not participant:
        raise NotFoundError("Participant record", participant_record_id)
    return participant


def decline_share(db: Session, user_id: int, participant_record_id: int) -> ExpenseParticipantDB:
    participant = _read_participant(db, participant_record_id)
    if participant.participant_id != user_id:
        raise AuthorizationError("You can only decline shares assigned to you")
    if participant.status != PaymentStatus.PENDING:
        raise ConflictError(f"Cannot decline a share that is already {participant.status.value.lower()}")

    participant.status = PaymentStatus.DECLINED
    db.commit()
    db.refresh(participant)
    return participant


def mark_share_paid(db: Session, owner_id: int, participant_record_id: int) -> ExpenseParticipantDB:
    participant = _read_participant(db, participant_record_id)
    if participant.shared_expense.owner_id != owner_id:
        raise AuthorizationError("Only the expense owner can mark payments as received")
    if participant.status == PaymentStatus.PAID:
        raise ConflictError("This share is already marked as paid")
    if participant.status == PaymentStatus.DECLINED:
        raise ConflictError("Cannot mark a declined share as paid")

    participant.status = PaymentStatus.PAID
    participant.paid_at = datetime.utcnow()
    db.commit()
    db.refresh(participant)
    return participant

# ===== SETTLEMENT =====

@dataclass
class SettlementBalance:
    user: UserDB
    currency: Currency
    you_owe: Decimal = Decimal("0")
    they_owe: Decimal = Decimal("0")

    @property
    def net_balance(self) -> Decimal:
        return self.they_owe - self.you_owe


def read_settlement_balances(db: Session, user_id: int) -> List[SettlementBalance]:
    """
    Pending amounts between ``user_id`` and everyone they share expenses with.

    One balance per other user and currency, largest absolute net first.
    """
    owed_to_user = db.query(ExpenseParticipantDB).join(SharedExpenseDB).options(
        joinedload(ExpenseParticipantDB.participant)
    ).filter(
        SharedExpenseDB.owner_id == user_id,
        ExpenseParticipantDB.status == PaymentStatus.PENDING,
    ).all()

    owed_by_user = db.query(ExpenseParticipantDB).join(SharedExpenseDB).options(
        joinedload(ExpenseParticipantDB.shared_expense).joinedload(SharedExpenseDB.owner)
    ).filter(
        ExpenseParticipantDB.participant_id == user_id,
        ExpenseParticipantDB.status == PaymentStatus.PENDING,
    ).all()

    balances: Dict[Tuple[int, Currency], SettlementBalance] = {}

    def balance_with(other: UserDB, currency: Currency) -> SettlementBalance:
        key = (other.id, currency)
        if key not in balances:
            balances[key] = SettlementBalance(user=other, currency=currency)
        return balances[key]

    for participant in owed_to_user:
        balance = balance_with(participant.participant, participant.shared_expense.currency)
        balance.they_owe += participant.share_amount
    for participant in owed_by_user:
        expense = participant.shared_expense
        balance = balance_with(expense.owner, expense.currency)
        balance.you_owe += participant.share_amount

    return sorted(balances.values(), key=lambda balance: abs(balance.net_balance), reverse=True)



def settle_all_with_user(db: Session, user_id: int, other_user_id: int, currency: Currency) -> int:
    """Mark every pending share between two users in one currency as paid, both directions"""

    pending = db.query(ExpenseParticipantDB).join(SharedExpenseDB).filter(
        ExpenseParticipantDB.status == PaymentStatus.PENDING,
        SharedExpenseDB.currency == currency,
        or_(
            and_(SharedExpenseDB.owner_id == user_id, ExpenseParticipantDB.participant_id == other_user_id),
            and_(SharedExpenseDB.owner_id == other_user_id, ExpenseParticipantDB.participant_id == user_id),
        ),
    ).all()

    if not pending:
        raise NotFoundError("Pending expenses with this user")

    paid_at = datetime.utcnow()
    for participant in pending:
        participant.status = PaymentStatus.PAID
        participant.paid_at = paid_at
    db.commit()

    logger.info(f"Settled {len(pending)} share(s) between users {user_id} and {other_user_id}")
    return len(pending)


def cancel_shared_expense(db: Session, owner_id: int, shared_expense_id: int) -> None:
    shared_expense = db.query(SharedExpenseDB).filter(SharedExpenseDB.id == shared_expense_id).first()
    if not shared_expense:
        raise NotFoundError("Shared expense", shared_expense_id)
    if shared_expense.owner_id != owner_id:
        raise AuthorizationError("Only the expense owner can cancel sharing")
    if any(p.status == PaymentStatus.PAID for p in shared_expense.participants):
        raise ConflictError("Cannot cancel sharing after a participant has paid")

    db.delete(shared_expense)
    db.commit()
