"""
Expense split arithmetic.

Works out what each participant of a shared expense owes under the EQUAL,
PERCENTAGE and FIXED strategies. Pure functions, no database access.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Optional, Sequence

from ledger.db.core import SplitType
from ledger.money import round_money


@dataclass
class ParticipantInput:
    email: str
    share_percentage: Optional[Decimal] = None
    share_amount: Optional[Decimal] = None


@dataclass
class Share:
    amount: Decimal
    percentage: Optional[Decimal] = None


def compute_shares(
    split_type: SplitType,
    total_amount: Decimal,
    participants: Sequence[ParticipantInput],
    valid_emails: Iterable[str],
) -> Dict[str, Share]:
    """
    Compute per-participant shares keyed by lower-cased email.

    Participants whose email is not in ``valid_emails`` are dropped. EQUAL
    divides by the matched participants plus the owner, so the owner's part is
    implicit and the shares never need to add up to the total. FIXED amounts are
    taken verbatim; rejecting a sum above the total is the caller's job.
    """
    known = {email.lower() for email in valid_emails}
    matched = [p for p in participants if p.email.lower() in known]
    shares: Dict[str, Share] = {}

    if not matched:
        return shares

    if split_type == SplitType.EQUAL:
        each = round_money(Decimal(total_amount) / (len(matched) + 1))
        for participant in matched:
            shares[participant.email.lower()] = Share(amount=each)

    elif split_type == SplitType.PERCENTAGE:
        for participant in matched:
            percentage = participant.share_percentage if participant.share_percentage is not None else Decimal("0")
            shares[participant.email.lower()] = Share(
                amount=round_money(Decimal(total_amount) * percentage / 100),
                percentage=percentage,
            )

    elif split_type == SplitType.FIXED:
        for participant in matched:
            amount = participant.share_amount if participant.share_amount is not None else Decimal("0")
            shares[participant.email.lower()] = Share(amount=amount)

    else:
        raise ValueError(f"Unsupported split type: {split_type}")

    return shares
