from decimal import Decimal

import pytest

from ledger.db.core import SplitType
from ledger.services.splits import ParticipantInput, compute_shares


EMAILS = ["alice@example.com", "bob@example.com"]


class TestEqualSplit:
    """EQUAL divides by participants plus the owner."""

    def test_three_way_split_keeps_rounding_drift(self):
        """100 between owner and two participants is 33.33 each, one cent short."""
        shares = compute_shares(
            SplitType.EQUAL,
            Decimal("100"),
            [ParticipantInput("alice@example.com"), ParticipantInput("bob@example.com")],
            EMAILS,
        )
        assert shares["alice@example.com"].amount == Decimal("33.33")
        assert shares["bob@example.com"].amount == Decimal("33.33")
        assert shares["alice@example.com"].percentage is None
        owner_share = Decimal("33.33")
        assert sum(s.amount for s in shares.values()) + owner_share == Decimal("99.99")

    def test_two_way_split_is_exact(self):
        shares = compute_shares(SplitType.EQUAL, Decimal("100"), [ParticipantInput("alice@example.com")], EMAILS)
        assert shares["alice@example.com"].amount == Decimal("50.00")

    def test_rounds_half_up(self):
        # 0.05 / 2 = 0.025
        shares = compute_shares(SplitType.EQUAL, Decimal("0.05"), [ParticipantInput("alice@example.com")], EMAILS)
        assert shares["alice@example.com"].amount == Decimal("0.03")

    def test_unmatched_participants_do_not_count(self):
        """Only matched participants are part of the divisor."""
        shares = compute_shares(
            SplitType.EQUAL,
            Decimal("100"),
            [ParticipantInput("alice@example.com"), ParticipantInput("stranger@example.com")],
            EMAILS,
        )
        assert list(shares) == ["alice@example.com"]
        assert shares["alice@example.com"].amount == Decimal("50.00")


class TestPercentageSplit:

    def test_amounts_follow_percentages(self):
        shares = compute_shares(
            SplitType.PERCENTAGE,
            Decimal("200"),
            [
                ParticipantInput("alice@example.com", share_percentage=Decimal("25")),
                ParticipantInput("bob@example.com", share_percentage=Decimal("15")),
            ],
            EMAILS,
        )
        assert shares["alice@example.com"].amount == Decimal("50.00")
        assert shares["bob@example.com"].amount == Decimal("30.00")

    def test_percentage_is_echoed_unrounded(self):
        shares = compute_shares(
            SplitType.PERCENTAGE,
            Decimal("10"),
            [ParticipantInput("alice@example.com", share_percentage=Decimal("33.3333"))],
            EMAILS,
        )
        assert shares["alice@example.com"].percentage == Decimal("33.3333")
        assert shares["alice@example.com"].amount == Decimal("3.33")

    def test_missing_percentage_counts_as_zero(self):
        shares = compute_shares(SplitType.PERCENTAGE, Decimal("80"), [ParticipantInput("bob@example.com")], EMAILS)
        assert shares["bob@example.com"].amount == Decimal("0.00")
        assert shares["bob@example.com"].percentage == Decimal("0")


class TestFixedSplit:

    def test_amount_above_total_is_returned_as_is(self):
        """The calculator never validates fixed sums."""
        shares = compute_shares(
            SplitType.FIXED,
            Decimal("100"),
            [ParticipantInput("alice@example.com", share_amount=Decimal("150"))],
            EMAILS,
        )
        assert shares["alice@example.com"].amount == Decimal("150")
        assert shares["alice@example.com"].percentage is None

    def test_missing_amount_counts_as_zero(self):
        shares = compute_shares(SplitType.FIXED, Decimal("100"), [ParticipantInput("bob@example.com")], EMAILS)
        assert shares["bob@example.com"].amount == Decimal("0")


class TestMatching:

    @pytest.mark.parametrize("split_type", list(SplitType))
    def test_empty_participant_list(self, split_type):
        assert compute_shares(split_type, Decimal("100"), [], EMAILS) == {}

    def test_emails_match_case_insensitively(self):
        shares = compute_shares(
            SplitType.FIXED,
            Decimal("100"),
            [ParticipantInput("Alice@Example.COM", share_amount=Decimal("10"))],
            ["ALICE@example.com"],
        )
        assert list(shares) == ["alice@example.com"]
