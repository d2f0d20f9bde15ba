from datetime import date, datetime
from decimal import Decimal

import pytest

from ledger.crud.crud_request import create_transaction_request
from ledger.db.core import BudgetDB, Currency, ExchangeRateDB, RecurringTemplateDB, TransactionDB, TransactionType
from ledger.errors import NotFoundError, ValidationError
from ledger.models.request import TransactionRequestCreate
from ledger.services.dashboard import build_dashboard


MARCH = date(2024, 3, 1)


@pytest.fixture
def eur_rate(db):
    db.add(ExchangeRateDB(base_currency=Currency.EUR, target_currency=Currency.USD, rate_date=MARCH,
                          rate=Decimal("1.10"), fetched_at=datetime(2024, 3, 1, 8, 0)))
    db.commit()


@pytest.fixture
def make_budget(db, account, categories):
    def _make(category, planned, currency=Currency.USD, month=MARCH, budget_account=None):
        budget = BudgetDB(account_id=(budget_account or account).id, category_id=categories[category].id,
                          month=month, planned=Decimal(planned), currency=currency)
        db.add(budget)
        db.commit()
        return budget
    return _make


@pytest.fixture
def march_ledger(account, categories, make_transaction, make_budget, eur_rate):
    make_transaction(account, categories["salary"], "4000", date(2024, 3, 1))
    make_transaction(account, categories["groceries"], "200", date(2024, 3, 8))
    make_transaction(account, categories["groceries"], "100", date(2024, 3, 15), currency=Currency.EUR)
    make_budget("salary", "5000")
    make_budget("groceries", "500")
    make_budget("rent", "1000")


class TestTotals:

    def test_actual_planned_and_projected(self, db, account, conversion, march_ledger):
        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)
        totals = data.totals

        assert data.preferred_currency.value == "USD"
        assert totals.actual_income == Decimal("4000")
        # 100 EUR at 1.10
        assert totals.actual_expense == Decimal("310")
        assert totals.planned_income == Decimal("5000")
        assert totals.planned_expense == Decimal("1500")
        assert totals.remaining_income == Decimal("1000")
        assert totals.remaining_expense == Decimal("1190")
        assert totals.actual_net == Decimal("3690")
        assert totals.planned_net == Decimal("3500")
        assert totals.projected_net == Decimal("3500")

    def test_overspend_is_not_counted_as_remaining(self, db, account, categories, conversion,
                                                   make_transaction, make_budget):
        make_transaction(account, categories["salary"], "4000", date(2024, 3, 1))
        make_transaction(account, categories["groceries"], "310", date(2024, 3, 8))
        make_budget("salary", "5000")
        make_budget("groceries", "100")

        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)

        assert data.totals.remaining_expense == Decimal("-210")
        assert data.totals.projected_net == Decimal("4690")
        left = next(s for s in data.stats if s.label == "Left to spend")
        assert left.amount == Decimal("0")
        assert left.variant == "neutral"

    def test_empty_month(self, db, account, conversion):
        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)

        assert data.totals.actual_net == Decimal("0")
        assert data.totals.projected_net == Decimal("0")
        assert data.budgets == []
        assert data.transactions == []
        assert len(data.history) == 6

    def test_missing_rate_keeps_original_amount(self, db, account, categories, conversion, make_transaction):
        make_transaction(account, categories["groceries"], "50", date(2024, 3, 3), currency=Currency.ILS)

        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)

        assert data.totals.actual_expense == Decimal("50")
        assert data.transactions[0].converted_amount == Decimal("50")

    def test_explicit_preferred_currency(self, db, account, categories, conversion, make_transaction, eur_rate):
        make_transaction(account, categories["groceries"], "100", date(2024, 3, 3), currency=Currency.EUR)

        data = build_dashboard(db, "2024-03", account_id=account.id, preferred_currency=Currency.EUR,
                               conversion=conversion)

        assert data.preferred_currency.value == "EUR"
        assert data.totals.actual_expense == Decimal("100")

    def test_other_accounts_are_excluded(self, db, account, partner_account, categories, conversion, make_transaction):
        make_transaction(account, categories["groceries"], "20", date(2024, 3, 3))
        make_transaction(partner_account, categories["groceries"], "999", date(2024, 3, 3))

        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)

        assert data.totals.actual_expense == Decimal("20")
        assert {t.account_id for t in data.transactions} == {account.id}

    def test_acting_accounts_scope_everything(self, db, account, partner_account, categories, conversion,
                                              make_transaction, make_budget):
        make_transaction(account, categories["groceries"], "20", date(2024, 3, 3))
        make_transaction(partner_account, categories["groceries"], "999", date(2024, 3, 3))
        make_budget("groceries", "300", budget_account=partner_account)

        data = build_dashboard(db, "2024-03", conversion=conversion, account_ids=[account.id])

        assert [a.name for a in data.accounts] == ["Main"]
        assert data.totals.actual_expense == Decimal("20")
        assert data.budgets == []

    def test_account_outside_acting_accounts_is_not_found(self, db, account, partner_account, conversion):
        with pytest.raises(NotFoundError):
            build_dashboard(db, "2024-03", account_id=partner_account.id, conversion=conversion,
                            account_ids=[account.id])

    def test_expense_in_income_category_stays_out_of_income_budget(self, db, account, categories, conversion,
                                                                    make_budget):
        make_budget("salary", "5000")
        db.add(TransactionDB(
            account_id=account.id, category_id=categories["salary"].id, transaction_type=TransactionType.EXPENSE,
            amount=Decimal("100"), currency=Currency.USD, transaction_date=date(2024, 3, 4), month=MARCH,
        ))
        db.commit()

        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)

        assert data.totals.actual_expense == Decimal("100")
        [salary_budget] = data.budgets
        assert salary_budget.actual == Decimal("0")
        assert salary_budget.remaining == Decimal("5000")


class TestStats:

    def test_stat_cards(self, db, account, conversion, march_ledger):
        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)
        stats = {s.label: s for s in data.stats}

        assert list(stats) == ["Saved so far", "On track for", "Left to spend", "Monthly goal"]
        assert stats["Saved so far"].amount == Decimal("3690")
        assert stats["Saved so far"].variant == "positive"
        assert stats["Left to spend"].amount == Decimal("1190")
        assert stats["Left to spend"].variant == "negative"
        assert stats["Monthly goal"].amount == Decimal("3500")

    def test_negative_net_is_negative_variant(self, db, account, categories, conversion, make_transaction):
        make_transaction(account, categories["rent"], "800", date(2024, 3, 1))
        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)
        assert data.stats[0].variant == "negative"


class TestCategorySummaries:

    def test_budget_progress(self, db, account, conversion, march_ledger):
        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)
        summaries = {s.category_name: s for s in data.budgets}

        assert summaries["Groceries"].planned == Decimal("500")
        assert summaries["Groceries"].actual == Decimal("310")
        assert summaries["Groceries"].remaining == Decimal("190")
        assert summaries["Rent"].actual == Decimal("0")
        assert summaries["Salary"].category_type.value == "INCOME"
        assert summaries["Salary"].month == "2024-03"

    def test_budget_in_other_currency_is_converted(self, db, account, conversion, make_budget, eur_rate):
        make_budget("rent", "1000", currency=Currency.EUR)
        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)
        assert data.totals.planned_expense == Decimal("1100")


class TestHistory:

    def test_six_months_oldest_first_with_gaps(self, db, account, categories, conversion, make_transaction):
        make_transaction(account, categories["salary"], "3000", date(2024, 2, 1))
        make_transaction(account, categories["rent"], "1200", date(2023, 11, 1))

        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)

        assert [p.month for p in data.history] == [
            "2023-10", "2023-11", "2023-12", "2024-01", "2024-02", "2024-03",
        ]
        by_month = {p.month: p for p in data.history}
        assert by_month["2023-10"].net == Decimal("0")
        assert by_month["2023-11"].expense == Decimal("1200")
        assert by_month["2024-02"].income == Decimal("3000")

    def test_older_months_are_not_included(self, db, account, categories, conversion, make_transaction):
        make_transaction(account, categories["salary"], "3000", date(2023, 9, 30))
        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)
        assert all(p.income == Decimal("0") for p in data.history)

    def test_history_converts_with_fallback_rates(self, db, account, categories, conversion,
                                                  make_transaction, eur_rate):
        """February has no stored rates, so the latest stored pair is used."""
        make_transaction(account, categories["rent"], "100", date(2024, 2, 5), currency=Currency.EUR)
        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)
        assert {p.month: p for p in data.history}["2024-02"].expense == Decimal("110")

    def test_comparison_with_previous_month(self, db, account, categories, conversion, make_transaction,
                                            march_ledger):
        make_transaction(account, categories["salary"], "3000", date(2024, 2, 1))

        data = build_dashboard(db, "2024-03", account_id=account.id, conversion=conversion)

        assert data.comparison.previous_month == "2024-02"
        assert data.comparison.previous_net == Decimal("3000")
        assert data.comparison.change == Decimal("690")


class TestDashboardContext:

    def test_recurring_income_pending_requests_and_rate_timestamp(
        self, db, account, partner_account, categories, conversion, eur_rate,
    ):
        db.add_all([
            RecurringTemplateDB(account_id=partner_account.id, category_id=categories["salary"].id,
                                transaction_type=categories["salary"].transaction_type, amount=Decimal("2000"),
                                currency=Currency.EUR, day_of_month=10, start_month=date(2024, 1, 1)),
            RecurringTemplateDB(account_id=partner_account.id, category_id=categories["salary"].id,
                                transaction_type=categories["salary"].transaction_type, amount=Decimal("500"),
                                currency=Currency.USD, day_of_month=20, start_month=date(2024, 1, 1),
                                is_active=False),
        ])
        db.commit()
        create_transaction_request(db, TransactionRequestCreate(
            from_account_id=account.id, to_account_id=partner_account.id,
            category_id=categories["groceries"].id, amount=Decimal("30"), request_date=date(2024, 3, 2),
        ), acting_account_ids=[account.id])

        data = build_dashboard(db, "2024-03", account_id=partner_account.id, conversion=conversion)

        assert data.expected_recurring_income == Decimal("2200")
        assert len(data.recurring_templates) == 2
        assert len(data.pending_requests) == 1
        assert data.exchange_rate_last_update == datetime(2024, 3, 1, 8, 0)
        assert {a.id for a in data.accounts} == {account.id, partner_account.id}
        assert {c.name for c in data.categories} == {"Salary", "Groceries", "Rent"}

    def test_without_account_amounts_are_not_converted(self, db, account, categories, conversion,
                                                       make_transaction, eur_rate):
        make_transaction(account, categories["groceries"], "100", date(2024, 3, 3), currency=Currency.EUR)
        data = build_dashboard(db, "2024-03", conversion=conversion)
        assert data.preferred_currency is None
        assert data.totals.actual_expense == Decimal("100")

    def test_unknown_account(self, db, conversion):
        with pytest.raises(NotFoundError):
            build_dashboard(db, "2024-03", account_id=42, conversion=conversion)

    def test_bad_month(self, db, conversion):
        with pytest.raises(ValidationError):
            build_dashboard(db, "March", conversion=conversion)
