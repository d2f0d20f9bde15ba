from datetime import date
from decimal import Decimal

import pytest

from ledger.crud.crud_budget import delete_db_budget, read_db_month_budgets, upsert_db_budget
from ledger.db.core import Currency
from ledger.errors import NotFoundError
from ledger.models.budget import BudgetUpsert
from ledger.models.transaction import CurrencyEnum


class TestBudgets:

    def test_upsert_replaces_planned_amount(self, db, account, categories):
        first = upsert_db_budget(db, BudgetUpsert(
            account_id=account.id, category_id=categories["groceries"].id, month="2024-03", planned=Decimal("400"),
        ))
        second = upsert_db_budget(db, BudgetUpsert(
            account_id=account.id, category_id=categories["groceries"].id, month="2024-03",
            planned=Decimal("450.565"), currency=CurrencyEnum.EUR, notes="  more guests  ",
        ))

        assert second.id == first.id
        assert second.month == date(2024, 3, 1)
        assert second.planned == Decimal("450.57")
        assert second.currency == Currency.EUR
        assert second.notes == "more guests"
        assert len(read_db_month_budgets(db, "2024-03", account.id)) == 1

    def test_months_are_separate(self, db, account, categories):
        for month in ("2024-03", "2024-04"):
            upsert_db_budget(db, BudgetUpsert(
                account_id=account.id, category_id=categories["rent"].id, month=month, planned=Decimal("1000"),
            ))
        assert len(read_db_month_budgets(db, "2024-04")) == 1

    def test_foreign_account(self, db, account, partner_account, categories):
        with pytest.raises(NotFoundError):
            upsert_db_budget(db, BudgetUpsert(
                account_id=partner_account.id, category_id=categories["rent"].id, month="2024-03",
                planned=Decimal("1"),
            ), account_ids=[account.id])

    def test_bad_month_key_is_rejected_by_schema(self, account, categories):
        with pytest.raises(ValueError):
            BudgetUpsert(account_id=account.id, category_id=categories["rent"].id, month="2024-13",
                         planned=Decimal("1"))

    def test_delete(self, db, account, categories):
        budget = upsert_db_budget(db, BudgetUpsert(
            account_id=account.id, category_id=categories["rent"].id, month="2024-03", planned=Decimal("10"),
        ))
        delete_db_budget(db, budget.id, account_ids=[account.id])
        assert read_db_month_budgets(db, "2024-03") == []
        with pytest.raises(NotFoundError):
            delete_db_budget(db, budget.id)
