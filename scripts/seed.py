import sys
import os
import random
from sqlalchemy.orm import Session
from datetime import date, datetime
from decimal import Decimal
from faker import Faker

# Add the project root to the Python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ledger.db.core import (
    Base,
    engine,
    session_local,
    UserDB,
    AccountDB,
    CategoryDB,
    TransactionDB,
    RecurringTemplateDB,
    BudgetDB,
    ExchangeRateDB,
    TransactionRequestDB,
    AccountType,
    Currency,
    TransactionType,
    RequestStatus,
)
from ledger.money import round_money
from ledger.months import add_months, clamp_day, month_start

fake = Faker()

CATEGORIES = {
    TransactionType.INCOME: ["Salary", "Freelance", "Gifts"],
    TransactionType.EXPENSE: ["Rent", "Groceries", "Utilities", "Restaurants", "Transport", "Health"],
}

# Rough mid-market rates, only for local data
SAMPLE_RATES = {
    (Currency.USD, Currency.EUR): Decimal("0.92"),
    (Currency.USD, Currency.ILS): Decimal("3.70"),
    (Currency.EUR, Currency.USD): Decimal("1.087"),
    (Currency.EUR, Currency.ILS): Decimal("4.02"),
    (Currency.ILS, Currency.USD): Decimal("0.27"),
    (Currency.ILS, Currency.EUR): Decimal("0.249"),
}


def seed_database(months: int = 6):
    """
    Fills the database with a household: two users, their accounts, six months
    of transactions, budgets, recurring templates and a pending request.
    """
    Base.metadata.create_all(bind=engine)
    db: Session = session_local()

    try:
        if db.query(UserDB).count() > 0:
            print("Database appears to be already seeded. Exiting.")
            return

        print("Seeding database with sample household data...")

        print("Creating categories...")
        categories = {}
        for transaction_type, names in CATEGORIES.items():
            categories[transaction_type] = []
            for name in names:
                category = CategoryDB(name=name, transaction_type=transaction_type)
                db.add(category)
                categories[transaction_type].append(category)
        db.flush()

        print("Creating exchange rates...")
        today = date.today()
        for (base, target), rate in SAMPLE_RATES.items():
            db.add(ExchangeRateDB(base_currency=base, target_currency=target, rate_date=today,
                                  rate=rate, fetched_at=datetime.utcnow()))

        print("Creating users and accounts...")
        accounts = []
        for i, (account_type, currency) in enumerate([(AccountType.SELF, Currency.USD), (AccountType.PARTNER, Currency.ILS)]):
            user = UserDB(email=fake.unique.email(), display_name=fake.first_name(), preferred_currency=currency)
            db.add(user)
            db.flush()
            account = AccountDB(user_id=user.id, name=f"{user.display_name}'s account",
                                account_type=account_type, preferred_currency=currency)
            db.add(account)
            db.flush()
            accounts.append(account)

        current_month = month_start(today)
        for account in accounts:
            print(f"Creating ledger data for {account.name}...")

            salary = RecurringTemplateDB(
                account_id=account.id,
                category_id=categories[TransactionType.INCOME][0].id,
                transaction_type=TransactionType.INCOME,
                amount=round_money(random.uniform(6000, 12000)),
                currency=account.preferred_currency,
                day_of_month=random.choice([1, 10, 28, 31]),
                description="Monthly salary",
                start_month=add_months(current_month, -(months - 1)),
                is_active=True,
            )
            rent = RecurringTemplateDB(
                account_id=account.id,
                category_id=categories[TransactionType.EXPENSE][0].id,
                transaction_type=TransactionType.EXPENSE,
                amount=round_money(random.uniform(1500, 4000)),
                currency=account.preferred_currency,
                day_of_month=1,
                description="Rent",
                start_month=add_months(current_month, -(months - 1)),
                is_active=True,
            )
            db.add_all([salary, rent])
            db.flush()

            for offset in range(months - 1, -1, -1):
                month = add_months(current_month, -offset)

                for template in (salary, rent):
                    db.add(TransactionDB(
                        account_id=account.id, category_id=template.category_id,
                        transaction_type=template.transaction_type, amount=template.amount,
                        currency=template.currency, transaction_date=clamp_day(month, template.day_of_month),
                        month=month, description=template.description,
                        is_recurring=True, recurring_template_id=template.id,
                    ))

                for _ in range(random.randint(8, 20)):
                    category = random.choice(categories[TransactionType.EXPENSE][1:])
                    db.add(TransactionDB(
                        account_id=account.id, category_id=category.id,
                        transaction_type=TransactionType.EXPENSE,
                        amount=round_money(random.uniform(5, 400)),
                        currency=random.choice(list(Currency)),
                        transaction_date=clamp_day(month, random.randint(1, 31)),
                        month=month, description=fake.company(),
                    ))

                for category in categories[TransactionType.EXPENSE][1:]:
                    db.add(BudgetDB(
                        account_id=account.id, category_id=category.id, month=month,
                        planned=round_money(random.uniform(200, 1500)), currency=account.preferred_currency,
                    ))

        print("Creating a pending request...")
        db.add(TransactionRequestDB(
            from_account_id=accounts[0].id,
            to_account_id=accounts[1].id,
            category_id=categories[TransactionType.EXPENSE][1].id,
            amount=round_money(random.uniform(20, 200)),
            currency=accounts[1].preferred_currency,
            request_date=today,
            description="Half of the weekly groceries",
            status=RequestStatus.PENDING,
        ))

        db.commit()
        print("Successfully seeded database.")

    except Exception as e:
        print(f"An error occurred: {e}")
        import traceback
        traceback.print_exc()
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    seed_database()
