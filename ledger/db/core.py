from typing import Optional
from sqlalchemy import create_engine, ForeignKey, Index, UniqueConstraint, CheckConstraint, Boolean, Integer, String, Text, DECIMAL, DateTime, Date
from sqlalchemy.types import Enum
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Mapped, relationship, mapped_column
from datetime import datetime, date
from decimal import Decimal
import enum

from ledger.settings import DATABASE_URL, SQL_ECHO


class Base(DeclarativeBase):
    pass


# ===== ENUMS =====

class Currency(str, enum.Enum):
    USD = "USD"
    EUR = "EUR"
    ILS = "ILS"


class TransactionType(str, enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class AccountType(str, enum.Enum):
    SELF = "SELF"
    PARTNER = "PARTNER"
    JOINT = "JOINT"
    OTHER = "OTHER"


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SplitType(str, enum.Enum):
    EQUAL = "EQUAL"
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    DECLINED = "DECLINED"


# ===== USERS & ACCOUNTS =====

class UserDB(Base):
    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
        Index("idx_users_email", "email"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(100))
    preferred_currency: Mapped[Currency] = mapped_column(Enum(Currency), nullable=False, default=Currency.USD)

    # Audit Trail
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    accounts = relationship("AccountDB", back_populates="user")


class AccountDB(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_user_account_name"),
        Index("idx_accounts_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(Enum(AccountType), nullable=False, default=AccountType.SELF)
    preferred_currency: Mapped[Currency] = mapped_column(Enum(Currency), nullable=False, default=Currency.USD)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("UserDB", back_populates="accounts")
    transactions = relationship("TransactionDB", back_populates="account")
    recurring_templates = relationship("RecurringTemplateDB", back_populates="account")
    budgets = relationship("BudgetDB", back_populates="account")


class CategoryDB(Base):
    __tablename__ = "categories"

    __table_args__ = (
        UniqueConstraint("name", "transaction_type", name="uq_category_name_type"),
        Index("idx_category_name", "name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(Enum(TransactionType), nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)


# ===== LEDGER =====

class RecurringTemplateDB(Base):
    __tablename__ = "recurring_templates"

    __table_args__ = (
        CheckConstraint("day_of_month >= 1 AND day_of_month <= 31", name="ck_template_day_of_month"),
        CheckConstraint("amount > 0", name="ck_template_amount_positive"),
        Index("idx_templates_account_active", "account_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)

    transaction_type: Mapped[TransactionType] = mapped_column(Enum(TransactionType), nullable=False)
    amount: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(Enum(Currency), nullable=False)
    day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Active window, both ends are month starts; no end_month means open ended
    start_month: Mapped[date] = mapped_column(Date, nullable=False)
    end_month: Mapped[Optional[date]] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Soft delete; generated transactions keep their recurring_template_id
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    account = relationship("AccountDB", back_populates="recurring_templates")
    category = relationship("CategoryDB")
    transactions = relationship("TransactionDB", back_populates="recurring_template")


class TransactionDB(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        # One generated transaction per template per month
        UniqueConstraint("recurring_template_id", "month", name="uq_template_month"),
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),

        Index("idx_transactions_account_month", "account_id", "month"),
        Index("idx_transactions_month", "month"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)

    transaction_type: Mapped[TransactionType] = mapped_column(Enum(TransactionType), nullable=False)
    amount: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(Enum(Currency), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    month: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_template_id: Mapped[Optional[int]] = mapped_column(ForeignKey("recurring_templates.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    account = relationship("AccountDB", back_populates="transactions")
    category = relationship("CategoryDB")
    recurring_template = relationship("RecurringTemplateDB", back_populates="transactions")
    shared_expense = relationship("SharedExpenseDB", back_populates="transaction", uselist=False)


class BudgetDB(Base):
    __tablename__ = "budgets"

    __table_args__ = (
        UniqueConstraint("account_id", "category_id", "month", name="uq_budget_account_category_month"),
        Index("idx_budgets_account_month", "account_id", "month"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)
    month: Mapped[date] = mapped_column(Date, nullable=False)
    planned: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(Enum(Currency), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    account = relationship("AccountDB", back_populates="budgets")
    category = relationship("CategoryDB")


class TransactionRequestDB(Base):
    __tablename__ = "transaction_requests"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_request_amount_positive"),
        Index("idx_requests_to_status", "to_account_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    from_account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    to_account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)

    amount: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(Enum(Currency), nullable=False)
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[RequestStatus] = mapped_column(Enum(RequestStatus), nullable=False, default=RequestStatus.PENDING)

    # Bumped on every update; a concurrent decision fails with StaleDataError
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    from_account = relationship("AccountDB", foreign_keys=[from_account_id])
    to_account = relationship("AccountDB", foreign_keys=[to_account_id])
    category = relationship("CategoryDB")

    __mapper_args__ = {"version_id_col": version_id}


# ===== EXCHANGE RATES =====

class ExchangeRateDB(Base):
    __tablename__ = "exchange_rates"

    __table_args__ = (
        UniqueConstraint("base_currency", "target_currency", "rate_date", name="uq_rate_pair_date"),
        Index("idx_rates_pair_date", "base_currency", "target_currency", "rate_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    base_currency: Mapped[Currency] = mapped_column(Enum(Currency), nullable=False)
    target_currency: Mapped[Currency] = mapped_column(Enum(Currency), nullable=False)
    rate_date: Mapped[date] = mapped_column(Date, nullable=False)
    rate: Mapped[Decimal] = mapped_column(DECIMAL(18, 8), nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


# ===== EXPENSE SHARING =====

class SharedExpenseDB(Base):
    __tablename__ = "shared_expenses"

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_shared_expense_transaction"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("transactions.id"), nullable=False)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    split_type: Mapped[SplitType] = mapped_column(Enum(SplitType), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(Enum(Currency), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    transaction = relationship("TransactionDB", back_populates="shared_expense")
    owner = relationship("UserDB")
    participants = relationship("ExpenseParticipantDB", back_populates="shared_expense", cascade="all, delete-orphan")


class ExpenseParticipantDB(Base):
    __tablename__ = "expense_participants"

    __table_args__ = (
        UniqueConstraint("shared_expense_id", "participant_id", name="uq_shared_expense_participant"),
        Index("idx_participants_user_status", "participant_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    shared_expense_id: Mapped[int] = mapped_column(ForeignKey("shared_expenses.id"), nullable=False)
    participant_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    share_amount: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    share_percentage: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(7, 4))
    status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    shared_expense = relationship("SharedExpenseDB", back_populates="participants")
    participant = relationship("UserDB")


# ===== ENGINE & SESSIONS =====

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=SQL_ECHO, connect_args=connect_args)
session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Dependency to get the database session
def get_db():
    database = session_local()
    try:
        yield database
    finally:
        database.close()
