from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from aggregation import (
    BudgetStatus,
    Summary,
    compute_budget_status,
    compute_summary,
)
from auth import hash_password, verify_password
from errors import Conflict, NotFound, ServiceError, Unauthorized, ValidationFailed
from models import (
    Budget,
    Category,
    Transaction,
    TransactionType,
    User,
    cents_to_amount,
)
from periods import month_period
from schemas import BudgetIn, CategoryIn, RegisterIn, TransactionIn

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: tuple[tuple[str, TransactionType], ...] = (
    ("Salary", TransactionType.income),
    ("Freelance", TransactionType.income),
    ("Food", TransactionType.expense),
    ("Transport", TransactionType.expense),
    ("Entertainment", TransactionType.expense),
    ("Utilities", TransactionType.expense),
    ("Shopping", TransactionType.expense),
    ("Healthcare", TransactionType.expense),
)

_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def amount_to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    limit: Optional[int] = None


@dataclass(frozen=True)
class BudgetReport:
    budget: Budget
    spent: Decimal
    status: BudgetStatus


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        return user

    def register(self, data: RegisterIn) -> User:
        email = data.email.strip().lower()
        existing = self.session.scalar(select(User).where(User.email == email))
        if existing:
            raise Conflict("User already exists")
        try:
            digest = hash_password(data.password)
        except ValueError as exc:
            raise ValidationFailed("Password is too long") from exc

        user = User(email=email, password_digest=digest, role=data.role)
        self.session.add(user)
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            raise Conflict("User already exists") from exc

        CategoryService(self.session, user.id).create_defaults()
        self.session.commit()
        self.session.refresh(user)
        logger.info(f"user_registered: user_id={user.id} role={user.role.value}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.session.scalar(
            select(User).where(User.email == email.strip().lower())
        )
        if not user or not verify_password(user.password_digest, password):
            logger.info("login_failed: reason=invalid_credentials")
            raise Unauthorized("Invalid credentials")
        return user


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self, type: Optional[TransactionType] = None) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.type, Category.name)
        )
        if type:
            stmt = stmt.where(Category.type == type)
        return self.session.scalars(stmt).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFound("Category not found")
        return category

    def _exists(
        self, name: str, type: TransactionType, *, exclude_id: Optional[int] = None
    ) -> bool:
        stmt = select(Category.id).where(
            Category.user_id == self.user_id,
            Category.type == type,
            func.lower(Category.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        return self.session.scalar(stmt) is not None

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        if self._exists(name, data.type):
            raise Conflict("Category with this name already exists")
        category = Category(user_id=self.user_id, name=name, type=data.type)
        self.session.add(category)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise Conflict("Category with this name already exists") from exc
        self.session.refresh(category)
        return category

    def create_defaults(self) -> None:
        for name, type in DEFAULT_CATEGORIES:
            self.session.add(Category(user_id=self.user_id, name=name, type=type))
        self.session.flush()

    def rename(self, category_id: int, name: str) -> Category:
        category = self.get(category_id)
        clean_name = name.strip()
        if self._exists(clean_name, category.type, exclude_id=category.id):
            raise Conflict("Category with this name already exists")
        category.name = clean_name
        self.session.commit()
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        in_use = self.session.scalar(
            select(func.count(Transaction.id)).where(
                Transaction.user_id == self.user_id,
                Transaction.category_id == category.id,
            )
        ) or self.session.scalar(
            select(func.count(Budget.id)).where(
                Budget.user_id == self.user_id,
                Budget.category_id == category.id,
            )
        )
        if in_use:
            raise Conflict("Category is still used by transactions or budgets")
        self.session.delete(category)
        self.session.commit()

    def require(self, category_id: int, type: TransactionType) -> Category:
        """Return an owned category of the given type for use by another row."""
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise ValidationFailed("Category not found")
        if category.type != type:
            raise ValidationFailed("Category type does not match transaction type")
        return category


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list(self, filters: Optional[TransactionFilters] = None) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.category_id:
            stmt = stmt.where(Transaction.category_id == filters.category_id)
        if filters.start_date:
            stmt = stmt.where(Transaction.date >= filters.start_date)
        if filters.end_date:
            stmt = stmt.where(Transaction.date <= filters.end_date)
        if filters.limit:
            stmt = stmt.limit(filters.limit)
        return self.session.scalars(stmt).all()

    def get(self, transaction_id: int) -> Transaction:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFound("Transaction not found")
        return txn

    def create(self, data: TransactionIn) -> Transaction:
        CategoryService(self.session, self.user_id).require(data.category_id, data.type)
        txn = Transaction(
            user_id=self.user_id,
            date=data.date,
            type=data.type,
            amount_cents=amount_to_cents(data.amount),
            category_id=data.category_id,
            description=data.description.strip(),
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: user_id={self.user_id} id={txn.id} type={txn.type.value}"
        )
        return txn

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        CategoryService(self.session, self.user_id).require(data.category_id, data.type)
        txn.date = data.date
        txn.type = data.type
        txn.amount_cents = amount_to_cents(data.amount)
        txn.category_id = data.category_id
        txn.description = data.description.strip()
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: user_id={self.user_id} id={transaction_id}")


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list(self, month: Optional[str] = None) -> list[Budget]:
        stmt = (
            select(Budget)
            .options(joinedload(Budget.category))
            .where(Budget.user_id == self.user_id)
            .order_by(Budget.month.desc(), Budget.id.asc())
        )
        if month:
            stmt = stmt.where(Budget.month == month)
        return self.session.scalars(stmt).all()

    def get(self, budget_id: int) -> Budget:
        stmt = (
            select(Budget)
            .options(joinedload(Budget.category))
            .where(Budget.user_id == self.user_id, Budget.id == budget_id)
            .execution_options(populate_existing=True)
        )
        budget = self.session.scalar(stmt)
        if not budget:
            raise NotFound("Budget not found")
        return budget

    def upsert(self, data: BudgetIn) -> Budget:
        category = self.session.get(Category, data.category_id)
        if not category or category.user_id != self.user_id:
            raise ValidationFailed("Category not found")
        if category.type != TransactionType.expense:
            raise ValidationFailed("Budgets can only be set for expense categories")

        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise ServiceError(f"Budget upsert is not supported on {dialect}")

        now = datetime.utcnow()
        stmt = insert(Budget).values(
            user_id=self.user_id,
            category_id=data.category_id,
            month=data.month,
            limit_cents=amount_to_cents(data.limit_amount),
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "category_id", "month"],
            set_={
                "limit_cents": stmt.excluded.limit_cents,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(Budget.id)
        budget_id = self.session.execute(stmt).scalar_one()
        self.session.commit()
        logger.info(
            f"budget_upserted: user_id={self.user_id} id={budget_id} "
            f"category_id={data.category_id} month={data.month}"
        )
        return self.get(budget_id)

    def update_limit(self, budget_id: int, limit_amount: Decimal) -> Budget:
        budget = self.get(budget_id)
        budget.limit_cents = amount_to_cents(limit_amount)
        self.session.commit()
        return self.get(budget_id)

    def delete(self, budget_id: int) -> None:
        budget = self.get(budget_id)
        self.session.delete(budget)
        self.session.commit()

    def spent_for(self, budget: Budget) -> Decimal:
        period = month_period(budget.month)
        stmt = select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
            Transaction.user_id == self.user_id,
            Transaction.category_id == budget.category_id,
            Transaction.type == TransactionType.expense,
            Transaction.date.between(period.start, period.end),
        )
        return cents_to_amount(int(self.session.execute(stmt).scalar_one() or 0))

    def report(self, budget: Budget) -> BudgetReport:
        spent = self.spent_for(budget)
        return BudgetReport(
            budget=budget,
            spent=spent,
            status=compute_budget_status(budget.limit_amount, spent),
        )

    def with_status(self, month: Optional[str] = None) -> list[BudgetReport]:
        return [self.report(budget) for budget in self.list(month)]


class SummaryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def summary(self) -> Summary:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(Transaction.user_id == self.user_id)
        )
        return compute_summary(self.session.scalars(stmt).all())
