from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from errors import Conflict, NotFound, Unauthorized
from models import TransactionType, User, UserRole
from schemas import CategoryIn, RegisterIn, TransactionIn
from services import DEFAULT_CATEGORIES, CategoryService, TransactionService, UserService


def test_register_normalizes_email_and_seeds_default_categories() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        users = UserService(session)
        user = users.register(
            RegisterIn(email="  Ana@Example.COM ", password="hunter22")
        )

        assert user.email == "ana@example.com"
        assert user.role == UserRole.user
        assert user.password_digest != "hunter22"

        names = {(c.name, c.type) for c in CategoryService(session, user.id).list_all()}
        assert names == set(DEFAULT_CATEGORIES)

        with pytest.raises(Conflict):
            users.register(RegisterIn(email="ana@example.com", password="another1"))


def test_authenticate_checks_the_password() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        users = UserService(session)
        registered = users.register(
            RegisterIn(email="ana@example.com", password="hunter22", role=UserRole.admin)
        )

        assert users.authenticate("ANA@example.com", "hunter22").id == registered.id
        with pytest.raises(Unauthorized):
            users.authenticate("ana@example.com", "wrong-password")
        with pytest.raises(Unauthorized):
            users.authenticate("nobody@example.com", "hunter22")


def test_category_names_are_unique_per_type_ignoring_case() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = User(email="ana@example.com", password_digest="x")
        session.add(user)
        session.commit()
        categories = CategoryService(session, user.id)

        categories.create(CategoryIn(name="Gifts", type=TransactionType.expense))
        with pytest.raises(Conflict):
            categories.create(CategoryIn(name=" gifts ", type=TransactionType.expense))

        categories.create(CategoryIn(name="Gifts", type=TransactionType.income))
        categories.create(CategoryIn(name="Books", type=TransactionType.expense))

        listed = [(c.type, c.name) for c in categories.list_all()]
        assert listed == [
            (TransactionType.expense, "Books"),
            (TransactionType.expense, "Gifts"),
            (TransactionType.income, "Gifts"),
        ]
        assert [c.name for c in categories.list_all(TransactionType.income)] == ["Gifts"]


def test_rename_and_delete_category() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        ana = User(email="ana@example.com", password_digest="x")
        ben = User(email="ben@example.com", password_digest="x")
        session.add_all([ana, ben])
        session.commit()

        categories = CategoryService(session, ana.id)
        food = categories.create(CategoryIn(name="Food", type=TransactionType.expense))
        books = categories.create(CategoryIn(name="Books", type=TransactionType.expense))

        assert categories.rename(books.id, " Reading ").name == "Reading"
        with pytest.raises(Conflict):
            categories.rename(books.id, "food")

        with pytest.raises(NotFound):
            CategoryService(session, ben.id).rename(food.id, "Mine")
        with pytest.raises(NotFound):
            CategoryService(session, ben.id).delete(food.id)

        TransactionService(session, ana.id).create(
            TransactionIn(
                amount=Decimal("3"),
                type=TransactionType.expense,
                category_id=food.id,
                description="Apple",
                date=date(2024, 1, 1),
            )
        )
        with pytest.raises(Conflict):
            categories.delete(food.id)

        categories.delete(books.id)
        assert [c.name for c in categories.list_all()] == ["Food"]
