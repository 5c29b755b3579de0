from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from flask_jwt_extended import create_access_token
from sqlalchemy import func, select
from werkzeug.security import generate_password_hash

from library_app import create_app
from library_app.extensions import db
from library_app.models.book import Book
from library_app.models.book_category import BookCategory
from library_app.models.borrow_record import BorrowRecord, BorrowStatus
from library_app.models.user import User, UserRole
from library_app.utils.clock import utcnow

LIBRARIAN_PASSWORD = "librarian-secret"


class FakeClock:
    def __init__(self, start=None):
        self.now = start or utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def app(tmp_path, request):
    config = {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'library.db'}",
        "JWT_SECRET_KEY": "test-jwt-secret",
        "SCHEDULER_ENABLED": False,
        "MAIL_SUPPRESS_SEND": True,
        "LIBRARIAN_EMAIL": "seed-librarian@library.com",
    }
    marker = request.node.get_closest_marker("app_config")
    if marker:
        config.update(marker.kwargs)
    app = create_app(config)
    yield app
    with app.app_context():
        db.engine.dispose()


@pytest.fixture
def data(app):
    """Two readers, one librarian and three books; committed, no context left open."""
    with app.app_context():
        fiction = BookCategory(name="Fiction")
        db.session.add(fiction)
        db.session.flush()

        librarian = User(
            email="librarian@test.local",
            name="Libby",
            password_hash=generate_password_hash(LIBRARIAN_PASSWORD),
            role=UserRole.LIBRARIAN.value,
        )
        alice = User(email="alice@test.local", name="Alice", password_hash="!", role=UserRole.USER.value)
        bob = User(email="bob@test.local", name="Bob", password_hash="!", role=UserRole.USER.value)

        dune = Book(title="Dune", author="Frank Herbert", price=Decimal("9.99"), stock=3, book_category_id=fiction.id)
        empty = Book(title="Out There", author="Nobody", price=Decimal("5.00"), stock=0, book_category_id=fiction.id)
        single = Book(title="Only One", author="Someone", price=Decimal("7.50"), stock=1)

        db.session.add_all([librarian, alice, bob, dune, empty, single])
        db.session.commit()

        return SimpleNamespace(
            librarian=librarian.id,
            alice=alice.id,
            bob=bob.id,
            dune=dune.id,
            empty=empty.id,
            single=single.id,
            category=fiction.id,
        )


@pytest.fixture
def ctx(app, data):
    with app.app_context():
        yield data


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(app):
    return app.test_client()


def auth_header(app, user_id: int, role: str) -> dict:
    with app.app_context():
        token = create_access_token(identity=str(user_id), additional_claims={"role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def librarian_headers(app, data):
    return auth_header(app, data.librarian, UserRole.LIBRARIAN.value)


@pytest.fixture
def alice_headers(app, data):
    return auth_header(app, data.alice, UserRole.USER.value)


def stock_of(book_id: int) -> int:
    return db.session.execute(select(Book.stock).where(Book.id == book_id)).scalar_one()


def active_loans(book_id: int) -> int:
    return db.session.execute(
        select(func.count(BorrowRecord.id)).where(
            BorrowRecord.book_id == book_id,
            BorrowRecord.status == BorrowStatus.BORROWED.value,
        )
    ).scalar_one()


def record_count() -> int:
    return db.session.execute(select(func.count(BorrowRecord.id))).scalar_one()
