from datetime import datetime

from sqlalchemy.orm import joinedload

from library_app.extensions import db
from library_app.models.book import Book
from library_app.models.borrow_record import BorrowRecord, BorrowStatus


def _with_relations():
    return [
        joinedload(BorrowRecord.user),
        joinedload(BorrowRecord.book).joinedload(Book.category),
    ]


def _newest_first(query):
    return query.order_by(BorrowRecord.created_at.desc(), BorrowRecord.id.desc())


def _soonest_due_first(query):
    return query.order_by(BorrowRecord.due_date.asc(), BorrowRecord.id.asc())


class BorrowRepo:
    @staticmethod
    def get_with_relations(record_id: int):
        return db.session.get(BorrowRecord, record_id, options=_with_relations(), populate_existing=True)

    @staticmethod
    def get_for_update(record_id: int):
        return db.session.get(BorrowRecord, record_id, with_for_update=True, populate_existing=True)

    @staticmethod
    def find_active(user_id: int, book_id: int):
        return BorrowRecord.query.filter_by(
            user_id=user_id,
            book_id=book_id,
            status=BorrowStatus.BORROWED.value,
        ).first()

    @staticmethod
    def paginate(user_id=None, book_id=None, status=None, page: int = 1, per_page: int = 10):
        query = BorrowRecord.query.options(*_with_relations())
        if user_id is not None:
            query = query.filter(BorrowRecord.user_id == user_id)
        if book_id is not None:
            query = query.filter(BorrowRecord.book_id == book_id)
        if status is not None:
            query = query.filter(BorrowRecord.status == status)
        return _newest_first(query).paginate(page=page, per_page=per_page, error_out=False)

    @staticmethod
    def list_by_user(user_id: int):
        query = BorrowRecord.query.options(*_with_relations()).filter_by(user_id=user_id)
        return _newest_first(query).all()

    @staticmethod
    def list_active_by_user(user_id: int):
        query = BorrowRecord.query.options(*_with_relations()).filter_by(
            user_id=user_id,
            status=BorrowStatus.BORROWED.value,
        )
        return _soonest_due_first(query).all()

    @staticmethod
    def list_by_book(book_id: int):
        query = BorrowRecord.query.options(*_with_relations()).filter_by(book_id=book_id)
        return _newest_first(query).all()

    @staticmethod
    def find_overdue(now: datetime):
        query = BorrowRecord.query.options(*_with_relations()).filter(
            BorrowRecord.status == BorrowStatus.BORROWED.value,
            BorrowRecord.due_date < now,
        )
        return _soonest_due_first(query).all()

    @staticmethod
    def count_by_status(status: str) -> int:
        return BorrowRecord.query.filter_by(status=status).count()

    @staticmethod
    def create(record: BorrowRecord):
        db.session.add(record)
        db.session.flush()
        return record

    @staticmethod
    def save(record: BorrowRecord):
        db.session.add(record)
        db.session.flush()
        return record
