from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError

from library_app.errors import (
    AlreadyBorrowed,
    AlreadyReturned,
    ConcurrencyConflict,
    DueDateNotFuture,
    InvalidDueDate,
    InvalidRequest,
    LedgerError,
    NotFound,
    OutOfStock,
)
from library_app.models.borrow_record import BorrowRecord, BorrowStatus
from library_app.repositories.book_repo import BookRepo
from library_app.repositories.borrow_repo import BorrowRepo
from library_app.repositories.unit_of_work import atomic
from library_app.repositories.user_repo import UserRepo
from library_app.utils.clock import utcnow

DEFAULT_LOAN_PERIOD = timedelta(days=14)
RETURN_NOTES_MARKER = "Return notes: "


@dataclass
class BorrowFilter:
    user_id: Optional[int] = None
    book_id: Optional[int] = None
    status: Optional[str] = None
    page: int = 1
    limit: int = 10


def parse_due_date(value, now: datetime) -> datetime:
    """
    Accepts a datetime, a date (midnight UTC) or an ISO-8601 string.
    Aware values are converted to naive UTC before comparing with ``now``.
    """
    if isinstance(value, datetime):
        due = value
    elif isinstance(value, date):
        due = datetime.combine(value, datetime.min.time())
    elif isinstance(value, str):
        raw = value.strip()
        if raw[-1:] in ("Z", "z"):
            raw = raw[:-1] + "+00:00"
        try:
            due = datetime.fromisoformat(raw)
        except ValueError as e:
            raise InvalidDueDate("Invalid due date format") from e
    else:
        raise InvalidDueDate("Invalid due date format")

    if due.tzinfo is not None:
        due = due.astimezone(timezone.utc).replace(tzinfo=None)

    if due <= now:
        raise DueDateNotFuture("Due date must be in the future")
    return due


def _clean_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = notes.strip()
    return notes or None


def _append_return_notes(existing: Optional[str], notes: Optional[str]) -> Optional[str]:
    extra = _clean_notes(notes)
    if not extra:
        return existing
    line = f"{RETURN_NOTES_MARKER}{extra}"
    return f"{existing}\n{line}" if existing else line


def _is_duplicate_key(error: IntegrityError) -> bool:
    text = str(error.orig).lower()
    return "unique" in text or "duplicate" in text


# SQLSTATE (postgres, pyodbc) and native error numbers (mysql, mssql) for
# lock timeouts, deadlocks and serialization failures.
_LOCK_SQLSTATES = {"40001", "40P01", "55P03", "HYT00"}
_LOCK_ERRNOS = {1205, 1213, 1222}
_LOCK_MESSAGES = ("database is locked", "database table is locked", "deadlock", "lock wait timeout", "lock request time out")


def _is_lock_conflict(error: OperationalError) -> bool:
    orig = error.orig
    state = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    args = getattr(orig, "args", ())
    if not state and args and isinstance(args[0], str):
        state = args[0]
    if state in _LOCK_SQLSTATES:
        return True
    if args and args[0] in _LOCK_ERRNOS:
        return True
    text = str(orig).lower()
    return any(m in text for m in _LOCK_MESSAGES)


class BorrowLedger:
    """
    Borrow/return lifecycle of library books.

    A book's ``stock`` and the status of its borrow records only change
    together, inside one transaction that also covers the checks leading to
    the change. The stores, the transaction scope and the clock are injected;
    the defaults are the SQLAlchemy repositories.
    """

    def __init__(self, users=UserRepo, books=BookRepo, records=BorrowRepo, transaction=atomic, clock=utcnow):
        self.users = users
        self.books = books
        self.records = records
        self.transaction = transaction
        self.clock = clock

    # -----------------------------
    # Mutations
    # -----------------------------
    def borrow_book(self, user_id: int, book_id: int, due_date=None, notes: Optional[str] = None):
        log = current_app.logger
        try:
            with self.transaction():
                user = self.users.get_by_id(user_id)
                if not user:
                    raise NotFound(f"User with ID {user_id} not found")

                book = self.books.get_for_update(book_id)
                if not book:
                    raise NotFound(f"Book with ID {book_id} not found")

                if book.stock is None or book.stock <= 0:
                    raise OutOfStock(f'Book "{book.title}" is out of stock')

                if self.records.find_active(user_id, book_id):
                    raise AlreadyBorrowed("User already has this book borrowed")

                now = self.clock()
                if due_date is None or due_date == "":
                    due = now + DEFAULT_LOAN_PERIOD
                else:
                    due = parse_due_date(due_date, now)

                book.stock -= 1
                self.books.save(book)

                record = self.records.create(BorrowRecord(
                    user_id=user_id,
                    book_id=book_id,
                    status=BorrowStatus.BORROWED.value,
                    borrow_date=now,
                    due_date=due,
                    notes=_clean_notes(notes),
                    created_at=now,
                    updated_at=now,
                ))
                record_id = record.id
                stock_left = book.stock
        except LedgerError as e:
            log.warning(f"[borrow] rejected user={user_id} book={book_id}: {e.code}")
            raise
        except IntegrityError as e:
            if not _is_duplicate_key(e):
                log.exception(f"[borrow] rolled back user={user_id} book={book_id}")
                raise
            log.warning(f"[borrow] rejected user={user_id} book={book_id}: duplicate active loan")
            raise AlreadyBorrowed("User already has this book borrowed") from e
        except OperationalError as e:
            log.exception(f"[borrow] rolled back user={user_id} book={book_id}")
            if not _is_lock_conflict(e):
                raise
            raise ConcurrencyConflict(f"The book is locked by another transaction, please retry ({e.orig})") from e

        log.info(f"[borrow] record={record_id} user={user_id} book={book_id} stock_left={stock_left}")
        return self.records.get_with_relations(record_id)

    def return_book(self, borrow_record_id: int, notes: Optional[str] = None):
        log = current_app.logger
        try:
            with self.transaction():
                record = self.records.get_for_update(borrow_record_id)
                if not record:
                    raise NotFound(f"Borrow record with ID {borrow_record_id} not found")

                if record.status != BorrowStatus.BORROWED.value:
                    raise AlreadyReturned("Book has already been returned")

                book = self.books.get_for_update(record.book_id)
                if not book:
                    raise NotFound(f"Book with ID {record.book_id} not found")

                now = self.clock()
                record.status = BorrowStatus.RETURNED.value
                record.return_date = now
                record.updated_at = now
                record.notes = _append_return_notes(record.notes, notes)

                book.stock += 1
                self.books.save(book)
                self.records.save(record)
                stock_now = book.stock
        except LedgerError as e:
            log.warning(f"[return] rejected record={borrow_record_id}: {e.code}")
            raise
        except OperationalError as e:
            log.exception(f"[return] rolled back record={borrow_record_id}")
            if not _is_lock_conflict(e):
                raise
            raise ConcurrencyConflict(
                f"The borrow record is locked by another transaction, please retry ({e.orig})"
            ) from e

        log.info(f"[return] record={borrow_record_id} stock_now={stock_now}")
        return self.records.get_with_relations(borrow_record_id)

    # -----------------------------
    # Queries
    # -----------------------------
    def find_all(self, flt: Optional[BorrowFilter] = None) -> dict:
        flt = flt or BorrowFilter()
        page = flt.page or 1
        limit = flt.limit or 10

        status = None
        if flt.status:
            try:
                status = BorrowStatus(flt.status).value
            except ValueError as e:
                raise InvalidRequest("status must be 'borrowed' or 'returned'") from e

        result = self.records.paginate(
            user_id=flt.user_id,
            book_id=flt.book_id,
            status=status,
            page=page,
            per_page=limit,
        )
        total_pages = result.pages
        return {
            "data": list(result.items),
            "total": result.total,
            "page": page,
            "limit": limit,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        }

    def find_one(self, record_id: int):
        record = self.records.get_with_relations(record_id)
        if not record:
            raise NotFound(f"Borrow record with ID {record_id} not found")
        return record

    def get_user_borrow_history(self, user_id: int):
        self._require_user(user_id)
        return self.records.list_by_user(user_id)

    def get_user_current_books(self, user_id: int):
        # soonest due first
        user = self._require_user(user_id)
        rows = self.records.list_active_by_user(user_id)
        current_app.logger.debug(f"[borrow] user={user_id} ({user.email}) holds {len(rows)} book(s)")
        return rows

    def get_book_borrow_history(self, book_id: int):
        if not self.books.get(book_id):
            raise NotFound(f"Book with ID {book_id} not found")
        return self.records.list_by_book(book_id)

    def get_overdue_books(self):
        return self.records.find_overdue(self.clock())

    def get_borrow_statistics(self) -> dict:
        total_borrowed = self.records.count_by_status(BorrowStatus.BORROWED.value)
        total_returned = self.records.count_by_status(BorrowStatus.RETURNED.value)
        overdue_count = len(self.get_overdue_books())
        return {
            "total_borrowed": total_borrowed,
            "total_returned": total_returned,
            "overdue_count": overdue_count,
            "total_records": total_borrowed + total_returned,
        }

    def _require_user(self, user_id: int):
        user = self.users.get_by_id(user_id)
        if not user:
            raise NotFound(f"User with ID {user_id} not found")
        return user
