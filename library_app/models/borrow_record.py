import enum

from sqlalchemy import text

from library_app.extensions import db
from library_app.utils.clock import utcnow


class BorrowStatus(str, enum.Enum):
    BORROWED = "borrowed"
    RETURNED = "returned"


ACTIVE_LOAN_WHERE = text("status = 'borrowed'")


class BorrowRecord(db.Model):
    __tablename__ = "borrow_records"
    __table_args__ = (
        # one open loan per (user, book); filtered index on every backend that has one
        db.Index(
            "uq_borrow_records_active_loan",
            "user_id",
            "book_id",
            unique=True,
            sqlite_where=ACTIVE_LOAN_WHERE,
            postgresql_where=ACTIVE_LOAN_WHERE,
            mssql_where=ACTIVE_LOAN_WHERE,
        ),
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default=BorrowStatus.BORROWED.value)  # borrowed/returned

    borrow_date = db.Column(db.DateTime, nullable=False)
    due_date = db.Column(db.DateTime, nullable=False)
    return_date = db.Column(db.DateTime, nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", backref="borrow_records")
    book = db.relationship("Book", backref="borrow_records")

