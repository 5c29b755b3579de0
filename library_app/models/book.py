from library_app.extensions import db
from library_app.utils.clock import utcnow


class Book(db.Model):
    __tablename__ = "books"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_books_stock_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False, index=True)
    author = db.Column(db.String(200), nullable=False, index=True)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    # copies currently on the shelf; borrow/return move it by one
    stock = db.Column(db.Integer, nullable=False, default=0)

    book_category_id = db.Column(db.Integer, db.ForeignKey("book_categories.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    category = db.relationship("BookCategory", backref="books")
