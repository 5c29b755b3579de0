from library_app.models.book import Book
from library_app.extensions import db


class BookRepo:
    @staticmethod
    def get(book_id: int):
        return db.session.get(Book, book_id)

    @staticmethod
    def get_for_update(book_id: int):
        # row lock on server databases; sqlite already holds the write lock (BEGIN IMMEDIATE)
        return db.session.get(Book, book_id, with_for_update=True, populate_existing=True)

    @staticmethod
    def count() -> int:
        return Book.query.count()

    @staticmethod
    def create(book: Book):
        db.session.add(book)
        db.session.flush()
        return book

    @staticmethod
    def save(book: Book):
        db.session.add(book)
        db.session.flush()
        return book
