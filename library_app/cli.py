from decimal import Decimal

import click
from flask import current_app
from flask.cli import with_appcontext

from library_app.extensions import db
from library_app.models.book import Book
from library_app.models.book_category import BookCategory
from library_app.models.user import UserRole
from library_app.repositories.book_repo import BookRepo
from library_app.repositories.user_repo import UserRepo
from library_app.services.auth_service import AuthService

CATEGORIES = ["Fiction", "Non-Fiction", "Science", "Technology", "History"]

SAMPLE_BOOKS = [
    ("To Kill a Mockingbird", "Harper Lee", "15.99", 25, "Fiction"),
    ("The Great Gatsby", "F. Scott Fitzgerald", "12.99", 30, "Fiction"),
    ("Sapiens", "Yuval Noah Harari", "18.99", 20, "Non-Fiction"),
    ("A Brief History of Time", "Stephen Hawking", "16.99", 15, "Science"),
    ("Clean Code", "Robert C. Martin", "42.99", 10, "Technology"),
    ("The Guns of August", "Barbara W. Tuchman", "19.99", 8, "History"),
]


def seed_database():
    """Idempotent: only fills what is missing. Returns a short summary."""
    cfg = current_app.config
    summary = {"librarian": False, "sample_user": False, "categories": 0, "books": 0}

    if not UserRepo.get_by_email(cfg["LIBRARIAN_EMAIL"].lower()):
        AuthService.create_user(
            cfg["LIBRARIAN_EMAIL"], cfg["LIBRARIAN_NAME"], cfg["LIBRARIAN_PASSWORD"], role=UserRole.LIBRARIAN.value
        )
        summary["librarian"] = True

    if UserRepo.count() == 1:
        AuthService.create_user("user@library.com", "Sample User", "user123")
        summary["sample_user"] = True

    if BookCategory.query.count() == 0:
        for name in CATEGORIES:
            db.session.add(BookCategory(name=name))
        db.session.flush()
        summary["categories"] = len(CATEGORIES)

    if BookRepo.count() == 0:
        categories = {c.name: c for c in BookCategory.query.all()}
        for title, author, price, stock, category in SAMPLE_BOOKS:
            cat = categories.get(category)
            BookRepo.create(Book(
                title=title,
                author=author,
                price=Decimal(price),
                stock=stock,
                book_category_id=cat.id if cat else None,
            ))
        summary["books"] = len(SAMPLE_BOOKS)

    db.session.commit()
    return summary


@click.command("init-db")
@with_appcontext
def init_db_command():
    db.create_all()
    click.echo("Tables created.")


@click.command("seed")
@with_appcontext
def seed_command():
    summary = seed_database()
    current_app.logger.info(f"[seed] {summary}")
    click.echo(f"Seed done: {summary}")


def register_cli(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_command)
