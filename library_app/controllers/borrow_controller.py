from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from library_app.errors import InvalidRequest, LedgerError
from library_app.models.user import UserRole
from library_app.services.borrow_ledger import BorrowFilter, BorrowLedger
from library_app.utils.decorators import role_required
from library_app.utils.validation import (
    bounded_int,
    optional_notes,
    optional_positive_int,
    positive_int,
)

borrow_bp = Blueprint("borrow", __name__)

ledger = BorrowLedger()

LIBRARIAN = UserRole.LIBRARIAN


def _iso(value):
    return value.isoformat() if value else None


def _user_to_dict(user):
    if not user:
        return None
    return {"id": user.id, "email": user.email, "name": user.name, "role": user.role}


def _book_to_dict(book):
    if not book:
        return None
    category = book.category
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "price": float(book.price) if book.price is not None else None,
        "stock": book.stock,
        "category": {"id": category.id, "name": category.name} if category else None,
    }


def _record_to_dict(r):
    return {
        "id": r.id,
        "user_id": r.user_id,
        "book_id": r.book_id,
        "status": r.status,
        "borrow_date": _iso(r.borrow_date),
        "due_date": _iso(r.due_date),
        "return_date": _iso(r.return_date),
        "notes": r.notes,
        "created_at": _iso(r.created_at),
        "user": _user_to_dict(r.user),
        "book": _book_to_dict(r.book),
    }


def _error(e: LedgerError):
    return jsonify(e.to_dict()), e.status_code


@borrow_bp.post("/borrow")
@jwt_required()
@role_required(LIBRARIAN)
def borrow_book():
    data = request.get_json(silent=True) or {}
    try:
        user_id = positive_int(data.get("user_id"), "user_id")
        book_id = positive_int(data.get("book_id"), "book_id")
        notes = optional_notes(data.get("notes"))
        due_date = data.get("due_date")
        if due_date is not None and not isinstance(due_date, str):
            raise InvalidRequest("due_date must be a date string (YYYY-MM-DD)")

        record = ledger.borrow_book(user_id, book_id, due_date=due_date, notes=notes)
        return jsonify({"success": True, "data": _record_to_dict(record)}), 201
    except LedgerError as e:
        return _error(e)


@borrow_bp.post("/return")
@jwt_required()
@role_required(LIBRARIAN)
def return_book():
    data = request.get_json(silent=True) or {}
    try:
        record_id = positive_int(data.get("borrow_record_id"), "borrow_record_id")
        notes = optional_notes(data.get("notes"))

        record = ledger.return_book(record_id, notes=notes)
        return jsonify({"success": True, "data": _record_to_dict(record)})
    except LedgerError as e:
        return _error(e)


@borrow_bp.get("/")
@jwt_required()
@role_required(LIBRARIAN)
def list_records():
    args = request.args
    try:
        flt = BorrowFilter(
            user_id=optional_positive_int(args.get("user_id"), "user_id"),
            book_id=optional_positive_int(args.get("book_id"), "book_id"),
            status=args.get("status") or None,
            page=bounded_int(args.get("page"), "page", 1, 1, 1000),
            limit=bounded_int(args.get("limit"), "limit", 10, 1, current_app.config.get("PAGE_SIZE_MAX", 100)),
        )
        result = ledger.find_all(flt)
        result["data"] = [_record_to_dict(r) for r in result["data"]]
        return jsonify({"success": True, **result})
    except LedgerError as e:
        return _error(e)


@borrow_bp.get("/statistics")
@jwt_required()
@role_required(LIBRARIAN)
def statistics():
    return jsonify({"success": True, "data": ledger.get_borrow_statistics()})


@borrow_bp.get("/overdue")
@jwt_required()
@role_required(LIBRARIAN)
def overdue():
    rows = ledger.get_overdue_books()
    return jsonify({"success": True, "data": [_record_to_dict(r) for r in rows]})


@borrow_bp.get("/my-books")
@jwt_required()
def my_books():
    user_id = int(get_jwt_identity())
    try:
        rows = ledger.get_user_current_books(user_id)
        return jsonify({"success": True, "data": [_record_to_dict(r) for r in rows]})
    except LedgerError as e:
        return _error(e)


@borrow_bp.get("/my-history")
@jwt_required()
def my_history():
    user_id = int(get_jwt_identity())
    try:
        rows = ledger.get_user_borrow_history(user_id)
        return jsonify({"success": True, "data": [_record_to_dict(r) for r in rows]})
    except LedgerError as e:
        return _error(e)


@borrow_bp.get("/user/<int:user_id>")
@jwt_required()
def user_history(user_id: int):
    try:
        rows = ledger.get_user_borrow_history(user_id)
        return jsonify({"success": True, "data": [_record_to_dict(r) for r in rows]})
    except LedgerError as e:
        return _error(e)


@borrow_bp.get("/book/<int:book_id>")
@jwt_required()
@role_required(LIBRARIAN)
def book_history(book_id: int):
    try:
        rows = ledger.get_book_borrow_history(book_id)
        return jsonify({"success": True, "data": [_record_to_dict(r) for r in rows]})
    except LedgerError as e:
        return _error(e)


@borrow_bp.get("/<int:record_id>")
@jwt_required()
@role_required(LIBRARIAN)
def get_record(record_id: int):
    try:
        record = ledger.find_one(record_id)
        return jsonify({"success": True, "data": _record_to_dict(record)})
    except LedgerError as e:
        return _error(e)
