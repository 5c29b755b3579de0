from datetime import timedelta

import pytest

from library_app.models.user import UserRole
from library_app.utils.clock import utcnow

from conftest import LIBRARIAN_PASSWORD, auth_header


def _borrow(client, headers, **body):
    return client.post("/borrow/borrow", json=body, headers=headers)


def test_health(client):
    assert client.get("/health").get_json() == {"ok": True}


def test_borrow_and_return(client, data, librarian_headers):
    resp = _borrow(client, librarian_headers, user_id=data.alice, book_id=data.dune, notes="desk 2")
    assert resp.status_code == 201
    record = resp.get_json()["data"]
    assert record["status"] == "borrowed"
    assert record["notes"] == "desk 2"
    assert record["return_date"] is None
    assert record["user"]["email"] == "alice@test.local"
    assert record["book"]["stock"] == 2
    assert record["book"]["category"]["name"] == "Fiction"

    resp = client.post("/borrow/return", json={"borrow_record_id": record["id"], "notes": "ok"},
                       headers=librarian_headers)
    assert resp.status_code == 200
    returned = resp.get_json()["data"]
    assert returned["status"] == "returned"
    assert returned["return_date"] is not None
    assert returned["notes"] == "desk 2\nReturn notes: ok"
    assert returned["book"]["stock"] == 3

    resp = client.post("/borrow/return", json={"borrow_record_id": record["id"]}, headers=librarian_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "already_returned"


def test_borrow_requires_token(client, data):
    resp = _borrow(client, {}, user_id=data.alice, book_id=data.dune)
    assert resp.status_code == 401


def test_borrow_requires_librarian(client, data, alice_headers):
    resp = _borrow(client, alice_headers, user_id=data.alice, book_id=data.dune)
    assert resp.status_code == 403
    assert resp.get_json()["success"] is False


@pytest.mark.parametrize(
    "body, status, code",
    [
        ({"user_id": 999, "book_id": "dune"}, 404, "not_found"),
        ({"user_id": "alice", "book_id": "empty"}, 400, "out_of_stock"),
        ({"user_id": "alice", "book_id": "dune", "due_date": "someday"}, 400, "invalid_due_date"),
        ({"user_id": "alice", "book_id": "dune", "due_date": "2001-01-01"}, 400, "due_date_not_future"),
        ({"user_id": "abc", "book_id": "dune"}, 400, "invalid_request"),
        ({"book_id": "dune"}, 400, "invalid_request"),
        ({"user_id": "alice", "book_id": "dune", "notes": "x" * 501}, 400, "invalid_request"),
        ({"user_id": "alice", "book_id": "dune", "due_date": 20300101}, 400, "invalid_request"),
    ],
)
def test_borrow_errors(client, data, librarian_headers, body, status, code):
    body = {k: getattr(data, v) if isinstance(v, str) and hasattr(data, v) else v for k, v in body.items()}
    resp = _borrow(client, librarian_headers, **body)
    assert resp.status_code == status
    payload = resp.get_json()
    assert payload["success"] is False
    assert payload["error"] == code


def test_out_of_stock_message_names_book(client, data, librarian_headers):
    resp = _borrow(client, librarian_headers, user_id=data.alice, book_id=data.empty)
    assert 'Book "Out There" is out of stock' == resp.get_json()["message"]


def test_double_borrow(client, data, librarian_headers):
    assert _borrow(client, librarian_headers, user_id=data.alice, book_id=data.dune).status_code == 201
    resp = _borrow(client, librarian_headers, user_id=data.alice, book_id=data.dune)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "already_borrowed"


def test_explicit_due_date(client, data, librarian_headers):
    due = (utcnow() + timedelta(days=5)).date().isoformat()
    resp = _borrow(client, librarian_headers, user_id=data.alice, book_id=data.dune, due_date=due)
    assert resp.status_code == 201
    assert resp.get_json()["data"]["due_date"].startswith(due)


def test_return_unknown_record(client, data, librarian_headers):
    resp = client.post("/borrow/return", json={"borrow_record_id": 12345}, headers=librarian_headers)
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"


def test_list_records_paginated(client, data, librarian_headers):
    _borrow(client, librarian_headers, user_id=data.alice, book_id=data.dune)
    _borrow(client, librarian_headers, user_id=data.bob, book_id=data.dune)

    resp = client.get("/borrow/?limit=1&page=1", headers=librarian_headers)
    payload = resp.get_json()
    assert resp.status_code == 200
    assert payload["total"] == 2
    assert payload["total_pages"] == 2
    assert payload["has_next"] is True
    assert payload["has_prev"] is False
    assert payload["data"][0]["user_id"] == data.bob

    resp = client.get(f"/borrow/?user_id={data.alice}&status=borrowed", headers=librarian_headers)
    assert [r["user_id"] for r in resp.get_json()["data"]] == [data.alice]


@pytest.mark.parametrize("query", ["page=0", "limit=101", "status=lost", "user_id=-3", "page=abc"])
def test_list_records_rejects_bad_filters(client, data, librarian_headers, query):
    resp = client.get(f"/borrow/?{query}", headers=librarian_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid_request"


def test_list_records_librarian_only(client, data, alice_headers):
    assert client.get("/borrow/", headers=alice_headers).status_code == 403


def test_my_books_and_history(client, data, librarian_headers, alice_headers):
    soon = (utcnow() + timedelta(days=2)).isoformat()
    first = _borrow(client, librarian_headers, user_id=data.alice, book_id=data.dune).get_json()["data"]
    second = _borrow(client, librarian_headers, user_id=data.alice, book_id=data.single,
                     due_date=soon).get_json()["data"]

    books = client.get("/borrow/my-books", headers=alice_headers).get_json()["data"]
    assert [r["id"] for r in books] == [second["id"], first["id"]]

    client.post("/borrow/return", json={"borrow_record_id": second["id"]}, headers=librarian_headers)

    books = client.get("/borrow/my-books", headers=alice_headers).get_json()["data"]
    assert [r["id"] for r in books] == [first["id"]]

    history = client.get("/borrow/my-history", headers=alice_headers).get_json()["data"]
    assert {r["id"] for r in history} == {first["id"], second["id"]}

    other = client.get(f"/borrow/user/{data.alice}", headers=alice_headers).get_json()["data"]
    assert [r["id"] for r in other] == [r["id"] for r in history]


def test_my_books_for_deleted_identity(client, app, data):
    headers = auth_header(app, 9999, UserRole.USER.value)
    resp = client.get("/borrow/my-books", headers=headers)
    assert resp.status_code == 404


def test_book_history_and_single_record(client, data, librarian_headers):
    record = _borrow(client, librarian_headers, user_id=data.alice, book_id=data.dune).get_json()["data"]

    history = client.get(f"/borrow/book/{data.dune}", headers=librarian_headers).get_json()["data"]
    assert [r["id"] for r in history] == [record["id"]]

    assert client.get("/borrow/book/999", headers=librarian_headers).status_code == 404

    one = client.get(f"/borrow/{record['id']}", headers=librarian_headers)
    assert one.get_json()["data"]["book"]["title"] == "Dune"
    assert client.get("/borrow/999", headers=librarian_headers).status_code == 404


def test_overdue_and_statistics(client, data, librarian_headers):
    _borrow(client, librarian_headers, user_id=data.alice, book_id=data.dune)

    overdue = client.get("/borrow/overdue", headers=librarian_headers).get_json()["data"]
    assert overdue == []

    stats = client.get("/borrow/statistics", headers=librarian_headers).get_json()["data"]
    assert stats == {"total_borrowed": 1, "total_returned": 0, "overdue_count": 0, "total_records": 1}


def test_login_and_me(client, data):
    resp = client.post("/auth/login", json={"email": "librarian@test.local", "password": LIBRARIAN_PASSWORD})
    assert resp.status_code == 200
    token = resp.get_json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).get_json()
    assert me["user"]["role"] == "librarian"

    resp = _borrow(client, {"Authorization": f"Bearer {token}"}, user_id=data.alice, book_id=data.dune)
    assert resp.status_code == 201


def test_login_rejects_bad_password(client, data):
    resp = client.post("/auth/login", json={"email": "librarian@test.local", "password": "nope"})
    assert resp.status_code == 401


def test_user_history_route(client, data, librarian_headers, alice_headers):
    _borrow(client, librarian_headers, user_id=data.alice, book_id=data.dune)

    resp = client.get(f"/borrow/user/{data.alice}", headers=alice_headers)
    assert resp.status_code == 200
    assert [r["book"]["title"] for r in resp.get_json()["data"]] == ["Dune"]

    resp = client.get("/borrow/user/999", headers=alice_headers)
    assert resp.status_code == 404
    assert resp.get_json() == {"success": False, "error": "not_found", "message": "User with ID 999 not found"}


def test_register_creates_reader_account(client, data):
    resp = client.post("/auth/register", json={
        "email": " Carol@Test.Local ", "name": "Carol", "password": "carol-secret", "role": "librarian",
    })
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["user"]["email"] == "carol@test.local"
    assert body["user"]["role"] == "user"

    resp = client.get("/borrow/my-books", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert resp.status_code == 200
    assert resp.get_json()["data"] == []

    login = client.post("/auth/login", json={"email": "carol@test.local", "password": "carol-secret"})
    assert login.status_code == 200


@pytest.mark.parametrize(
    "body, message",
    [
        ({"email": "alice@test.local", "name": "Alice Again", "password": "x"}, "already registered"),
        ({"email": "not-an-email", "name": "Dave", "password": "x"}, "Invalid email"),
        ({"email": "dave@test.local", "name": "D", "password": "x"}, "at least 2"),
        ({"email": "dave@test.local", "name": "Dave"}, "required"),
    ],
)
def test_register_rejects(client, data, body, message):
    resp = client.post("/auth/register", json=body)
    assert resp.status_code == 400
    payload = resp.get_json()
    assert payload["error"] == "invalid_request"
    assert message in payload["message"]
