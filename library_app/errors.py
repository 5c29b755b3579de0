"""
Error kinds raised by the borrow ledger.

Every kind keeps its own ``code`` so the HTTP layer (and the UI behind it)
can tell an out-of-stock book from a duplicate loan without parsing messages.
They subclass ValueError, which is what the rest of the service layer raises
for rejected input.
"""


class LedgerError(ValueError):
    code = "ledger_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class NotFound(LedgerError):
    code = "not_found"
    status_code = 404


class OutOfStock(LedgerError):
    code = "out_of_stock"


class AlreadyBorrowed(LedgerError):
    code = "already_borrowed"


class AlreadyReturned(LedgerError):
    code = "already_returned"


class InvalidDueDate(LedgerError):
    code = "invalid_due_date"


class DueDateNotFuture(LedgerError):
    code = "due_date_not_future"


class ConcurrencyConflict(LedgerError):
    """The database refused the stock/record update because of a competing transaction. Safe to retry."""
    code = "concurrency_conflict"
    status_code = 409


class InvalidRequest(LedgerError):
    code = "invalid_request"
