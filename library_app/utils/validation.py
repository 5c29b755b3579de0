from library_app.errors import InvalidRequest

NOTES_MAX_LENGTH = 500


def positive_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidRequest(f"{field} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"{field} must be a positive integer") from None
    if number <= 0 or (isinstance(value, float) and not value.is_integer()):
        raise InvalidRequest(f"{field} must be a positive integer")
    return number


def optional_positive_int(value, field: str):
    if value is None or value == "":
        return None
    return positive_int(value, field)


def bounded_int(value, field: str, default: int, minimum: int, maximum: int) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"{field} must be a valid number") from None
    if number < minimum:
        raise InvalidRequest(f"{field} must be at least {minimum}")
    if number > maximum:
        raise InvalidRequest(f"{field} must be no more than {maximum}")
    return number


def optional_notes(value, field: str = "notes"):
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequest(f"{field} must be a string")
    if len(value) > NOTES_MAX_LENGTH:
        raise InvalidRequest(f"{field} cannot exceed {NOTES_MAX_LENGTH} characters")
    return value
