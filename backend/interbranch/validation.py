from __future__ import annotations

from typing import Any, Iterable

from .errors import ValidationError


# Notes are stored as Text but capped to keep notification payloads small
MAX_NOTES_LENGTH = 1000

# SQLite binds LIMIT/OFFSET as signed 64-bit integers
MAX_PAGE_OFFSET = 2 ** 62


def require_fields(payload: dict | None, fields: Iterable[str]) -> dict:
    """
    Ensure a JSON payload is an object carrying every field in `fields`.

    Blank strings and None count as missing.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = [f for f in fields if payload.get(f) is None or str(payload.get(f)).strip() == ""]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", details={"missing": missing})
    return payload


def coerce_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """
    Strict integer coercion for ids and quantities.

    Accepts ints and plain digit strings; rejects bools, floats,
    decimals and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return result


def coerce_optional_bool(value: Any, field: str) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"true", "1", "yes"}:
        return True
    if normalized in {"false", "0", "no"}:
        return False
    raise ValidationError(f"{field} must be true or false")


def check_page_window(page: int, limit: int) -> None:
    """Reject pages whose offset the database cannot represent."""
    if page * limit > MAX_PAGE_OFFSET:
        raise ValidationError("page is out of range", details={"page": page, "limit": limit})


def clean_notes(value: Any) -> str | None:
    if value is None:
        return None
    notes = str(value).strip()
    if not notes:
        return None
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes exceeds max length {MAX_NOTES_LENGTH}")
    return notes
