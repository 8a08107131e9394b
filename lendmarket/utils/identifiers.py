from __future__ import annotations

from uuid import UUID

from lendmarket.core.errors import InvalidIdentifier


def parse_uuid(value: str | UUID | None, *, label: str = "ID") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (AttributeError, TypeError, ValueError) as exc:
        raise InvalidIdentifier(f"Invalid {label}", details={"value": value}) from exc


def normalize_email(value: str | None) -> str:
    return (value or "").strip().lower()
