from lendmarket.utils.identifiers import normalize_email, parse_uuid

__all__ = [
    "normalize_email",
    "parse_uuid",
]
