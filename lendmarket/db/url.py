from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def normalize_database_url(url: str) -> str:
    """Coerce DATABASE_URL into the asyncpg dialect SQLAlchemy expects.

    Managed Postgres providers hand out ``postgres://`` URLs with libpq-style
    ``sslmode``/``ssl`` query flags; asyncpg only understands ``ssl``.
    """
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme in {"postgres", "postgresql", "postgresql+psycopg"}:
        scheme = "postgresql+asyncpg"

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    if scheme == "postgresql+asyncpg":
        sslmode_key = next((key for key in query if key.lower() == "sslmode"), None)
        if sslmode_key is not None:
            mode = query.pop(sslmode_key).lower().strip()
            if "ssl" not in query:
                query["ssl"] = "disable" if mode in {"disable", "allow"} else "require"

    new_query = urlencode(query, doseq=True)
    return urlunsplit((scheme, parts.netloc, parts.path, new_query, parts.fragment))
