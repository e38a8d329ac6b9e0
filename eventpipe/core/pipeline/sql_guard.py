"""Syntactic allow-list for ad-hoc warehouse queries.

This is a keyword filter, not a sandbox; it only keeps obviously destructive
statements away from the warehouse.
"""

from __future__ import annotations

import re

from eventpipe.core.exceptions import QueryRejectedError

DESTRUCTIVE_KEYWORDS = (
    "DROP",
    "DELETE",
    "UPDATE",
    "INSERT",
    "ALTER",
    "CREATE",
    "TRUNCATE",
    "ATTACH",
    "DETACH",
    "COPY",
    "EXPORT",
    "IMPORT",
    "INSTALL",
    "LOAD",
    "PRAGMA",
    "SET",
    "CALL",
    "GRANT",
    "REVOKE",
    "REPLACE",
)
READ_KEYWORDS = ("SELECT", "FROM", "WHERE", "GROUP BY", "ORDER BY", "LIMIT", "WITH")

_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")


def _pattern(keyword: str) -> re.Pattern[str]:
    words = r"\s+".join(re.escape(word) for word in keyword.split())
    return re.compile(rf"\b{words}\b", re.IGNORECASE)


_DESTRUCTIVE = [(keyword, _pattern(keyword)) for keyword in DESTRUCTIVE_KEYWORDS]
_READ = [_pattern(keyword) for keyword in READ_KEYWORDS]


def ensure_read_only(sql: str) -> str:
    """Return the query stripped of a trailing semicolon or raise :class:`QueryRejectedError`."""

    if not isinstance(sql, str) or not sql.strip():
        raise QueryRejectedError("Query must be a non-empty string", sql if isinstance(sql, str) else None)

    statement = sql.strip().rstrip(";").strip()
    bare = _STRING_LITERAL.sub("''", statement)

    if ";" in bare:
        raise QueryRejectedError("Multiple statements are not allowed", sql)
    for keyword, pattern in _DESTRUCTIVE:
        if pattern.search(bare):
            raise QueryRejectedError(f"Query contains forbidden keyword: {keyword}", sql)
    if not any(pattern.search(bare) for pattern in _READ):
        raise QueryRejectedError("Query must be a read query", sql)
    return statement


__all__ = ["DESTRUCTIVE_KEYWORDS", "READ_KEYWORDS", "ensure_read_only"]
