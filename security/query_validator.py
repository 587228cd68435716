"""
security/query_validator.py
---------------------------
Syntactic safety check for caller-supplied SQL.

This is deliberately coarse: it does not parse SQL. A forbidden table name
appearing anywhere in the text (including comments or string literals)
rejects the query, and a reference hidden behind a view is not detected.
"""

from typing import Iterable, Optional

EMPTY_QUERY = "query must not be empty"
READ_ONLY_QUERY = "only SELECT/WITH queries are permitted"

_ALLOWED_PREFIXES = ("SELECT", "WITH")


def validate_query(sql_text: str, forbidden_tables: Iterable[str] = ()) -> tuple[bool, Optional[str]]:
    """
    Validate raw SQL text against the read-only policy.

    Args:
        sql_text: The SQL statement as sent by the caller.
        forbidden_tables: Table names that must not appear in the text.

    Returns:
        ``(True, None)`` when the query is acceptable, otherwise
        ``(False, reason)``.
    """
    if sql_text is None or not sql_text.strip():
        return False, EMPTY_QUERY

    normalized = sql_text.strip().upper()
    if not normalized.startswith(_ALLOWED_PREFIXES):
        return False, READ_ONLY_QUERY

    haystack = sql_text.casefold()
    for table in forbidden_tables or ():
        if table and table.casefold() in haystack:
            return False, f"query references forbidden table '{table}'"

    return True, None
