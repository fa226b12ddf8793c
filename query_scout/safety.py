"""Keyword-prefix risk classification for generated statements.

This is a syntactic heuristic, not a parser. It does not see through
comments, string literals, CTE-wrapped mutations or multi-statement batches.
"""

import re
from enum import Enum

MUTATING_KEYWORDS = (
    "CREATE",
    "ALTER",
    "DROP",
    "TRUNCATE",
    "RENAME",
    "INSERT",
    "UPDATE",
    "DELETE",
    "MERGE",
    "REPLACE",
    "GRANT",
    "REVOKE",
)

_MUTATING_RE = re.compile(r"^(?:" + "|".join(MUTATING_KEYWORDS) + r")(?:\s|$)")


class RiskLevel(str, Enum):
    READ_ONLY = "read_only"
    MUTATING = "mutating"


def classify_statement(statement: str) -> RiskLevel:
    """Classify a statement by its leading keyword."""
    normalized = str(statement or "").upper().lstrip()
    if _MUTATING_RE.match(normalized):
        return RiskLevel.MUTATING
    return RiskLevel.READ_ONLY
