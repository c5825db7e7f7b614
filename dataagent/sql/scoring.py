"""
Deterministic SQL quality scoring used by the refinement loop.

Three sub-scores start at 1.0, lose a fixed penalty per finding and are
floored at 0:

    syntax       missing SELECT / FROM, unbalanced parentheses or quotes
    security     destructive statements, comment delimiters, tautological OR
    performance  unqualified SELECT *, missing WHERE

total = 0.4 * syntax + 0.3 * security + 0.3 * performance
"""

import re
from dataclasses import dataclass

SYNTAX_WEIGHT = 0.4
SECURITY_WEIGHT = 0.3
PERFORMANCE_WEIGHT = 0.3

MISSING_CLAUSE_PENALTY = 0.3
UNBALANCED_PENALTY = 0.2
DESTRUCTIVE_PENALTY = 0.3
INJECTION_PENALTY = 0.2
SELECT_STAR_PENALTY = 0.2
MISSING_WHERE_PENALTY = 0.3

DESTRUCTIVE_KEYWORDS = ("DROP", "DELETE", "UPDATE", "INSERT", "ALTER", "CREATE", "TRUNCATE")

_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_CODE_INJECTION_PATTERNS = (
    re.compile(r"--"),
    re.compile(r"/\*"),
    re.compile(r"\*/"),
    re.compile(r"\bOR\s+(\d+)\s*=\s*\1\b", re.IGNORECASE),
)
# Compares literal contents, so it runs on the raw text
_LITERAL_TAUTOLOGY = re.compile(r"\bOR\s+'([^']*)'\s*=\s*'\1'", re.IGNORECASE)
_SELECT_STAR = re.compile(r"\bSELECT\s+(?:DISTINCT\s+)?\*", re.IGNORECASE)


def _has_keyword(sql: str, keyword: str) -> bool:
    return re.search(rf"\b{keyword}\b", sql, re.IGNORECASE) is not None


@dataclass(frozen=True)
class SqlQualityScore:
    sql: str
    syntax: float
    security: float
    performance: float

    @property
    def total(self) -> float:
        return (
            SYNTAX_WEIGHT * self.syntax
            + SECURITY_WEIGHT * self.security
            + PERFORMANCE_WEIGHT * self.performance
        )

    def to_dict(self) -> dict:
        return {
            "sql": self.sql,
            "syntax": self.syntax,
            "security": self.security,
            "performance": self.performance,
            "total": self.total,
        }


def syntax_score(sql: str) -> float:
    score = 1.0
    if not _has_keyword(sql, "SELECT"):
        score -= MISSING_CLAUSE_PENALTY
    if not _has_keyword(sql, "FROM"):
        score -= MISSING_CLAUSE_PENALTY
    if sql.count("(") != sql.count(")"):
        score -= UNBALANCED_PENALTY
    if sql.count("'") % 2 != 0:
        score -= UNBALANCED_PENALTY
    return max(0.0, score)


def security_score(sql: str) -> float:
    score = 1.0
    # Keywords inside string literals are data, not statements
    code = _STRING_LITERAL.sub("''", sql)
    for keyword in DESTRUCTIVE_KEYWORDS:
        if _has_keyword(code, keyword):
            score -= DESTRUCTIVE_PENALTY
    for pattern in _CODE_INJECTION_PATTERNS:
        if pattern.search(code):
            score -= INJECTION_PENALTY
    if _LITERAL_TAUTOLOGY.search(sql):
        score -= INJECTION_PENALTY
    return max(0.0, score)


def performance_score(sql: str) -> float:
    score = 1.0
    if _SELECT_STAR.search(sql):
        score -= SELECT_STAR_PENALTY
    if not _has_keyword(_STRING_LITERAL.sub("''", sql), "WHERE"):
        score -= MISSING_WHERE_PENALTY
    return max(0.0, score)


def evaluate_sql_quality(sql: str) -> SqlQualityScore:
    """Score a candidate; blank input scores zero everywhere"""
    if not sql or not sql.strip():
        return SqlQualityScore(sql="", syntax=0.0, security=0.0, performance=0.0)
    return SqlQualityScore(
        sql=sql,
        syntax=syntax_score(sql),
        security=security_score(sql),
        performance=performance_score(sql),
    )


def normalize_sql(sql: str) -> str:
    """Final form handed downstream: trimmed and terminated"""
    text = (sql or "").strip()
    if not text:
        return ""
    text = text.rstrip(";").rstrip()
    return f"{text};"
