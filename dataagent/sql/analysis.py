"""
SQL analysis with sqlglot.

Extraction of SQL from model output, the read-only guard applied before
execution, and table references used for logging and validation.
"""

import re
from typing import List, Optional

import sqlglot
from sqlglot import exp
from loguru import logger

from dataagent.utils.errors import TransientToolError

_FENCED_SQL = re.compile(r"```(?:sql)?\s*\n(.*?)\n?```", re.DOTALL | re.IGNORECASE)

_READ_ONLY_ROOTS = (exp.Select, exp.Union, exp.Intersect, exp.Except)


def extract_sql(text: str) -> str:
    """
    Pull SQL out of a model response, dropping Markdown fences.

    Example:
        >>> extract_sql("```sql\\nSELECT 1\\n```")
        'SELECT 1'
    """
    if not text:
        return ""
    match = _FENCED_SQL.search(text)
    if match:
        return match.group(1).strip()
    return text.replace("```", "").strip()


def _dialect(dialect: Optional[str]) -> Optional[str]:
    if not dialect:
        return None
    return {"postgresql": "postgres", "mariadb": "mysql"}.get(dialect, dialect)


def ensure_read_only(sql: str, dialect: Optional[str] = None) -> exp.Expression:
    """
    Parse and reject anything that is not a single read query.

    Raises:
        TransientToolError: unparsable SQL or a non-SELECT statement. The
            message becomes the retry reason for SQL regeneration.
    """
    try:
        statements = [s for s in sqlglot.parse(sql, read=_dialect(dialect)) if s is not None]
    except sqlglot.errors.ParseError as e:
        raise TransientToolError(f"SQL parse error: {e}") from e

    if len(statements) != 1:
        raise TransientToolError(f"Expected exactly one statement, got {len(statements)}")

    root = statements[0]
    inner = root.this if isinstance(root, exp.With) else root
    if not isinstance(inner, _READ_ONLY_ROOTS):
        raise TransientToolError(f"Only read queries are allowed, got {type(inner).__name__}")
    return root


def referenced_tables(sql: str, dialect: Optional[str] = None) -> List[str]:
    """Physical tables a query reads, excluding CTE names"""
    try:
        ast = sqlglot.parse_one(sql, read=_dialect(dialect))
    except sqlglot.errors.ParseError as e:
        logger.warning(f"Could not parse SQL for table references: {e}")
        return []
    cte_names = {cte.alias_or_name for cte in ast.find_all(exp.CTE)}
    tables = []
    for table in ast.find_all(exp.Table):
        if table.name and table.name not in cte_names and table.name not in tables:
            tables.append(table.name)
    return tables
