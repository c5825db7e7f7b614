"""
SQL utilities: deterministic quality scoring and sqlglot-based analysis
"""

from dataagent.sql.scoring import SqlQualityScore, evaluate_sql_quality, normalize_sql
from dataagent.sql.analysis import ensure_read_only, referenced_tables, extract_sql

__all__ = [
    "SqlQualityScore",
    "evaluate_sql_quality",
    "normalize_sql",
    "ensure_read_only",
    "referenced_tables",
    "extract_sql",
]
