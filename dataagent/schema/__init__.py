"""
Schema assembly: closure over foreign keys and knowledge-backed schema lookup
"""

from dataagent.schema.closure import SchemaClosureBuilder, SchemaSource, parse_relation, format_relation
from dataagent.schema.source import KnowledgeSchemaSource, SchemaIndexer, schema_from_documents

__all__ = [
    "SchemaClosureBuilder",
    "SchemaSource",
    "parse_relation",
    "format_relation",
    "KnowledgeSchemaSource",
    "SchemaIndexer",
    "schema_from_documents",
]
