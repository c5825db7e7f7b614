"""
Schema documents in the knowledge store.

SchemaIndexer introspects a datasource and writes one document per table and
per column; KnowledgeSchemaSource reads them back by exact name for the
closure pass; schema_from_documents turns recalled documents into a SchemaDTO.
"""

from collections import OrderedDict
from typing import Dict, List, Optional

from loguru import logger

from dataagent.config.settings import DatasourceConfig
from dataagent.infra.database import RelationalSchemaAccessor
from dataagent.infra.knowledge import Document, KnowledgeStore, KIND_COLUMN, KIND_TABLE
from dataagent.models.schema import ColumnDTO, SchemaDTO, TableDTO
from dataagent.schema.closure import split_foreign_keys


def _split(value: Optional[str]) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def table_from_document(doc: Document) -> TableDTO:
    meta = doc.metadata
    return TableDTO(
        name=meta.get("name", ""),
        description=meta.get("description", ""),
        primary_keys=_split(meta.get("primary_keys")),
        foreign_keys=split_foreign_keys(meta.get("foreign_keys", "")),
    )


def column_from_document(doc: Document) -> ColumnDTO:
    meta = doc.metadata
    return ColumnDTO(
        name=meta.get("name", ""),
        type=meta.get("type", ""),
        description=meta.get("description", ""),
        samples=_split(meta.get("samples")),
    )


def schema_from_documents(
    table_docs: List[Document],
    column_docs: List[Document],
    database_name: str = "",
) -> SchemaDTO:
    """
    Group recalled table and column documents into a schema.

    Columns whose table was not recalled still pull their table in, so a
    strongly matching column is never dropped.
    """
    tables: Dict[str, TableDTO] = OrderedDict()
    for doc in table_docs:
        table = table_from_document(doc)
        if table.name and table.name not in tables:
            tables[table.name] = table
    for doc in column_docs:
        table_name = doc.metadata.get("table_name", "")
        if not table_name:
            continue
        table = tables.setdefault(table_name, TableDTO(name=table_name))
        column = column_from_document(doc)
        if table.column(column.name) is None:
            table.columns.append(column)
    foreign_keys: List[str] = []
    for table in tables.values():
        for fk in table.foreign_keys:
            if fk not in foreign_keys:
                foreign_keys.append(fk)
    return SchemaDTO(database_name=database_name, tables=list(tables.values()), foreign_keys=foreign_keys)


class KnowledgeSchemaSource:
    """Exact-name lookups of schema documents, used by the closure pass"""

    def __init__(self, store: KnowledgeStore):
        self.store = store

    def fetch_tables(self, agent_id: str, names: List[str]) -> List[TableDTO]:
        if not names:
            return []
        docs = self.store.find({"agent_id": agent_id, "kind": KIND_TABLE, "name": list(names)})
        tables = [table_from_document(d) for d in docs]
        if tables:
            columns = self.store.find({
                "agent_id": agent_id,
                "kind": KIND_COLUMN,
                "table_name": [t.name for t in tables],
            })
            by_table: Dict[str, List[ColumnDTO]] = {}
            for doc in columns:
                by_table.setdefault(doc.metadata.get("table_name", ""), []).append(column_from_document(doc))
            for table in tables:
                table.columns = by_table.get(table.name, [])
        return tables

    def fetch_columns(self, agent_id: str, table: str, names: List[str]) -> List[ColumnDTO]:
        if not names:
            return []
        docs = self.store.find({
            "agent_id": agent_id,
            "kind": KIND_COLUMN,
            "table_name": table,
            "name": list(names),
        })
        return [column_from_document(d) for d in docs]


class SchemaIndexer:
    """Introspect a datasource and (re)write its schema documents"""

    def __init__(self, accessor: RelationalSchemaAccessor, store: KnowledgeStore):
        self.accessor = accessor
        self.store = store

    def index(self, agent_id: str, ds: DatasourceConfig) -> int:
        tables = self.accessor.list_tables(ds)
        foreign_keys = self.accessor.list_foreign_keys(ds, [t.name for t in tables])

        self.store.delete_by_filter({"agent_id": agent_id, "kind": [KIND_TABLE, KIND_COLUMN]})

        docs: List[Document] = []
        for table in tables:
            table_fks = [fk for fk in foreign_keys if fk.startswith(f"{table.name}.")]
            docs.append(Document(
                id=f"{agent_id}:table:{table.name}",
                content=f"{table.name}: {table.description}".strip(": "),
                metadata={
                    "agent_id": agent_id,
                    "kind": KIND_TABLE,
                    "record_id": f"{ds.name}.{table.name}",
                    "name": table.name,
                    "description": table.description,
                    "primary_keys": ",".join(table.primary_keys),
                    "foreign_keys": ",".join(table_fks),
                },
            ))
            for column in table.columns:
                docs.append(Document(
                    id=f"{agent_id}:column:{table.name}.{column.name}",
                    content=f"{table.name}.{column.name} {column.type}: {column.description}".strip(": "),
                    metadata={
                        "agent_id": agent_id,
                        "kind": KIND_COLUMN,
                        "record_id": f"{ds.name}.{table.name}.{column.name}",
                        "name": column.name,
                        "table_name": table.name,
                        "type": column.type,
                        "description": column.description,
                        "samples": ",".join(column.samples),
                    },
                ))
        written = self.store.upsert(docs)
        logger.info(f"Indexed schema of '{ds.name}' for agent {agent_id}: {len(tables)} tables, {written} docs")
        return written
