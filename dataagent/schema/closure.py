"""
Schema foreign-key closure.

Retrieval recalls tables and columns by similarity, which routinely misses
join keys. The closure pass expands the recalled schema one hop along its
foreign keys and the datasource's declared logical relations:

    1. collect every table.column named by a relation touching a recalled table
    2. batch-fetch referenced tables that were not recalled
    3. batch-fetch missing referenced columns, grouped by owning table
    4. keep logical relations whose source or target is in the expanded set
    5. merge them into the schema's foreign keys without duplicates

Afterwards every column named in a foreign key of an included table is
present in the schema.
"""

import re
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Protocol, Set, Tuple

from loguru import logger

from dataagent.models.schema import ColumnDTO, SchemaDTO, TableDTO

Endpoint = Tuple[str, str]
Relation = Tuple[Endpoint, Endpoint]

_FK_SEPARATORS = re.compile(r"[,;\n、]")


class SchemaSource(Protocol):
    """Where missing tables and columns are fetched from"""

    def fetch_tables(self, agent_id: str, names: List[str]) -> List[TableDTO]:
        ...

    def fetch_columns(self, agent_id: str, table: str, names: List[str]) -> List[ColumnDTO]:
        ...


def parse_relation(text: str) -> Optional[Relation]:
    """
    "orders.user_id = users.id" -> (("orders", "user_id"), ("users", "id"))

    Returns None for anything that is not two dotted endpoints.
    """
    if not text or "=" not in text:
        return None
    left, _, right = text.partition("=")
    ends = []
    for side in (left, right):
        side = side.strip().strip("`\"")
        if "." not in side:
            return None
        table, _, column = side.rpartition(".")
        table, column = table.strip().strip("`\""), column.strip().strip("`\"")
        if not table or not column:
            return None
        ends.append((table, column))
    return ends[0], ends[1]


def format_relation(relation: Relation) -> str:
    (st, sc), (tt, tc) = relation
    return f"{st}.{sc}={tt}.{tc}"


def split_foreign_keys(text: str) -> List[str]:
    """Split a stored foreign-key list ("a.x=b.y、c.z=d.w") into entries"""
    if not text:
        return []
    return [part.strip() for part in _FK_SEPARATORS.split(text) if part.strip()]


def _relations(entries: Iterable[str]) -> List[Relation]:
    parsed = []
    for entry in entries:
        relation = parse_relation(entry)
        if relation is None:
            logger.debug(f"Skipping malformed relation: {entry!r}")
            continue
        parsed.append(relation)
    return parsed


class SchemaClosureBuilder:
    def __init__(self, source: SchemaSource):
        self.source = source

    def close(self, agent_id: str, schema: SchemaDTO, logical_relations: Iterable[str] = ()) -> SchemaDTO:
        closed = schema.model_copy(deep=True)
        recalled = set(closed.table_names)
        structural = _relations(
            list(closed.foreign_keys) + [fk for t in closed.tables for fk in t.foreign_keys]
        )
        logical = _relations(logical_relations)

        # (a) endpoints referenced by relations attached to recalled tables
        needed: Dict[str, Set[str]] = OrderedDict()
        for (src, dst) in structural + logical:
            if src[0] in recalled or dst[0] in recalled:
                for table, column in (src, dst):
                    needed.setdefault(table, set()).add(column)

        # (b) tables referenced but not recalled, one batch
        missing_tables = [t for t in needed if t not in recalled]
        if missing_tables:
            fetched = self.source.fetch_tables(agent_id, missing_tables)
            for table in fetched:
                if closed.table(table.name) is None:
                    closed.tables.append(table.model_copy(deep=True))
                    # Keys of fetched tables are merged only, not expanded further
                    structural.extend(_relations(table.foreign_keys))
            logger.info(
                f"Schema closure fetched {len(fetched)}/{len(missing_tables)} referenced tables: "
                f"{[t.name for t in fetched]}"
            )

        # (c) missing columns, one batch per owning table
        for table_name, columns in needed.items():
            table = closed.table(table_name)
            if table is None:
                continue
            present = {c.name for c in table.columns}
            missing_columns = sorted(columns - present)
            if not missing_columns:
                continue
            for column in self.source.fetch_columns(agent_id, table_name, missing_columns):
                if column.name not in present:
                    table.columns.append(column)
                    present.add(column.name)
            logger.debug(f"Schema closure added columns to {table_name}: {missing_columns}")

        # (d) logical relations touching the expanded table set
        expanded = set(closed.table_names)
        relevant_logical = [r for r in logical if r[0][0] in expanded or r[1][0] in expanded]

        # (e) merge, de-duplicated against declared keys; drop relations with an absent endpoint
        index = closed.column_index()
        merged: List[str] = []
        for relation in structural + relevant_logical:
            key = format_relation(relation)
            if key in merged:
                continue
            (st, sc), (tt, tc) = relation
            if sc in index.get(st, ()) and tc in index.get(tt, ()):
                merged.append(key)
            else:
                logger.debug(f"Dropping relation with unresolved endpoint: {key}")
        closed.foreign_keys = merged
        for table in closed.tables:
            table.foreign_keys = [
                format_relation(r) for r in _relations(table.foreign_keys) if format_relation(r) in merged
            ]
        return closed

    def supplement(
        self,
        agent_id: str,
        schema: SchemaDTO,
        table_names: Iterable[str],
        logical_relations: Iterable[str] = (),
    ) -> Tuple[SchemaDTO, List[str]]:
        """
        Union model-suggested tables into the schema and re-close it.

        Returns the new schema and the names that were actually added.
        """
        wanted = [n for n in dict.fromkeys(n.strip() for n in table_names) if n and schema.table(n) is None]
        if not wanted:
            return schema, []
        expanded = schema.model_copy(deep=True)
        added = []
        for table in self.source.fetch_tables(agent_id, wanted):
            if expanded.table(table.name) is None:
                expanded.tables.append(table.model_copy(deep=True))
                added.append(table.name)
        if not added:
            logger.info(f"Schema advice named tables that could not be found: {wanted}")
            return schema, []
        logger.info(f"Schema advice added tables: {added}")
        return self.close(agent_id, expanded, logical_relations), added
