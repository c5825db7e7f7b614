"""
Target-database access with SQLAlchemy.

SqlExecutor runs read queries; RelationalSchemaAccessor introspects tables,
columns and foreign keys. Both are blocking and meant to run on the
WorkerPool. Engines are created once per datasource URL.
"""

import threading
from typing import Dict, List, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from loguru import logger

from dataagent.config.settings import DatasourceConfig, Settings
from dataagent.infra.knowledge import KIND_LOGICAL_RELATION, KnowledgeStore
from dataagent.infra.worker_pool import WorkerPool
from dataagent.models.schema import ColumnDTO, TableDTO
from dataagent.models.outputs import SqlResult
from dataagent.sql.analysis import ensure_read_only
from dataagent.utils.errors import SchemaAccessError, TransientToolError


class EngineCache:
    """One pooled engine per datasource URL"""

    def __init__(self):
        self._engines: Dict[str, Engine] = {}
        self._lock = threading.Lock()

    def get(self, ds: DatasourceConfig) -> Engine:
        engine = self._engines.get(ds.url)
        if engine is not None:
            return engine
        with self._lock:
            if ds.url not in self._engines:
                logger.info(f"Creating engine for datasource '{ds.name}' ({ds.dialect})")
                self._engines[ds.url] = create_engine(ds.url, pool_pre_ping=True, pool_recycle=3600)
            return self._engines[ds.url]

    def dispose(self) -> None:
        with self._lock:
            for engine in self._engines.values():
                engine.dispose()
            self._engines.clear()


class SqlExecutor:
    def __init__(self, pool: WorkerPool, engines: Optional[EngineCache] = None, row_limit: int = 1000):
        self.pool = pool
        self.engines = engines or EngineCache()
        self.row_limit = row_limit

    async def execute(self, ds: DatasourceConfig, sql: str) -> SqlResult:
        """
        Run a read query on the worker pool.

        Raises:
            TransientToolError: rejected or failing SQL; the message is the
                reason handed back to SQL generation.
        """
        ensure_read_only(sql, ds.dialect)
        return await self.pool.run(self._execute_blocking, ds, sql)

    def _execute_blocking(self, ds: DatasourceConfig, sql: str) -> SqlResult:
        try:
            with self.engines.get(ds).connect() as conn:
                result = conn.execute(text(sql.rstrip().rstrip(";")))
                columns = list(result.keys())
                rows = [dict(zip(columns, row)) for row in result.fetchmany(self.row_limit)]
        except SQLAlchemyError as e:
            reason = str(getattr(e, "orig", None) or e)
            logger.warning(f"SQL execution failed on '{ds.name}': {reason}")
            raise TransientToolError(reason) from e
        logger.info(f"SQL on '{ds.name}' returned {len(rows)} rows")
        return SqlResult(sql=sql, columns=columns, rows=[_jsonable(r) for r in rows])


def _jsonable(row: Dict) -> Dict:
    return {k: v if isinstance(v, (str, int, float, bool)) or v is None else str(v) for k, v in row.items()}


class RelationalSchemaAccessor:
    """Schema introspection through SQLAlchemy's inspector"""

    def __init__(self, engines: Optional[EngineCache] = None):
        self.engines = engines or EngineCache()

    def list_tables(self, ds: DatasourceConfig, names: Optional[List[str]] = None) -> List[TableDTO]:
        try:
            inspector = inspect(self.engines.get(ds))
            tables = []
            for name in inspector.get_table_names():
                if names is not None and name not in names:
                    continue
                comment = (inspector.get_table_comment(name) or {}).get("text") if ds.dialect != "sqlite" else None
                pk = inspector.get_pk_constraint(name) or {}
                tables.append(TableDTO(
                    name=name,
                    description=comment or "",
                    primary_keys=list(pk.get("constrained_columns") or []),
                    columns=self.list_columns(ds, name),
                ))
            return tables
        except SQLAlchemyError as e:
            raise SchemaAccessError(f"Could not list tables for '{ds.name}': {e}") from e

    def list_columns(self, ds: DatasourceConfig, table: str, names: Optional[List[str]] = None) -> List[ColumnDTO]:
        try:
            inspector = inspect(self.engines.get(ds))
            return [
                ColumnDTO(name=col["name"], type=str(col["type"]), description=col.get("comment") or "")
                for col in inspector.get_columns(table)
                if names is None or col["name"] in names
            ]
        except SQLAlchemyError as e:
            raise SchemaAccessError(f"Could not list columns of '{table}': {e}") from e

    def list_foreign_keys(self, ds: DatasourceConfig, tables: List[str]) -> List[str]:
        """Declared foreign keys as "table.col=table.col" """
        try:
            inspector = inspect(self.engines.get(ds))
            keys = []
            for table in tables:
                for fk in inspector.get_foreign_keys(table):
                    target = fk.get("referred_table")
                    for src_col, dst_col in zip(fk.get("constrained_columns", []), fk.get("referred_columns", [])):
                        key = f"{table}.{src_col}={target}.{dst_col}"
                        if key not in keys:
                            keys.append(key)
            return keys
        except SQLAlchemyError as e:
            raise SchemaAccessError(f"Could not list foreign keys for '{ds.name}': {e}") from e


class DatasourceResolver:
    """
    Maps an agent id to its datasource and logical relations.

    Logical relations come from the datasource declaration and, when a
    knowledge store is given, from its `logical_relation` documents.
    """

    def __init__(
        self,
        settings: Settings,
        overrides: Optional[Dict[str, DatasourceConfig]] = None,
        knowledge: Optional[KnowledgeStore] = None,
    ):
        self.settings = settings
        self.knowledge = knowledge
        self._overrides = dict(overrides or {})

    def register(self, agent_id: str, ds: DatasourceConfig) -> None:
        self._overrides[agent_id] = ds

    def resolve(self, agent_id: str) -> Optional[DatasourceConfig]:
        return self._overrides.get(agent_id) or self.settings.get_datasource(agent_id)

    def logical_relations(self, agent_id: str) -> List[str]:
        ds = self.resolve(agent_id)
        relations = list(ds.logical_relations) if ds else []
        if self.knowledge is not None:
            for doc in self.knowledge.find({"agent_id": agent_id, "kind": KIND_LOGICAL_RELATION}):
                relation = doc.metadata.get("relation") or doc.content
                if relation and relation not in relations:
                    relations.append(relation)
        return relations
