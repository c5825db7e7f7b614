"""
Knowledge store: evidence, table and column documents for one or more agents.

ChromaDB backs the store. Documents carry the owning agent id, a kind tag
and the id of the record they were built from in their metadata, so one
collection serves every agent and every kind.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import chromadb
from chromadb.config import Settings as ChromaSettings
from loguru import logger

from dataagent.utils.errors import UpstreamUnavailableError

KIND_EVIDENCE = "evidence"
KIND_TABLE = "table"
KIND_COLUMN = "column"
KIND_LOGICAL_RELATION = "logical_relation"


@dataclass
class Document:
    id: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    similarity: float = 0.0

    @property
    def agent_id(self) -> Optional[str]:
        return self.metadata.get("agent_id")

    @property
    def kind(self) -> Optional[str]:
        return self.metadata.get("kind")

    @property
    def record_id(self) -> Optional[str]:
        return self.metadata.get("record_id")


class KnowledgeStore(Protocol):
    def similarity_search(
        self,
        query: str,
        filter: Dict[str, Any],
        top_k: int,
        min_similarity: float,
    ) -> List[Document]:
        ...

    def upsert(self, documents: List[Document]) -> int:
        ...

    def delete_by_filter(self, filter: Dict[str, Any]) -> int:
        ...

    def find(self, filter: Dict[str, Any]) -> List[Document]:
        ...


def build_where(filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Equality filter -> Chroma where clause. List values become $in.

    Example:
        {"agent_id": "a1", "name": ["orders", "users"]}
        -> {"$and": [{"agent_id": "a1"}, {"name": {"$in": ["orders", "users"]}}]}
    """
    clauses = []
    for key, value in filter.items():
        if isinstance(value, (list, tuple, set)):
            clauses.append({key: {"$in": list(value)}})
        else:
            clauses.append({key: value})
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaKnowledgeStore:
    """ChromaDB-backed KnowledgeStore"""

    def __init__(
        self,
        persist_directory: Optional[str] = None,
        collection_name: str = "dataagent_knowledge",
        client: Optional[Any] = None,
        embedding_function: Optional[Any] = None,
    ):
        if client is None:
            if persist_directory:
                Path(persist_directory).mkdir(parents=True, exist_ok=True)
                client = chromadb.PersistentClient(
                    path=str(persist_directory),
                    settings=ChromaSettings(anonymized_telemetry=False, allow_reset=True),
                )
            else:
                client = chromadb.EphemeralClient(settings=ChromaSettings(anonymized_telemetry=False))
        self.client = client
        kwargs = {"name": collection_name, "metadata": {"hnsw:space": "l2"}}
        if embedding_function is not None:
            kwargs["embedding_function"] = embedding_function
        self.collection = self.client.get_or_create_collection(**kwargs)
        logger.info(f"Knowledge collection '{collection_name}' ready ({self.collection.count()} docs)")

    def similarity_search(
        self,
        query: str,
        filter: Dict[str, Any],
        top_k: int = 10,
        min_similarity: float = 0.0,
    ) -> List[Document]:
        if self.collection.count() == 0:
            return []
        try:
            results = self.collection.query(
                query_texts=[query],
                n_results=top_k,
                where=build_where(filter),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as e:
            raise UpstreamUnavailableError(f"Knowledge search failed: {e}") from e

        docs: List[Document] = []
        if results and results["ids"]:
            ids = results["ids"][0]
            texts = results["documents"][0] if results["documents"] else [""] * len(ids)
            metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
            distances = results["distances"][0] if results["distances"] else [0.0] * len(ids)
            for doc_id, text, metadata, distance in zip(ids, texts, metadatas, distances):
                # Chroma returns squared L2 distance; map to (0, 1], higher is better
                similarity = 1.0 / (1.0 + distance)
                if similarity < min_similarity:
                    continue
                docs.append(Document(id=doc_id, content=text, metadata=dict(metadata or {}), similarity=similarity))

        logger.debug(f"Knowledge search '{query[:50]}' filter={filter} -> {len(docs)} docs")
        return docs

    def upsert(self, documents: List[Document]) -> int:
        if not documents:
            return 0
        self.collection.upsert(
            ids=[d.id for d in documents],
            documents=[d.content for d in documents],
            metadatas=[d.metadata for d in documents],
        )
        logger.info(f"Upserted {len(documents)} knowledge documents")
        return len(documents)

    def find(self, filter: Dict[str, Any]) -> List[Document]:
        results = self.collection.get(where=build_where(filter), include=["documents", "metadatas"])
        return [
            Document(id=doc_id, content=text or "", metadata=dict(metadata or {}))
            for doc_id, text, metadata in zip(results["ids"], results["documents"], results["metadatas"])
        ]

    def delete_by_filter(self, filter: Dict[str, Any]) -> int:
        where = build_where(filter)
        if where is None:
            raise ValueError("Refusing to delete with an empty filter")
        existing = self.collection.get(where=where, include=[])
        if not existing["ids"]:
            return 0
        self.collection.delete(ids=existing["ids"])
        return len(existing["ids"])


_ALREADY_GONE = ("not found", "does not exist", "already deleted")


class KnowledgeResourceManager:
    """
    Removes the documents derived from one knowledge record.

    Deletion is idempotent: removing something that is already gone reports
    success, so a background sweep can retry after a partial failure.
    """

    def __init__(self, store: KnowledgeStore):
        self.store = store

    def delete(self, agent_id: str, kind: str, record_id: str) -> bool:
        filter = {"agent_id": agent_id, "kind": kind, "record_id": record_id}
        try:
            removed = self.store.delete_by_filter(filter)
        except Exception as e:
            message = str(e).lower()
            if any(marker in message for marker in _ALREADY_GONE):
                logger.info(f"Knowledge {kind}/{record_id} for agent {agent_id} already absent: {e}")
                return True
            logger.error(f"Failed to delete knowledge {kind}/{record_id} for agent {agent_id}: {e}")
            raise
        if removed == 0:
            logger.debug(f"Knowledge {kind}/{record_id} for agent {agent_id} had no documents")
        else:
            logger.info(f"Deleted {removed} documents for knowledge {kind}/{record_id} (agent {agent_id})")
        return True

    def delete_agent(self, agent_id: str) -> bool:
        """Drop everything an agent owns"""
        self.store.delete_by_filter({"agent_id": agent_id})
        return True
