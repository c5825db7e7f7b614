"""
Tests for knowledge document cleanup and filters.
"""

import pytest

from dataagent.infra.knowledge import (
    Document,
    KIND_COLUMN,
    KIND_EVIDENCE,
    KIND_TABLE,
    KnowledgeResourceManager,
    build_where,
)

from fakes import InMemoryKnowledgeStore


def doc(doc_id, agent_id, kind, record_id):
    return Document(
        id=doc_id,
        content=f"{kind} {record_id}",
        metadata={"agent_id": agent_id, "kind": kind, "record_id": record_id},
    )


class FailingStore(InMemoryKnowledgeStore):
    def __init__(self, message):
        super().__init__()
        self.message = message

    def delete_by_filter(self, filter):
        raise RuntimeError(self.message)


def test_deleting_twice_reports_success_both_times():
    store = InMemoryKnowledgeStore([
        doc("e1-a", "shop", KIND_EVIDENCE, "e1"),
        doc("e1-b", "shop", KIND_EVIDENCE, "e1"),
        doc("e2", "shop", KIND_EVIDENCE, "e2"),
    ])
    manager = KnowledgeResourceManager(store)

    assert manager.delete("shop", KIND_EVIDENCE, "e1") is True
    assert manager.delete("shop", KIND_EVIDENCE, "e1") is True
    assert sorted(store.documents) == ["e2"]


@pytest.mark.parametrize("message", [
    "Collection dataagent_knowledge does not exist",
    "Document not found",
    "record already deleted",
])
def test_already_gone_errors_count_as_success(message):
    assert KnowledgeResourceManager(FailingStore(message)).delete("shop", KIND_TABLE, "orders") is True


def test_other_store_errors_propagate():
    manager = KnowledgeResourceManager(FailingStore("disk I/O error"))
    with pytest.raises(RuntimeError, match="disk I/O error"):
        manager.delete("shop", KIND_TABLE, "orders")


def test_delete_is_scoped_to_agent_and_kind():
    store = InMemoryKnowledgeStore([
        doc("a", "shop", KIND_TABLE, "orders"),
        doc("b", "shop", KIND_COLUMN, "orders"),
        doc("c", "crm", KIND_TABLE, "orders"),
    ])
    KnowledgeResourceManager(store).delete("shop", KIND_TABLE, "orders")
    assert sorted(store.documents) == ["b", "c"]


def test_delete_agent_removes_everything_it_owns():
    store = InMemoryKnowledgeStore([doc("a", "shop", KIND_TABLE, "orders"), doc("c", "crm", KIND_TABLE, "x")])
    assert KnowledgeResourceManager(store).delete_agent("shop") is True
    assert sorted(store.documents) == ["c"]


def test_build_where():
    assert build_where({}) is None
    assert build_where({"agent_id": "shop"}) == {"agent_id": "shop"}
    assert build_where({"agent_id": "shop", "name": ["orders", "users"]}) == {
        "$and": [{"agent_id": "shop"}, {"name": {"$in": ["orders", "users"]}}]
    }
