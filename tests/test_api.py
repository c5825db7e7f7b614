"""
Tests for the HTTP surface: SSE chat stream, stop, NL2SQL and health.
"""

import json

import pytest
from fastapi.testclient import TestClient

from dataagent import __version__
from dataagent.api.app import create_app
from dataagent.service.graph_service import GraphService

from fakes import AGENT_ID, FakeSqlExecutor, ScriptedLLM, analysis_script, make_context, make_executor


@pytest.fixture
def sql():
    return FakeSqlExecutor()


@pytest.fixture
def client(settings, sql):
    llm = ScriptedLLM(analysis_script(**{
        "INTENT RECOGNITION": lambda user: (
            '{"classification": "chitchat", "reply": "Hello!"}' if "hello" in user.lower()
            else '{"classification": "data_analysis"}'
        ),
    }))
    ctx = make_context(llm, settings=settings, sql_executor=sql)
    service = GraphService(settings, make_executor(ctx))
    with TestClient(create_app(settings, service=service)) as test_client:
        yield test_client


def sse_frames(body):
    """Split an SSE body into (event, data) pairs"""
    frames = []
    for block in body.strip().split("\n\n"):
        event, data = "message", None
        for line in block.splitlines():
            if line.startswith("event: "):
                event = line[len("event: "):]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: "):])
        frames.append((event, data))
    return frames


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "dataagent-api", "version": __version__}


def test_chat_stream_sends_fragments_as_sse(client):
    response = client.post("/api/chat/stream", json={"thread_id": "t1", "agent_id": AGENT_ID, "query": "hello"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["x-thread-id"] == "t1"
    frames = sse_frames(response.text)
    assert all(event == "message" for event, _ in frames)
    assert frames[0][1]["node_name"] == "intent_recognition"
    assert frames[-1][1] == {"node_name": "result", "text": "Hello!", "content_kind": "text"}


def test_chat_stream_generates_thread_id(client):
    response = client.post("/api/chat/stream", json={"agent_id": AGENT_ID, "query": "hello"})
    assert response.status_code == 200
    assert response.headers["x-thread-id"]


def test_feedback_without_paused_run_is_not_found(client):
    response = client.post(
        "/api/chat/stream",
        json={"thread_id": "t1", "agent_id": AGENT_ID, "human_feedback": True, "approved": True},
    )
    assert response.status_code == 404


def test_empty_question_is_rejected(client):
    response = client.post("/api/chat/stream", json={"thread_id": "t1", "agent_id": AGENT_ID, "query": "  "})
    assert response.status_code == 422


def test_review_round_trip_over_http(client, sql):
    body = {"thread_id": "t2", "agent_id": AGENT_ID, "query": "daily order totals in 2024", "human_review_enabled": True}
    paused = sse_frames(client.post("/api/chat/stream", json=body).text)
    notice = json.loads(paused[-1][1]["text"])
    assert paused[-1][1]["node_name"] == "human_feedback"
    assert notice["awaiting_feedback"] is True
    assert sql.executed == []

    resumed = client.post(
        "/api/chat/stream",
        json={"thread_id": "t2", "agent_id": AGENT_ID, "human_feedback": True, "approved": True},
    )
    frames = sse_frames(resumed.text)
    assert frames[-1][1]["node_name"] == "report_generator"
    assert len(sql.executed) == 1


def test_stop_paused_thread(client):
    body = {"thread_id": "t3", "agent_id": AGENT_ID, "query": "daily order totals in 2024", "human_review_enabled": True}
    client.post("/api/chat/stream", json=body)

    first = client.post("/api/chat/t3/stop")
    second = client.post("/api/chat/t3/stop")

    assert first.json() == {"thread_id": "t3", "stopped": True}
    assert second.json() == {"thread_id": "t3", "stopped": False}


def test_nl2sql_endpoint(client, sql):
    response = client.post("/api/nl2sql", json={"agent_id": AGENT_ID, "query": "daily order totals in 2024"})

    assert response.status_code == 200
    assert response.json()["sql"].endswith(";")
    assert sql.executed == []


def test_nl2sql_requires_agent(client):
    response = client.post("/api/nl2sql", json={"agent_id": "", "query": "daily order totals"})
    assert response.status_code == 422
