#!/usr/bin/env python3
"""
Tests for the HTTP and WebSocket surface in main.py.

The lifespan (which builds Vertex clients) is not run: each test installs a
PipelineContext with scripted clients on app.state.

Usage:
    pytest test_api.py -v
"""

import asyncio
import json

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

import main
from conftest import BlockingTextClient, ScriptedTextClient
from src.core.errors import TextServiceTransportError
from src.handlers.websocket import WebSocketHandler


@pytest.fixture
def install_context(make_context, monkeypatch):
    def _install(classifier_client, generator_client, **overrides):
        context = make_context(classifier_client, generator_client, **overrides)
        monkeypatch.setattr(main.app.state, "context", context, raising=False)
        return context

    return _install


@pytest.fixture
def client():
    return TestClient(main.app)


def test_health_and_root(client):
    health = client.get("/health").json()
    assert health["service"] == "deck-generation-core"

    root = client.get("/").json()
    assert root["endpoints"]["generate"] == "POST /api/generate"


def test_generate_returns_document_and_record(client, install_context, deck_json):
    install_context(ScriptedTextClient("business"), ScriptedTextClient(deck_json))

    response = client.post("/api/generate", json={"topic": "Quarterly review"})

    assert response.status_code == 200
    body = response.json()
    assert len(body["document"]["slides"]) == 3
    assert body["document"]["slides"][0]["layers"][0]["zIndex"] == 1
    assert body["record"]["outcome"] == "completed"


def test_generate_rejects_invalid_requests(client, install_context):
    install_context(ScriptedTextClient(), ScriptedTextClient())

    assert client.post("/api/generate", json={"topic": "   "}).status_code == 422
    assert client.post("/api/generate", json={"topic": "x", "slide_count": 0}).status_code == 422


def test_pipeline_errors_map_to_status_codes(client, install_context):
    install_context(ScriptedTextClient(default=TextServiceTransportError("down")), ScriptedTextClient())

    response = client.post("/api/generate", json={"topic": "Review"})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["code"] == "classification_exhausted"
    assert detail["record"]["outcome"] == "failed"


def test_recover_endpoint(client, install_context):
    install_context(ScriptedTextClient(), ScriptedTextClient())

    body = client.post("/api/recover", json={"raw": 'title: "My Deck"'}).json()

    assert body["level"] == 3
    assert body["document"]["slides"][0]["title"] == "My Deck"


def test_strategies_endpoint(client, install_context):
    install_context(ScriptedTextClient(), ScriptedTextClient())

    body = client.get("/strategies").json()

    assert body["total"] == 4
    assert body["strategies"][0]["id"] == "simple"


def test_websocket_streams_status_then_result(client, install_context, deck_json):
    install_context(ScriptedTextClient("business"), ScriptedTextClient(deck_json))

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "generate", "request": {"topic": "Quarterly review"}})
        messages = []
        while True:
            message = ws.receive_json()
            messages.append(message)
            if message["type"] != "status":
                break

    stages = [m["payload"]["stage"] for m in messages if m["type"] == "status"]
    assert stages[0] == "classification" and stages[-1] == "assembly"
    assert messages[-1]["type"] == "result"
    assert messages[-1]["payload"]["record"]["outcome"] == "completed"
    assert messages[-1]["timestamp"].endswith("Z")


def test_websocket_rejects_bad_messages(client, install_context):
    install_context(ScriptedTextClient(), ScriptedTextClient())

    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["payload"]["code"] == "invalid_message"

        ws.send_json({"type": "generate", "request": {"topic": ""}})
        assert ws.receive_json()["payload"]["code"] == "invalid_request"

        ws.send_json({"type": "cancel"})
        assert ws.receive_json()["payload"]["code"] == "no_active_run"


def receive_until_terminal(ws):
    messages = []
    while True:
        message = ws.receive_json()
        messages.append(message)
        if message["type"] != "status":
            return messages


def test_websocket_cancel_stops_the_running_generation(client, install_context):
    blocking = BlockingTextClient()
    install_context(ScriptedTextClient("business"), blocking)

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "generate", "request": {"topic": "Quarterly review"}})
        while ws.receive_json()["payload"]["stage"] != "generation":
            pass

        ws.send_json({"type": "cancel"})
        messages = receive_until_terminal(ws)

    assert [m["type"] for m in messages] == ["cancelled"]
    assert messages[0]["payload"]["record"]["outcome"] == "cancelled"
    assert messages[0]["payload"]["request_id"] == messages[0]["payload"]["record"]["requestId"]
    assert blocking.cancelled


def test_websocket_reports_unexpected_failures(client, install_context):
    install_context(ScriptedTextClient("business"), ScriptedTextClient(RuntimeError("boom")))

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "generate", "request": {"topic": "Quarterly review"}})
        terminal = receive_until_terminal(ws)[-1]

    assert terminal["type"] == "error"
    assert terminal["payload"]["code"] == "internal_error"
    assert terminal["payload"]["record"]["outcome"] == "failed"


class QueuedWebSocket:
    """Stand-in for a FastAPI WebSocket fed from a queue; exceptions in the queue are raised."""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent = []

    async def accept(self):
        pass

    async def receive_text(self):
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send_json(self, data):
        self.sent.append(data)


def test_disconnect_cancels_the_running_generation(make_context):
    blocking = BlockingTextClient()
    handler = WebSocketHandler(make_context(ScriptedTextClient("business"), blocking))

    async def scenario():
        ws = QueuedWebSocket()
        ws.incoming.put_nowait(json.dumps({"type": "generate", "request": {"topic": "Review"}}))
        connection = asyncio.create_task(handler.handle_connection(ws))
        await blocking.started.wait()
        ws.incoming.put_nowait(WebSocketDisconnect(code=1001))
        await connection
        return ws

    ws = asyncio.run(scenario())

    assert blocking.cancelled
    assert {message["type"] for message in ws.sent} == {"status"}
