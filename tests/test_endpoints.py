import json
import logging

import pytest
from fastapi.testclient import TestClient

from editor_chat.core.config import ERROR_PREFIX
from editor_chat.main import app
from editor_chat.models.db import ChatMessage, SessionLocal
from editor_chat.services import svc
from editor_chat.services.gemini_chat.manager import ChatResult

client = TestClient(app)

CHAT_ID = "chapter-2"


@pytest.fixture(autouse=True)
def patch_services(monkeypatch):
    calls = {}

    def fake_chat(bot, message, system_prompt=None, knowledge_base=None):
        calls["chat"] = (message, system_prompt, knowledge_base)
        return ChatResult(answer="stubbed response", delta_count=1)

    async def fake_stream_chat(bot, message, system_prompt=None, knowledge_base=None):
        calls["stream"] = (message, system_prompt, knowledge_base)
        yield "Hello", None
        yield ", world", None
        yield None, ChatResult(answer="Hello, world", delta_count=2)

    def fake_load_knowledge_base(directory, logger):
        return [("kb.md", "facts")]

    monkeypatch.setattr("editor_chat.services.svc.chat", fake_chat)
    monkeypatch.setattr("editor_chat.services.svc.stream_chat", fake_stream_chat)
    monkeypatch.setattr("editor_chat.services.svc.load_knowledge_base", fake_load_knowledge_base)
    return calls


@pytest.fixture(autouse=True)
def clean_database():
    with SessionLocal() as session:
        session.query(ChatMessage).delete()
        session.commit()
    yield
    with SessionLocal() as session:
        session.query(ChatMessage).delete()
        session.commit()


def _events(body: str):
    return [json.loads(line[len("data: "):]) for line in body.split("\n\n") if line.startswith("data: ")]


def test_root():
    res = client.get("/")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_chat(patch_services):
    res = client.post("/api/v1/chat", json={"message": "hi", "chat_id": CHAT_ID})
    assert res.status_code == 200
    assert res.json() == {"response": "stubbed response", "error": None}
    assert patch_services["chat"] == ("hi", None, None)

    with SessionLocal() as session:
        saved = session.query(ChatMessage).filter_by(chat_id=CHAT_ID).order_by(ChatMessage.id).all()
        assert [(m.sender, m.content) for m in saved] == [("user", "hi"), ("ai", "stubbed response")]


def test_chat_with_knowledge_base_and_custom_prompt(patch_services):
    res = client.post(
        "/api/v1/chat",
        json={"message": "hi", "system_prompt": "be brief", "use_knowledge_base": True},
    )
    assert res.status_code == 200
    assert patch_services["chat"] == ("hi", "be brief", [("kb.md", "facts")])


def test_chat_stream_emits_one_event_per_delta():
    res = client.post("/api/v1/chat/stream", json={"message": "hi", "chat_id": CHAT_ID})
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/event-stream")
    assert _events(res.text) == [{"response": "Hello"}, {"response": ", world"}, {}]

    with SessionLocal() as session:
        saved = session.query(ChatMessage).filter_by(chat_id=CHAT_ID).order_by(ChatMessage.id).all()
        assert [(m.sender, m.content) for m in saved] == [("user", "hi"), ("ai", "Hello, world")]


def test_chat_stream_reports_transport_failure(monkeypatch):
    async def failing_stream_chat(bot, message, system_prompt=None, knowledge_base=None):
        yield "partial", None
        yield None, ChatResult(
            answer=f"partial\n\n{ERROR_PREFIX} connection reset",
            error="connection reset",
            delta_count=1,
        )

    monkeypatch.setattr("editor_chat.services.svc.stream_chat", failing_stream_chat)
    res = client.post("/api/v1/chat/stream", json={"message": "hi", "chat_id": CHAT_ID})

    assert _events(res.text) == [
        {"response": "partial"},
        {"error": f"{ERROR_PREFIX} connection reset"},
        {},
    ]
    with SessionLocal() as session:
        answer = session.query(ChatMessage).filter_by(chat_id=CHAT_ID, sender="ai").one()
        assert answer.content.endswith("connection reset")


def test_chat_stream_finishes_when_saving_the_answer_fails(monkeypatch, caplog):
    save_message = svc.save_message

    def failing_save(db, chat_id, sender, content):
        if sender == "ai":
            raise RuntimeError("database is locked")
        return save_message(db, chat_id, sender, content)

    monkeypatch.setattr("editor_chat.services.svc.save_message", failing_save)
    with caplog.at_level(logging.ERROR, logger="services"):
        res = client.post("/api/v1/chat/stream", json={"message": "hi", "chat_id": CHAT_ID})

    assert res.status_code == 200
    assert _events(res.text) == [{"response": "Hello"}, {"response": ", world"}, {}]
    assert f"Failed to save chat {CHAT_ID}: database is locked" in caplog.text


def test_history_and_new_chat():
    client.post("/api/v1/chat", json={"message": "first", "chat_id": CHAT_ID})
    client.post("/api/v1/chat", json={"message": "other", "chat_id": "elsewhere"})

    res = client.get(f"/api/v1/history/{CHAT_ID}")
    assert res.status_code == 200
    data = res.json()
    assert data["chat_id"] == CHAT_ID
    assert [(m["sender"], m["content"]) for m in data["messages"]] == [
        ("user", "first"),
        ("ai", "stubbed response"),
    ]
    assert all(m["date_added"] for m in data["messages"])

    res = client.delete(f"/api/v1/history/{CHAT_ID}")
    assert res.json() == {"deleted": 2}
    assert client.get(f"/api/v1/history/{CHAT_ID}").json()["messages"] == []
    assert len(client.get("/api/v1/history/elsewhere").json()["messages"]) == 2
