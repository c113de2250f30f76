"""
Tests for the HTTP surface of the intake service.

The lifespan is not started: the intake handler is wired with fakes.
"""
import pytest
from fastapi.testclient import TestClient

from app import main
from app.waiting_list import WaitingListPool

from conftest import FakeTradeQueue, FakeTransport, make_user


@pytest.fixture
def fakes(monkeypatch):
    transport, trade_queue = FakeTransport(), FakeTradeQueue()
    monkeypatch.setattr(main, "pool", WaitingListPool(capacity=3))
    monkeypatch.setattr(main, "intake", main.build_intake(transport, trade_queue))
    return transport, trade_queue


@pytest.fixture
def client():
    return TestClient(main.app)


def chat_body(username, text):
    return {"channel": "nooksisland", "user": make_user(username).model_dump(), "text": text}


class TestEndpoints:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok", "service": "intake-service"}

    def test_not_ready_without_lifespan(self, client, monkeypatch):
        monkeypatch.setattr(main, "intake", None)
        resp = client.post("/commands/chat-events/chat-message", json=chat_body("bob", "$ts"))
        assert resp.status_code == 503

    def test_order_via_webhooks(self, client, fakes):
        transport, trade_queue = fakes

        resp = client.post("/commands/chat-events/chat-message", json=chat_body("bob", "$order 0A1B"))
        assert resp.json() == {"status": "ok"}

        listing = client.get("/queries/waiting-list").json()
        assert listing["size"] == 1
        assert listing["capacity"] == 3
        assert listing["entries"][0]["requester_username"] == "bob"
        assert listing["entries"][0]["item_count"] == 1

        entry = client.get("/queries/waiting-list/bob").json()
        assert entry["position"] == 0

        resp = client.post(
            "/commands/chat-events/whisper",
            json={"user": make_user("bob").model_dump(), "text": "Isabelle"},
        )
        assert resp.status_code == 200
        assert trade_queue.submitted[0].followup_text == "Isabelle"
        assert transport.channel_messages[-1] == ("nooksisland", "Order queued.")
        assert client.get("/queries/waiting-list/bob").status_code == 404

    def test_eviction_notice_is_wired(self, client, fakes):
        transport, _ = fakes
        for name in ("alice", "bob", "carol", "dave"):
            client.post("/commands/chat-events/chat-message", json=chat_body(name, "$order 0A1B"))

        assert ("nooksisland", "Removed @Alice from the waiting list: stale request.") in (
            transport.channel_messages
        )
        assert client.get("/queries/waiting-list").json()["size"] == 3

    def test_invalid_event_body(self, client, fakes):
        resp = client.post("/commands/chat-events/whisper", json={"text": "hi"})
        assert resp.status_code == 422

    def test_health_reports_stopped_subscriber(self, client, monkeypatch):
        class FinishedTask:
            def done(self):
                return True

        monkeypatch.setattr(main, "subscriber_task", FinishedTask())
        assert client.get("/health").status_code == 503


class TestRun:

    def test_serves_app_with_uvicorn(self, monkeypatch):
        calls = []
        monkeypatch.setattr(main.uvicorn, "run", lambda app, **kw: calls.append((app, kw)))
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.delenv("HOST", raising=False)

        main.run()

        assert calls == [(main.app, {"host": "0.0.0.0", "port": 9000})]
