"""Tests for the HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient

from brynix_bot.application.bot import BrynixBot
from brynix_bot.infrastructure.whatsapp import QrCode
from brynix_bot.web.app import create_app


class StubSupervisor:
    def __init__(self, state="CONNECTED"):
        self.state = state
        self.last_qr = None
        self.sent = []

    def remote_state(self):
        return self.state

    def send(self, conversation_id, text):
        self.sent.append((conversation_id, text))
        return self.state == "CONNECTED"


class StubBot(BrynixBot):
    started = 0
    stopped = 0

    def start(self):
        self.started += 1

    def stop(self):
        self.stopped += 1


@pytest.fixture
def supervisor():
    return StubSupervisor()


@pytest.fixture
def bot(supervisor, sessions):
    return StubBot(supervisor=supervisor, router=None, sessions=sessions)


@pytest.fixture
def http(bot):
    with TestClient(create_app(bot)) as client:
        yield client


class TestEndpoints:

    def test_lifespan_starts_and_stops_bot(self, bot):
        with TestClient(create_app(bot)):
            assert bot.started == 1
        assert bot.stopped == 1

    def test_index(self, http):
        response = http.get("/")
        assert response.status_code == 200
        assert response.text == "BRYNIX WhatsApp Bot up ✅"

    def test_status(self, http):
        assert http.get("/wa-status").json() == {"status": "CONNECTED"}

    def test_healthz_ok(self, http):
        response = http.get("/healthz")
        assert response.status_code == 200
        assert response.text == "ok"

    def test_healthz_unhealthy(self, http, supervisor):
        supervisor.state = "UNPAIRED"
        response = http.get("/healthz")
        assert response.status_code == 503
        assert response.text == "state=UNPAIRED"

    def test_qr_missing(self, http):
        assert http.get("/wa-qr").status_code == 503

    def test_qr_png(self, http, supervisor):
        supervisor.last_qr = QrCode(data="2@abc", png=b"\x89PNGdata")
        response = http.get("/wa-qr")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content == b"\x89PNGdata"

    def test_send(self, http, supervisor):
        response = http.post("/wa-send", json={"to": "g@g.us", "text": "Olá"})
        assert response.status_code == 200
        assert response.json() == {"ok": True, "to": "g@g.us"}
        assert supervisor.sent == [("g@g.us", "Olá")]

    def test_send_validation(self, http):
        assert http.post("/wa-send", json={"to": "g@g.us"}).status_code == 422
        assert http.post("/wa-send", json={"to": " ", "text": "x"}).status_code == 400

    def test_send_failure(self, http, supervisor):
        supervisor.state = "OPENING"
        assert http.post("/wa-send", json={"to": "g@g.us", "text": "x"}).status_code == 502
