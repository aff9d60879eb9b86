"""Shared fakes for router, handler, supervisor and scheduler tests."""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

import pytest

from brynix_bot.application.handlers import ProjectHandlers
from brynix_bot.application.router import CommandRouter
from brynix_bot.domain.tasks import TaskRow
from brynix_bot.infrastructure.config import AlertSettings, BotSettings, WhatsAppSettings
from brynix_bot.infrastructure.drive import DriveError, UploadResult
from brynix_bot.infrastructure.persistence import SessionStore
from brynix_bot.infrastructure.sheets import SheetsError
from brynix_bot.infrastructure.tts import AudioClip
from brynix_bot.infrastructure.whatsapp import IncomingMessage, MediaPayload, MessagingClient

GROUP_ID = "120363000000000001@g.us"
BOT_ID = "5511999990000@c.us"
TODAY = date(2025, 3, 10)


@dataclass
class FakeMessage(IncomingMessage):
    replies: List[str] = field(default_factory=list)
    media: Optional[MediaPayload] = None
    fail_reply: bool = False

    def reply(self, text: str) -> None:
        if self.fail_reply:
            raise RuntimeError("transport down")
        self.replies.append(text)

    def download_media(self) -> Optional[MediaPayload]:
        return self.media


def group_message(body: str, **kwargs) -> FakeMessage:
    kwargs.setdefault("sender_id", "5511888887777@c.us")
    kwargs.setdefault("sender_name", "Ana")
    return FakeMessage(conversation_id=GROUP_ID, body=body, is_group=True, **kwargs)


def private_message(body: str, **kwargs) -> FakeMessage:
    return FakeMessage(
        conversation_id="5511888887777@c.us",
        body=body,
        is_group=False,
        sender_id="5511888887777@c.us",
        sender_name="Ana",
        **kwargs,
    )


class FakeSheets:
    def __init__(self, tasks=None, meta=None, resources=None):
        self.tasks = list(tasks or [])
        self.meta = dict(meta or {})
        self.resources = list(resources or [])
        self.log_rows = []
        self.fail = False
        self.fail_log = False
        self.reads = 0

    def read_tasks(self, sheet_id):
        self.reads += 1
        if self.fail:
            raise SheetsError("quota exceeded")
        return list(self.tasks)

    def read_meta(self, sheet_id):
        if self.fail:
            raise SheetsError("quota exceeded")
        return dict(self.meta)

    def read_resources(self, sheet_id):
        return list(self.resources)

    def append_log_row(self, sheet_id, row):
        if self.fail_log:
            raise SheetsError("LOG tab missing")
        self.log_rows.append((sheet_id, list(row)))


class FakeDrive:
    def __init__(self, url="https://drive.google.com/file/d/f1/view", fail=False):
        self.url = url
        self.fail = fail
        self.uploads = []

    def project_path(self, project_name):
        return f"{project_name}/Documentos de Projeto"

    def upload(self, data, filename, mime_type, destination_path):
        if self.fail:
            raise DriveError("storage quota")
        self.uploads.append((data, filename, mime_type, destination_path))
        return UploadResult(id="f1", url=self.url)


class FakeReplyService:
    def __init__(self):
        self.prompts = []

    def generate_reply(self, user_text, context=None):
        self.prompts.append((user_text, context))
        return f"LLM: {user_text}"


class FakeTTS:
    def __init__(self, clip=AudioClip(data=b"ID3fake")):
        self.clip = clip
        self.texts = []

    def synthesize(self, text, voice=None):
        self.texts.append(text)
        return self.clip


class FakeClient(MessagingClient):
    """In-memory MessagingClient recording every call."""

    def __init__(self, state="CONNECTED", self_id=BOT_ID, push_name="Alice"):
        super().__init__()
        self.state = state
        self._self_id = self_id
        self._push_name = push_name
        self.sent = []
        self.files = []
        self.initialized = 0
        self.destroyed = 0
        self.destroy_error: Optional[Exception] = None
        self.state_error: Optional[Exception] = None

    def initialize(self):
        self.initialized += 1

    def destroy(self):
        self.destroyed += 1
        if self.destroy_error:
            raise self.destroy_error

    def get_state(self):
        if self.state_error:
            raise self.state_error
        return self.state

    def send_message(self, conversation_id, text):
        self.sent.append((conversation_id, text))
        return True

    def send_file(self, conversation_id, data, filename, mime_type, caption=""):
        self.files.append((conversation_id, data, filename, mime_type))
        return True

    @property
    def self_id(self):
        return self._self_id

    @property
    def push_name(self):
        return self._push_name


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeAlerts:
    def __init__(self):
        self.sent = []

    def send(self, payload):
        self.sent.append(payload)
        return False


@pytest.fixture
def bot_settings():
    return BotSettings(aliases=("alice", "bot"), private_commands=False, reply_chunk_size=3500)


@pytest.fixture
def wa_settings(tmp_path):
    return WhatsAppSettings(
        session_path=tmp_path / "wa-session",
        headless=True,
        reinit_cooldown=30,
        watchdog_interval=60,
        poll_interval=3,
    )


@pytest.fixture
def alert_settings():
    return AlertSettings(webhook_url="")


@pytest.fixture
def tasks():
    return [
        TaskRow(title="Kickoff", assignee="Ana", status="Concluída", end_date=date(2025, 3, 1)),
        TaskRow(title="Levantamento", assignee="Bruno", status="Em andamento", end_date=TODAY),
        TaskRow(title="Protótipo", assignee="Carla; Ana", status="Atrasada", end_date=date(2025, 3, 11)),
        TaskRow(title="Relatório", assignee="", status="", end_date=None),
    ]


@pytest.fixture
def sheets(tasks):
    return FakeSheets(tasks=tasks)


@pytest.fixture
def drive():
    return FakeDrive()


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def reply_service():
    return FakeReplyService()


@pytest.fixture
def router(sheets, drive, sessions, reply_service, bot_settings):
    handlers = ProjectHandlers(sheets, drive, bot_settings, today=lambda: TODAY)
    return CommandRouter(handlers, sessions, reply_service, FakeTTS(), bot_settings)
