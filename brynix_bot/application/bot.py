"""
Bot Wiring - Composition Root
==============================

Builds every collaborator from Settings and connects them:

    WhatsAppWebClient --events--> ConnectionSupervisor --message--> CommandRouter
                                                                     |
                         SessionStore / SheetsRepository / DriveStorage / ReplyService / TTS

    ReminderScheduler --> SessionStore.all_links() --> ConnectionSupervisor.send()

Nothing here is module-global: tests build a BrynixBot from fakes.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..infrastructure.alerts import AlertNotifier
from ..infrastructure.config import Settings, get_settings
from ..infrastructure.drive import DriveStorage
from ..infrastructure.llm import ReplyService
from ..infrastructure.persistence import InMemoryStore, SessionStore, open_store
from ..infrastructure.sheets import SheetsRepository
from ..infrastructure.tts import TextToSpeechService
from .handlers import ProjectHandlers
from .router import CommandRouter
from .scheduler import ReminderScheduler
from .supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)


@dataclass
class BrynixBot:
    """Running bot: the supervisor owns the client, the scheduler sends reminders."""
    supervisor: ConnectionSupervisor
    router: CommandRouter
    sessions: SessionStore
    scheduler: Optional[ReminderScheduler] = None

    def start(self) -> None:
        logger.info("Starting BRYNIX bot")
        self.supervisor.start()
        if self.scheduler is not None:
            self.scheduler.start()

    def stop(self) -> None:
        logger.info("Stopping BRYNIX bot")
        if self.scheduler is not None:
            self.scheduler.stop()
        self.supervisor.stop()


def build_bot(settings: Optional[Settings] = None) -> BrynixBot:
    """Create the production bot (Selenium client, Google APIs, LLM)."""
    # Imported here so selenium is only loaded when a real browser is wanted
    from ..infrastructure.whatsapp.whatsapp_client import WhatsAppWebClient

    settings = settings or get_settings()
    for issue in settings.validate():
        logger.warning(issue)

    sessions = SessionStore(links=open_store(settings.storage.links_db_path), mutes=InMemoryStore())
    sheets = SheetsRepository(settings.google)
    drive = DriveStorage(settings.google)
    tts = TextToSpeechService(settings)

    handlers = ProjectHandlers(sheets, drive, settings.bot)
    router = CommandRouter(handlers, sessions, ReplyService(settings.llm), tts, settings.bot)

    supervisor = ConnectionSupervisor(
        client_factory=lambda: WhatsAppWebClient(settings.whatsapp),
        on_message=router.route,
        alerts=AlertNotifier(settings.alerts),
        settings=settings.whatsapp,
    )
    scheduler = ReminderScheduler(
        sessions, sheets, supervisor, tts, chunk_size=settings.bot.reply_chunk_size
    )
    return BrynixBot(supervisor=supervisor, router=router, sessions=sessions, scheduler=scheduler)
