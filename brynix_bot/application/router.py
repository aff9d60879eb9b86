"""
Command Router - Decides Whether and How the Bot Answers a Message
===================================================================

Decision sequence (each step short-circuits):

    private chat   -> /intro, /audio, otherwise LLM reply
    group          -> unmute command or phrase always honored
                   -> muted: silence
                   -> attachment: save to the project's Drive folder
                   -> /setup, /unlink
                   -> not a command and bot not addressed: silence
                   -> classify, then menu / mute / setup guidance / handler

Every reply goes through the message's own reply() and is chunked to
REPLY_CHUNK_SIZE. Any unexpected error gets a generic apology.
"""

import logging
import re
from typing import Optional

from ..domain.intents import DATA_INTENTS, Intent, classify, is_command, normalize
from ..infrastructure.config import BotSettings, get_settings
from ..infrastructure.llm import ReplyService
from ..infrastructure.persistence import ConversationLink, SessionStore
from ..infrastructure.sheets import extract_sheet_id
from ..infrastructure.tts import TextToSpeechService
from ..infrastructure.whatsapp import IncomingMessage, MessagingClient
from . import replies
from .handlers import ProjectHandlers

logger = logging.getLogger(__name__)

_SETUP = re.compile(r"^/setup\b", re.IGNORECASE)
_UNLINK = re.compile(r"^/unlink\b", re.IGNORECASE)
_INTRO = re.compile(r"^/intro\b", re.IGNORECASE)
_INTRO_PHRASE = re.compile(r"apresente-se|quem e voce|o que voce faz")
_AUDIO = re.compile(r"^/audio\b", re.IGNORECASE)
_MENU = re.compile(r"^/?menu\b")

# Leading "@5511...", "@Alice", "Alice," tokens in front of the actual request
_LEADING_MENTION = re.compile(r"^(?:@\S+[\s,:;-]*)+")


def _called(name: str, text: str) -> bool:
    """Whole-word match of a (normalized) name, with or without a leading @."""
    return re.search(rf"(?<![\w@])@?{re.escape(name)}(?!\w)", text) is not None


class CommandRouter:
    """
    USAGE:
        router = CommandRouter(handlers, SessionStore(), ReplyService())
        client.on("message", lambda m: router.route(m, client))
    """

    def __init__(
        self,
        handlers: ProjectHandlers,
        sessions: SessionStore,
        reply_service: ReplyService,
        tts: Optional[TextToSpeechService] = None,
        settings: Optional[BotSettings] = None,
    ):
        self.handlers = handlers
        self.sessions = sessions
        self.reply_service = reply_service
        self.tts = tts
        self._settings = settings or get_settings().bot

    def route(self, message: IncomingMessage, client: Optional[MessagingClient] = None) -> None:
        """Handle one inbound message. Never raises."""
        try:
            if message.is_group:
                self._route_group(message, client)
            elif self._settings.private_commands and is_command(message.body) and not (
                _INTRO.match(message.body.strip()) or _AUDIO.match(message.body.strip())
            ):
                self._route_group(message, client)
            else:
                self._route_private(message, client)
        except Exception as e:
            logger.exception(f"Message handling failed in {message.conversation_id}: {e}")
            try:
                message.reply(replies.TECHNICAL_ERROR_REPLY)
            except Exception as reply_error:
                logger.error(f"Could not send error reply: {reply_error}")

    def _reply(self, message: IncomingMessage, text: str) -> None:
        for part in replies.chunk_text(text, self._settings.reply_chunk_size):
            message.reply(part)

    # ── 1:1 ───────────────────────────────────────────────────────

    def _route_private(self, message: IncomingMessage, client: Optional[MessagingClient]) -> None:
        text = (message.body or "").strip()

        if _AUDIO.match(text):
            self._send_audio(message, client, _AUDIO.sub("", text, count=1).strip())
            return

        if _INTRO.match(text) or _INTRO_PHRASE.search(normalize(text)):
            self._reply(message, replies.intro_card())
            return

        reply = self.reply_service.generate_reply(
            text,
            {"sender_id": message.sender_id, "display_name": message.sender_name},
        )
        self._reply(message, reply)

    def _send_audio(self, message: IncomingMessage, client: Optional[MessagingClient], text: str) -> None:
        clip = self.tts.synthesize(text or replies.DEFAULT_AUDIO_TEXT) if self.tts else None
        if clip is None or client is None:
            self._reply(message, replies.TTS_UNAVAILABLE)
            return
        if not client.send_file(message.conversation_id, clip.data, clip.filename, clip.mime_type):
            self._reply(message, replies.TTS_UNAVAILABLE)

    # ── Groups ────────────────────────────────────────────────────

    def _route_group(self, message: IncomingMessage, client: Optional[MessagingClient]) -> None:
        conversation_id = message.conversation_id
        text = (message.body or "").strip()
        command = is_command(text)
        request = self.strip_mentions(text)

        # An explicit unmute wins over everything, muted or not
        if classify(request).intent is Intent.MUTE_OFF:
            self.sessions.set_muted(conversation_id, False)
            self._reply(message, replies.UNMUTED_REPLY)
            return

        if self.sessions.is_muted(conversation_id):
            logger.debug(f"Muted conversation {conversation_id}; ignoring message")
            return

        link = self.sessions.get_link(conversation_id)

        if message.has_media:
            self._save_attachment(message, link)
            return

        if command and _SETUP.match(text):
            self._setup(message, text)
            return

        if command and _UNLINK.match(text):
            self.sessions.remove_link(conversation_id)
            self._reply(message, replies.unlink_confirmation(link.project_name if link else None))
            return

        if not command and not self.is_addressed(message, client):
            return

        result = classify(request)
        project_name = link.project_name if link else None

        if result.intent is Intent.NONE:
            self._reply(message, replies.menu_card(project_name))
            return

        if result.intent is Intent.HELP:
            card = replies.menu_card if _MENU.match(normalize(request)) else replies.help_card
            self._reply(message, card(project_name))
            return

        if result.intent is Intent.MUTE_ON:
            self.sessions.set_muted(conversation_id, True)
            self._reply(message, replies.MUTED_REPLY)
            return

        if link is None:
            self._reply(message, replies.LINK_REQUIRED)
            return

        self._reply(message, self._dispatch(result.intent, result.argument, link, message))

    def _dispatch(self, intent: Intent, argument: str, link: ConversationLink, message: IncomingMessage) -> str:
        if intent not in DATA_INTENTS:
            return replies.menu_card(link.project_name)

        author = message.sender_name or message.sender_id
        if intent is Intent.SUMMARY:
            return self.handlers.summary(link)
        if intent is Intent.SUMMARY_BRIEF:
            return self.handlers.brief(link)
        if intent is Intent.NEXT:
            return self.handlers.next_tasks(link)
        if intent is Intent.LATE:
            return self.handlers.late_tasks(link)
        if intent is Intent.REMIND_NOW:
            return self.handlers.remind_now(link, author)
        if intent is Intent.NOTE:
            return self.handlers.note(link, argument, author)
        return self.handlers.who(link)

    def _save_attachment(self, message: IncomingMessage, link: Optional[ConversationLink]) -> None:
        if link is None:
            self._reply(message, replies.LINK_REQUIRED_FOR_MEDIA)
            return
        media = message.download_media()
        self._reply(
            message,
            self.handlers.save_attachment(link, media, message.sender_name or message.sender_id),
        )

    def _setup(self, message: IncomingMessage, text: str) -> None:
        reference, _, name = _SETUP.sub("", text, count=1).partition("|")
        sheet_id = extract_sheet_id(reference.strip())
        project_name = name.strip()

        if not sheet_id or not project_name:
            self._reply(message, replies.SETUP_USAGE)
            return

        self.sessions.set_link(message.conversation_id, sheet_id, project_name)
        logger.info(f"Linked {message.conversation_id} to {project_name} ({sheet_id})")
        self._reply(message, replies.setup_confirmation(sheet_id, project_name))

    # ── Addressing ────────────────────────────────────────────────

    def is_addressed(self, message: IncomingMessage, client: Optional[MessagingClient]) -> bool:
        """True when the bot is @-mentioned, named, or called by an alias."""
        self_id = client.self_id if client else ""
        if self_id and self_id in (message.mentioned_ids or []):
            return True

        text = normalize(message.body)
        names = list(self._settings.aliases)
        if client and client.push_name:
            names.append(client.push_name)
        return any(_called(normalize(name), text) for name in names if name)

    def strip_mentions(self, text: str) -> str:
        """Drop leading mention tokens and a leading alias ("Alice, resumo" -> "resumo")."""
        stripped = _LEADING_MENTION.sub("", (text or "").strip())
        for alias in self._settings.aliases:
            pattern = re.compile(rf"^{re.escape(alias)}(?!\w)[\s,:;-]*", re.IGNORECASE)
            if pattern.match(stripped):
                stripped = pattern.sub("", stripped, count=1)
                break
        return stripped.strip()
