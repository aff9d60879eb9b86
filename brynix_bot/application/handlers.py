"""
Project Handlers - Group Commands Backed by the Project Spreadsheet
====================================================================

Each handler takes the conversation's ConversationLink and returns the
reply text. Collaborator failures are logged and turned into a short
failure notice; handlers never raise to the router.
"""

import logging
from datetime import date, datetime
from typing import Callable, Optional

from ..domain import tasks as views
from ..infrastructure.config import BotSettings, get_settings
from ..infrastructure.drive import DriveError, DriveStorage, build_filename
from ..infrastructure.persistence import ConversationLink
from ..infrastructure.sheets import SheetsError, SheetsRepository, TaskSheetError
from ..infrastructure.whatsapp import MediaPayload
from . import replies

logger = logging.getLogger(__name__)

# Failures a spreadsheet read can produce
SHEET_ERRORS = (SheetsError, TaskSheetError)


def log_timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


class ProjectHandlers:
    """
    USAGE:
        handlers = ProjectHandlers(SheetsRepository(), DriveStorage())
        text = handlers.summary(link)
    """

    def __init__(
        self,
        sheets: SheetsRepository,
        drive: Optional[DriveStorage] = None,
        settings: Optional[BotSettings] = None,
        today: Callable[[], date] = date.today,
    ):
        self.sheets = sheets
        self.drive = drive
        self._settings = settings or get_settings().bot
        self._today = today

    def _log(self, link: ConversationLink, kind: str, author: str, message: str,
             filename: str = "", url: str = "") -> None:
        """Append to the LOG tab. A failed log entry never fails the command."""
        try:
            self.sheets.append_log_row(
                link.sheet_id,
                [log_timestamp(), kind, author, message, filename, url, ""],
            )
        except SheetsError as e:
            logger.warning(f"Could not write {kind} log for {link.project_name}: {e}")

    # ── Summaries ─────────────────────────────────────────────────

    def summary(self, link: ConversationLink) -> str:
        try:
            rows = self.sheets.read_tasks(link.sheet_id)
        except SHEET_ERRORS as e:
            logger.error(f"Summary failed for {link.project_name}: {e}")
            return replies.failure("ler a planilha")
        result = views.full_summary(link.project_name, rows, self._settings.summary_preview_limit)
        return replies.format_full_summary(result)

    def brief(self, link: ConversationLink) -> str:
        try:
            rows = self.sheets.read_tasks(link.sheet_id)
        except SHEET_ERRORS as e:
            logger.error(f"Brief summary failed for {link.project_name}: {e}")
            return replies.failure("gerar o resumo curto")
        return replies.format_brief_summary(views.brief_summary(link.project_name, rows))

    def next_tasks(self, link: ConversationLink) -> str:
        try:
            rows = self.sheets.read_tasks(link.sheet_id)
        except SHEET_ERRORS as e:
            logger.error(f"Next tasks failed for {link.project_name}: {e}")
            return replies.failure("obter os próximos itens")
        due = views.due_soon(rows, today=self._today(), limit=self._settings.preview_limit)
        return replies.format_task_list(
            f"{link.project_name} — Próximos (hoje/amanhã)", due, replies.NO_UPCOMING_TASKS
        )

    def late_tasks(self, link: ConversationLink) -> str:
        try:
            rows = self.sheets.read_tasks(link.sheet_id)
        except SHEET_ERRORS as e:
            logger.error(f"Late tasks failed for {link.project_name}: {e}")
            return replies.failure("listar atrasadas")
        late = views.overdue(rows, limit=self._settings.preview_limit)
        return replies.format_task_list(
            f"{link.project_name} — Atrasadas (top {self._settings.preview_limit})",
            late,
            replies.NO_LATE_TASKS,
        )

    def remind_now(self, link: ConversationLink, author: str = "") -> str:
        text = self.summary(link)
        if not text.startswith(replies.NO):
            self._log(link, "remind", author or "bot", "Lembrete disparado manualmente")
        return text

    # ── Notes / people ────────────────────────────────────────────

    def note(self, link: ConversationLink, text: str, author: str = "") -> str:
        text = (text or "").strip()
        if not text:
            return replies.NOTE_USAGE
        try:
            self.sheets.append_log_row(
                link.sheet_id, [log_timestamp(), "note", author, text, "", "", ""]
            )
        except SheetsError as e:
            logger.error(f"Note failed for {link.project_name}: {e}")
            return replies.failure("registrar a nota agora")
        return replies.note_confirmation(text)

    def who(self, link: ConversationLink) -> str:
        try:
            resources = self.sheets.read_resources(link.sheet_id)
            rows = [] if resources else self.sheets.read_tasks(link.sheet_id)
        except SHEET_ERRORS as e:
            logger.error(f"Participants failed for {link.project_name}: {e}")
            return replies.failure("listar os participantes")
        return replies.format_participants(link.project_name, views.participants(rows, resources))

    # ── Attachments ───────────────────────────────────────────────

    def save_attachment(self, link: ConversationLink, media: Optional[MediaPayload], author: str = "") -> str:
        """Upload an attachment into the project's Drive folder."""
        if media is None or not media.data or self.drive is None:
            logger.warning(f"No attachment to save for {link.project_name}")
            return replies.DRIVE_FAILED

        filename = build_filename(media.filename, link.project_name, media.mime_type)
        try:
            result = self.drive.upload(
                media.data, filename, media.mime_type, self.drive.project_path(link.project_name)
            )
        except DriveError as e:
            logger.error(f"Attachment upload failed for {link.project_name}: {e}")
            return replies.DRIVE_FAILED

        if not result.url:
            return replies.DRIVE_FAILED
        self._log(link, "file", author, "Arquivo salvo no Drive", filename, result.url)
        return replies.upload_confirmation(link.project_name, result.url)
