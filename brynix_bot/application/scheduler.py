"""
Reminder Scheduler - Daily and Weekly Project Summaries
========================================================

Once a minute, for every linked conversation, reads the project's
Dados_Projeto tab and decides whether a reminder is due:

    Timezone           America/Sao_Paulo   (IANA name)
    DailyReminderTime  09:00               full summary every day
    WeeklyWrap         FRI 17:30           "Fechamento semanal" + summary
    QuietHours         20:00-08:00         nothing is sent inside the range
    TTS_Enabled        TRUE                daily summary also as a voice note

Each (conversation, slot) fires at most once per local minute. A failing
project is logged and skipped; the others still run.
"""

import logging
import re
import threading
import time
from datetime import datetime, time as dtime
from typing import Callable, Optional, Set, Tuple

import pytz

from ..domain.tasks import full_summary
from ..infrastructure.persistence import ConversationLink, SessionStore
from ..infrastructure.sheets import SheetsError, SheetsRepository, TaskSheetError
from ..infrastructure.tts import TextToSpeechService
from . import replies
from .handlers import log_timestamp
from .supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Sao_Paulo"
DEFAULT_DAILY_TIME = "09:00"
DEFAULT_WEEKLY_WRAP = "FRI 17:30"

WEEKDAYS = ["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]

_HHMM = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_hhmm(value: Optional[str]) -> Optional[dtime]:
    match = _HHMM.match(value or "")
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return dtime(hour, minute)


def parse_quiet_hours(value: Optional[str]) -> Optional[Tuple[dtime, dtime]]:
    """'20:00-08:00' (en dash accepted) -> (start, end); None if malformed."""
    parts = [p.strip() for p in (value or "").replace("–", "-").split("-")]
    if len(parts) != 2:
        return None
    start, end = parse_hhmm(parts[0]), parse_hhmm(parts[1])
    if start is None or end is None:
        return None
    return start, end


def in_quiet_hours(local_now: datetime, quiet: Optional[Tuple[dtime, dtime]]) -> bool:
    """Inclusive range check; ranges with start > end wrap past midnight."""
    if not quiet:
        return False
    start, end = quiet
    current = local_now.time().replace(second=0, microsecond=0)
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def at_time(local_now: datetime, hhmm: Optional[str]) -> bool:
    target = parse_hhmm(hhmm)
    return target is not None and (local_now.hour, local_now.minute) == (target.hour, target.minute)


def is_weekly_hit(local_now: datetime, weekly: Optional[str]) -> bool:
    """'FRI 17:30' matches Fridays at 17:30 local time; the time defaults to 17:30."""
    parts = (weekly or "").split()
    if not parts:
        return False
    day = parts[0].upper()[:3]
    when = parts[1] if len(parts) > 1 else "17:30"
    return WEEKDAYS[local_now.weekday()] == day and at_time(local_now, when)


def resolve_timezone(name: Optional[str]):
    try:
        return pytz.timezone((name or "").strip() or DEFAULT_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{name}', using {DEFAULT_TIMEZONE}")
        return pytz.timezone(DEFAULT_TIMEZONE)


class ReminderScheduler:
    """
    USAGE:
        scheduler = ReminderScheduler(sessions, sheets, supervisor)
        scheduler.start()      # background thread, one tick per minute
        scheduler.tick()       # or drive it manually (tests)
    """

    def __init__(
        self,
        sessions: SessionStore,
        sheets: SheetsRepository,
        supervisor: ConnectionSupervisor,
        tts: Optional[TextToSpeechService] = None,
        chunk_size: int = 3500,
        interval_seconds: int = 60,
        now: Callable[[], datetime] = lambda: datetime.now(pytz.utc),
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sessions = sessions
        self.sheets = sheets
        self.supervisor = supervisor
        self.tts = tts
        self._chunk_size = chunk_size
        self._interval = interval_seconds
        self._now = now
        self._clock = clock

        self._fired: Set[Tuple[str, str, str]] = set()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="reminders", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5)
        self._thread = None

    def _loop(self) -> None:
        started = self._clock()
        while not self._stop.wait(self.next_delay(started)):
            self.tick()

    def next_delay(self, started: float) -> float:
        """
        Seconds until the next interval boundary counted from ``started``.
        A slow tick shortens the following wait instead of shifting every later tick.
        """
        elapsed = self._clock() - started
        return self._interval - elapsed % self._interval

    def tick(self) -> int:
        """Run one scheduling pass. Returns the number of reminders sent."""
        utc_now = self._now()
        sent = 0
        for link in self.sessions.all_links():
            try:
                sent += self._process(link, utc_now)
            except (SheetsError, TaskSheetError) as e:
                logger.warning(f"[scheduler] {link.project_name}: {e}")
            except Exception as e:
                logger.exception(f"[scheduler] {link.project_name} failed: {e}")
        return sent

    def _first_time(self, conversation_id: str, slot: str, local_now: datetime) -> bool:
        key = (conversation_id, slot, local_now.strftime("%Y-%m-%d %H:%M"))
        if key in self._fired:
            return False
        # Only the current minute matters; older keys can go
        self._fired = {k for k in self._fired if k[2] == key[2]}
        self._fired.add(key)
        return True

    def _process(self, link: ConversationLink, utc_now: datetime) -> int:
        meta = self.sheets.read_meta(link.sheet_id)
        local_now = utc_now.astimezone(resolve_timezone(meta.get("Timezone")))

        if in_quiet_hours(local_now, parse_quiet_hours(meta.get("QuietHours"))):
            return 0

        project_name = meta.get("ProjectName") or link.project_name
        sent = 0

        daily = meta.get("DailyReminderTime") or DEFAULT_DAILY_TIME
        if at_time(local_now, daily) and self._first_time(link.conversation_id, "daily", local_now):
            rows = self.sheets.read_tasks(link.sheet_id)
            summary = full_summary(project_name, rows)
            self._send(link.conversation_id, replies.format_status_summary(summary))
            self._log(link, "daily", "Resumo diário enviado")
            sent += 1

            if (meta.get("TTS_Enabled") or "").strip().upper() == "TRUE" and self.tts:
                clip = self.tts.synthesize(
                    f"Resumo diário do projeto {project_name}. {summary.total} tarefas ativas."
                )
                if clip:
                    self.supervisor.send_file(link.conversation_id, clip.data, clip.filename, clip.mime_type)

        weekly = meta.get("WeeklyWrap") or DEFAULT_WEEKLY_WRAP
        if is_weekly_hit(local_now, weekly) and self._first_time(link.conversation_id, "weekly", local_now):
            rows = self.sheets.read_tasks(link.sheet_id)
            self._send(link.conversation_id, replies.format_weekly_wrap(full_summary(project_name, rows)))
            self._log(link, "weekly", "Resumo semanal enviado")
            sent += 1

        return sent

    def _send(self, conversation_id: str, text: str) -> None:
        for part in replies.chunk_text(text, self._chunk_size):
            if not self.supervisor.send(conversation_id, part):
                logger.warning(f"[scheduler] Could not deliver reminder to {conversation_id}")
                return

    def _log(self, link: ConversationLink, kind: str, message: str) -> None:
        try:
            self.sheets.append_log_row(link.sheet_id, [log_timestamp(), kind, "bot", message, "", "", ""])
        except SheetsError as e:
            logger.warning(f"[scheduler] Could not log {kind} for {link.project_name}: {e}")
