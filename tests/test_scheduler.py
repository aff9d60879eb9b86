"""Tests for daily/weekly reminders."""

from datetime import datetime

import pytest
import pytz

from brynix_bot.application.scheduler import (
    ReminderScheduler,
    at_time,
    in_quiet_hours,
    is_weekly_hit,
    parse_quiet_hours,
    resolve_timezone,
)
from brynix_bot.infrastructure.persistence import SessionStore

from .conftest import GROUP_ID, FakeClock, FakeSheets, FakeTTS

# Friday 2025-03-14, Sao Paulo is UTC-3
DAILY_UTC = datetime(2025, 3, 14, 12, 0, tzinfo=pytz.utc)     # 09:00 local
WEEKLY_UTC = datetime(2025, 3, 14, 20, 30, tzinfo=pytz.utc)   # 17:30 local


class FakeSupervisor:
    def __init__(self):
        self.sent = []
        self.files = []

    def send(self, conversation_id, text):
        self.sent.append((conversation_id, text))
        return True

    def send_file(self, conversation_id, data, filename, mime_type):
        self.files.append((conversation_id, filename))
        return True


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def sessions():
    store = SessionStore()
    store.set_link(GROUP_ID, "SHEET1", "Projeto X")
    return store


@pytest.fixture
def outbox():
    return FakeSupervisor()


def make_scheduler(sessions, sheets, outbox, now, tts=None):
    return ReminderScheduler(sessions, sheets, outbox, tts, now=Clock(now))


class TestTimeHelpers:

    def test_quiet_hours_crossing_midnight(self):
        quiet = parse_quiet_hours("20:00–08:00")
        tz = pytz.timezone("America/Sao_Paulo")
        assert in_quiet_hours(tz.localize(datetime(2025, 3, 14, 23, 0)), quiet)
        assert in_quiet_hours(tz.localize(datetime(2025, 3, 14, 7, 59)), quiet)
        assert not in_quiet_hours(tz.localize(datetime(2025, 3, 14, 9, 0)), quiet)

    def test_quiet_hours_same_day(self):
        quiet = parse_quiet_hours("12:00-13:00")
        assert in_quiet_hours(datetime(2025, 3, 14, 12, 30), quiet)
        assert not in_quiet_hours(datetime(2025, 3, 14, 13, 30), quiet)

    def test_malformed_quiet_hours(self):
        assert parse_quiet_hours("sempre") is None
        assert not in_quiet_hours(datetime(2025, 3, 14, 12, 0), None)

    def test_at_time_and_weekly(self):
        friday = datetime(2025, 3, 14, 17, 30)
        assert at_time(friday, "17:30")
        assert not at_time(friday, "17:31")
        assert is_weekly_hit(friday, "FRI 17:30")
        assert is_weekly_hit(friday, "fri")
        assert not is_weekly_hit(friday, "MON 17:30")

    def test_unknown_timezone_falls_back(self):
        assert resolve_timezone("Mars/Olympus").zone == "America/Sao_Paulo"


class TestReminderScheduler:

    def test_daily_summary(self, sessions, tasks, outbox):
        sheets = FakeSheets(tasks=tasks)
        assert make_scheduler(sessions, sheets, outbox, DAILY_UTC).tick() == 1
        conversation_id, text = outbox.sent[0]
        assert conversation_id == GROUP_ID
        assert "Projeto X — Status" in text
        assert sheets.log_rows[0][1][1] == "daily"

    def test_fires_once_per_minute(self, sessions, tasks, outbox):
        scheduler = make_scheduler(sessions, FakeSheets(tasks=tasks), outbox, DAILY_UTC)
        scheduler.tick()
        scheduler.tick()
        assert len(outbox.sent) == 1

    def test_custom_time_and_timezone(self, sessions, tasks, outbox):
        sheets = FakeSheets(tasks=tasks, meta={"Timezone": "UTC", "DailyReminderTime": "12:00"})
        assert make_scheduler(sessions, sheets, outbox, DAILY_UTC).tick() == 1

    def test_not_due(self, sessions, tasks, outbox):
        sheets = FakeSheets(tasks=tasks, meta={"DailyReminderTime": "10:00"})
        assert make_scheduler(sessions, sheets, outbox, DAILY_UTC).tick() == 0
        assert outbox.sent == []

    def test_quiet_hours_suppress(self, sessions, tasks, outbox):
        sheets = FakeSheets(tasks=tasks, meta={"QuietHours": "08:00-10:00"})
        assert make_scheduler(sessions, sheets, outbox, DAILY_UTC).tick() == 0

    def test_weekly_wrap(self, sessions, tasks, outbox):
        sheets = FakeSheets(tasks=tasks, meta={"ProjectName": "Projeto Y"})
        assert make_scheduler(sessions, sheets, outbox, WEEKLY_UTC).tick() == 1
        assert outbox.sent[0][1].startswith("*Projeto Y — Fechamento semanal*")
        assert sheets.log_rows[0][1][1] == "weekly"

    def test_tts_voice_note(self, sessions, tasks, outbox):
        sheets = FakeSheets(tasks=tasks, meta={"TTS_Enabled": "true"})
        tts = FakeTTS()
        make_scheduler(sessions, sheets, outbox, DAILY_UTC, tts).tick()
        assert outbox.files == [(GROUP_ID, "audio.mp3")]
        assert "Projeto X" in tts.texts[0]

    def test_failing_project_does_not_stop_others(self, tasks, outbox):
        sessions = SessionStore()
        sessions.set_link("a@g.us", "BROKEN", "A")
        sessions.set_link("b@g.us", "OK", "B")

        class PartlyBroken(FakeSheets):
            def read_meta(self, sheet_id):
                if sheet_id == "BROKEN":
                    raise RuntimeError("unexpected")
                return {}

        assert make_scheduler(sessions, PartlyBroken(tasks=tasks), outbox, DAILY_UTC).tick() == 1
        assert outbox.sent[0][0] == "b@g.us"


class StopAfter:
    """Stand-in for the stop event: records each wait and moves the clock forward."""

    def __init__(self, clock, rounds):
        self.clock = clock
        self.rounds = rounds
        self.waits = []

    def wait(self, timeout):
        self.waits.append(timeout)
        self.clock.advance(timeout)
        return len(self.waits) > self.rounds


class TestTickCadence:

    def make(self, sessions, outbox, clock):
        return ReminderScheduler(sessions, FakeSheets(), outbox, interval_seconds=60, clock=clock)

    def test_next_delay_counts_from_start(self, sessions, outbox):
        clock = FakeClock(start=1000.0)
        scheduler = self.make(sessions, outbox, clock)
        clock.advance(15)
        assert scheduler.next_delay(1000.0) == 45

    def test_overrun_lands_on_next_boundary(self, sessions, outbox):
        clock = FakeClock(start=1000.0)
        scheduler = self.make(sessions, outbox, clock)
        clock.advance(130)
        assert scheduler.next_delay(1000.0) == 50

    def test_slow_ticks_keep_fixed_rate(self, sessions, outbox):
        clock = FakeClock(start=1000.0)
        scheduler = self.make(sessions, outbox, clock)
        scheduler.tick = lambda: clock.advance(20)
        scheduler._stop = StopAfter(clock, rounds=3)

        scheduler._loop()

        assert scheduler._stop.waits == [60, 40, 40, 40]
        assert clock.now == 1000.0 + 4 * 60
