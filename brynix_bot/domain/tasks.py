"""
Task Views - Derived Status Views over Project Task Rows
=========================================================

Pure functions over TaskRow lists. The spreadsheet layer builds the rows;
the application layer formats the results into WhatsApp cards.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple

from .intents import normalize

NO_STATUS = "Sem status"

# Status labels are matched on accent-stripped, lower-cased text
COMPLETED_PATTERN = re.compile(r"conclu")
OVERDUE_PATTERN = re.compile(r"atrasad")

_BR_DATE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})\s*$")


def parse_br_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a ``dd/mm/yyyy`` (or ``d/m/yy``) cell.

    Returns None for empty or unparseable values; callers treat that as
    "no date", never as today.
    """
    if not value:
        return None
    match = _BR_DATE.match(str(value))
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    if len(match.group(3)) == 2:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


@dataclass
class TaskRow:
    """One row of the project's task tab."""
    title: str
    priority: str = ""
    assignee: str = ""
    status: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    milestone: str = ""
    products: str = ""
    notes: str = ""

    @property
    def status_label(self) -> str:
        return self.status.strip() or NO_STATUS

    @property
    def is_completed(self) -> bool:
        return bool(COMPLETED_PATTERN.search(normalize(self.status)))

    @property
    def is_overdue(self) -> bool:
        return bool(OVERDUE_PATTERN.search(normalize(self.status)))


@dataclass
class StatusSummary:
    project_name: str
    total: int
    by_status: List[Tuple[str, int]] = field(default_factory=list)
    open_preview: List[TaskRow] = field(default_factory=list)


@dataclass
class BriefSummary:
    project_name: str
    total: int
    top_statuses: List[Tuple[str, int]] = field(default_factory=list)
    overdue_count: int = 0


def valid_tasks(tasks: Iterable[TaskRow]) -> List[TaskRow]:
    """Rows without a title never take part in any view."""
    return [t for t in tasks if t.title and t.title.strip()]


def count_by_status(tasks: Iterable[TaskRow]) -> List[Tuple[str, int]]:
    """Status counts, largest first; ties keep first-seen order."""
    counter = Counter(t.status_label for t in tasks)
    return counter.most_common()


def full_summary(project_name: str, tasks: Iterable[TaskRow], preview_limit: int = 10) -> StatusSummary:
    rows = valid_tasks(tasks)
    open_rows = [t for t in rows if not t.is_completed]
    return StatusSummary(
        project_name=project_name,
        total=len(rows),
        by_status=count_by_status(rows),
        open_preview=open_rows[:preview_limit],
    )


def brief_summary(project_name: str, tasks: Iterable[TaskRow], top: int = 4) -> BriefSummary:
    rows = valid_tasks(tasks)
    return BriefSummary(
        project_name=project_name,
        total=len(rows),
        top_statuses=count_by_status(rows)[:top],
        overdue_count=sum(1 for t in rows if t.is_overdue),
    )


def due_soon(tasks: Iterable[TaskRow], today: Optional[date] = None, limit: int = 8) -> List[TaskRow]:
    """Tasks whose end date falls today or tomorrow. Undated rows are skipped."""
    today = today or date.today()
    window = {today, today + timedelta(days=1)}
    return [t for t in valid_tasks(tasks) if t.end_date in window][:limit]


def overdue(tasks: Iterable[TaskRow], limit: int = 8) -> List[TaskRow]:
    """Tasks flagged late by their status label (no date arithmetic)."""
    return [t for t in valid_tasks(tasks) if t.is_overdue][:limit]


_NAME_SEPARATORS = re.compile(r"[,;/]")


def participants(tasks: Iterable[TaskRow], resources: Optional[Iterable[str]] = None) -> List[str]:
    """
    Project members: the resources tab when it has names, otherwise the
    distinct assignees. Deduplicated and sorted case-insensitively.
    """
    names = [n.strip() for n in (resources or []) if n and n.strip()]
    if not names:
        for task in valid_tasks(tasks):
            names.extend(part.strip() for part in _NAME_SEPARATORS.split(task.assignee) if part.strip())

    unique = {}
    for name in names:
        unique.setdefault(name.casefold(), name)
    return sorted(unique.values(), key=str.casefold)
