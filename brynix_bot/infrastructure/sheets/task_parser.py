"""
Task Parser - Spreadsheet Grid to TaskRow Conversion
=====================================================

Turns the raw value grid returned by the Sheets API into TaskRow objects,
auto-detecting columns by header name. Headers are matched case- and
accent-insensitively, so "Responsável" and "responsavel" are the same column.

Expected header (variations tolerated):
    Tarefa | Prioridade | Responsável | Status | Data de início |
    Data de término | Marco | Produtos | Observações
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from ...domain.intents import normalize
from ...domain.tasks import TaskRow, parse_br_date

logger = logging.getLogger(__name__)

# Header variations per TaskRow field, most specific first
COLUMN_PATTERNS: Dict[str, List[str]] = {
    "title": ["tarefa", "atividade", "task"],
    "priority": ["prioridade", "priority"],
    "assignee": ["responsavel", "assignee", "owner", "dono"],
    "status": ["status", "situacao"],
    "start_date": ["data de inicio", "inicio", "start"],
    "end_date": ["data de termino", "data de fim", "termino", "prazo", "due date"],
    "milestone": ["marco", "milestone"],
    "products": ["produtos", "entregaveis", "products"],
    "notes": ["observacoes", "observacao", "obs", "notes"],
}

RESOURCE_NAME_PATTERNS = ["nome", "recurso", "pessoa", "participante", "membro", "responsavel", "name"]


class TaskSheetError(Exception):
    """Raised when the task tab cannot be interpreted."""
    pass


def _unique_columns(headers: Iterable[str]) -> List[str]:
    """Normalize header cells and suffix duplicates so pandas keeps them apart."""
    seen: Dict[str, int] = {}
    columns = []
    for header in headers:
        name = normalize(str(header))
        count = seen.get(name, 0)
        seen[name] = count + 1
        columns.append(name if count == 0 else f"{name}_{count}")
    return columns


def grid_to_frame(values: Sequence[Sequence[str]]) -> pd.DataFrame:
    """
    Build a DataFrame from a header row plus data rows.

    The Sheets API drops trailing empty cells, so rows are padded
    (or truncated) to the header width.
    """
    if not values:
        return pd.DataFrame()

    columns = _unique_columns(values[0])
    width = len(columns)
    body = [
        (["" if cell is None else str(cell) for cell in row] + [""] * width)[:width]
        for row in values[1:]
    ]
    return pd.DataFrame(body, columns=columns, dtype=str).fillna("")


def find_column(columns: Iterable[str], patterns: List[str], taken: Iterable[str] = ()) -> Optional[str]:
    """Find the column matching a pattern: exact names first, then substrings."""
    available = [c for c in columns if c and c not in set(taken)]

    for pattern in patterns:
        for col in available:
            if col == pattern:
                return col

    for pattern in patterns:
        for col in available:
            if pattern in col:
                return col

    return None


def detect_columns(columns: Iterable[str]) -> Dict[str, Optional[str]]:
    columns = list(columns)
    mapping: Dict[str, Optional[str]] = {}
    taken: List[str] = []
    for field_name, patterns in COLUMN_PATTERNS.items():
        col = find_column(columns, patterns, taken)
        mapping[field_name] = col
        if col:
            taken.append(col)
    return mapping


def parse_task_grid(values: Sequence[Sequence[str]]) -> List[TaskRow]:
    """
    Parse the task tab.

    Args:
        values: Grid as returned by ``spreadsheets.values.get`` (header first).

    Returns:
        TaskRow list; rows with an empty title are skipped.
    """
    if len(values) < 2:
        return []

    df = grid_to_frame(values)
    mapping = detect_columns(df.columns)
    logger.debug(f"Detected task columns: {mapping}")

    if not mapping["title"]:
        raise TaskSheetError(
            "Could not detect the task column. Expected a header like 'Tarefa'."
        )

    tasks = []
    for _, row in df.iterrows():
        def cell(field_name: str) -> str:
            col = mapping.get(field_name)
            return str(row[col]).strip() if col else ""

        title = cell("title")
        if not title:
            continue

        tasks.append(TaskRow(
            title=title,
            priority=cell("priority"),
            assignee=cell("assignee"),
            status=cell("status"),
            start_date=parse_br_date(cell("start_date")),
            end_date=parse_br_date(cell("end_date")),
            milestone=cell("milestone"),
            products=cell("products"),
            notes=cell("notes"),
        ))

    logger.info(f"Parsed {len(tasks)} tasks")
    return tasks


def parse_meta_grid(values: Sequence[Sequence[str]]) -> Dict[str, str]:
    """Key | value rows (e.g. ProjectName, Timezone, DailyReminderTime)."""
    meta: Dict[str, str] = {}
    for row in values:
        if not row or not str(row[0]).strip():
            continue
        key = str(row[0]).strip()
        value = str(row[1]).strip() if len(row) > 1 and row[1] is not None else ""
        meta[key] = value
    return meta


def parse_resource_grid(values: Sequence[Sequence[str]]) -> List[str]:
    """Names listed in the resources tab; first column when no name header is found."""
    if len(values) < 2:
        return []

    df = grid_to_frame(values)
    col = find_column(df.columns, RESOURCE_NAME_PATTERNS) or df.columns[0]
    return [name for name in (str(v).strip() for v in df[col].tolist()) if name]
