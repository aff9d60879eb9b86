"""
Sheets Repository - Google Sheets Project Data Access
======================================================

Reads project metadata, tasks and resources from the project spreadsheet
and appends rows to its LOG tab. Uses a service account whose JSON key is
passed in GOOGLE_SA_JSON (share the spreadsheet with its e-mail).

Tabs used:
    Dados_Projeto  A1:B10   key | value
    Tarefas        A1:K1000 task table (see task_parser)
    Rec_Projeto    A1:F200  project people (optional)
    LOG            append   timestamp | tipo | autor | msg | arquivo | link | obs
"""

import json
import logging
import re
from typing import Dict, List, Optional, Sequence

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..config import GoogleSettings, get_settings
from ...domain.tasks import TaskRow
from .task_parser import parse_meta_grid, parse_resource_grid, parse_task_grid

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

META_RANGE = "Dados_Projeto!A1:B10"
TASKS_RANGE = "Tarefas!A1:K1000"
RESOURCES_RANGE = "Rec_Projeto!A1:F200"
LOG_RANGE = "LOG!A1"

_URL_ID = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)")
_BARE_ID = re.compile(r"^[a-zA-Z0-9_-]+$")

# Client failures reported as SheetsError
API_ERRORS = (HttpError, GoogleAuthError, OSError, ValueError)


class SheetsError(Exception):
    """Base exception for spreadsheet access errors."""
    pass


def extract_sheet_id(reference: Optional[str]) -> Optional[str]:
    """
    Resolve a spreadsheet id from a full URL or a bare id.

    Returns None when nothing id-like can be found.
    """
    if not reference:
        return None
    reference = str(reference).strip()
    match = _URL_ID.search(reference)
    if match:
        return match.group(1)
    if _BARE_ID.match(reference):
        return reference
    return None


def parse_service_account(raw: str) -> dict:
    """Load the service account JSON, tolerating keys pasted with real newlines."""
    if not raw:
        raise SheetsError("GOOGLE_SA_JSON is not set")
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        try:
            return json.loads(raw.replace("\n", "\\n"))
        except json.JSONDecodeError as e:
            raise SheetsError(f"GOOGLE_SA_JSON is not valid JSON: {e}") from e


class SheetsRepository:
    """
    Google Sheets access for one service account.

    Usage:
        repo = SheetsRepository()
        tasks = repo.read_tasks("1AbC...")
    """

    def __init__(self, settings: Optional[GoogleSettings] = None, service=None):
        self._settings = settings or get_settings().google
        self._service = service

    def _get_service(self):
        if self._service is None:
            info = parse_service_account(self._settings.service_account_json)
            credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
            self._service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        return self._service

    def _get_values(self, sheet_id: str, range_: str) -> List[List[str]]:
        try:
            response = (
                self._get_service()
                .spreadsheets()
                .values()
                .get(spreadsheetId=sheet_id, range=range_)
                .execute()
            )
        except API_ERRORS as e:
            raise SheetsError(f"Failed to read {range_} from {sheet_id}: {e}") from e
        return response.get("values", [])

    def read_meta(self, sheet_id: str) -> Dict[str, str]:
        """Project settings such as ProjectName, Timezone, DailyReminderTime, QuietHours."""
        return parse_meta_grid(self._get_values(sheet_id, META_RANGE))

    def read_tasks(self, sheet_id: str) -> List[TaskRow]:
        return parse_task_grid(self._get_values(sheet_id, TASKS_RANGE))

    def read_resources(self, sheet_id: str) -> List[str]:
        """People in the resources tab; empty when the tab does not exist."""
        try:
            values = self._get_values(sheet_id, RESOURCES_RANGE)
        except SheetsError as e:
            logger.info(f"No resources tab for {sheet_id}: {e}")
            return []
        return parse_resource_grid(values)

    def append_log_row(self, sheet_id: str, row: Sequence[str]) -> None:
        """Append one row to the LOG tab."""
        try:
            (
                self._get_service()
                .spreadsheets()
                .values()
                .append(
                    spreadsheetId=sheet_id,
                    range=LOG_RANGE,
                    valueInputOption="USER_ENTERED",
                    insertDataOption="INSERT_ROWS",
                    body={"values": [list(row)]},
                )
                .execute()
            )
        except API_ERRORS as e:
            raise SheetsError(f"Failed to append log row to {sheet_id}: {e}") from e
        logger.debug(f"Log row appended to {sheet_id}: {row}")
