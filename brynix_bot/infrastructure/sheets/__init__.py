from .sheets_client import SheetsRepository, SheetsError, extract_sheet_id, parse_service_account
from .task_parser import TaskSheetError, parse_task_grid, parse_meta_grid, parse_resource_grid

__all__ = [
    "SheetsRepository",
    "SheetsError",
    "extract_sheet_id",
    "parse_service_account",
    "TaskSheetError",
    "parse_task_grid",
    "parse_meta_grid",
    "parse_resource_grid",
]
