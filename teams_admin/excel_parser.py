"""
Excel parser turning an uploaded team sheet into TeamRequest objects.

Expected layout (first worksheet, first row is the header):

    | Team Name | Channels        | Members                  | Guests (optional) |
    | IT Help   | General, Alerts | owner@org.com, a@org.com | ext@partner.com   |

Channel, member and guest cells are comma separated. The whole file is
rejected if any row is malformed.
"""

import logging
from io import BytesIO
from typing import Any, List, Sequence

import openpyxl
from pydantic import ValidationError

from .models import TeamRequest

logger = logging.getLogger(__name__)

TEAM_NAME_COLUMN = 0
CHANNELS_COLUMN = 1
MEMBERS_COLUMN = 2
GUESTS_COLUMN = 3
REQUIRED_COLUMNS = 3


class SpreadsheetParseError(ValueError):
    """The uploaded file could not be turned into team requests."""


def split_cell(value: Any) -> List[str]:
    """Split a comma separated cell, trimming tokens and dropping empty ones."""
    if value is None:
        return []
    return [token.strip() for token in str(value).split(",") if token.strip()]


def _cell_text(row: Sequence[Any], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def _is_blank(row: Sequence[Any]) -> bool:
    return all(cell is None or str(cell).strip() == "" for cell in row)


def parse_team_requests(file_bytes: bytes) -> List[TeamRequest]:
    """Parse workbook bytes into team requests, in row order."""
    try:
        workbook = openpyxl.load_workbook(BytesIO(file_bytes), data_only=True)
    except Exception as e:
        raise SpreadsheetParseError(f"Unable to open workbook: {e}") from e

    try:
        sheet = workbook.worksheets[0]
        rows = list(sheet.iter_rows(values_only=True))
    finally:
        workbook.close()

    if not rows or _is_blank(rows[0]):
        raise SpreadsheetParseError("Workbook is empty, a header row is required")

    if sheet.max_column < REQUIRED_COLUMNS:
        raise SpreadsheetParseError(
            f"Expected at least {REQUIRED_COLUMNS} columns, found {sheet.max_column}"
        )

    requests: List[TeamRequest] = []
    # row 1 is the header
    for row_number, row in enumerate(rows[1:], start=2):
        if _is_blank(row):
            continue

        team_name = _cell_text(row, TEAM_NAME_COLUMN)
        if not team_name:
            raise SpreadsheetParseError(f"Row {row_number}: team name is empty")

        try:
            requests.append(
                TeamRequest(
                    team_name=team_name,
                    channel_names=split_cell(_cell_text(row, CHANNELS_COLUMN)),
                    member_emails=split_cell(_cell_text(row, MEMBERS_COLUMN)),
                    guest_emails=split_cell(_cell_text(row, GUESTS_COLUMN)),
                )
            )
        except ValidationError as e:
            raise SpreadsheetParseError(f"Row {row_number}: {e}") from e

    logger.info(f"Parsed {len(requests)} team request(s) from workbook")
    return requests
