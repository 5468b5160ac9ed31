"""Google Sheets / Drive grid store for the product spreadsheet.

This module centralises every direct interaction with the Google APIs used by
the sync passes.  It exposes a small surface area so that the drivers never
have to deal with request bodies or googleapiclient internals:

* ``find_document_by_name`` pages through Drive to locate the spreadsheet by
  its title.
* ``create_document`` and ``replace_primary_sheet`` write a complete grid of
  text cells, the latter destructively recreating the first worksheet.
* ``read_primary_sheet_grid`` returns the header row and data rows with each
  cell typed as text, number or ``None``.
* ``apply_header_style`` freezes and styles the header row.

Every :class:`~googleapiclient.errors.HttpError` is wrapped in
:class:`~sheetsync.errors.TransportError`.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sheetsync.errors import TransportError

logger = logging.getLogger(__name__)

SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"
SPREADSHEET_URL = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}"
DEFAULT_SHEET_TITLE = "products"
DEFAULT_COLUMN_COUNT = 26

HEADER_BACKGROUND = {"red": 0.85, "green": 0.85, "blue": 0.85}
HEADER_FOREGROUND = {"red": 0.0, "green": 0.0, "blue": 0.0}
HEADER_FONT_SIZE = 12


@dataclass(frozen=True)
class DocumentHandle:
    """Identifies a spreadsheet found in or created on Drive."""

    id: str
    name: str

    @property
    def url(self) -> str:
        return spreadsheet_url(self.id)


@dataclass
class SheetGrid:
    """Container holding the typed cells of a worksheet."""

    headers: List[str]
    rows: List[List[Any]]


def spreadsheet_url(spreadsheet_id: str) -> str:
    return SPREADSHEET_URL.format(spreadsheet_id=spreadsheet_id)


def _escape_query(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _text_cell(value: str) -> Dict[str, Any]:
    return {"userEnteredValue": {"stringValue": f"{value}"}}


def _row_data(rows: Sequence[Sequence[str]]) -> List[Dict[str, Any]]:
    return [{"values": [_text_cell(value) for value in row]} for row in rows]


def _cell_value(cell: Mapping[str, Any]) -> Any:
    entered = cell.get("userEnteredValue") or {}
    if "stringValue" in entered:
        return entered["stringValue"]
    if "numberValue" in entered:
        return entered["numberValue"]
    if "boolValue" in entered:
        return "true" if entered["boolValue"] else "false"
    effective = cell.get("effectiveValue") or {}
    if "stringValue" in effective:
        return effective["stringValue"]
    if "numberValue" in effective:
        return effective["numberValue"]
    return None


def _column_total(rows: Sequence[Sequence[str]]) -> int:
    return max((len(row) for row in rows), default=0)


class GoogleGridStore:
    """Concrete helper that speaks to Google Sheets and Drive."""

    def __init__(self, sheets_service, drive_service, *, sheet_title: str = DEFAULT_SHEET_TITLE) -> None:
        self._sheets = sheets_service
        self._drive = drive_service
        self._sheet_title = sheet_title

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _execute(request, description: str) -> Dict[str, Any]:
        try:
            return request.execute()
        except HttpError as exc:
            raise TransportError(f"Google API {description} failed: {exc}") from exc

    def _batch_update(self, spreadsheet_id: str, requests: List[Dict[str, Any]]) -> Dict[str, Any]:
        request = self._sheets.spreadsheets().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={"requests": requests},
        )
        return self._execute(request, "spreadsheets.batchUpdate")

    def _metadata(self, spreadsheet_id: str, *, grid_data: bool = False) -> Dict[str, Any]:
        request = self._sheets.spreadsheets().get(
            spreadsheetId=spreadsheet_id,
            includeGridData=grid_data,
        )
        return self._execute(request, "spreadsheets.get")

    def _primary_sheet(self, spreadsheet_id: str, *, grid_data: bool = False) -> Dict[str, Any]:
        sheets = self._metadata(spreadsheet_id, grid_data=grid_data).get("sheets", [])
        if not sheets:
            raise TransportError(f"Spreadsheet {spreadsheet_id} has no worksheets")
        return sheets[0]

    def _add_sheet(self, spreadsheet_id: str, title: str) -> int:
        reply = self._batch_update(spreadsheet_id, [{"addSheet": {"properties": {"title": title}}}])
        return reply["replies"][0]["addSheet"]["properties"]["sheetId"]

    def _layout_requests(self, sheet_id: int, column_total: int) -> List[Dict[str, Any]]:
        requests: List[Dict[str, Any]] = []
        if column_total > DEFAULT_COLUMN_COUNT:
            requests.append(
                {
                    "appendDimension": {
                        "sheetId": sheet_id,
                        "dimension": "COLUMNS",
                        "length": column_total - DEFAULT_COLUMN_COUNT,
                    }
                }
            )
        requests.append(
            {
                "updateDimensionProperties": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "COLUMNS",
                        "startIndex": 0,
                        "endIndex": 1,
                    },
                    "properties": {"hiddenByUser": True},
                    "fields": "hiddenByUser",
                }
            }
        )
        return requests

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def find_document_by_name(self, name: str) -> Optional[DocumentHandle]:
        """Return the first spreadsheet on Drive titled exactly ``name``."""

        query = " and ".join(
            [
                f"mimeType = '{SPREADSHEET_MIME_TYPE}'",
                "trashed = false",
                f"name = '{_escape_query(name)}'",
            ]
        )
        page_token: Optional[str] = None
        while True:
            request = self._drive.files().list(
                q=query,
                spaces="drive",
                fields="nextPageToken, files(id, name)",
                pageToken=page_token,
            )
            response = self._execute(request, "files.list")
            for item in response.get("files", []):
                if item.get("name") == name:
                    return DocumentHandle(id=item["id"], name=item["name"])
            page_token = response.get("nextPageToken")
            if not page_token:
                return None

    def create_document(self, name: str, rows: Sequence[Sequence[str]]) -> DocumentHandle:
        """Create a spreadsheet titled ``name`` holding ``rows`` as text."""

        body = {
            "properties": {"title": name},
            "sheets": [
                {
                    "properties": {"title": self._sheet_title},
                    "data": [{"rowData": _row_data(rows)}],
                }
            ],
        }
        request = self._sheets.spreadsheets().create(
            body=body,
            fields="spreadsheetId,sheets.properties",
        )
        created = self._execute(request, "spreadsheets.create")
        document = DocumentHandle(id=created["spreadsheetId"], name=name)
        sheets = created.get("sheets") or []
        if sheets:
            sheet_id = sheets[0]["properties"]["sheetId"]
            self._batch_update(document.id, self._layout_requests(sheet_id, 0))
        logger.info("Created spreadsheet %s (%s)", name, document.id)
        return document

    def replace_primary_sheet(self, document: DocumentHandle, rows: Sequence[Sequence[str]]) -> int:
        """Drop every worksheet of ``document`` and write ``rows`` to a fresh one.

        A temporary worksheet is added first so that the spreadsheet is never
        left without a sheet while the old ones are deleted.  Returns the id of
        the new worksheet.
        """

        existing = self._metadata(document.id).get("sheets", [])
        temporary_id = self._add_sheet(document.id, f"{int(time.time() * 1000)}")

        requests: List[Dict[str, Any]] = [
            {"deleteSheet": {"sheetId": sheet["properties"]["sheetId"]}} for sheet in existing
        ]
        requests.append({"addSheet": {"properties": {"title": self._sheet_title}}})
        reply = self._batch_update(document.id, requests)
        sheet_id = next(
            item["addSheet"]["properties"]["sheetId"]
            for item in reply.get("replies", [])
            if "addSheet" in item
        )

        requests = [{"deleteSheet": {"sheetId": temporary_id}}]
        requests.extend(self._layout_requests(sheet_id, _column_total(rows)))
        requests.append(
            {
                "appendCells": {
                    "sheetId": sheet_id,
                    "fields": "*",
                    "rows": _row_data(rows),
                }
            }
        )
        self._batch_update(document.id, requests)
        logger.info("Replaced worksheet %s of %s with %d rows", self._sheet_title, document.name, len(rows))
        return sheet_id

    def read_primary_sheet_grid(self, document: DocumentHandle) -> SheetGrid:
        """Return the header row and data rows of the first worksheet."""

        sheet = self._primary_sheet(document.id, grid_data=True)
        data = sheet.get("data") or [{}]
        row_data = data[0].get("rowData") or []
        matrix = [[_cell_value(cell) for cell in row.get("values", [])] for row in row_data]
        if not matrix:
            return SheetGrid(headers=[], rows=[])
        headers = ["" if value is None else str(value) for value in matrix[0]]
        return SheetGrid(headers=headers, rows=matrix[1:])

    def apply_header_style(self, document: DocumentHandle) -> None:
        """Freeze, shade, center and embolden the first row."""

        sheet_id = self._primary_sheet(document.id)["properties"]["sheetId"]
        self._batch_update(
            document.id,
            [
                {
                    "repeatCell": {
                        "range": {"sheetId": sheet_id, "startRowIndex": 0, "endRowIndex": 1},
                        "cell": {
                            "userEnteredFormat": {
                                "backgroundColor": HEADER_BACKGROUND,
                                "horizontalAlignment": "CENTER",
                                "textFormat": {
                                    "foregroundColor": HEADER_FOREGROUND,
                                    "fontSize": HEADER_FONT_SIZE,
                                    "bold": True,
                                },
                            }
                        },
                        "fields": "userEnteredFormat(backgroundColor,textFormat,horizontalAlignment)",
                    }
                },
                {
                    "updateSheetProperties": {
                        "properties": {
                            "sheetId": sheet_id,
                            "gridProperties": {"frozenRowCount": 1},
                        },
                        "fields": "gridProperties.frozenRowCount",
                    }
                },
            ],
        )


def build_grid_store(credentials, *, sheet_title: str = DEFAULT_SHEET_TITLE) -> GoogleGridStore:
    """Factory helper constructing the Sheets and Drive services."""

    try:
        sheets_service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        drive_service = build("drive", "v3", credentials=credentials, cache_discovery=False)
    except HttpError as exc:
        raise TransportError(f"Unable to build Google API clients: {exc}") from exc
    return GoogleGridStore(sheets_service, drive_service, sheet_title=sheet_title)


__all__ = [
    "DEFAULT_SHEET_TITLE",
    "DocumentHandle",
    "GoogleGridStore",
    "SheetGrid",
    "build_grid_store",
    "spreadsheet_url",
]
