"""Export and import passes between the catalog and the product spreadsheet."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from sheetsync.errors import ConfigurationError, NotFoundError
from sheetsync.field_codec import FieldCodec
from sheetsync.lookup_index import build_indexes
from sheetsync.reconciler import ID_FIELD, FieldUpdate, Reconciler

logger = logging.getLogger(__name__)

ALL_FIELDS = "*"
DEFAULT_SPREADSHEET_NAME = "WooCommerce-products"

_FIELD_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_SEPARATOR_RE = re.compile(r"[,\s]+")


@dataclass
class ExportResult:
    record_count: int
    fields: List[str] = field(default_factory=list)
    spreadsheet_id: Optional[str] = None
    spreadsheet_url: Optional[str] = None
    created: bool = False

    @property
    def is_noop(self) -> bool:
        return self.record_count == 0


@dataclass
class ImportResult:
    record_count: int
    fields: List[str] = field(default_factory=list)
    rows_processed: int = 0
    unmatched_rows: List[int] = field(default_factory=list)
    updates: List[FieldUpdate] = field(default_factory=list)
    updated_ids: List[int] = field(default_factory=list)
    dry_run: bool = False

    @property
    def is_noop(self) -> bool:
        return self.record_count == 0


def parse_field_selection(values: Iterable[str]) -> Optional[List[str]]:
    """Return the selected field names, or ``None`` for every field (``*``)."""

    names: List[str] = []
    for value in values:
        names.extend(token for token in _SEPARATOR_RE.split(value or "") if token)
    if not names:
        raise ConfigurationError("No fields were selected")
    if ALL_FIELDS in names:
        if len(names) > 1:
            raise ConfigurationError(f"{ALL_FIELDS!r} cannot be combined with explicit field names")
        return None
    invalid = [name for name in names if not _FIELD_NAME_RE.match(name)]
    if invalid:
        raise ConfigurationError(f"Invalid field names: {', '.join(invalid)}")
    return list(dict.fromkeys(names))


def export_fields(selection: Optional[Sequence[str]], first_record: Mapping[str, Any]) -> List[str]:
    """Return the export columns with ``id`` always first."""

    names = list(first_record) if selection is None else list(selection)
    return [ID_FIELD, *[name for name in names if name != ID_FIELD]]


def import_fields(selection: Optional[Sequence[str]], first_record: Mapping[str, Any]) -> List[str]:
    """Return the fields compared on import; ``id`` is the join key, never compared."""

    names = list(first_record) if selection is None else list(selection)
    return [name for name in names if name != ID_FIELD]


def build_export_grid(
    records: Sequence[Mapping[str, Any]],
    fields: Sequence[str],
    codec: FieldCodec,
) -> List[List[str]]:
    """Return the header row followed by one display row per record."""

    rows: List[List[str]] = [list(fields)]
    for record in records:
        row: List[str] = []
        for name in fields:
            if name not in record:
                raise ConfigurationError(f"Unrecognized field: {name}")
            row.append(codec.to_display(name, record[name]))
        rows.append(row)
    return rows


class SyncService:
    """Compose the catalog, the grid store and the codec into sync passes."""

    def __init__(self, catalog, grid_store, *, spreadsheet_name: str = DEFAULT_SPREADSHEET_NAME) -> None:
        self.catalog = catalog
        self.grid_store = grid_store
        self.spreadsheet_name = spreadsheet_name

    def export(self, selection: Optional[Sequence[str]]) -> ExportResult:
        records = self.catalog.fetch_all_records()
        if not records:
            logger.info("woocommerce returned no products")
            return ExportResult(record_count=0)

        fields = export_fields(selection, records[0])
        rows = build_export_grid(records, fields, FieldCodec())

        document = self.grid_store.find_document_by_name(self.spreadsheet_name)
        created = document is None
        if document is None:
            document = self.grid_store.create_document(self.spreadsheet_name, rows)
        else:
            self.grid_store.replace_primary_sheet(document, rows)
        self.grid_store.apply_header_style(document)

        logger.info(
            "Exported %d products (%d fields) to %s",
            len(records),
            len(fields),
            document.url,
        )
        return ExportResult(
            record_count=len(records),
            fields=fields,
            spreadsheet_id=document.id,
            spreadsheet_url=document.url,
            created=created,
        )

    def import_(self, selection: Optional[Sequence[str]], *, dry_run: bool = False) -> ImportResult:
        if dry_run:
            logger.warning("TEST MODE - no changes will be made")

        records = self.catalog.fetch_all_records()
        if not records:
            logger.info("woocommerce returned no products")
            return ImportResult(record_count=0, dry_run=dry_run)

        codec = FieldCodec(build_indexes(records))
        fields = import_fields(selection, records[0])

        document = self.grid_store.find_document_by_name(self.spreadsheet_name)
        if document is None:
            raise NotFoundError(f'no matching spreadsheet found with the name "{self.spreadsheet_name}"')
        grid = self.grid_store.read_primary_sheet_grid(document)

        reconciler = Reconciler(codec, self.catalog, dry_run=dry_run)
        outcome = reconciler.reconcile(grid.headers, grid.rows, records, fields)

        logger.info(
            "Compared %d rows: %d field changes across %d products%s",
            outcome.rows_processed,
            len(outcome.updates),
            len(outcome.changed_ids),
            " (dry run)" if dry_run else "",
        )
        return ImportResult(
            record_count=len(records),
            fields=fields,
            rows_processed=outcome.rows_processed,
            unmatched_rows=outcome.unmatched_rows,
            updates=outcome.updates,
            updated_ids=outcome.updated_ids,
            dry_run=dry_run,
        )


__all__ = [
    "ALL_FIELDS",
    "DEFAULT_SPREADSHEET_NAME",
    "ExportResult",
    "ImportResult",
    "SyncService",
    "build_export_grid",
    "export_fields",
    "import_fields",
    "parse_field_selection",
]
