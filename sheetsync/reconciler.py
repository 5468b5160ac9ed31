"""Diff edited spreadsheet rows against live catalog records.

The reconciler walks the data rows of the product sheet, pairs each row with
the catalog records sharing its id and asks the :class:`FieldCodec` whether
the sheet value of every tracked field is equivalent to the live value.
Divergent fields are applied to the in-memory record straight away and the
whole record is sent back to the catalog with a full replace, one record at a
time.  Rows whose id matches no record are skipped; everything else that goes
wrong aborts the pass.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Sequence

from sheetsync.errors import ConfigurationError, DataIntegrityError
from sheetsync.field_codec import FieldCodec, display_text

logger = logging.getLogger(__name__)

ID_FIELD = "id"

Cell = Any
CatalogRecord = MutableMapping[str, Any]


@dataclass(frozen=True)
class FieldUpdate:
    record_id: int
    field: str
    old_value: Any
    new_value: Any


@dataclass
class SheetRow:
    """Values read from one data row, keyed by field name."""

    row_number: int
    values: Dict[str, Any]

    @property
    def record_id(self) -> Any:
        return self.values.get(ID_FIELD)


@dataclass
class ReconcileResult:
    rows_processed: int = 0
    unmatched_rows: List[int] = field(default_factory=list)
    updates: List[FieldUpdate] = field(default_factory=list)
    updated_ids: List[int] = field(default_factory=list)
    dry_run: bool = False

    @property
    def changed_ids(self) -> List[int]:
        seen: Dict[int, None] = {}
        for update in self.updates:
            seen.setdefault(update.record_id, None)
        return list(seen)


def header_map(headers: Sequence[Any]) -> Dict[str, int]:
    """Return the column position of every non-blank header cell."""

    columns: Dict[str, int] = {}
    for position, header in enumerate(headers):
        if header is None:
            continue
        name = str(header).strip()
        if name and name not in columns:
            columns[name] = position
    return columns


def _cell_text(cells: Sequence[Cell], position: int) -> Optional[str]:
    cell = cells[position] if position < len(cells) else None
    if isinstance(cell, str) and cell:
        return cell
    if isinstance(cell, (int, float)) and not isinstance(cell, bool):
        return display_text(cell)
    return None


def _parse_int(field_name: str, text: str, row_number: int) -> int:
    try:
        return int(text)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(text))
    except (TypeError, ValueError, OverflowError):
        raise DataIntegrityError(
            f"couldn't parse {field_name} from sheet row {row_number}: {text!r} is not an integer"
        ) from None


def extract_row(
    row_number: int,
    cells: Sequence[Cell],
    columns: Mapping[str, int],
    fields: Sequence[str],
    codec: FieldCodec,
) -> SheetRow:
    """Read ``fields`` from ``cells`` applying the strict blank-cell policy."""

    values: Dict[str, Any] = {}
    for name in fields:
        text = _cell_text(cells, columns[name])
        if text is None:
            raise DataIntegrityError(f"couldn't parse {name} from sheet row {row_number}")
        values[name] = _parse_int(name, text, row_number) if codec.is_integer(name) else text
    return SheetRow(row_number=row_number, values=values)


def _is_blank(cells: Sequence[Cell]) -> bool:
    return all(cell in (None, "") for cell in cells)


class Reconciler:
    """Compare sheet rows with catalog records and push divergent records."""

    def __init__(self, codec: FieldCodec, catalog, *, dry_run: bool = False) -> None:
        self.codec = codec
        self.catalog = catalog
        self.dry_run = dry_run

    def diff(self, record: Mapping[str, Any], row: SheetRow, fields: Sequence[str]) -> List[FieldUpdate]:
        """Return the fields of ``row`` that are not equivalent to ``record``."""

        updates: List[FieldUpdate] = []
        for name in fields:
            raw = row.values[name]
            if isinstance(raw, int) and self.codec.is_integer(name):
                sheet_value: Any = raw
            else:
                sheet_value = self.codec.from_display(name, raw)
            live_value = record.get(name)
            if not self.codec.equivalent(name, live_value, sheet_value):
                updates.append(
                    FieldUpdate(
                        record_id=record[ID_FIELD],
                        field=name,
                        old_value=live_value,
                        new_value=sheet_value,
                    )
                )
        return updates

    def apply(self, record: CatalogRecord, updates: Sequence[FieldUpdate]) -> None:
        """Write ``updates`` into the in-memory ``record`` and log each one."""

        for update in updates:
            logger.info(
                'updating product id %s - field "%s" from "%s" to "%s"',
                update.record_id,
                update.field,
                self.codec.to_display(update.field, update.old_value),
                self.codec.to_display(update.field, update.new_value),
            )
            record[update.field] = update.new_value

    def reconcile(
        self,
        headers: Sequence[Any],
        rows: Sequence[Sequence[Cell]],
        records: Sequence[CatalogRecord],
        fields: Sequence[str],
    ) -> ReconcileResult:
        columns = header_map(headers)
        if ID_FIELD not in columns:
            raise ConfigurationError(f"The sheet has no {ID_FIELD!r} column")
        missing = [name for name in fields if name not in columns]
        if missing:
            raise ConfigurationError(f"Fields not present in the sheet: {', '.join(missing)}")

        records_by_id: Dict[Any, List[CatalogRecord]] = defaultdict(list)
        for record in records:
            records_by_id[record.get(ID_FIELD)].append(record)

        wanted = [ID_FIELD, *[name for name in fields if name != ID_FIELD]]
        compared = wanted[1:]
        result = ReconcileResult(dry_run=self.dry_run)
        for offset, cells in enumerate(rows):
            row_number = offset + 2
            if _is_blank(cells):
                logger.debug("Skipping blank sheet row %d", row_number)
                continue
            row = extract_row(row_number, cells, columns, wanted, self.codec)
            result.rows_processed += 1

            matches = records_by_id.get(row.record_id, [])
            if not matches:
                logger.debug("Sheet row %d (id %s) matches no product", row_number, row.record_id)
                result.unmatched_rows.append(row_number)
                continue

            for record in matches:
                updates = self.diff(record, row, compared)
                if not updates:
                    continue
                self.apply(record, updates)
                result.updates.extend(updates)
                if not self.dry_run:
                    self.catalog.update_record(record[ID_FIELD], record)
                    result.updated_ids.append(record[ID_FIELD])
        return result


__all__ = [
    "FieldUpdate",
    "ID_FIELD",
    "ReconcileResult",
    "Reconciler",
    "SheetRow",
    "extract_row",
    "header_map",
]
