"""Conversion rules between catalog field values and spreadsheet text.

Every field is handled by one of a small, closed set of strategies:

``FieldStrategy.IDENTITY``
    The default for every field without an explicit spec.  Values are written
    as text and read back unchanged; comparison uses :func:`loosely_equal` so
    that ``5`` and ``"5"`` are considered the same value.

``FieldStrategy.REFERENCE_LIST``
    Lists of ``{"id", "name"}`` entities (categories, tags).  The sheet shows
    the names sorted case-insensitively and joined with ``", "``; parsing
    resolves each name through the :class:`~sheetsync.lookup_index.LookupIndex`
    for that field.  Two lists are equivalent when their canonical display
    strings match, which makes the comparison insensitive to ordering.

Integer-typed fields (``id``, ``menu_order``) are flagged on their
:class:`FieldSpec`; the conversion to ``int`` happens when a sheet row is
read, independently of the strategy.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sheetsync.errors import ConfigurationError, DataIntegrityError
from sheetsync.lookup_index import LookupIndex, ReferenceEntity

LIST_SEPARATOR = ","
DISPLAY_SEPARATOR = ", "


class FieldStrategy(Enum):
    IDENTITY = "IDENTITY"
    REFERENCE_LIST = "REFERENCE_LIST"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    strategy: FieldStrategy = FieldStrategy.IDENTITY
    integer: bool = False


DEFAULT_FIELD_SPECS: Mapping[str, FieldSpec] = {
    spec.name: spec
    for spec in (
        FieldSpec("id", integer=True),
        FieldSpec("menu_order", integer=True),
        FieldSpec("categories", FieldStrategy.REFERENCE_LIST),
        FieldSpec("tags", FieldStrategy.REFERENCE_LIST),
    )
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_number(text: str) -> Optional[float]:
    try:
        return float(text.strip())
    except ValueError:
        return None


def display_text(value: Any) -> str:
    """Return the text written to the sheet for an untyped value."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def loosely_equal(left: Any, right: Any) -> bool:
    """Compare two untyped values allowing number/text coercion.

    Equal values are equal.  A number and a string are equal when the stripped
    string parses to the same number.  Any other value compared with a string
    is equal when its display text matches the string exactly.  ``None`` only
    equals ``None``.
    """

    if left is None or right is None:
        return left is right
    if left == right:
        return True
    if isinstance(left, str) == isinstance(right, str):
        return False
    value, text = (right, left) if isinstance(left, str) else (left, right)
    if _is_number(value):
        number = _parse_number(text)
        return number is not None and number == value
    return display_text(value) == text


def reference_list_text(entities: Optional[Sequence[ReferenceEntity]]) -> str:
    """Return the canonical display string for a list of entities."""

    if not entities:
        return ""
    if not isinstance(entities, (list, tuple)):
        raise DataIntegrityError(f"expected a list of entities, got {type(entities).__name__}")
    names = [str(entity.get("name") or "") for entity in entities]
    return DISPLAY_SEPARATOR.join(sorted(names, key=str.lower))


class FieldCodec:
    """Per-field conversion between catalog values and sheet text."""

    def __init__(
        self,
        indexes: Optional[Mapping[str, LookupIndex]] = None,
        specs: Mapping[str, FieldSpec] = DEFAULT_FIELD_SPECS,
    ) -> None:
        self._indexes: Dict[str, LookupIndex] = dict(indexes or {})
        self._specs: Dict[str, FieldSpec] = dict(specs)

    def spec_for(self, field: str) -> FieldSpec:
        return self._specs.get(field) or FieldSpec(field)

    def is_integer(self, field: str) -> bool:
        return self.spec_for(field).integer

    def to_display(self, field: str, value: Any) -> str:
        if self.spec_for(field).strategy is FieldStrategy.REFERENCE_LIST:
            return reference_list_text(value)
        return display_text(value)

    def from_display(self, field: str, text: str) -> Any:
        if not isinstance(text, str):
            raise DataIntegrityError(f"sheet value for field {field!r} must be a string")
        if self.spec_for(field).strategy is FieldStrategy.REFERENCE_LIST:
            return self._parse_reference_list(field, text)
        return text

    def equivalent(self, field: str, live_value: Any, sheet_value: Any) -> bool:
        if self.spec_for(field).strategy is FieldStrategy.REFERENCE_LIST:
            return reference_list_text(live_value) == reference_list_text(sheet_value)
        return loosely_equal(live_value, sheet_value)

    def _parse_reference_list(self, field: str, text: str) -> List[ReferenceEntity]:
        if not text.strip():
            return []
        index = self._indexes.get(field)
        if index is None:
            raise ConfigurationError(f"No lookup index was built for field {field!r}")
        return [index.resolve(name) for name in text.split(LIST_SEPARATOR)]


__all__ = [
    "DEFAULT_FIELD_SPECS",
    "FieldCodec",
    "FieldSpec",
    "FieldStrategy",
    "display_text",
    "loosely_equal",
    "reference_list_text",
]
