"""Name → entity indexes for reference fields such as categories and tags.

WooCommerce attaches taxonomy entities to products as ``{"id": ..., "name":
...}`` mappings.  The spreadsheet only shows the names, so turning an edited
cell back into entities requires an index built from the records fetched at
the start of the pass.  Indexes are plain values: they are rebuilt for every
pass and handed to the codec explicitly.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Sequence

from sheetsync.errors import ConfigurationError, NotFoundError

logger = logging.getLogger(__name__)

REFERENCE_FIELDS: Sequence[str] = ("categories", "tags")

ReferenceEntity = Mapping[str, Any]


def _singular(category: str) -> str:
    if category == "categories":
        return "category"
    return category[:-1] if category.endswith("s") else category


class LookupIndex:
    """Immutable mapping from an entity name to the first entity seen with it."""

    def __init__(self, category: str, entities: Mapping[str, ReferenceEntity]) -> None:
        self._category = category
        self._entities: Dict[str, ReferenceEntity] = dict(entities)

    @classmethod
    def build(cls, records: Iterable[Mapping[str, Any]], category: str) -> "LookupIndex":
        """Index every entity attached to ``records`` under ``category``.

        The first entity registered under a name wins.  Entities without an id
        are ignored, an entity with an id but no name cannot be keyed and
        aborts the pass, and the same name attached to two different ids is
        rejected rather than silently resolved to whichever came first.
        """

        label = _singular(category)
        entities: Dict[str, ReferenceEntity] = {}
        for record in records:
            for entity in record.get(category) or ():
                entity_id = entity.get("id")
                if entity_id is None:
                    continue
                name = entity.get("name")
                if not isinstance(name, str) or not name:
                    raise ConfigurationError(
                        f"{label} name is undefined for {label} id {entity_id}"
                    )
                existing = entities.get(name)
                if existing is None:
                    entities[name] = entity
                elif existing.get("id") != entity_id:
                    raise ConfigurationError(
                        f"{label} name {name!r} is used by ids "
                        f"{existing.get('id')} and {entity_id}"
                    )
        logger.debug("Indexed %d %s", len(entities), category)
        return cls(category, entities)

    @property
    def category(self) -> str:
        return self._category

    def resolve(self, name: str) -> ReferenceEntity:
        """Return the entity registered under the trimmed ``name``."""

        key = name.strip()
        try:
            return self._entities[key]
        except KeyError:
            raise NotFoundError(f"{_singular(self._category).capitalize()} {key} not found") from None

    def names(self) -> List[str]:
        return sorted(self._entities)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip() in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entities)


def build_indexes(
    records: Sequence[Mapping[str, Any]],
    categories: Iterable[str] = REFERENCE_FIELDS,
) -> Dict[str, LookupIndex]:
    """Return one :class:`LookupIndex` per reference category."""

    return {category: LookupIndex.build(records, category) for category in categories}


__all__ = ["LookupIndex", "REFERENCE_FIELDS", "ReferenceEntity", "build_indexes"]
