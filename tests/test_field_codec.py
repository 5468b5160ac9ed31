from __future__ import annotations

import itertools
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sheetsync.errors import ConfigurationError, DataIntegrityError, NotFoundError
from sheetsync.field_codec import (
    FieldCodec,
    FieldSpec,
    FieldStrategy,
    display_text,
    loosely_equal,
    reference_list_text,
)
from sheetsync.lookup_index import build_indexes

SHOES = {"id": 1, "name": "Shoes"}
SOCKS = {"id": 2, "name": "Socks"}
ALPHA = {"id": 3, "name": "Alpha"}
BETA = {"id": 4, "name": "beta"}
SALE = {"id": 10, "name": "Sale"}


@pytest.fixture
def codec() -> FieldCodec:
    records = [
        {"id": 100, "categories": [SHOES, SOCKS], "tags": [SALE]},
        {"id": 101, "categories": [ALPHA, BETA], "tags": []},
    ]
    return FieldCodec(build_indexes(records))


def test_reference_list_display_sorts_case_insensitively_and_keeps_case(codec: FieldCodec) -> None:
    assert codec.to_display("categories", [BETA, ALPHA]) == "Alpha, beta"


def test_reference_list_display_of_empty_values(codec: FieldCodec) -> None:
    assert codec.to_display("categories", []) == ""
    assert codec.to_display("tags", None) == ""


def test_reference_list_sort_is_stable_for_equal_keys() -> None:
    upper = {"id": 5, "name": "Sale"}
    lower = {"id": 6, "name": "sale"}

    assert reference_list_text([lower, upper]) == "sale, Sale"
    assert reference_list_text([upper, lower]) == "Sale, sale"


def test_reference_list_parse_of_blank_text(codec: FieldCodec) -> None:
    assert codec.from_display("categories", "") == []
    assert codec.from_display("categories", "   ") == []


def test_reference_list_parse_resolves_trimmed_names(codec: FieldCodec) -> None:
    assert codec.from_display("categories", "Socks,  Shoes ") == [SOCKS, SHOES]
    assert codec.from_display("tags", "Sale") == [SALE]


def test_reference_list_parse_fails_for_unknown_name(codec: FieldCodec) -> None:
    with pytest.raises(NotFoundError):
        codec.from_display("categories", "Nonexistent")


def test_reference_list_parse_fails_atomically(codec: FieldCodec) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        codec.from_display("categories", "Shoes, Hats, Socks")

    assert "Hats" in str(excinfo.value)


def test_reference_list_round_trip_through_display(codec: FieldCodec) -> None:
    entities = [SOCKS, SHOES]

    text = codec.to_display("categories", entities)

    assert codec.to_display("categories", codec.from_display("categories", text)) == text


def test_reference_list_equivalence_ignores_ordering(codec: FieldCodec) -> None:
    entities = [SHOES, SOCKS, ALPHA]
    for permutation in itertools.permutations(entities):
        assert codec.equivalent("categories", entities, list(permutation))


def test_reference_list_equivalence_detects_changes(codec: FieldCodec) -> None:
    assert not codec.equivalent("categories", [SHOES], [SHOES, SOCKS])
    assert codec.equivalent("tags", None, [])


def test_reference_list_equivalence_uses_names_not_ids(codec: FieldCodec) -> None:
    renamed = {"id": 99, "name": "Shoes"}

    assert codec.equivalent("categories", [SHOES], [renamed])


def test_parse_requires_text_input(codec: FieldCodec) -> None:
    with pytest.raises(DataIntegrityError):
        codec.from_display("price", 12)
    with pytest.raises(DataIntegrityError):
        codec.from_display("categories", [SHOES])


def test_identity_strategy_passes_text_through(codec: FieldCodec) -> None:
    assert codec.from_display("name", " Blue Shirt ") == " Blue Shirt "
    assert codec.to_display("price", "19.99") == "19.99"


def test_identity_equivalence_coerces_numbers_and_text() -> None:
    codec = FieldCodec()

    assert codec.equivalent("price", 5, "5")
    assert codec.equivalent("price", "5", 5)
    assert codec.equivalent("price", 12.5, " 12.50 ")
    assert not codec.equivalent("name", "a", "b")
    assert not codec.equivalent("price", 5, "five")


def test_loosely_equal_rules() -> None:
    assert loosely_equal(True, "true")
    assert not loosely_equal(True, "1")
    assert loosely_equal({"length": "1"}, '{"length":"1"}')
    assert loosely_equal(None, None)
    assert not loosely_equal(None, "")
    assert not loosely_equal(["a"], ["b"])


def test_display_text_rules() -> None:
    assert display_text(None) == ""
    assert display_text(False) == "false"
    assert display_text(12.0) == "12"
    assert display_text(12.25) == "12.25"
    assert display_text([1, 2]) == "[1,2]"
    assert display_text("Ünïcode") == "Ünïcode"


def test_reference_field_without_index_is_a_configuration_error() -> None:
    codec = FieldCodec()

    with pytest.raises(ConfigurationError):
        codec.from_display("tags", "Sale")


def test_custom_specs_select_the_strategy() -> None:
    records = [{"id": 1, "brands": [{"id": 8, "name": "Acme"}]}]
    specs = {"brands": FieldSpec("brands", FieldStrategy.REFERENCE_LIST)}
    codec = FieldCodec(build_indexes(records, ["brands"]), specs=specs)

    assert codec.spec_for("brands").strategy is FieldStrategy.REFERENCE_LIST
    assert codec.spec_for("categories").strategy is FieldStrategy.IDENTITY
    assert codec.from_display("brands", "Acme") == [{"id": 8, "name": "Acme"}]


def test_integer_fields() -> None:
    codec = FieldCodec()

    assert codec.is_integer("id")
    assert codec.is_integer("menu_order")
    assert not codec.is_integer("price")
