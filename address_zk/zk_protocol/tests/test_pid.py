"""Unit tests for PID helpers."""

import pytest

from address_zk.zk_protocol.config import FIELD_MODULUS_R, MAX_PID_LEVELS
from address_zk.zk_protocol.exceptions import MalformedInput
from address_zk.zk_protocol.pid import (
    ADDRESS_FIELDS,
    address_fields,
    component_to_field,
    country_code_field,
    facility_to_field,
    identifier_to_field,
    leaf_for,
    locker_to_field,
    parse_pid,
    reveal_mask,
    structure_fields,
)
from address_zk.zk_protocol.poseidon import poseidon_hash

PID = "JP-13-113-01-T07-B12"


def test_parse_normalises() -> None:
    parsed = parse_pid("  jp-13-113-01-t07-b12 ")
    assert str(parsed) == PID
    assert parsed.country == "JP"
    assert parsed.depth == 6


@pytest.mark.parametrize(
    "bad",
    ["", "   ", "J-1", "123-4", "JP--1", "JP-1-2-3-4-5-6-7-8", "JP-A B", None, 42],
)
def test_parse_rejects_malformed(bad) -> None:
    with pytest.raises(MalformedInput):
        parse_pid(bad)


def test_identifier_field_is_canonical() -> None:
    value = identifier_to_field(PID)
    assert value == identifier_to_field(PID.lower())
    assert 0 <= value < FIELD_MODULUS_R
    assert value != identifier_to_field("JP-13-113-01-T07-B13")


def test_domains_are_separated() -> None:
    assert identifier_to_field("JP") != component_to_field("JP")
    assert locker_to_field("L-1") != facility_to_field("L-1")


def test_structure_fields_pad_to_max_levels() -> None:
    components, lengths, depth = structure_fields("JP-13-113")
    assert depth == 3
    assert len(components) == len(lengths) == MAX_PID_LEVELS
    assert components[0] == country_code_field("jp")
    assert lengths[:3] == [2, 2, 3]
    assert components[3:] == [0] * (MAX_PID_LEVELS - 3)
    assert lengths[3:] == [0] * (MAX_PID_LEVELS - 3)


def test_address_fields_and_mask() -> None:
    fields = address_fields({"country": "JP", "locality": "Shibuya"})
    assert len(fields) == len(ADDRESS_FIELDS) == 8
    assert fields[0] != 0 and fields[3] != 0
    assert fields[1] == 0
    assert reveal_mask(["country", "locality"]) == [1, 0, 0, 1, 0, 0, 0, 0]
    with pytest.raises(MalformedInput):
        address_fields({"planet": "Earth"})
    with pytest.raises(MalformedInput):
        reveal_mask(["planet"])


def test_leaf_for() -> None:
    value = identifier_to_field(PID)
    assert leaf_for(value) == poseidon_hash([value])
