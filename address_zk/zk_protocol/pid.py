"""
Address identifier (PID) helpers.

A PID is a hierarchical code such as ``JP-13-113-01-T07-B12``: a two-letter
country code followed by up to seven administrative components. These
helpers map PIDs, their components and named address fields into the
scalar field. Hashing here is SHA-256 based and happens off-circuit only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Mapping, Tuple

from .config import DOMAIN_SEPARATORS, MAX_COMPONENT_LENGTH, MAX_PID_LEVELS
from .exceptions import MalformedInput
from .poseidon import poseidon_hash
from .security import hash_to_field

PID_SEPARATOR = "-"
_COUNTRY_RE = re.compile(r"^[A-Z]{2}$")
_COMPONENT_RE = re.compile(r"^[A-Z0-9]+$")

# Named fields that can be committed to and selectively revealed, in order
ADDRESS_FIELDS: Tuple[str, ...] = (
    "country",
    "admin1",
    "admin2",
    "locality",
    "sublocality",
    "block",
    "building",
    "unit",
)


@dataclass(frozen=True)
class ParsedPID:
    components: Tuple[str, ...]

    @property
    def country(self) -> str:
        return self.components[0]

    @property
    def depth(self) -> int:
        return len(self.components)

    def __str__(self) -> str:
        return PID_SEPARATOR.join(self.components)


def parse_pid(pid: str) -> ParsedPID:
    """
    Parse and normalise a PID.

    Raises:
        MalformedInput: If the PID is empty, too deep, or has an invalid
            component.
    """
    if not isinstance(pid, str):
        raise MalformedInput("pid must be a string")
    normalized = pid.strip().upper()
    if not normalized:
        raise MalformedInput("pid cannot be empty")
    components = tuple(normalized.split(PID_SEPARATOR))
    if len(components) > MAX_PID_LEVELS:
        raise MalformedInput(f"pid has more than {MAX_PID_LEVELS} components")
    if not _COUNTRY_RE.match(components[0]):
        raise MalformedInput("pid must start with a two-letter country code")
    for component in components[1:]:
        if not _COMPONENT_RE.match(component):
            raise MalformedInput(f"invalid pid component: {component!r}")
        if len(component) > MAX_COMPONENT_LENGTH:
            raise MalformedInput("pid component too long")
    return ParsedPID(components)


def identifier_to_field(pid: str) -> int:
    """Map a whole PID to the private identifier field element."""
    parsed = parse_pid(pid)
    return hash_to_field(str(parsed).encode("utf-8"), DOMAIN_SEPARATORS["identifier"])


def component_to_field(component: str) -> int:
    if component == "":
        return 0
    return hash_to_field(component.encode("utf-8"), DOMAIN_SEPARATORS["component"])


def country_code_field(country: str) -> int:
    return component_to_field(country.strip().upper())


def structure_fields(pid: str) -> Tuple[List[int], List[int], int]:
    """
    Component field elements and lengths padded to ``MAX_PID_LEVELS``.

    Returns:
        (components, lengths, depth); unused slots are zero.
    """
    parsed = parse_pid(pid)
    padding = MAX_PID_LEVELS - parsed.depth
    components = [component_to_field(c) for c in parsed.components] + [0] * padding
    lengths = [len(c) for c in parsed.components] + [0] * padding
    return components, lengths, parsed.depth


def address_field_to_field(value: str) -> int:
    if value is None or value == "":
        return 0
    return hash_to_field(str(value).encode("utf-8"), DOMAIN_SEPARATORS["address_field"])


def address_fields(address: Mapping[str, str]) -> List[int]:
    """Encode a named address mapping into the eight reveal slots."""
    unknown = set(address) - set(ADDRESS_FIELDS)
    if unknown:
        raise MalformedInput(f"unknown address fields: {sorted(unknown)}")
    return [address_field_to_field(address.get(name, "")) for name in ADDRESS_FIELDS]


def reveal_mask(names) -> List[int]:
    """Mask bits for the given field names."""
    wanted = set(names)
    unknown = wanted - set(ADDRESS_FIELDS)
    if unknown:
        raise MalformedInput(f"unknown address fields: {sorted(unknown)}")
    return [1 if name in wanted else 0 for name in ADDRESS_FIELDS]


def _name_to_field(name: str, kind: str) -> int:
    if not isinstance(name, str) or not name.strip():
        raise MalformedInput(f"{kind} id must be a non-empty string")
    return hash_to_field(name.strip().encode("utf-8"), DOMAIN_SEPARATORS[kind])


def locker_to_field(locker_id: str) -> int:
    return _name_to_field(locker_id, "locker")


def facility_to_field(facility_id: str) -> int:
    return _name_to_field(facility_id, "facility")


def leaf_for(field_value: int) -> int:
    """Accumulator leaf for an identifier or locker field element."""
    return poseidon_hash([field_value])
