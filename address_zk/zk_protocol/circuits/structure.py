"""
Structure circuit: a committed identifier has a valid hierarchical shape.

Private: component field elements and byte lengths (padded to eight slots)
and a salt. Public signals: ``[commitment, country_code, depth]``.

The circuit enforces that the first ``depth`` components are non-empty,
the remaining slots are empty, the first component is the public country
code, and the commitment opens to exactly these components.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..config import MAX_COMPONENT_LENGTH, MAX_PID_LEVELS
from ..exceptions import MalformedInput
from ..pid import structure_fields
from ..poseidon import poseidon_hash
from .base import (
    Circuit,
    CircuitType,
    input_value,
    require_field_element,
    require_length,
)
from .constraints import ConstraintSystem
from .gadgets import is_zero, less_than, poseidon, range_check

LENGTH_BITS = MAX_COMPONENT_LENGTH.bit_length()
DEPTH_BITS = 4


@dataclass(frozen=True)
class StructureInputs:
    components: Tuple[int, ...]
    lengths: Tuple[int, ...]
    depth: int
    salt: int

    @classmethod
    def from_pid(cls, pid: str, salt: int) -> "StructureInputs":
        components, lengths, depth = structure_fields(pid)
        return cls(tuple(components), tuple(lengths), depth, salt)


def structure_commitment(components, depth: int, salt: int) -> int:
    return poseidon_hash(list(components) + [depth, salt])


class StructureCircuit(Circuit):
    """Prove an identifier has valid hierarchical structure."""

    circuit_type = CircuitType.STRUCTURE

    def __init__(self, max_levels: int = MAX_PID_LEVELS):
        super().__init__()
        if max_levels != MAX_PID_LEVELS:
            raise MalformedInput(f"structure circuit supports {MAX_PID_LEVELS} levels")
        self.max_levels = max_levels

    @property
    def public_names(self) -> Tuple[str, ...]:
        return ("commitment", "country_code", "depth")

    def validate_inputs(self, inputs: StructureInputs) -> None:
        if not isinstance(inputs, StructureInputs):
            raise MalformedInput("expected StructureInputs")
        require_length(inputs.components, self.max_levels, "components")
        require_length(inputs.lengths, self.max_levels, "lengths")
        for component in inputs.components:
            require_field_element(component, "component")
        for length in inputs.lengths:
            if isinstance(length, bool) or not isinstance(length, int) or length < 0:
                raise MalformedInput("lengths must be non-negative ints")
        require_field_element(inputs.salt, "salt")
        if isinstance(inputs.depth, bool) or not isinstance(inputs.depth, int):
            raise MalformedInput("depth must be an int")
        if inputs.depth < 0 or inputs.depth >= 1 << DEPTH_BITS:
            raise MalformedInput("depth out of range")

    def public_signals(self, inputs: StructureInputs) -> List[int]:
        return [
            structure_commitment(inputs.components, inputs.depth, inputs.salt),
            inputs.components[0],
            inputs.depth,
        ]

    def synthesize(self, cs: ConstraintSystem, inputs: Optional[StructureInputs]) -> None:
        pub = self.allocate_public(cs, inputs)
        depth = pub["depth"]

        components = [
            cs.private_input(f"components[{i}]", input_value(inputs, "components", i))
            for i in range(self.max_levels)
        ]
        lengths = [
            cs.private_input(f"lengths[{i}]", input_value(inputs, "lengths", i))
            for i in range(self.max_levels)
        ]
        salt = cs.private_input("salt", input_value(inputs, "salt"))

        # 1 <= depth <= max_levels
        range_check(cs, depth, DEPTH_BITS, "depth")
        depth_is_zero = is_zero(cs, depth, "depth.nonzero")
        cs.enforce_equal(depth_is_zero, 0, "depth.min")
        depth_ok = less_than(cs, depth, self.max_levels + 1, DEPTH_BITS, "depth.max")
        cs.enforce_equal(depth_ok, 1, "depth.max")

        cs.enforce_equal(components[0], pub["country_code"], "country_code")

        for i in range(self.max_levels):
            range_check(cs, lengths[i], LENGTH_BITS, f"lengths[{i}]")
            empty = is_zero(cs, lengths[i], f"lengths[{i}].empty")
            within_depth = less_than(cs, i, depth, DEPTH_BITS, f"level[{i}]")
            cs.enforce_equal(1 - empty, within_depth, f"level[{i}].populated")
            cs.enforce(empty, components[i], 0, f"level[{i}].padding")

        commitment = poseidon(cs, components + [depth, salt], "commitment")
        cs.enforce_equal(commitment, pub["commitment"], "commitment")
