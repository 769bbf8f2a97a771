"""
Membership circuit: a private identifier is a leaf of a public Merkle root.

Public signals: ``[binding, root, timestamp]`` where
``binding = Poseidon(root, timestamp)`` ties the proof to the moment it was
requested. The identifier and its path stay private.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..config import DEFAULT_TREE_DEPTH, TIMESTAMP_BITS
from ..exceptions import MalformedInput
from ..merkle import MembershipWitness, validate_depth
from ..poseidon import poseidon_hash
from .base import (
    Circuit,
    CircuitType,
    input_value,
    require_bits,
    require_field_element,
    require_length,
)
from .constraints import ConstraintSystem
from .gadgets import merkle_root, poseidon, range_check


@dataclass(frozen=True)
class MembershipInputs:
    identifier: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]
    root: int
    timestamp: int

    @classmethod
    def from_witness(
        cls,
        identifier: int,
        witness: MembershipWitness,
        timestamp: Optional[int] = None,
    ) -> "MembershipInputs":
        return cls(
            identifier=identifier,
            path_elements=tuple(witness.path_elements),
            path_indices=tuple(witness.path_indices),
            root=witness.root,
            timestamp=int(time.time()) if timestamp is None else timestamp,
        )


def membership_binding(root: int, timestamp: int) -> int:
    return poseidon_hash([root, timestamp])


class MembershipCircuit(Circuit):
    """Prove a private identifier is in the delivery set tree."""

    circuit_type = CircuitType.MEMBERSHIP

    def __init__(self, depth: int = DEFAULT_TREE_DEPTH):
        super().__init__()
        self.depth = validate_depth(depth)

    @property
    def public_names(self) -> Tuple[str, ...]:
        return ("binding", "root", "timestamp")

    def validate_inputs(self, inputs: MembershipInputs) -> None:
        if not isinstance(inputs, MembershipInputs):
            raise MalformedInput("expected MembershipInputs")
        require_field_element(inputs.identifier, "identifier")
        require_field_element(inputs.root, "root")
        require_length(inputs.path_elements, self.depth, "path_elements")
        require_length(inputs.path_indices, self.depth, "path_indices")
        for element in inputs.path_elements:
            require_field_element(element, "path element")
        require_bits(inputs.path_indices, "path_indices")
        if isinstance(inputs.timestamp, bool) or not isinstance(inputs.timestamp, int):
            raise MalformedInput("timestamp must be an int")
        if inputs.timestamp < 0 or inputs.timestamp >= 1 << TIMESTAMP_BITS:
            raise MalformedInput("timestamp out of range")

    def public_signals(self, inputs: MembershipInputs) -> List[int]:
        return [
            membership_binding(inputs.root, inputs.timestamp),
            inputs.root,
            inputs.timestamp,
        ]

    def synthesize(self, cs: ConstraintSystem, inputs: Optional[MembershipInputs]) -> None:
        pub = self.allocate_public(cs, inputs)

        identifier = cs.private_input("identifier", input_value(inputs, "identifier"))
        elements = [
            cs.private_input(f"path_elements[{i}]", input_value(inputs, "path_elements", i))
            for i in range(self.depth)
        ]
        indices = [
            cs.private_input(f"path_indices[{i}]", input_value(inputs, "path_indices", i))
            for i in range(self.depth)
        ]

        range_check(cs, pub["timestamp"], TIMESTAMP_BITS, "timestamp")

        leaf = poseidon(cs, [identifier], "leaf")
        root = merkle_root(cs, leaf, elements, indices, "path")
        cs.enforce_equal(root, pub["root"], "root")

        binding = poseidon(cs, [pub["root"], pub["timestamp"]], "binding")
        cs.enforce_equal(binding, pub["binding"], "binding")
