"""
Locker circuit: the holder may open one locker in a facility's locker set.

Public signals: ``[access_commitment, facility_id, locker_set_root]`` with
``access_commitment = Poseidon(locker_id, facility_id, nonce)``. Which
locker stays private; the terminal only learns the access commitment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..config import DEFAULT_TREE_DEPTH
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
from .gadgets import merkle_root, poseidon


@dataclass(frozen=True)
class LockerInputs:
    locker_id: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]
    nonce: int
    facility_id: int
    locker_set_root: int

    @classmethod
    def from_witness(
        cls,
        locker_id: int,
        witness: MembershipWitness,
        facility_id: int,
        nonce: int,
    ) -> "LockerInputs":
        return cls(
            locker_id=locker_id,
            path_elements=tuple(witness.path_elements),
            path_indices=tuple(witness.path_indices),
            nonce=nonce,
            facility_id=facility_id,
            locker_set_root=witness.root,
        )


def access_commitment(locker_id: int, facility_id: int, nonce: int) -> int:
    return poseidon_hash([locker_id, facility_id, nonce])


def access_token_matches(token: int, locker_id: int, facility_id: int, nonce: int) -> bool:
    """Terminal-side check that a presented token opens ``locker_id``."""
    return token == access_commitment(locker_id, facility_id, nonce)


class LockerCircuit(Circuit):
    """Prove access to some locker of a facility without naming it."""

    circuit_type = CircuitType.LOCKER

    def __init__(self, depth: int = DEFAULT_TREE_DEPTH):
        super().__init__()
        self.depth = validate_depth(depth)

    @property
    def public_names(self) -> Tuple[str, ...]:
        return ("access_commitment", "facility_id", "locker_set_root")

    def validate_inputs(self, inputs: LockerInputs) -> None:
        if not isinstance(inputs, LockerInputs):
            raise MalformedInput("expected LockerInputs")
        require_field_element(inputs.locker_id, "locker_id")
        require_field_element(inputs.nonce, "nonce")
        require_field_element(inputs.facility_id, "facility_id")
        require_field_element(inputs.locker_set_root, "locker_set_root")
        require_length(inputs.path_elements, self.depth, "path_elements")
        require_length(inputs.path_indices, self.depth, "path_indices")
        for element in inputs.path_elements:
            require_field_element(element, "path element")
        require_bits(inputs.path_indices, "path_indices")

    def public_signals(self, inputs: LockerInputs) -> List[int]:
        return [
            access_commitment(inputs.locker_id, inputs.facility_id, inputs.nonce),
            inputs.facility_id,
            inputs.locker_set_root,
        ]

    def synthesize(self, cs: ConstraintSystem, inputs: Optional[LockerInputs]) -> None:
        pub = self.allocate_public(cs, inputs)
        locker_id = cs.private_input("locker_id", input_value(inputs, "locker_id"))
        elements = [
            cs.private_input(f"path_elements[{i}]", input_value(inputs, "path_elements", i))
            for i in range(self.depth)
        ]
        indices = [
            cs.private_input(f"path_indices[{i}]", input_value(inputs, "path_indices", i))
            for i in range(self.depth)
        ]
        nonce = cs.private_input("nonce", input_value(inputs, "nonce"))

        leaf = poseidon(cs, [locker_id], "leaf")
        root = merkle_root(cs, leaf, elements, indices, "path")
        cs.enforce_equal(root, pub["locker_set_root"], "locker_set_root")

        access = poseidon(cs, [locker_id, pub["facility_id"], nonce], "access")
        cs.enforce_equal(access, pub["access_commitment"], "access_commitment")
