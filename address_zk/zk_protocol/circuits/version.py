"""
Version (linkage) circuit: two identifiers belong to the same owner.

Used when an address moves: the owner proves that the commitments to the
old and the new identifier were made with the same secret, without
revealing either identifier. Public signals:
``[link, old_commitment, new_commitment, nonce]`` with
``link = Poseidon(secret, nonce)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..exceptions import MalformedInput
from ..poseidon import poseidon_hash
from .base import Circuit, CircuitType, input_value, require_field_element
from .constraints import ConstraintSystem
from .gadgets import is_equal, poseidon


@dataclass(frozen=True)
class VersionInputs:
    owner_secret: int
    old_identifier: int
    new_identifier: int
    nonce: int


def identifier_commitment(identifier: int, owner_secret: int) -> int:
    return poseidon_hash([identifier, owner_secret])


def version_link(owner_secret: int, nonce: int) -> int:
    return poseidon_hash([owner_secret, nonce])


class VersionCircuit(Circuit):
    """Prove old and new identifier commitments share an owner secret."""

    circuit_type = CircuitType.VERSION

    @property
    def public_names(self) -> Tuple[str, ...]:
        return ("link", "old_commitment", "new_commitment", "nonce")

    def validate_inputs(self, inputs: VersionInputs) -> None:
        if not isinstance(inputs, VersionInputs):
            raise MalformedInput("expected VersionInputs")
        require_field_element(inputs.owner_secret, "owner_secret")
        require_field_element(inputs.old_identifier, "old_identifier")
        require_field_element(inputs.new_identifier, "new_identifier")
        require_field_element(inputs.nonce, "nonce")

    def public_signals(self, inputs: VersionInputs) -> List[int]:
        return [
            version_link(inputs.owner_secret, inputs.nonce),
            identifier_commitment(inputs.old_identifier, inputs.owner_secret),
            identifier_commitment(inputs.new_identifier, inputs.owner_secret),
            inputs.nonce,
        ]

    def synthesize(self, cs: ConstraintSystem, inputs: Optional[VersionInputs]) -> None:
        pub = self.allocate_public(cs, inputs)
        secret = cs.private_input("owner_secret", input_value(inputs, "owner_secret"))
        old_id = cs.private_input("old_identifier", input_value(inputs, "old_identifier"))
        new_id = cs.private_input("new_identifier", input_value(inputs, "new_identifier"))

        old_commitment = poseidon(cs, [old_id, secret], "old_commitment")
        cs.enforce_equal(old_commitment, pub["old_commitment"], "old_commitment")

        new_commitment = poseidon(cs, [new_id, secret], "new_commitment")
        cs.enforce_equal(new_commitment, pub["new_commitment"], "new_commitment")

        same = is_equal(cs, old_id, new_id, "identifiers")
        cs.enforce_equal(same, 0, "identifiers.distinct")

        link = poseidon(cs, [secret, pub["nonce"]], "link")
        cs.enforce_equal(link, pub["link"], "link")
