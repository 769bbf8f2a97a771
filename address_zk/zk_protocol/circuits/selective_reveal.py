"""
Selective reveal circuit: disclose only masked fields of a committed address.

Public signals: ``[commitment, mask_0..mask_7, revealed_0..revealed_7]``.
Hidden positions are published as zero; revealed positions must equal the
committed field.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

from ..config import SELECTIVE_REVEAL_FIELDS
from ..exceptions import MalformedInput
from ..pid import address_fields, reveal_mask
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
from .gadgets import assert_bit, poseidon


@dataclass(frozen=True)
class SelectiveRevealInputs:
    fields: Tuple[int, ...]
    salt: int
    mask: Tuple[int, ...]

    @classmethod
    def from_address(
        cls, address: Mapping[str, str], salt: int, reveal: Sequence[str]
    ) -> "SelectiveRevealInputs":
        return cls(tuple(address_fields(address)), salt, tuple(reveal_mask(reveal)))

    @property
    def revealed(self) -> Tuple[int, ...]:
        return tuple(f if m else 0 for f, m in zip(self.fields, self.mask))


def address_commitment(fields: Sequence[int], salt: int) -> int:
    return poseidon_hash(list(fields) + [salt])


class SelectiveRevealCircuit(Circuit):
    """Prove revealed values match a previously published commitment."""

    circuit_type = CircuitType.SELECTIVE_REVEAL

    def __init__(self, num_fields: int = SELECTIVE_REVEAL_FIELDS):
        super().__init__()
        if num_fields != SELECTIVE_REVEAL_FIELDS:
            raise MalformedInput(
                f"selective reveal supports {SELECTIVE_REVEAL_FIELDS} fields"
            )
        self.num_fields = num_fields

    @property
    def public_names(self) -> Tuple[str, ...]:
        n = self.num_fields
        return (
            ("commitment",)
            + tuple(f"mask[{i}]" for i in range(n))
            + tuple(f"revealed[{i}]" for i in range(n))
        )

    def validate_inputs(self, inputs: SelectiveRevealInputs) -> None:
        if not isinstance(inputs, SelectiveRevealInputs):
            raise MalformedInput("expected SelectiveRevealInputs")
        require_length(inputs.fields, self.num_fields, "fields")
        require_length(inputs.mask, self.num_fields, "mask")
        for value in inputs.fields:
            require_field_element(value, "field")
        require_field_element(inputs.salt, "salt")
        require_bits(inputs.mask, "mask")

    def public_signals(self, inputs: SelectiveRevealInputs) -> List[int]:
        return (
            [address_commitment(inputs.fields, inputs.salt)]
            + list(inputs.mask)
            + list(inputs.revealed)
        )

    def synthesize(
        self, cs: ConstraintSystem, inputs: Optional[SelectiveRevealInputs]
    ) -> None:
        pub = self.allocate_public(cs, inputs)
        fields = [
            cs.private_input(f"fields[{i}]", input_value(inputs, "fields", i))
            for i in range(self.num_fields)
        ]
        salt = cs.private_input("salt", input_value(inputs, "salt"))

        commitment = poseidon(cs, fields + [salt], "commitment")
        cs.enforce_equal(commitment, pub["commitment"], "commitment")

        for i in range(self.num_fields):
            mask = pub[f"mask[{i}]"]
            revealed = pub[f"revealed[{i}]"]
            assert_bit(cs, mask, f"mask[{i}]")
            cs.enforce(mask, fields[i] - revealed, 0, f"revealed[{i}].match")
            cs.enforce(1 - mask, revealed, 0, f"revealed[{i}].hidden")
