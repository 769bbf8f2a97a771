"""
⚠️ DRAFT - requires crypto review before production use

Poseidon hash over the BN254 scalar field.

Width 3 (rate 2, capacity 1), S-box x^5, 8 full rounds and 57 partial
rounds. Round constants and the Cauchy MDS matrix are derived with the
Grain LFSR procedure from the Poseidon paper, so every party can rebuild
them from the parameter set alone.

The in-circuit gadget (``circuits.gadgets.poseidon``) reads the same
parameters and performs the same arithmetic, so a value computed here
always equals the value a circuit computes.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, List, Sequence

from .config import (
    FIELD_BITS,
    FIELD_MODULUS_R,
    MAX_HASH_INPUTS,
    POSEIDON_ALPHA,
    POSEIDON_FULL_ROUNDS,
    POSEIDON_PARTIAL_ROUNDS,
    POSEIDON_RATE,
    POSEIDON_WIDTH,
)
from .exceptions import MalformedInput


# ============================================================================
# PARAMETER GENERATION (Grain LFSR)
# ============================================================================


def _int_to_bits(value: int, width: int) -> List[int]:
    return [(value >> (width - 1 - i)) & 1 for i in range(width)]


class GrainLFSR:
    """
    80-bit Grain LFSR in self-shrinking mode.

    Initial state encodes the field type, S-box type, field size, width
    and round numbers followed by thirty set bits. The first 160 output
    bits are discarded.
    """

    def __init__(
        self,
        field_bits: int,
        width: int,
        full_rounds: int,
        partial_rounds: int,
    ):
        state: List[int] = []
        state += _int_to_bits(1, 2)  # prime field
        state += _int_to_bits(0, 4)  # x^alpha S-box
        state += _int_to_bits(field_bits, 12)
        state += _int_to_bits(width, 12)
        state += _int_to_bits(full_rounds, 10)
        state += _int_to_bits(partial_rounds, 10)
        state += [1] * 30
        self._state = state
        for _ in range(160):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.pop(0)
        s.append(bit)
        return bit

    def next_bit(self) -> int:
        # Output the second bit of a pair only when the first one is set
        while True:
            first = self._clock()
            second = self._clock()
            if first:
                return second

    def next_int(self, bits: int) -> int:
        value = 0
        for _ in range(bits):
            value = (value << 1) | self.next_bit()
        return value

    def next_field_element(self, modulus: int, bits: int) -> int:
        """Rejection-sample a field element below ``modulus``."""
        while True:
            value = self.next_int(bits)
            if value < modulus:
                return value


@dataclass(frozen=True)
class PoseidonParams:
    width: int
    full_rounds: int
    partial_rounds: int
    alpha: int
    round_constants: tuple
    mds: tuple

    @property
    def total_rounds(self) -> int:
        return self.full_rounds + self.partial_rounds

    def is_full_round(self, rnd: int) -> bool:
        half = self.full_rounds // 2
        return rnd < half or rnd >= half + self.partial_rounds

    def constants_for_round(self, rnd: int) -> tuple:
        start = rnd * self.width
        return self.round_constants[start : start + self.width]


@lru_cache(maxsize=None)
def get_params() -> PoseidonParams:
    """Derive (once per process) the Poseidon parameter set."""
    p = FIELD_MODULUS_R
    t = POSEIDON_WIDTH
    lfsr = GrainLFSR(FIELD_BITS, t, POSEIDON_FULL_ROUNDS, POSEIDON_PARTIAL_ROUNDS)

    num_constants = (POSEIDON_FULL_ROUNDS + POSEIDON_PARTIAL_ROUNDS) * t
    round_constants = tuple(
        lfsr.next_field_element(p, FIELD_BITS) for _ in range(num_constants)
    )

    while True:
        elements = [lfsr.next_int(FIELD_BITS) % p for _ in range(2 * t)]
        if len(set(elements)) == len(elements):
            break
    xs, ys = elements[:t], elements[t:]
    mds = tuple(
        tuple(pow((x + y) % p, p - 2, p) for y in ys) for x in xs
    )

    return PoseidonParams(
        width=t,
        full_rounds=POSEIDON_FULL_ROUNDS,
        partial_rounds=POSEIDON_PARTIAL_ROUNDS,
        alpha=POSEIDON_ALPHA,
        round_constants=round_constants,
        mds=mds,
    )


# ============================================================================
# PERMUTATION AND SPONGE
# ============================================================================


def permute(state: Sequence[int]) -> List[int]:
    """Apply the Poseidon permutation to a width-3 state."""
    params = get_params()
    p = FIELD_MODULUS_R
    if len(state) != params.width:
        raise MalformedInput(f"state must have {params.width} elements")

    current = [v % p for v in state]
    for rnd in range(params.total_rounds):
        constants = params.constants_for_round(rnd)
        current = [(v + c) % p for v, c in zip(current, constants)]
        if params.is_full_round(rnd):
            current = [pow(v, params.alpha, p) for v in current]
        else:
            current[0] = pow(current[0], params.alpha, p)
        current = [
            sum(m * v for m, v in zip(row, current)) % p for row in params.mds
        ]
    return current


def validate_hash_inputs(inputs: Iterable[int]) -> List[int]:
    """
    Check arity and range of hash inputs.

    Raises:
        MalformedInput: If there are zero or too many inputs, or a value is
            not a canonical field element.
    """
    if isinstance(inputs, (str, bytes, bytearray)):
        raise MalformedInput("hash inputs must be a sequence of field elements")
    values = list(inputs)
    if not values:
        raise MalformedInput("hash requires at least one input")
    if len(values) > MAX_HASH_INPUTS:
        raise MalformedInput(
            f"hash arity {len(values)} exceeds maximum {MAX_HASH_INPUTS}"
        )
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise MalformedInput(f"hash input must be int, got {type(value).__name__}")
        if value < 0 or value >= FIELD_MODULUS_R:
            raise MalformedInput("hash input outside the scalar field")
    return values


def poseidon_hash(inputs: Sequence[int]) -> int:
    """
    Hash 1..MAX_HASH_INPUTS field elements to one field element.

    The capacity element starts at the input count, so inputs of different
    lengths never collide through zero padding. Inputs are absorbed two at
    a time, one permutation per block.

    Args:
        inputs: Field elements in [0, r)

    Returns:
        Field element in [0, r)

    Raises:
        MalformedInput: On bad arity or out-of-range values

    Example:
        >>> leaf = poseidon_hash([identifier_field])
        >>> node = poseidon_hash([left, right])
    """
    values = validate_hash_inputs(inputs)
    p = FIELD_MODULUS_R
    state = [len(values)] + [0] * POSEIDON_RATE
    for start in range(0, len(values), POSEIDON_RATE):
        block = values[start : start + POSEIDON_RATE]
        for offset, value in enumerate(block):
            state[1 + offset] = (state[1 + offset] + value) % p
        state = permute(state)
    return state[1]


def commit(values: Sequence[int], salt: int) -> int:
    """Salted commitment ``Poseidon(values..., salt)``."""
    return poseidon_hash(list(values) + [salt])
