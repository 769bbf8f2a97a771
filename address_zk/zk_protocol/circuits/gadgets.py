"""
Reusable circuit gadgets.

Every gadget is branch-free: selection is done with affine arithmetic on
constrained bits, never with Python control flow on witness values.
"""

from __future__ import annotations

from typing import List, Sequence

from ..config import FIELD_MODULUS_R, MAX_HASH_INPUTS, POSEIDON_RATE
from ..exceptions import MalformedInput
from ..poseidon import get_params
from .constraints import ConstraintSystem, LinearCombination, Operand, as_lc

R = FIELD_MODULUS_R


def assert_bit(cs: ConstraintSystem, x: Operand, label: str) -> None:
    """Constrain ``x`` to {0, 1}."""
    x_lc = as_lc(x)
    cs.enforce(x_lc, x_lc - 1, 0, f"{label}.bit")


def to_bits(cs: ConstraintSystem, x: Operand, n: int, label: str) -> List[LinearCombination]:
    """
    Decompose ``x`` into ``n`` little-endian bits.

    Also serves as a range check: the recomposition constraint fails unless
    ``x < 2**n``.
    """
    x_lc = as_lc(x)
    bits = []
    recomposed = LinearCombination()
    for i in range(n):
        bit = cs.hint(
            f"{label}.b{i}", lambda i=i: (cs.value(x_lc) >> i) & 1
        )
        assert_bit(cs, bit, f"{label}.b{i}")
        recomposed = recomposed + bit * (1 << i)
        bits.append(bit)
    cs.enforce_equal(recomposed, x_lc, f"{label}.range")
    return bits


def range_check(cs: ConstraintSystem, x: Operand, n: int, label: str) -> None:
    to_bits(cs, x, n, label)


def is_zero(cs: ConstraintSystem, x: Operand, label: str) -> LinearCombination:
    """Return a constrained bit that is 1 iff ``x == 0``."""
    x_lc = as_lc(x)
    inv = cs.hint(
        f"{label}.inv",
        lambda: pow(cs.value(x_lc), R - 2, R) if cs.value(x_lc) else 0,
    )
    product = cs.mul(x_lc, inv, f"{label}.prod")
    out = 1 - product
    cs.enforce(x_lc, out, 0, f"{label}.zero")
    return out


def is_equal(cs: ConstraintSystem, a: Operand, b: Operand, label: str) -> LinearCombination:
    return is_zero(cs, as_lc(a) - b, label)


def less_than(
    cs: ConstraintSystem, a: Operand, b: Operand, n: int, label: str
) -> LinearCombination:
    """
    Return a bit that is 1 iff ``a < b``.

    Both operands must already be known to fit in ``n`` bits.
    """
    shifted = as_lc(a) + (1 << n) - b
    bits = to_bits(cs, shifted, n + 1, f"{label}.lt")
    return 1 - bits[n]


def merkle_swap(
    cs: ConstraintSystem,
    direction: Operand,
    current: Operand,
    sibling: Operand,
    label: str,
):
    """
    Order ``(current, sibling)`` into ``(left, right)``.

    ``direction`` 0 keeps current on the left, 1 puts it on the right.
    """
    cur = as_lc(current)
    sib = as_lc(sibling)
    delta = cs.mul(direction, sib - cur, f"{label}.swap")
    return cur + delta, sib - delta


def merkle_root(
    cs: ConstraintSystem,
    leaf: Operand,
    path_elements: Sequence[Operand],
    path_indices: Sequence[Operand],
    label: str,
) -> LinearCombination:
    """Recompute a Merkle root from a leaf and its authentication path."""
    current = as_lc(leaf)
    for level, (sibling, direction) in enumerate(zip(path_elements, path_indices)):
        assert_bit(cs, direction, f"{label}.dir{level}")
        left, right = merkle_swap(cs, direction, current, sibling, f"{label}.l{level}")
        current = poseidon(cs, [left, right], f"{label}.h{level}")
    return current


# ============================================================================
# POSEIDON
# ============================================================================


def _sbox(cs: ConstraintSystem, x: LinearCombination, label: str) -> LinearCombination:
    x2 = cs.mul(x, x, f"{label}.x2")
    x4 = cs.mul(x2, x2, f"{label}.x4")
    return cs.mul(x4, x, f"{label}.x5")


def poseidon_permutation(
    cs: ConstraintSystem, state: List[LinearCombination], label: str
) -> List[LinearCombination]:
    params = get_params()
    current = list(state)
    for rnd in range(params.total_rounds):
        constants = params.constants_for_round(rnd)
        current = [s + c for s, c in zip(current, constants)]
        if params.is_full_round(rnd):
            current = [
                _sbox(cs, s, f"{label}.r{rnd}.s{i}") for i, s in enumerate(current)
            ]
        else:
            current[0] = _sbox(cs, current[0], f"{label}.r{rnd}.s0")
        current = [
            sum((s * m for m, s in zip(row, current)), LinearCombination())
            for row in params.mds
        ]
    return current


def poseidon(cs: ConstraintSystem, inputs: Sequence[Operand], label: str) -> LinearCombination:
    """In-circuit ``poseidon_hash``; same sponge layout as the native one."""
    if not 1 <= len(inputs) <= MAX_HASH_INPUTS:
        raise MalformedInput(
            f"hash arity {len(inputs)} outside [1, {MAX_HASH_INPUTS}]"
        )
    values = [as_lc(v) for v in inputs]
    state = [LinearCombination.constant(len(values))] + [
        LinearCombination() for _ in range(POSEIDON_RATE)
    ]
    for block_no, start in enumerate(range(0, len(values), POSEIDON_RATE)):
        block = values[start : start + POSEIDON_RATE]
        for offset, value in enumerate(block):
            state[1 + offset] = state[1 + offset] + value
        state = poseidon_permutation(cs, state, f"{label}.p{block_no}")
    return state[1]
