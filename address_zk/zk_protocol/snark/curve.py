"""
⚠️ DRAFT - requires crypto review before production use

BN254 group helpers on top of ``py_ecc.optimized_bn128``.

Points are py_ecc Jacobian triples. This module adds the pieces the proof
system needs beyond py_ecc's primitives: canonical byte encodings with
validation, fixed-base tables for key generation, Pippenger multi-scalar
multiplication for the prover, and a product-of-pairings check for the
verifier.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    FQ12,
    G1,
    G2,
    Z1,
    Z2,
    add,
    b,
    b2,
    curve_order,
    double,
    field_modulus,
    final_exponentiate,
    is_inf,
    is_on_curve,
    multiply,
    neg,
    normalize,
    pairing,
)

from ..config import (
    FIELD_BITS,
    FIELD_BYTES,
    FIELD_MODULUS_Q,
    FIELD_MODULUS_R,
    G1_POINT_BYTES,
    G2_POINT_BYTES,
)
from ..exceptions import ConfigurationError, MalformedInput


def check_backend(order: int = curve_order, modulus: int = field_modulus) -> None:
    """
    Confirm py_ecc works over the same BN254 fields as ``config``.

    Raises:
        ConfigurationError: If either modulus differs.
    """
    if order != FIELD_MODULUS_R:
        raise ConfigurationError("py_ecc curve order does not match FIELD_MODULUS_R")
    if modulus != FIELD_MODULUS_Q:
        raise ConfigurationError("py_ecc field modulus does not match FIELD_MODULUS_Q")


check_backend()

__all__ = [
    "check_backend",
    "G1",
    "G2",
    "Z1",
    "Z2",
    "FixedBaseTable",
    "add",
    "decode_g1",
    "decode_g2",
    "encode_g1",
    "encode_g2",
    "is_inf",
    "multi_scalar_mul",
    "neg",
    "pairing_check",
    "points_equal",
    "same_ratio",
    "scalar_mul",
]


# ============================================================================
# SCALAR MULTIPLICATION
# ============================================================================


def _zero_like(point):
    one = point[0].one()
    return (one, one, point[0].zero())


def scalar_mul(point, scalar: int):
    k = scalar % FIELD_MODULUS_R
    if k == 0 or is_inf(point):
        return _zero_like(point)
    return multiply(point, k)


def points_equal(p1, p2) -> bool:
    if is_inf(p1) or is_inf(p2):
        return is_inf(p1) and is_inf(p2)
    return normalize(p1) == normalize(p2)


class FixedBaseTable:
    """
    Windowed table of multiples of one base point.

    Each multiplication costs one addition per window instead of a full
    double-and-add. Worth it whenever the same base is multiplied by many
    scalars, as in key generation.
    """

    def __init__(self, base, window: int = 8, bits: int = FIELD_BITS):
        self._window = window
        self._mask = (1 << window) - 1
        self._zero = _zero_like(base)
        rows = -(-bits // window)
        table = []
        current = base
        for _ in range(rows):
            row = [self._zero, current]
            for _ in range(2, 1 << window):
                row.append(add(row[-1], current))
            table.append(row)
            current = add(row[-1], current)
        self._table = table

    def mul(self, scalar: int):
        k = scalar % FIELD_MODULUS_R
        result = self._zero
        row = 0
        while k:
            digit = k & self._mask
            if digit:
                result = add(result, self._table[row][digit])
            k >>= self._window
            row += 1
        return result


def _window_size(n: int) -> int:
    if n < 32:
        return 3
    return min(16, max(4, n.bit_length() - 3))


def multi_scalar_mul(points: Sequence, scalars: Iterable[int], zero=None):
    """
    Pippenger bucket method for ``sum(s_i * P_i)``.

    Zero scalars and points at infinity are skipped, which makes sparse
    and bit-valued witnesses cheap.
    """
    pairs: List[Tuple[object, int]] = []
    for point, scalar in zip(points, scalars):
        k = scalar % FIELD_MODULUS_R
        if k and not is_inf(point):
            pairs.append((point, k))

    if zero is None:
        if not points:
            raise ValueError("zero point required for empty input")
        zero = _zero_like(points[0])
    if not pairs:
        return zero
    if len(pairs) == 1:
        point, k = pairs[0]
        return multiply(point, k)

    c = _window_size(len(pairs))
    mask = (1 << c) - 1
    max_bits = max(k.bit_length() for _, k in pairs)
    windows = -(-max_bits // c)

    result = zero
    for w in reversed(range(windows)):
        if not is_inf(result):
            for _ in range(c):
                result = double(result)
        shift = w * c
        buckets: List[object] = [None] * (1 << c)
        for point, k in pairs:
            digit = (k >> shift) & mask
            if digit:
                current = buckets[digit]
                buckets[digit] = point if current is None else add(current, point)
        running = zero
        window_sum = zero
        for digit in range(mask, 0, -1):
            if buckets[digit] is not None:
                running = add(running, buckets[digit])
            if not is_inf(running):
                window_sum = add(window_sum, running)
        result = add(result, window_sum)
    return result


# ============================================================================
# PAIRINGS
# ============================================================================


def pairing_check(pairs: Iterable[Tuple[object, object]]) -> bool:
    """
    Return True iff ``prod e(P_i, Q_i) == 1`` for (G1, G2) pairs.

    Multiplies the Miller loop outputs and runs one final exponentiation.
    """
    acc = FQ12.one()
    for p1, q2 in pairs:
        if is_inf(p1) or is_inf(q2):
            continue
        acc = acc * pairing(q2, p1, final_exponentiate=False)
    return final_exponentiate(acc) == FQ12.one()


def same_ratio(p1, q1, p2, q2) -> bool:
    """``e(p1, q1) == e(p2, q2)`` for G1 points p1, p2 and G2 points q1, q2."""
    return pairing_check([(p1, q1), (neg(p2), q2)])


# ============================================================================
# ENCODING
# ============================================================================


def _coeffs(value) -> List[int]:
    return [int(getattr(c, "n", c)) for c in value.coeffs]


def _read_coordinate(data: bytes, offset: int) -> int:
    value = int.from_bytes(data[offset : offset + FIELD_BYTES], "big")
    if value >= FIELD_MODULUS_Q:
        raise MalformedInput("coordinate not in base field")
    return value


def encode_g1(point) -> bytes:
    """64-byte big-endian affine ``x || y``; infinity is all zeros."""
    if is_inf(point):
        return b"\x00" * G1_POINT_BYTES
    x, y = normalize(point)
    return x.n.to_bytes(FIELD_BYTES, "big") + y.n.to_bytes(FIELD_BYTES, "big")


def decode_g1(data: bytes):
    """
    Decode and validate a G1 point.

    Raises:
        MalformedInput: Wrong length, coordinate out of range or point not
            on the curve.
    """
    if not isinstance(data, (bytes, bytearray)) or len(data) != G1_POINT_BYTES:
        raise MalformedInput("G1 point must be 64 bytes")
    x = _read_coordinate(data, 0)
    y = _read_coordinate(data, FIELD_BYTES)
    if x == 0 and y == 0:
        return Z1
    point = (FQ(x), FQ(y), FQ.one())
    if not is_on_curve(point, b):
        raise MalformedInput("G1 point not on curve")
    return point


def encode_g2(point) -> bytes:
    """128-byte ``x.c1 || x.c0 || y.c1 || y.c0``; infinity is all zeros."""
    if is_inf(point):
        return b"\x00" * G2_POINT_BYTES
    x, y = normalize(point)
    x0, x1 = _coeffs(x)
    y0, y1 = _coeffs(y)
    return b"".join(v.to_bytes(FIELD_BYTES, "big") for v in (x1, x0, y1, y0))


def decode_g2(data: bytes, check_subgroup: bool = True):
    """
    Decode and validate a G2 point.

    Args:
        data: 128 encoded bytes
        check_subgroup: Verify the point has order r. Only skip for key
            material whose fingerprint was already checked.

    Raises:
        MalformedInput: Wrong length, coordinate out of range, point not on
            the twist or outside the r-torsion subgroup.
    """
    if not isinstance(data, (bytes, bytearray)) or len(data) != G2_POINT_BYTES:
        raise MalformedInput("G2 point must be 128 bytes")
    x1 = _read_coordinate(data, 0)
    x0 = _read_coordinate(data, FIELD_BYTES)
    y1 = _read_coordinate(data, 2 * FIELD_BYTES)
    y0 = _read_coordinate(data, 3 * FIELD_BYTES)
    if x0 == x1 == y0 == y1 == 0:
        return Z2
    point = (FQ2([x0, x1]), FQ2([y0, y1]), FQ2.one())
    if not is_on_curve(point, b2):
        raise MalformedInput("G2 point not on curve")
    if check_subgroup and not is_inf(multiply(point, FIELD_MODULUS_R)):
        raise MalformedInput("G2 point not in prime-order subgroup")
    return point
