"""
Polynomial arithmetic over the scalar field and the R1CS-to-QAP reduction.

Constraint ``j`` of the circuit is attached to the domain point ``omega^j``
of a radix-2 evaluation domain. Each public wire (and ONE) also gets an
input-binding row ``z_i * 0 = 0`` so its IC term is linearly independent
of the others and cannot be shifted after the fact.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from ..config import FIELD_GENERATOR, FIELD_MODULUS_R, FIELD_TWO_ADICITY
from ..exceptions import MalformedInput
from ..circuits.constraints import ConstraintSystem, LinearCombination

R = FIELD_MODULUS_R


def inverse(value: int) -> int:
    value %= R
    if value == 0:
        raise ZeroDivisionError("zero has no inverse")
    return pow(value, R - 2, R)


def batch_inverse(values: Sequence[int]) -> List[int]:
    """Montgomery batch inversion; all values must be non-zero."""
    prefix = []
    acc = 1
    for value in values:
        prefix.append(acc)
        acc = acc * value % R
    acc_inv = inverse(acc)
    result = [0] * len(values)
    for i in range(len(values) - 1, -1, -1):
        result[i] = prefix[i] * acc_inv % R
        acc_inv = acc_inv * values[i] % R
    return result


def bit_reverse(values: List) -> None:
    n = len(values)
    j = 0
    for i in range(1, n):
        bit = n >> 1
        while j & bit:
            j ^= bit
            bit >>= 1
        j |= bit
        if i < j:
            values[i], values[j] = values[j], values[i]


def _ntt(values: Sequence[int], root: int) -> List[int]:
    a = [v % R for v in values]
    n = len(a)
    bit_reverse(a)
    length = 2
    while length <= n:
        step = pow(root, n // length, R)
        half = length // 2
        twiddles = [1] * half
        for k in range(1, half):
            twiddles[k] = twiddles[k - 1] * step % R
        for start in range(0, n, length):
            for k in range(half):
                u = a[start + k]
                v = a[start + k + half] * twiddles[k] % R
                a[start + k] = (u + v) % R
                a[start + k + half] = (u - v) % R
        length <<= 1
    return a


class EvaluationDomain:
    """Multiplicative subgroup of size ``2**k`` in the scalar field."""

    def __init__(self, size: int):
        if size < 2 or size & (size - 1):
            raise MalformedInput(f"domain size must be a power of two >= 2, got {size}")
        log_size = size.bit_length() - 1
        if log_size > FIELD_TWO_ADICITY:
            raise MalformedInput("circuit too large for the field's two-adicity")
        self.size = size
        self.log_size = log_size
        self.omega = pow(FIELD_GENERATOR, (R - 1) >> log_size, R)
        if pow(self.omega, size // 2, R) == 1:
            raise RuntimeError("root of unity has wrong order")
        self.omega_inv = inverse(self.omega)
        self.size_inv = inverse(size)
        self.coset_shift = FIELD_GENERATOR

    @classmethod
    def for_rows(cls, rows: int) -> "EvaluationDomain":
        size = 2
        while size < rows:
            size <<= 1
        return cls(size)

    def elements(self) -> List[int]:
        out = [1] * self.size
        for i in range(1, self.size):
            out[i] = out[i - 1] * self.omega % R
        return out

    def ntt(self, coeffs: Sequence[int]) -> List[int]:
        return _ntt(self._pad(coeffs), self.omega)

    def intt(self, evals: Sequence[int]) -> List[int]:
        out = _ntt(self._pad(evals), self.omega_inv)
        return [v * self.size_inv % R for v in out]

    def coset_ntt(self, coeffs: Sequence[int]) -> List[int]:
        shifted = []
        power = 1
        for c in self._pad(coeffs):
            shifted.append(c * power % R)
            power = power * self.coset_shift % R
        return _ntt(shifted, self.omega)

    def coset_intt(self, evals: Sequence[int]) -> List[int]:
        coeffs = self.intt(evals)
        shift_inv = inverse(self.coset_shift)
        power = 1
        for i in range(len(coeffs)):
            coeffs[i] = coeffs[i] * power % R
            power = power * shift_inv % R
        return coeffs

    def vanishing_at(self, x: int) -> int:
        return (pow(x, self.size, R) - 1) % R

    def lagrange_at(self, tau: int) -> List[int]:
        """All Lagrange basis polynomials of the domain evaluated at ``tau``."""
        tau %= R
        points = self.elements()
        z = self.vanishing_at(tau)
        if z == 0:
            return [1 if p == tau else 0 for p in points]
        scale = z * self.size_inv % R
        denominators = batch_inverse([(tau - p) % R for p in points])
        return [scale * p % R * d % R for p, d in zip(points, denominators)]

    def _pad(self, values: Sequence[int]) -> List[int]:
        if len(values) > self.size:
            raise ValueError("more values than domain points")
        return list(values) + [0] * (self.size - len(values))


Row = Tuple[LinearCombination, LinearCombination, LinearCombination]


class QAP:
    """
    Quadratic arithmetic program for one compiled circuit.

    Args:
        cs: Constraint system recorded by ``Circuit.compile()``
    """

    def __init__(self, cs: ConstraintSystem):
        self.num_wires = cs.num_wires
        self.num_public = cs.num_public
        self.digest = cs.digest()
        rows: List[Row] = list(cs.matrices())
        for wire in range(self.num_public + 1):
            rows.append(
                (LinearCombination.wire(wire), LinearCombination(), LinearCombination())
            )
        self.rows = rows
        self.domain = EvaluationDomain.for_rows(len(rows))

    @property
    def domain_size(self) -> int:
        return self.domain.size

    def evaluate_at(self, tau: int) -> Tuple[List[int], List[int], List[int]]:
        """Per-wire ``u_i(tau), v_i(tau), w_i(tau)``."""
        lagrange = self.domain.lagrange_at(tau)
        u = [0] * self.num_wires
        v = [0] * self.num_wires
        w = [0] * self.num_wires
        for row, (a, b, c) in enumerate(self.rows):
            basis = lagrange[row]
            for wire, coeff in a.terms.items():
                u[wire] = (u[wire] + coeff * basis) % R
            for wire, coeff in b.terms.items():
                v[wire] = (v[wire] + coeff * basis) % R
            for wire, coeff in c.terms.items():
                w[wire] = (w[wire] + coeff * basis) % R
        return u, v, w

    def compute_h(self, values: Sequence[int]) -> List[int]:
        """
        Coefficients of ``h = (A*B - C) / Z`` for a satisfying assignment.

        Uses coset evaluations so the division by the vanishing polynomial
        is a single constant multiplication.
        """
        domain = self.domain
        a_evals = [a.evaluate(values) for a, _, _ in self.rows]
        b_evals = [b.evaluate(values) for _, b, _ in self.rows]
        c_evals = [c.evaluate(values) for _, _, c in self.rows]

        a_coset = domain.coset_ntt(domain.intt(a_evals))
        b_coset = domain.coset_ntt(domain.intt(b_evals))
        c_coset = domain.coset_ntt(domain.intt(c_evals))

        z_inv = inverse(domain.vanishing_at(domain.coset_shift))
        h_coset = [
            (a * b - c) * z_inv % R for a, b, c in zip(a_coset, b_coset, c_coset)
        ]
        h = domain.coset_intt(h_coset)
        if h[-1] != 0:
            raise ValueError("assignment does not satisfy the QAP")
        return h[:-1]
