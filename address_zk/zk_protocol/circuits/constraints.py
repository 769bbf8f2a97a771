"""
Rank-1 constraint system builder.

A circuit is written once as a ``synthesize`` method against
``ConstraintSystem``. Run without values it records the constraint shape
(used by setup); run with values it also computes the full witness (used
by the prover). Both runs walk the same code, so the witness layout always
matches the keys.

Wire 0 is the constant ONE. Public wires follow it and must all be
allocated before the first private wire.
"""

from __future__ import annotations

import hashlib
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..config import FIELD_MODULUS_R
from ..exceptions import MalformedInput

R = FIELD_MODULUS_R

ONE_WIRE = 0


class LinearCombination:
    """Sparse map ``wire -> coefficient`` over the scalar field."""

    __slots__ = ("terms",)

    def __init__(self, terms: Optional[Dict[int, int]] = None):
        self.terms: Dict[int, int] = {}
        if terms:
            for wire, coeff in terms.items():
                coeff %= R
                if coeff:
                    self.terms[wire] = coeff

    @classmethod
    def constant(cls, value: int) -> "LinearCombination":
        return cls({ONE_WIRE: value})

    @classmethod
    def wire(cls, index: int) -> "LinearCombination":
        return cls({index: 1})

    def is_constant(self) -> bool:
        return all(w == ONE_WIRE for w in self.terms)

    def constant_value(self) -> int:
        return self.terms.get(ONE_WIRE, 0)

    def evaluate(self, values: List[int]) -> int:
        return sum(coeff * values[w] for w, coeff in self.terms.items()) % R

    def _combine(self, other: "Operand", sign: int) -> "LinearCombination":
        other_lc = as_lc(other)
        terms = dict(self.terms)
        for wire, coeff in other_lc.terms.items():
            value = (terms.get(wire, 0) + sign * coeff) % R
            if value:
                terms[wire] = value
            else:
                terms.pop(wire, None)
        result = LinearCombination()
        result.terms = terms
        return result

    def __add__(self, other: "Operand") -> "LinearCombination":
        return self._combine(other, 1)

    __radd__ = __add__

    def __sub__(self, other: "Operand") -> "LinearCombination":
        return self._combine(other, -1)

    def __rsub__(self, other: "Operand") -> "LinearCombination":
        return as_lc(other)._combine(self, -1)

    def __neg__(self) -> "LinearCombination":
        return LinearCombination({w: -c for w, c in self.terms.items()})

    def __mul__(self, scalar: int) -> "LinearCombination":
        if not isinstance(scalar, int):
            return NotImplemented
        return LinearCombination({w: c * scalar for w, c in self.terms.items()})

    __rmul__ = __mul__

    def __repr__(self) -> str:
        return f"LinearCombination({self.terms!r})"


Operand = Union[LinearCombination, int]


def as_lc(value: Operand) -> LinearCombination:
    if isinstance(value, LinearCombination):
        return value
    if isinstance(value, int):
        return LinearCombination.constant(value)
    raise TypeError(f"cannot use {type(value).__name__} in a linear combination")


class Constraint:
    __slots__ = ("a", "b", "c", "label")

    def __init__(
        self,
        a: LinearCombination,
        b: LinearCombination,
        c: LinearCombination,
        label: str,
    ):
        self.a = a
        self.b = b
        self.c = c
        self.label = label

    def is_satisfied(self, values: List[int]) -> bool:
        return (
            self.a.evaluate(values) * self.b.evaluate(values) - self.c.evaluate(values)
        ) % R == 0


class ConstraintSystem:
    """
    Records ``<A,z> * <B,z> = <C,z>`` constraints and, in witness mode,
    the assignment ``z``.

    Args:
        witness: When True every allocated wire must carry a value and
            hints are evaluated.
    """

    def __init__(self, witness: bool = False):
        self.witness_mode = witness
        self.constraints: List[Constraint] = []
        self.wire_names: List[str] = ["ONE"]
        self.values: List[int] = [1]
        self.num_public = 0
        self._private_started = False

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    @property
    def num_wires(self) -> int:
        return len(self.wire_names)

    def _allocate(self, name: str, value: Optional[int]) -> LinearCombination:
        index = len(self.wire_names)
        self.wire_names.append(name)
        if self.witness_mode:
            if value is None:
                raise MalformedInput(f"missing witness value for {name!r}")
            self.values.append(value % R)
        else:
            self.values.append(0)
        return LinearCombination.wire(index)

    def public_input(self, name: str, value: Optional[int] = None) -> LinearCombination:
        if self._private_started:
            raise RuntimeError(f"public input {name!r} allocated after private wires")
        self.num_public += 1
        return self._allocate(name, value)

    def private_input(self, name: str, value: Optional[int] = None) -> LinearCombination:
        self._private_started = True
        return self._allocate(name, value)

    def hint(self, name: str, compute: Callable[[], int]) -> LinearCombination:
        """Allocate a private wire whose value is computed from other wires."""
        self._private_started = True
        return self._allocate(name, compute() if self.witness_mode else None)

    def value(self, lc: Operand) -> int:
        """Current value of a linear combination (witness mode only)."""
        if not self.witness_mode:
            raise RuntimeError("values are only available in witness mode")
        return as_lc(lc).evaluate(self.values)

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def enforce(self, a: Operand, b: Operand, c: Operand, label: str) -> None:
        self.constraints.append(Constraint(as_lc(a), as_lc(b), as_lc(c), label))

    def enforce_equal(self, left: Operand, right: Operand, label: str) -> None:
        self.enforce(as_lc(left) - right, 1, 0, label)

    def mul(self, a: Operand, b: Operand, label: str) -> LinearCombination:
        """Return a wire constrained to ``a * b``."""
        a_lc, b_lc = as_lc(a), as_lc(b)
        if a_lc.is_constant():
            return b_lc * a_lc.constant_value()
        if b_lc.is_constant():
            return a_lc * b_lc.constant_value()
        out = self.hint(
            label, lambda: a_lc.evaluate(self.values) * b_lc.evaluate(self.values)
        )
        self.enforce(a_lc, b_lc, out, label)
        return out

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def unsatisfied(self) -> List[str]:
        """Labels of constraints the current assignment violates."""
        if not self.witness_mode:
            raise RuntimeError("satisfiability needs a witness")
        return [c.label for c in self.constraints if not c.is_satisfied(self.values)]

    def public_values(self) -> List[int]:
        return list(self.values[1 : 1 + self.num_public])

    def matrices(self) -> Iterable[Tuple[LinearCombination, LinearCombination, LinearCombination]]:
        for constraint in self.constraints:
            yield constraint.a, constraint.b, constraint.c

    def digest(self) -> str:
        """SHA-256 over the constraint shape; keys are bound to it."""
        h = hashlib.sha256()
        h.update(f"wires={self.num_wires};public={self.num_public};".encode())
        for constraint in self.constraints:
            for lc in (constraint.a, constraint.b, constraint.c):
                for wire in sorted(lc.terms):
                    h.update(f"{wire}:{lc.terms[wire]},".encode())
                h.update(b"|")
            h.update(b";")
        return h.hexdigest()
