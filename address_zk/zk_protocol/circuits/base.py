"""
Circuit base class and circuit type tags.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config import FIELD_MODULUS_R
from ..exceptions import ConstraintViolation, MalformedInput
from .constraints import ConstraintSystem, LinearCombination


class CircuitType(Enum):
    """
    Circuits supported by the proof system.

    - MEMBERSHIP: identifier leaf is in the delivery set tree
    - STRUCTURE: identifier has a valid hierarchical shape
    - SELECTIVE_REVEAL: only masked fields of a committed address are disclosed
    - VERSION: two identifiers belong to the same owner
    - LOCKER: holder may open one locker of a facility
    """

    MEMBERSHIP = "membership"
    STRUCTURE = "structure"
    SELECTIVE_REVEAL = "selective_reveal"
    VERSION = "version"
    LOCKER = "locker"

    @classmethod
    def parse(cls, value: "CircuitType | str") -> "CircuitType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise MalformedInput(f"unknown circuit type: {value!r}") from None


def require_field_element(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedInput(f"{name} must be an int field element")
    if value < 0 or value >= FIELD_MODULUS_R:
        raise MalformedInput(f"{name} outside the scalar field")
    return value


def require_length(values: Sequence[Any], expected: int, name: str) -> None:
    if isinstance(values, (str, bytes)) or len(values) != expected:
        raise MalformedInput(f"{name} must have exactly {expected} entries")


def require_bits(values: Sequence[Any], name: str) -> None:
    for value in values:
        if value not in (0, 1) or isinstance(value, bool):
            raise MalformedInput(f"{name} entries must be 0 or 1")


def input_value(inputs: Any, name: str, index: Optional[int] = None) -> Optional[int]:
    """Read a witness value, or None while only recording constraint shape."""
    if inputs is None:
        return None
    value = getattr(inputs, name)
    return value if index is None else value[index]


class Circuit:
    """
    A parameterised constraint graph.

    Subclasses define ``circuit_type``, ``public_names``,
    ``public_signals(inputs)``, ``validate_inputs(inputs)`` and
    ``synthesize(cs, inputs)``. ``inputs`` is ``None`` when only the
    constraint shape is being recorded.
    """

    circuit_type: CircuitType
    depth: int = 0

    def __init__(self) -> None:
        self._compiled: Optional[ConstraintSystem] = None

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def public_names(self) -> Tuple[str, ...]:
        raise NotImplementedError

    @property
    def shape(self) -> str:
        return f"depth-{self.depth}"

    def key_id(self, version: int) -> str:
        return f"{self.circuit_type.value}/v{version}/{self.shape}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.shape})"

    def __getstate__(self) -> Dict[str, Any]:
        state = dict(self.__dict__)
        state["_compiled"] = None
        return state

    # ------------------------------------------------------------------
    # Definition hooks
    # ------------------------------------------------------------------

    def validate_inputs(self, inputs: Any) -> None:
        raise NotImplementedError

    def public_signals(self, inputs: Any) -> List[int]:
        raise NotImplementedError

    def synthesize(self, cs: ConstraintSystem, inputs: Any) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Compilation and witness generation
    # ------------------------------------------------------------------

    def allocate_public(
        self, cs: ConstraintSystem, inputs: Any
    ) -> Dict[str, LinearCombination]:
        names = self.public_names
        if inputs is None:
            values: Sequence[Optional[int]] = [None] * len(names)
        else:
            values = self.public_signals(inputs)
        return {name: cs.public_input(name, v) for name, v in zip(names, values)}

    def compile(self) -> ConstraintSystem:
        """Constraint shape without a witness (cached)."""
        if self._compiled is None:
            cs = ConstraintSystem()
            self.synthesize(cs, None)
            self._compiled = cs
        return self._compiled

    def digest(self) -> str:
        return self.compile().digest()

    @property
    def num_public(self) -> int:
        return len(self.public_names)

    def generate_witness(self, inputs: Any) -> ConstraintSystem:
        """
        Build the full assignment for ``inputs``.

        Raises:
            MalformedInput: If inputs have the wrong shape or range.
            ConstraintViolation: If the assignment does not satisfy the
                circuit; carries the first failing constraint label.
        """
        self.validate_inputs(inputs)
        cs = ConstraintSystem(witness=True)
        self.synthesize(cs, inputs)
        failed = cs.unsatisfied()
        if failed:
            raise ConstraintViolation(self.circuit_type.value, failed[0])
        return cs
