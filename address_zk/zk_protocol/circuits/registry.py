"""
Circuit registry.

Maps each circuit type to its class, its inputs type and a description, and
builds circuit instances from a type tag plus shape parameters.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

from ..exceptions import MalformedInput
from .base import Circuit, CircuitType
from .locker import LockerCircuit, LockerInputs
from .membership import MembershipCircuit, MembershipInputs
from .selective_reveal import SelectiveRevealCircuit, SelectiveRevealInputs
from .structure import StructureCircuit, StructureInputs
from .version import VersionCircuit, VersionInputs


@dataclass(frozen=True)
class CircuitSpec:
    """
    Registry entry for one circuit.

    Attributes:
        circuit_type: Type tag
        circuit_class: Circuit implementation
        inputs_class: Witness inputs dataclass
        public_signals: Names of public signals, outputs first
        takes_depth: Whether the circuit is parameterised by tree depth
        description: Human-readable statement
    """

    circuit_type: CircuitType
    circuit_class: Type[Circuit]
    inputs_class: type
    public_signals: Tuple[str, ...]
    takes_depth: bool
    description: str


CIRCUIT_REGISTRY: Dict[CircuitType, CircuitSpec] = {
    CircuitType.MEMBERSHIP: CircuitSpec(
        circuit_type=CircuitType.MEMBERSHIP,
        circuit_class=MembershipCircuit,
        inputs_class=MembershipInputs,
        public_signals=("binding", "root", "timestamp"),
        takes_depth=True,
        description="Identifier is a member of the delivery set",
    ),
    CircuitType.STRUCTURE: CircuitSpec(
        circuit_type=CircuitType.STRUCTURE,
        circuit_class=StructureCircuit,
        inputs_class=StructureInputs,
        public_signals=("commitment", "country_code", "depth"),
        takes_depth=False,
        description="Identifier has valid hierarchical structure",
    ),
    CircuitType.SELECTIVE_REVEAL: CircuitSpec(
        circuit_type=CircuitType.SELECTIVE_REVEAL,
        circuit_class=SelectiveRevealCircuit,
        inputs_class=SelectiveRevealInputs,
        public_signals=("commitment", "mask[0..7]", "revealed[0..7]"),
        takes_depth=False,
        description="Only masked fields of a committed address are disclosed",
    ),
    CircuitType.VERSION: CircuitSpec(
        circuit_type=CircuitType.VERSION,
        circuit_class=VersionCircuit,
        inputs_class=VersionInputs,
        public_signals=("link", "old_commitment", "new_commitment", "nonce"),
        takes_depth=False,
        description="Old and new identifiers belong to the same owner",
    ),
    CircuitType.LOCKER: CircuitSpec(
        circuit_type=CircuitType.LOCKER,
        circuit_class=LockerCircuit,
        inputs_class=LockerInputs,
        public_signals=("access_commitment", "facility_id", "locker_set_root"),
        takes_depth=True,
        description="Holder may open one locker of the facility",
    ),
}


def get_circuit_spec(circuit_type) -> CircuitSpec:
    return CIRCUIT_REGISTRY[CircuitType.parse(circuit_type)]


def build_circuit(circuit_type, depth: Optional[int] = None) -> Circuit:
    """
    Instantiate a circuit from its type tag.

    Args:
        circuit_type: ``CircuitType`` or its string value
        depth: Tree depth for membership/locker circuits; must be None or
            0 for the others.

    Raises:
        MalformedInput: Unknown type or a depth the circuit cannot take.
    """
    spec = get_circuit_spec(circuit_type)
    if spec.takes_depth:
        if depth is None:
            return spec.circuit_class()
        return spec.circuit_class(depth)
    if depth not in (None, 0):
        raise MalformedInput(f"{spec.circuit_type.value} circuit takes no depth")
    return spec.circuit_class()


def list_circuits() -> Tuple[CircuitType, ...]:
    return tuple(CIRCUIT_REGISTRY)
