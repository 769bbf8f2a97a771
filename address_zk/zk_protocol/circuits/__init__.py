"""Arithmetic circuits for address proofs."""

from .base import Circuit, CircuitType
from .constraints import ConstraintSystem, LinearCombination
from .locker import LockerCircuit, LockerInputs, access_commitment, access_token_matches
from .membership import MembershipCircuit, MembershipInputs, membership_binding
from .registry import CIRCUIT_REGISTRY, build_circuit, get_circuit_spec
from .selective_reveal import (
    SelectiveRevealCircuit,
    SelectiveRevealInputs,
    address_commitment,
)
from .structure import StructureCircuit, StructureInputs, structure_commitment
from .version import (
    VersionCircuit,
    VersionInputs,
    identifier_commitment,
    version_link,
)

__all__ = [
    "CIRCUIT_REGISTRY",
    "Circuit",
    "CircuitType",
    "ConstraintSystem",
    "LinearCombination",
    "LockerCircuit",
    "LockerInputs",
    "MembershipCircuit",
    "MembershipInputs",
    "SelectiveRevealCircuit",
    "SelectiveRevealInputs",
    "StructureCircuit",
    "StructureInputs",
    "VersionCircuit",
    "VersionInputs",
    "access_commitment",
    "access_token_matches",
    "address_commitment",
    "build_circuit",
    "get_circuit_spec",
    "identifier_commitment",
    "membership_binding",
    "structure_commitment",
    "version_link",
]
