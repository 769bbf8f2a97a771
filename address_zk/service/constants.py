"""Constants for proof request/response exchange."""

from __future__ import annotations

from ..zk_protocol.circuits.base import CircuitType
from ..zk_protocol.config import DEFAULT_TREE_DEPTH, MAX_SERIALIZED_PROOF_BYTES

MSG_V = 1
CIRCUIT_TYPES = frozenset(t.value for t in CircuitType)
TREE_CIRCUITS = frozenset({CircuitType.MEMBERSHIP.value, CircuitType.LOCKER.value})
DEFAULT_MEMBERSHIP_DEPTH = DEFAULT_TREE_DEPTH

MIN_NONCE_BYTES = 16
MAX_NONCE_BYTES = 64
MAX_PROOF_BYTES = MAX_SERIALIZED_PROOF_BYTES
MAX_META_BYTES = 4096
MAX_ERR_CHARS = 256


def is_valid_circuit_type(circuit_type: str) -> bool:
    return circuit_type in CIRCUIT_TYPES
