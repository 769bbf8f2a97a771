"""
Zero-knowledge proofs over postal identifiers.

Public API: hashing, the Merkle accumulator, circuits, proof artifacts and
the Groth16 setup/prove/verify cycle.
"""

from .circuits import CircuitType, build_circuit
from .exceptions import (
    AddressZKError,
    CapacityExceeded,
    ConfigurationError,
    ConstraintViolation,
    KeyMismatch,
    LeafNotFound,
    MalformedInput,
    PoolSaturated,
    ProvingError,
    ProvingTimeout,
    SealingError,
    SetupIntegrityError,
    StaleRoot,
)
from .merkle import MembershipWitness, MerkleTree
from .poseidon import poseidon_hash
from .settings import Settings, get_settings, load_settings
from .snark import KeyStore, SetupManager, prove, verify, verify_detailed
from .types import Proof, VerificationResult

__all__ = [
    "CircuitType",
    "build_circuit",
    "AddressZKError",
    "CapacityExceeded",
    "ConfigurationError",
    "ConstraintViolation",
    "KeyMismatch",
    "LeafNotFound",
    "MalformedInput",
    "PoolSaturated",
    "ProvingError",
    "ProvingTimeout",
    "SealingError",
    "SetupIntegrityError",
    "StaleRoot",
    "MembershipWitness",
    "MerkleTree",
    "poseidon_hash",
    "Settings",
    "get_settings",
    "load_settings",
    "KeyStore",
    "SetupManager",
    "prove",
    "verify",
    "verify_detailed",
    "Proof",
    "VerificationResult",
]
