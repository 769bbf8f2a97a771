"""
⚠️ DRAFT - requires crypto review before production use

Proof artifacts crossing the system boundary.

This module provides:
1. Proof - the circuit type, key id, 256-byte Groth16 proof and ordered
   public signals, with CBOR and JSON envelopes
2. VerificationResult - outcome of a detailed verification
"""

import base64
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import cbor2

from .config import FIELD_MODULUS_R, MAX_SERIALIZED_PROOF_BYTES, PROOF_BYTES, PROOF_VERSION
from .exceptions import MalformedInput

# ============================================================================
# PROOF
# ============================================================================


def _check_signals(signals: Any) -> Tuple[int, ...]:
    if not isinstance(signals, (list, tuple)):
        raise MalformedInput("public signals must be a list")
    out = []
    for value in signals:
        if isinstance(value, bool) or not isinstance(value, int):
            raise MalformedInput("public signals must be integers")
        if value < 0 or value >= FIELD_MODULUS_R:
            raise MalformedInput("public signal outside the scalar field")
        out.append(value)
    return tuple(out)


@dataclass(frozen=True)
class Proof:
    """
    Immutable Groth16 proof plus the public signals it was made for.

    Attributes:
        circuit_type: Circuit type tag, e.g. ``membership``
        key_id: ``<type>/v<version>/<shape>`` of the proving key used
        proof_bytes: ``A || B || C`` (64 + 128 + 64 bytes)
        public_signals: Ordered public signals, outputs first

    Example:
        >>> data = proof.serialize()
        >>> assert Proof.deserialize(data) == proof
    """

    circuit_type: str
    key_id: str
    proof_bytes: bytes
    public_signals: Tuple[int, ...]

    def __post_init__(self):
        if not isinstance(self.proof_bytes, (bytes, bytearray)):
            raise MalformedInput("proof bytes must be bytes")
        if len(self.proof_bytes) != PROOF_BYTES:
            raise MalformedInput(
                f"proof must be {PROOF_BYTES} bytes, got {len(self.proof_bytes)}"
            )
        object.__setattr__(self, "proof_bytes", bytes(self.proof_bytes))
        object.__setattr__(self, "public_signals", _check_signals(self.public_signals))

    # ========================================================================
    # SERIALIZATION (CBOR)
    # ========================================================================

    def serialize(self) -> bytes:
        """
        Canonical CBOR encoding with a version field.

        Returns:
            bytes: Encoded proof; ``deserialize`` returns an equal Proof and
            re-serializing yields identical bytes.
        """
        data = {
            "v": PROOF_VERSION,
            "t": self.circuit_type,
            "k": self.key_id,
            "p": self.proof_bytes,
            "s": list(self.public_signals),
        }
        return cbor2.dumps(data, canonical=True)

    @classmethod
    def deserialize(cls, data: bytes) -> "Proof":
        """
        Decode a CBOR proof envelope.

        Raises:
            MalformedInput: Oversized, undecodable, wrong version or
                missing fields.
        """
        if not isinstance(data, (bytes, bytearray)):
            raise MalformedInput("proof envelope must be bytes")
        if len(data) > MAX_SERIALIZED_PROOF_BYTES:
            raise MalformedInput("proof envelope too large")
        try:
            obj = cbor2.loads(bytes(data))
        except Exception as e:
            raise MalformedInput(f"Failed to deserialize proof: {e}") from e
        return cls._from_mapping(obj, binary=True)

    @classmethod
    def _from_mapping(cls, obj: Any, binary: bool) -> "Proof":
        if not isinstance(obj, dict):
            raise MalformedInput("Invalid proof format: expected a map")
        version = obj.get("v")
        if version != PROOF_VERSION:
            raise MalformedInput(
                f"Unsupported proof version: {version} (expected {PROOF_VERSION})"
            )
        for key in ("t", "k", "p", "s"):
            if key not in obj:
                raise MalformedInput(f"Invalid proof format: missing {key!r}")
        if not isinstance(obj["t"], str) or not isinstance(obj["k"], str):
            raise MalformedInput("circuit type and key id must be strings")
        proof_bytes = obj["p"]
        signals = obj["s"]
        if not binary:
            try:
                proof_bytes = base64.b64decode(proof_bytes, validate=True)
                signals = [int(v) for v in signals]
            except (TypeError, ValueError) as e:
                raise MalformedInput(f"Invalid proof JSON: {e}") from e
        return cls(
            circuit_type=obj["t"],
            key_id=obj["k"],
            proof_bytes=proof_bytes,
            public_signals=signals,
        )

    # ========================================================================
    # SERIALIZATION (JSON)
    # ========================================================================

    def to_json(self) -> str:
        """JSON envelope: base64 proof bytes and decimal-string signals."""
        return json.dumps(
            {
                "v": PROOF_VERSION,
                "t": self.circuit_type,
                "k": self.key_id,
                "p": base64.b64encode(self.proof_bytes).decode("ascii"),
                "s": [str(v) for v in self.public_signals],
            },
            sort_keys=True,
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, text: str) -> "Proof":
        if len(text) > 2 * MAX_SERIALIZED_PROOF_BYTES:
            raise MalformedInput("proof envelope too large")
        try:
            obj = json.loads(text)
        except ValueError as e:
            raise MalformedInput(f"Invalid proof JSON: {e}") from e
        return cls._from_mapping(obj, binary=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "circuit_type": self.circuit_type,
            "key_id": self.key_id,
            "proof": self.proof_bytes.hex(),
            "public_signals": [str(v) for v in self.public_signals],
        }


# ============================================================================
# VERIFICATION RESULT
# ============================================================================


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of ``verify_detailed``.

    Attributes:
        valid: Whether the proof was accepted
        circuit_type: Circuit type of the proof
        key_id: Key id the proof claims
        error: Reason for rejection, None when valid
        verified_at: Unix timestamp of the check
    """

    valid: bool
    circuit_type: str
    key_id: str
    error: Optional[str] = None
    verified_at: float = field(default_factory=time.time)

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "circuit_type": self.circuit_type,
            "key_id": self.key_id,
            "error": self.error,
            "verified_at": self.verified_at,
        }
