"""
Groth16 key material and key provenance.

Keys are immutable and carry the constraint digest of the circuit they
were generated for, the key id ``<type>/v<version>/<shape>`` that proofs
are stamped with, and a provenance record describing how the toxic waste
was produced.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

import cbor2

from ..config import KEY_FORMAT_VERSION
from ..exceptions import MalformedInput
from ..security import sha256_hex
from .curve import decode_g1, decode_g2, encode_g1, encode_g2

SINGLE_PARTY_TEST = "single-party-test"
MULTI_PARTY = "multi-party"
PROVENANCE_MODES = (SINGLE_PARTY_TEST, MULTI_PARTY)
MIN_PRODUCTION_PARTICIPANTS = 2


# ============================================================================
# PROVENANCE
# ============================================================================


@dataclass(frozen=True)
class KeyProvenance:
    """
    How a key pair's secrets were generated.

    Attributes:
        mode: ``single-party-test`` (secrets known to one process) or
            ``multi-party`` (two-phase ceremony)
        phase1_participants: Powers-of-tau contributors in order
        phase2_participants: Circuit-specific contributors in order
        transcript_hash: Hash chain over all contributions
        created_at: Unix timestamp
    """

    mode: str
    phase1_participants: Tuple[str, ...] = ()
    phase2_participants: Tuple[str, ...] = ()
    transcript_hash: str = ""
    created_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.mode not in PROVENANCE_MODES:
            raise MalformedInput(f"unknown provenance mode: {self.mode!r}")

    @property
    def is_test_setup(self) -> bool:
        return self.mode == SINGLE_PARTY_TEST

    @property
    def production_ready(self) -> bool:
        """
        True only for ceremonies with enough distinct contributors per
        phase; a single-party setup never qualifies.
        """
        if self.mode != MULTI_PARTY:
            return False
        return (
            len(set(self.phase1_participants)) >= MIN_PRODUCTION_PARTICIPANTS
            and len(set(self.phase2_participants)) >= MIN_PRODUCTION_PARTICIPANTS
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "phase1_participants": list(self.phase1_participants),
            "phase2_participants": list(self.phase2_participants),
            "transcript_hash": self.transcript_hash,
            "created_at": self.created_at,
            "production_ready": self.production_ready,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyProvenance":
        try:
            return cls(
                mode=data["mode"],
                phase1_participants=tuple(data.get("phase1_participants", ())),
                phase2_participants=tuple(data.get("phase2_participants", ())),
                transcript_hash=data.get("transcript_hash", ""),
                created_at=float(data.get("created_at", 0.0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedInput(f"invalid provenance: {e}") from e


# ============================================================================
# KEYS
# ============================================================================


def _load_payload(data: bytes, kind: str) -> Dict[str, Any]:
    if not isinstance(data, (bytes, bytearray)):
        raise MalformedInput(f"{kind} blob must be bytes")
    try:
        payload = cbor2.loads(bytes(data))
    except Exception as e:
        raise MalformedInput(f"{kind} is not valid CBOR: {e}") from e
    if not isinstance(payload, dict):
        raise MalformedInput(f"{kind} payload must be a map")
    if payload.get("v") != KEY_FORMAT_VERSION:
        raise MalformedInput(f"unsupported {kind} format version")
    if payload.get("kind") != kind:
        raise MalformedInput(f"blob is not a {kind}")
    return payload


@dataclass(frozen=True)
class VerificationKey:
    circuit_type: str
    key_id: str
    version: int
    shape: str
    constraint_digest: str
    num_public: int
    alpha_g1: Any
    beta_g2: Any
    gamma_g2: Any
    delta_g2: Any
    ic: Tuple[Any, ...]
    provenance: KeyProvenance

    def to_bytes(self) -> bytes:
        payload = {
            "v": KEY_FORMAT_VERSION,
            "kind": "vk",
            "t": self.circuit_type,
            "k": self.key_id,
            "ver": self.version,
            "shape": self.shape,
            "digest": self.constraint_digest,
            "np": self.num_public,
            "alpha_g1": encode_g1(self.alpha_g1),
            "beta_g2": encode_g2(self.beta_g2),
            "gamma_g2": encode_g2(self.gamma_g2),
            "delta_g2": encode_g2(self.delta_g2),
            "ic": [encode_g1(p) for p in self.ic],
            "prov": self.provenance.to_dict(),
        }
        return cbor2.dumps(payload, canonical=True)

    @classmethod
    def from_bytes(cls, data: bytes) -> "VerificationKey":
        """
        Decode and validate a verification key.

        Raises:
            MalformedInput: Bad encoding or invalid curve points.
        """
        payload = _load_payload(data, "vk")
        try:
            ic = tuple(decode_g1(p) for p in payload["ic"])
            if len(ic) != payload["np"] + 1:
                raise MalformedInput("IC length does not match public input count")
            return cls(
                circuit_type=payload["t"],
                key_id=payload["k"],
                version=int(payload["ver"]),
                shape=payload["shape"],
                constraint_digest=payload["digest"],
                num_public=int(payload["np"]),
                alpha_g1=decode_g1(payload["alpha_g1"]),
                beta_g2=decode_g2(payload["beta_g2"]),
                gamma_g2=decode_g2(payload["gamma_g2"]),
                delta_g2=decode_g2(payload["delta_g2"]),
                ic=ic,
                provenance=KeyProvenance.from_dict(payload["prov"]),
            )
        except (KeyError, TypeError) as e:
            raise MalformedInput(f"invalid verification key: {e}") from e

    def fingerprint(self) -> str:
        return sha256_hex(self.to_bytes())

    def to_json(self) -> str:
        """Human-readable export in the snarkjs ``verification_key.json`` layout."""

        def g1(point):
            raw = encode_g1(point)
            return [str(int.from_bytes(raw[:32], "big")), str(int.from_bytes(raw[32:], "big")), "1"]

        def g2(point):
            raw = encode_g2(point)
            x1, x0, y1, y0 = (int.from_bytes(raw[i : i + 32], "big") for i in range(0, 128, 32))
            return [[str(x0), str(x1)], [str(y0), str(y1)], ["1", "0"]]

        doc = {
            "protocol": "groth16",
            "curve": "bn128",
            "circuit_type": self.circuit_type,
            "key_id": self.key_id,
            "nPublic": self.num_public,
            "vk_alpha_1": g1(self.alpha_g1),
            "vk_beta_2": g2(self.beta_g2),
            "vk_gamma_2": g2(self.gamma_g2),
            "vk_delta_2": g2(self.delta_g2),
            "IC": [g1(p) for p in self.ic],
            "provenance": self.provenance.to_dict(),
        }
        return json.dumps(doc, indent=2, sort_keys=True)


@dataclass(frozen=True)
class ProvingKey:
    circuit_type: str
    key_id: str
    version: int
    shape: str
    constraint_digest: str
    num_public: int
    num_wires: int
    domain_size: int
    alpha_g1: Any
    beta_g1: Any
    beta_g2: Any
    delta_g1: Any
    delta_g2: Any
    a_query: Tuple[Any, ...]
    b_g1_query: Tuple[Any, ...]
    b_g2_query: Tuple[Any, ...]
    l_query: Tuple[Any, ...]
    h_query: Tuple[Any, ...]
    provenance: KeyProvenance

    def __post_init__(self):
        private_wires = self.num_wires - self.num_public - 1
        if len(self.a_query) != self.num_wires or len(self.b_g2_query) != self.num_wires:
            raise MalformedInput("query length does not match wire count")
        if len(self.l_query) != private_wires:
            raise MalformedInput("L query length does not match private wire count")
        if len(self.h_query) != self.domain_size - 1:
            raise MalformedInput("H query length does not match domain size")

    def to_bytes(self) -> bytes:
        payload = {
            "v": KEY_FORMAT_VERSION,
            "kind": "pk",
            "t": self.circuit_type,
            "k": self.key_id,
            "ver": self.version,
            "shape": self.shape,
            "digest": self.constraint_digest,
            "np": self.num_public,
            "nw": self.num_wires,
            "n": self.domain_size,
            "alpha_g1": encode_g1(self.alpha_g1),
            "beta_g1": encode_g1(self.beta_g1),
            "beta_g2": encode_g2(self.beta_g2),
            "delta_g1": encode_g1(self.delta_g1),
            "delta_g2": encode_g2(self.delta_g2),
            "a": [encode_g1(p) for p in self.a_query],
            "b1": [encode_g1(p) for p in self.b_g1_query],
            "b2": [encode_g2(p) for p in self.b_g2_query],
            "l": [encode_g1(p) for p in self.l_query],
            "h": [encode_g1(p) for p in self.h_query],
            "prov": self.provenance.to_dict(),
        }
        return cbor2.dumps(payload, canonical=True)

    @classmethod
    def from_bytes(cls, data: bytes) -> "ProvingKey":
        """
        Decode a proving key.

        G2 subgroup checks are skipped; callers load proving keys through
        the key store, which checks the artifact fingerprint first.
        """
        payload = _load_payload(data, "pk")
        try:
            return cls(
                circuit_type=payload["t"],
                key_id=payload["k"],
                version=int(payload["ver"]),
                shape=payload["shape"],
                constraint_digest=payload["digest"],
                num_public=int(payload["np"]),
                num_wires=int(payload["nw"]),
                domain_size=int(payload["n"]),
                alpha_g1=decode_g1(payload["alpha_g1"]),
                beta_g1=decode_g1(payload["beta_g1"]),
                beta_g2=decode_g2(payload["beta_g2"], check_subgroup=False),
                delta_g1=decode_g1(payload["delta_g1"]),
                delta_g2=decode_g2(payload["delta_g2"], check_subgroup=False),
                a_query=tuple(decode_g1(p) for p in payload["a"]),
                b_g1_query=tuple(decode_g1(p) for p in payload["b1"]),
                b_g2_query=tuple(decode_g2(p, check_subgroup=False) for p in payload["b2"]),
                l_query=tuple(decode_g1(p) for p in payload["l"]),
                h_query=tuple(decode_g1(p) for p in payload["h"]),
                provenance=KeyProvenance.from_dict(payload["prov"]),
            )
        except (KeyError, TypeError) as e:
            raise MalformedInput(f"invalid proving key: {e}") from e

    def fingerprint(self) -> str:
        return sha256_hex(self.to_bytes())


@dataclass(frozen=True)
class KeyPair:
    proving_key: ProvingKey
    verification_key: VerificationKey

    @property
    def key_id(self) -> str:
        return self.verification_key.key_id

    @property
    def provenance(self) -> KeyProvenance:
        return self.verification_key.provenance
