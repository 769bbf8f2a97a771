"""
⚠️ DRAFT - requires crypto review before production use

Groth16 verifier.

Verification cost is four Miller loops and one final exponentiation plus
one scalar multiplication per public signal, independent of circuit size.
Cheap enough to run inline on the request path.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..circuits.base import CircuitType
from ..config import FIELD_MODULUS_R, G1_POINT_BYTES, G2_POINT_BYTES, PROOF_BYTES
from ..exceptions import KeyMismatch, MalformedInput
from ..types import Proof, VerificationResult
from ...logging_config import get_logger, log_proof_verification
from .curve import Z1, add, decode_g1, decode_g2, multi_scalar_mul, neg, pairing_check
from .keys import VerificationKey

logger = get_logger(__name__)


def decode_proof_points(proof_bytes: bytes):
    """
    Split and validate ``A || B || C``.

    Raises:
        MalformedInput: Wrong length, coordinate out of range, point off the
            curve or B outside the prime-order subgroup.
    """
    if not isinstance(proof_bytes, (bytes, bytearray)) or len(proof_bytes) != PROOF_BYTES:
        raise MalformedInput(f"proof must be {PROOF_BYTES} bytes")
    a = decode_g1(proof_bytes[:G1_POINT_BYTES])
    b = decode_g2(proof_bytes[G1_POINT_BYTES : G1_POINT_BYTES + G2_POINT_BYTES])
    c = decode_g1(proof_bytes[G1_POINT_BYTES + G2_POINT_BYTES :])
    return a, b, c


def _check_signals(public_signals: Sequence[int], vk: VerificationKey) -> list:
    signals = list(public_signals)
    if len(signals) != vk.num_public:
        raise MalformedInput(
            f"expected {vk.num_public} public signals, got {len(signals)}"
        )
    for value in signals:
        if isinstance(value, bool) or not isinstance(value, int):
            raise MalformedInput("public signals must be integers")
        if value < 0 or value >= FIELD_MODULUS_R:
            raise MalformedInput("public signal outside the scalar field")
    return signals


def check_proof_key(proof: Proof, vk: VerificationKey) -> None:
    """
    Raises:
        KeyMismatch: Proof was made for another circuit type or key version.
    """
    if proof.circuit_type != vk.circuit_type:
        raise KeyMismatch(
            f"proof is for {proof.circuit_type}, key is for {vk.circuit_type}"
        )
    if proof.key_id != vk.key_id:
        raise KeyMismatch(f"proof made under {proof.key_id}, key is {vk.key_id}")


def verify(proof: Proof, public_signals: Sequence[int], vk: VerificationKey) -> bool:
    """
    Check a proof against explicit public signals.

    Args:
        proof: The proof artifact
        public_signals: Signals to check against; pass historical values
            (e.g. an older Merkle root) to verify an older proof
        vk: Verification key

    Returns:
        True iff the pairing equation holds

    Raises:
        KeyMismatch: Proof and key disagree on circuit type or key id.
        MalformedInput: Bad proof encoding or public signals.
    """
    start = time.perf_counter()
    check_proof_key(proof, vk)
    signals = _check_signals(public_signals, vk)
    a, b, c = decode_proof_points(proof.proof_bytes)

    ic_acc = add(vk.ic[0], multi_scalar_mul(vk.ic[1:], signals, zero=Z1))
    valid = pairing_check(
        [
            (neg(a), b),
            (vk.alpha_g1, vk.beta_g2),
            (ic_acc, vk.gamma_g2),
            (c, vk.delta_g2),
        ]
    )
    log_proof_verification(
        logger,
        circuit_type=vk.circuit_type,
        key_id=vk.key_id,
        valid=valid,
        duration_ms=(time.perf_counter() - start) * 1000,
    )
    return valid


def verify_proof(proof: Proof, vk: VerificationKey) -> bool:
    """Verify a proof against the public signals it carries."""
    return verify(proof, proof.public_signals, vk)


# ============================================================================
# POLICY AND DETAILED RESULTS
# ============================================================================


@dataclass(frozen=True)
class MembershipPolicy:
    """
    Freshness rules for membership proofs.

    Attributes:
        max_age_seconds: Oldest acceptable proof timestamp relative to now
        max_clock_skew: Tolerated timestamp in the future
        is_known_root: Optional predicate; roots it rejects fail the check
    """

    max_age_seconds: int = 86400
    max_clock_skew: int = 300
    is_known_root: Optional[Callable[[int], bool]] = None

    def violation(self, public_signals: Sequence[int], now: Optional[float] = None) -> Optional[str]:
        """Reason the signals break the policy, or None."""
        _, root, timestamp = public_signals
        now = time.time() if now is None else now
        if timestamp > now + self.max_clock_skew:
            return "timestamp is in the future"
        if now - timestamp > self.max_age_seconds:
            return "proof is older than the freshness window"
        if self.is_known_root is not None and not self.is_known_root(root):
            return "unknown accumulator root"
        return None


def verify_detailed(
    proof: Proof,
    vk: VerificationKey,
    *,
    public_signals: Optional[Sequence[int]] = None,
    policy: Optional[MembershipPolicy] = None,
    now: Optional[float] = None,
) -> VerificationResult:
    """
    Verify and report why a proof was rejected instead of raising.

    Key mismatches and malformed proofs become ``valid=False`` results with
    the reason in ``error``; other exceptions propagate.
    """
    signals = proof.public_signals if public_signals is None else tuple(public_signals)
    try:
        if not verify(proof, signals, vk):
            return _rejected(proof, "pairing check failed")
    except KeyMismatch as e:
        return _rejected(proof, f"key mismatch: {e}")
    except MalformedInput as e:
        return _rejected(proof, f"malformed: {e}")

    if policy is not None and proof.circuit_type == CircuitType.MEMBERSHIP.value:
        reason = policy.violation(signals, now)
        if reason is not None:
            logger.warning("membership_policy_rejected", key_id=proof.key_id, reason=reason)
            return _rejected(proof, reason)

    return VerificationResult(valid=True, circuit_type=proof.circuit_type, key_id=proof.key_id)


def _rejected(proof: Proof, reason: str) -> VerificationResult:
    return VerificationResult(
        valid=False,
        circuit_type=proof.circuit_type,
        key_id=proof.key_id,
        error=reason,
    )
