"""
⚠️ DRAFT - requires crypto review before production use

Randomness and off-circuit hashing.

Blinding factors for proofs and ceremony toxic waste are drawn from the OS
CSPRNG. SHA-256 is only used outside circuits: mapping strings into the
scalar field and fingerprinting key artifacts.
"""

import hashlib
import hmac
import os
import secrets
from typing import Optional

from .config import FIELD_BITS, FIELD_MODULUS_R

if FIELD_MODULUS_R.bit_length() != FIELD_BITS or FIELD_MODULUS_R < 2**128:
    raise ValueError(f"unexpected scalar field modulus: {FIELD_MODULUS_R}")


# ============================================================================
# RANDOMNESS
# ============================================================================


class RandomnessSource:
    """
    Scalars for proof blinding and setup secrets.

    Proving pool workers may be forked; the source re-creates its generator
    when it finds itself in a new process so children never share state
    with their parent.
    """

    def __init__(self):
        self._reset()

    def _reset(self) -> None:
        self._pid = os.getpid()
        self._rng = secrets.SystemRandom()

    def _generator(self) -> secrets.SystemRandom:
        if os.getpid() != self._pid:
            self._reset()
        return self._rng

    def blinding_scalar(self) -> int:
        """Uniform element of Fr, used for the r and s of each proof."""
        return self._generator().randrange(FIELD_MODULUS_R)

    def nonzero_scalar(self) -> int:
        """Uniform invertible element of Fr (tau, alpha, beta, gamma, delta)."""
        return self._generator().randrange(1, FIELD_MODULUS_R)


_default_rng: Optional[RandomnessSource] = None


def default_randomness() -> RandomnessSource:
    """Shared process-wide source."""
    global _default_rng
    if _default_rng is None:
        _default_rng = RandomnessSource()
    return _default_rng


# ============================================================================
# HASHING
# ============================================================================


def hash_to_field(data: bytes, domain_sep: bytes) -> int:
    """
    Map bytes into Fr under a domain separator.

    Two chained SHA-256 digests give 512 bits, reduced mod r, so the bias
    is negligible.

    Args:
        data: Non-empty input bytes
        domain_sep: Non-empty separator, length-prefixed before hashing

    Returns:
        Field element in [0, FIELD_MODULUS_R)

    Raises:
        TypeError: If either argument is not bytes
        ValueError: If either argument is empty
    """
    if not isinstance(data, bytes) or not isinstance(domain_sep, bytes):
        raise TypeError("hash_to_field takes bytes")
    if not data or not domain_sep:
        raise ValueError("hash_to_field needs non-empty data and separator")

    first = hashlib.sha256(len(domain_sep).to_bytes(4, "big") + domain_sep + data).digest()
    second = hashlib.sha256(first + b"\x01").digest()
    return int.from_bytes(first + second, "big") % FIELD_MODULUS_R


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def constant_time_compare(a: bytes, b: bytes) -> bool:
    return hmac.compare_digest(a, b)
