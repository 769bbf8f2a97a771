"""
Single-use locker access tokens.

A holder proves, with the locker circuit, that they may open some locker in
a facility. The proof's access commitment is the token: the terminal
accepts each token once.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Optional

from ..logging_config import get_logger
from ..zk_protocol.circuits.base import CircuitType
from ..zk_protocol.snark.keys import VerificationKey
from ..zk_protocol.snark.verifier import verify_detailed
from ..zk_protocol.types import Proof, VerificationResult

logger = get_logger(__name__)


class AccessTokenLedger:
    """
    Redeems locker proofs for one facility, each token at most once.

    Args:
        facility_id: Facility field element the proofs must name
        verification_key: Locker circuit verification key
        is_known_root: Predicate accepting current locker-set roots
        clock: Time source for redemption timestamps
    """

    def __init__(
        self,
        facility_id: int,
        verification_key: VerificationKey,
        is_known_root: Callable[[int], bool],
        clock: Callable[[], float] = time.time,
    ):
        if verification_key.circuit_type != CircuitType.LOCKER.value:
            raise ValueError("access tokens need a locker verification key")
        self.facility_id = facility_id
        self.verification_key = verification_key
        self.is_known_root = is_known_root
        self._clock = clock
        self._used: Dict[int, float] = {}
        self._lock = threading.Lock()

    def is_used(self, token: int) -> bool:
        with self._lock:
            return token in self._used

    def redeemed_at(self, token: int) -> Optional[float]:
        with self._lock:
            return self._used.get(token)

    def redeem(self, proof: Proof) -> VerificationResult:
        """
        Verify a locker proof and consume its token.

        Returns:
            VerificationResult; ``error`` names the reason on rejection
        """
        result = verify_detailed(proof, self.verification_key)
        if not result.valid:
            return result

        token, facility_id, root = proof.public_signals
        reason = None
        if facility_id != self.facility_id:
            reason = "proof is for another facility"
        elif not self.is_known_root(root):
            reason = "unknown locker set root"
        else:
            with self._lock:
                if token in self._used:
                    reason = "access token already used"
                else:
                    self._used[token] = self._clock()

        if reason is not None:
            logger.warning("access_denied", key_id=proof.key_id, reason=reason)
            return VerificationResult(
                valid=False,
                circuit_type=proof.circuit_type,
                key_id=proof.key_id,
                error=reason,
            )
        logger.info("access_granted", key_id=proof.key_id, token=hex(token))
        return result
