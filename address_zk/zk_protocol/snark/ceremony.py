"""
⚠️ DRAFT - requires crypto review before production use

Two-phase trusted setup ceremony.

Phase 1 (``PowersOfTau``) is circuit independent: contributors take turns
multiplying fresh secrets into an accumulator of ``[tau^i]G1``,
``[tau^i]G2``, ``[alpha*tau^i]G1``, ``[beta*tau^i]G1`` and ``[beta]G2``.
Phase 2 (``CircuitCeremony``) specialises the accumulator to one circuit
and lets contributors rescale ``delta``. As long as one contributor in
each phase destroys their secret, nobody knows the toxic waste.

Every contribution publishes its update in G2 so anyone can check it with
pairings, and extends a SHA-256 transcript hash chain.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import cbor2

from ..circuits.base import Circuit
from ..config import DOMAIN_SEPARATORS, FIELD_MODULUS_R, KEY_FORMAT_VERSION
from ..exceptions import MalformedInput, SetupIntegrityError
from ..security import RandomnessSource, default_randomness
from ...logging_config import get_logger
from .curve import (
    G1,
    G2,
    Z1,
    Z2,
    add,
    decode_g1,
    decode_g2,
    encode_g1,
    encode_g2,
    is_inf,
    multi_scalar_mul,
    neg,
    points_equal,
    same_ratio,
    scalar_mul,
)
from .keys import MULTI_PARTY, KeyPair, KeyProvenance, ProvingKey, VerificationKey
from .polynomial import QAP, EvaluationDomain, bit_reverse, inverse

logger = get_logger(__name__)

R_MAX_POWER = 28


def _extend_transcript(previous: str, label: bytes, *parts: bytes) -> str:
    h = hashlib.sha256()
    h.update(DOMAIN_SEPARATORS["transcript"])
    h.update(bytes.fromhex(previous))
    h.update(label)
    for part in parts:
        h.update(len(part).to_bytes(4, "big"))
        h.update(part)
    return h.hexdigest()


def group_intt(points: Sequence, domain: EvaluationDomain) -> List:
    """Inverse FFT in the exponent: turns ``[tau^k]`` into ``[L_k(tau)]``."""
    a = list(points)
    n = len(a)
    if n != domain.size:
        raise ValueError("point count must equal the domain size")
    bit_reverse(a)
    length = 2
    while length <= n:
        step = pow(domain.omega_inv, n // length, FIELD_MODULUS_R)
        half = length // 2
        twiddles = [1] * half
        for k in range(1, half):
            twiddles[k] = twiddles[k - 1] * step % FIELD_MODULUS_R
        for start in range(0, n, length):
            for k in range(half):
                u = a[start + k]
                v = a[start + k + half]
                if twiddles[k] != 1:
                    v = scalar_mul(v, twiddles[k])
                a[start + k] = add(u, v)
                a[start + k + half] = add(u, neg(v))
        length <<= 1
    return [scalar_mul(p, domain.size_inv) for p in a]


# ============================================================================
# PHASE 1: POWERS OF TAU
# ============================================================================


@dataclass(frozen=True)
class Phase1Contribution:
    participant: str
    tau_g2: Any
    alpha_g2: Any
    beta_g2: Any
    tau_g1_after: Any
    alpha_g1_after: Any
    beta_g1_after: Any
    transcript_hash: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "participant": self.participant,
            "tau_g2": encode_g2(self.tau_g2),
            "alpha_g2": encode_g2(self.alpha_g2),
            "beta_g2": encode_g2(self.beta_g2),
            "tau_g1_after": encode_g1(self.tau_g1_after),
            "alpha_g1_after": encode_g1(self.alpha_g1_after),
            "beta_g1_after": encode_g1(self.beta_g1_after),
            "transcript_hash": self.transcript_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Phase1Contribution":
        return cls(
            participant=data["participant"],
            tau_g2=decode_g2(data["tau_g2"]),
            alpha_g2=decode_g2(data["alpha_g2"]),
            beta_g2=decode_g2(data["beta_g2"]),
            tau_g1_after=decode_g1(data["tau_g1_after"]),
            alpha_g1_after=decode_g1(data["alpha_g1_after"]),
            beta_g1_after=decode_g1(data["beta_g1_after"]),
            transcript_hash=data["transcript_hash"],
        )


class PowersOfTau:
    """
    Universal phase-1 accumulator for circuits with up to ``2**power`` rows.

    Example:
        >>> ptau = PowersOfTau.new(4)
        >>> ptau.contribute("alice")
        >>> ptau.contribute("bob")
        >>> ptau.verify()
    """

    def __init__(
        self,
        power: int,
        tau_g1: List,
        tau_g2: List,
        alpha_tau_g1: List,
        beta_tau_g1: List,
        beta_g2,
        contributions: Optional[List[Phase1Contribution]] = None,
        transcript_hash: Optional[str] = None,
    ):
        self.power = power
        self.tau_g1 = tau_g1
        self.tau_g2 = tau_g2
        self.alpha_tau_g1 = alpha_tau_g1
        self.beta_tau_g1 = beta_tau_g1
        self.beta_g2 = beta_g2
        self.contributions: List[Phase1Contribution] = list(contributions or [])
        self.transcript_hash = transcript_hash or self.initial_transcript(power)
        self._lagrange_cache: Dict[tuple, List] = {}

    @staticmethod
    def initial_transcript(power: int) -> str:
        return hashlib.sha256(
            DOMAIN_SEPARATORS["transcript"] + b"PHASE1" + power.to_bytes(1, "big")
        ).hexdigest()

    @classmethod
    def new(cls, power: int) -> "PowersOfTau":
        """Fresh accumulator with all secrets equal to one."""
        if power < 1 or power > R_MAX_POWER:
            raise MalformedInput(f"power must be in [1, {R_MAX_POWER}]")
        size = 1 << power
        return cls(
            power=power,
            tau_g1=[G1] * (2 * size - 1),
            tau_g2=[G2] * size,
            alpha_tau_g1=[G1] * size,
            beta_tau_g1=[G1] * size,
            beta_g2=G2,
        )

    @property
    def size(self) -> int:
        return 1 << self.power

    @property
    def participants(self) -> tuple:
        return tuple(c.participant for c in self.contributions)

    def contribute(
        self, participant: str, rng: Optional[RandomnessSource] = None
    ) -> Phase1Contribution:
        """Multiply fresh secrets into the accumulator; secrets are discarded."""
        if not participant:
            raise MalformedInput("participant name required")
        rng = rng or default_randomness()
        t = rng.nonzero_scalar()
        a = rng.nonzero_scalar()
        b = rng.nonzero_scalar()
        power = 1
        powers = []
        for _ in range(len(self.tau_g1)):
            powers.append(power)
            power = power * t % FIELD_MODULUS_R

        self.tau_g1 = [scalar_mul(pt, k) for pt, k in zip(self.tau_g1, powers)]
        self.tau_g2 = [scalar_mul(pt, k) for pt, k in zip(self.tau_g2, powers)]
        self.alpha_tau_g1 = [
            scalar_mul(pt, k * a) for pt, k in zip(self.alpha_tau_g1, powers)
        ]
        self.beta_tau_g1 = [
            scalar_mul(pt, k * b) for pt, k in zip(self.beta_tau_g1, powers)
        ]
        self.beta_g2 = scalar_mul(self.beta_g2, b)

        tau_g2 = scalar_mul(G2, t)
        alpha_g2 = scalar_mul(G2, a)
        beta_g2 = scalar_mul(G2, b)
        transcript = _extend_transcript(
            self.transcript_hash,
            participant.encode("utf-8"),
            encode_g2(tau_g2),
            encode_g2(alpha_g2),
            encode_g2(beta_g2),
            encode_g1(self.tau_g1[1]),
            encode_g1(self.alpha_tau_g1[0]),
            encode_g1(self.beta_tau_g1[0]),
        )
        contribution = Phase1Contribution(
            participant=participant,
            tau_g2=tau_g2,
            alpha_g2=alpha_g2,
            beta_g2=beta_g2,
            tau_g1_after=self.tau_g1[1],
            alpha_g1_after=self.alpha_tau_g1[0],
            beta_g1_after=self.beta_tau_g1[0],
            transcript_hash=transcript,
        )
        self.contributions.append(contribution)
        self.transcript_hash = transcript
        self._lagrange_cache.clear()
        logger.info(
            "phase1_contribution",
            participant=participant,
            index=len(self.contributions),
            transcript_hash=transcript,
        )
        return contribution

    def verify(self, rng: Optional[RandomnessSource] = None) -> None:
        """
        Check every contribution and the structure of the accumulator.

        Raises:
            SetupIntegrityError: On any failed check.
        """
        if not self.contributions:
            raise SetupIntegrityError("powers of tau has no contributions")
        size = self.size
        if (
            len(self.tau_g1) != 2 * size - 1
            or len(self.tau_g2) != size
            or len(self.alpha_tau_g1) != size
            or len(self.beta_tau_g1) != size
        ):
            raise SetupIntegrityError("accumulator has wrong length")

        prev_tau, prev_alpha, prev_beta = G1, G1, G1
        transcript = self.initial_transcript(self.power)
        for index, c in enumerate(self.contributions):
            if is_inf(c.tau_g2) or is_inf(c.alpha_g2) or is_inf(c.beta_g2):
                raise SetupIntegrityError(f"contribution {index} uses a zero secret")
            if not same_ratio(c.tau_g1_after, G2, prev_tau, c.tau_g2):
                raise SetupIntegrityError(f"contribution {index}: tau update invalid")
            if not same_ratio(c.alpha_g1_after, G2, prev_alpha, c.alpha_g2):
                raise SetupIntegrityError(f"contribution {index}: alpha update invalid")
            if not same_ratio(c.beta_g1_after, G2, prev_beta, c.beta_g2):
                raise SetupIntegrityError(f"contribution {index}: beta update invalid")
            transcript = _extend_transcript(
                transcript,
                c.participant.encode("utf-8"),
                encode_g2(c.tau_g2),
                encode_g2(c.alpha_g2),
                encode_g2(c.beta_g2),
                encode_g1(c.tau_g1_after),
                encode_g1(c.alpha_g1_after),
                encode_g1(c.beta_g1_after),
            )
            if transcript != c.transcript_hash:
                raise SetupIntegrityError(f"contribution {index}: transcript mismatch")
            prev_tau, prev_alpha, prev_beta = (
                c.tau_g1_after,
                c.alpha_g1_after,
                c.beta_g1_after,
            )

        if transcript != self.transcript_hash:
            raise SetupIntegrityError("final transcript hash mismatch")
        if not points_equal(self.tau_g1[0], G1) or not points_equal(self.tau_g2[0], G2):
            raise SetupIntegrityError("first power must be the generator")
        if not (
            points_equal(self.tau_g1[1], prev_tau)
            and points_equal(self.alpha_tau_g1[0], prev_alpha)
            and points_equal(self.beta_tau_g1[0], prev_beta)
        ):
            raise SetupIntegrityError("accumulator does not match last contribution")

        rng = rng or default_randomness()
        tau_g2_1 = self.tau_g2[1]

        def powers_ok(points: Sequence) -> bool:
            rhos = [rng.nonzero_scalar() for _ in range(len(points) - 1)]
            lower = multi_scalar_mul(points[:-1], rhos)
            upper = multi_scalar_mul(points[1:], rhos)
            return same_ratio(upper, G2, lower, tau_g2_1)

        if not powers_ok(self.tau_g1):
            raise SetupIntegrityError("tau powers in G1 are inconsistent")
        if not powers_ok(self.alpha_tau_g1):
            raise SetupIntegrityError("alpha powers are inconsistent")
        if not powers_ok(self.beta_tau_g1):
            raise SetupIntegrityError("beta powers are inconsistent")

        rhos = [rng.nonzero_scalar() for _ in range(size - 1)]
        lower_g2 = multi_scalar_mul(self.tau_g2[:-1], rhos)
        upper_g2 = multi_scalar_mul(self.tau_g2[1:], rhos)
        if not same_ratio(G1, upper_g2, self.tau_g1[1], lower_g2):
            raise SetupIntegrityError("tau powers in G2 are inconsistent")

        if not same_ratio(self.beta_tau_g1[0], G2, G1, self.beta_g2):
            raise SetupIntegrityError("beta in G2 does not match beta in G1")

        logger.info(
            "phase1_verified",
            power=self.power,
            contributions=len(self.contributions),
            transcript_hash=self.transcript_hash,
        )

    def lagrange(self, which: str, size: int) -> List:
        """
        Lagrange-basis points for a domain of ``size`` rows.

        Args:
            which: ``tau_g1``, ``tau_g2``, ``alpha`` or ``beta``
            size: Domain size (power of two, at most ``self.size``)
        """
        if size > self.size:
            raise SetupIntegrityError(
                f"circuit needs {size} rows, powers of tau supports {self.size}"
            )
        key = (which, size)
        if key not in self._lagrange_cache:
            source = {
                "tau_g1": self.tau_g1,
                "tau_g2": self.tau_g2,
                "alpha": self.alpha_tau_g1,
                "beta": self.beta_tau_g1,
            }[which]
            self._lagrange_cache[key] = group_intt(source[:size], EvaluationDomain(size))
        return self._lagrange_cache[key]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_bytes(self) -> bytes:
        payload = {
            "v": KEY_FORMAT_VERSION,
            "kind": "ptau",
            "power": self.power,
            "tau_g1": [encode_g1(p) for p in self.tau_g1],
            "tau_g2": [encode_g2(p) for p in self.tau_g2],
            "alpha_tau_g1": [encode_g1(p) for p in self.alpha_tau_g1],
            "beta_tau_g1": [encode_g1(p) for p in self.beta_tau_g1],
            "beta_g2": encode_g2(self.beta_g2),
            "contributions": [c.to_dict() for c in self.contributions],
            "transcript_hash": self.transcript_hash,
        }
        return cbor2.dumps(payload, canonical=True)

    @classmethod
    def from_bytes(cls, data: bytes) -> "PowersOfTau":
        try:
            payload = cbor2.loads(data)
        except Exception as e:
            raise SetupIntegrityError(f"powers of tau file is not valid CBOR: {e}") from e
        if not isinstance(payload, dict) or payload.get("kind") != "ptau":
            raise SetupIntegrityError("not a powers of tau file")
        if payload.get("v") != KEY_FORMAT_VERSION:
            raise SetupIntegrityError("unsupported powers of tau format version")
        try:
            return cls(
                power=int(payload["power"]),
                tau_g1=[decode_g1(p) for p in payload["tau_g1"]],
                tau_g2=[decode_g2(p) for p in payload["tau_g2"]],
                alpha_tau_g1=[decode_g1(p) for p in payload["alpha_tau_g1"]],
                beta_tau_g1=[decode_g1(p) for p in payload["beta_tau_g1"]],
                beta_g2=decode_g2(payload["beta_g2"]),
                contributions=[
                    Phase1Contribution.from_dict(c) for c in payload["contributions"]
                ],
                transcript_hash=payload["transcript_hash"],
            )
        except (KeyError, TypeError, MalformedInput) as e:
            raise SetupIntegrityError(f"corrupt powers of tau file: {e}") from e


# ============================================================================
# PHASE 2: CIRCUIT-SPECIFIC
# ============================================================================


@dataclass(frozen=True)
class Phase2Contribution:
    participant: str
    delta_g2: Any
    delta_g1_after: Any
    transcript_hash: str


class CircuitCeremony:
    """
    Phase-2 ceremony for one circuit on top of a verified phase 1.

    Starts from ``gamma = delta = 1``; each contribution rescales delta
    and the L and H queries by a fresh secret.
    """

    def __init__(self, circuit: Circuit, phase1: PowersOfTau, version: int = 1):
        self.circuit = circuit
        self.phase1 = phase1
        self.version = version
        self._qap = QAP(circuit.compile())
        if self._qap.domain_size > phase1.size:
            raise SetupIntegrityError(
                f"circuit needs {self._qap.domain_size} rows, "
                f"powers of tau supports {phase1.size}"
            )
        self._derive_initial()
        self.delta_g1 = G1
        self.delta_g2 = G2
        self.l_query = list(self._initial_l)
        self.h_query = list(self._initial_h)
        self.contributions: List[Phase2Contribution] = []
        self._initial_transcript = _extend_transcript(
            phase1.transcript_hash,
            b"PHASE2",
            self._qap.digest.encode("ascii"),
            circuit.key_id(version).encode("utf-8"),
        )
        self.transcript_hash = self._initial_transcript

    def _derive_initial(self) -> None:
        qap = self._qap
        n = qap.domain_size
        lag_g1 = self.phase1.lagrange("tau_g1", n)
        lag_g2 = self.phase1.lagrange("tau_g2", n)
        lag_alpha = self.phase1.lagrange("alpha", n)
        lag_beta = self.phase1.lagrange("beta", n)

        wires = qap.num_wires
        a_terms: List[list] = [[] for _ in range(wires)]
        b_terms: List[list] = [[] for _ in range(wires)]
        k_points: List[list] = [[] for _ in range(wires)]
        k_scalars: List[list] = [[] for _ in range(wires)]
        for row, (a, b, c) in enumerate(qap.rows):
            for wire, coeff in a.terms.items():
                a_terms[wire].append((row, coeff))
                k_points[wire].append(lag_beta[row])
                k_scalars[wire].append(coeff)
            for wire, coeff in b.terms.items():
                b_terms[wire].append((row, coeff))
                k_points[wire].append(lag_alpha[row])
                k_scalars[wire].append(coeff)
            for wire, coeff in c.terms.items():
                k_points[wire].append(lag_g1[row])
                k_scalars[wire].append(coeff)

        def combine(basis, terms, zero):
            return multi_scalar_mul(
                [basis[row] for row, _ in terms], [coeff for _, coeff in terms], zero
            )

        self._a_query = [combine(lag_g1, a_terms[i], Z1) for i in range(wires)]
        self._b_g1_query = [combine(lag_g1, b_terms[i], Z1) for i in range(wires)]
        self._b_g2_query = [
            combine(lag_g2, b_terms[i], Z2) for i in range(wires)
        ]
        k_query = [multi_scalar_mul(k_points[i], k_scalars[i], Z1) for i in range(wires)]
        self._ic = k_query[: qap.num_public + 1]
        self._initial_l = k_query[qap.num_public + 1 :]
        tau = self.phase1.tau_g1
        self._initial_h = [add(tau[k + n], neg(tau[k])) for k in range(n - 1)]

    @property
    def participants(self) -> tuple:
        return tuple(c.participant for c in self.contributions)

    def contribute(
        self, participant: str, rng: Optional[RandomnessSource] = None
    ) -> Phase2Contribution:
        if not participant:
            raise MalformedInput("participant name required")
        rng = rng or default_randomness()
        d = rng.nonzero_scalar()
        d_inv = inverse(d)
        self.delta_g1 = scalar_mul(self.delta_g1, d)
        self.delta_g2 = scalar_mul(self.delta_g2, d)
        self.l_query = [scalar_mul(p, d_inv) for p in self.l_query]
        self.h_query = [scalar_mul(p, d_inv) for p in self.h_query]

        delta_update = scalar_mul(G2, d)
        transcript = _extend_transcript(
            self.transcript_hash,
            participant.encode("utf-8"),
            encode_g2(delta_update),
            encode_g1(self.delta_g1),
        )
        contribution = Phase2Contribution(
            participant=participant,
            delta_g2=delta_update,
            delta_g1_after=self.delta_g1,
            transcript_hash=transcript,
        )
        self.contributions.append(contribution)
        self.transcript_hash = transcript
        logger.info(
            "phase2_contribution",
            circuit=self.circuit.key_id(self.version),
            participant=participant,
            index=len(self.contributions),
        )
        return contribution

    def verify(self, rng: Optional[RandomnessSource] = None) -> None:
        """
        Check the delta update chain and the rescaling of L and H.

        Raises:
            SetupIntegrityError: On any failed check.
        """
        if not self.contributions:
            raise SetupIntegrityError("circuit ceremony has no contributions")
        prev = G1
        transcript = self._initial_transcript
        for index, c in enumerate(self.contributions):
            if is_inf(c.delta_g2):
                raise SetupIntegrityError(f"contribution {index} uses a zero secret")
            if not same_ratio(c.delta_g1_after, G2, prev, c.delta_g2):
                raise SetupIntegrityError(f"contribution {index}: delta update invalid")
            transcript = _extend_transcript(
                transcript,
                c.participant.encode("utf-8"),
                encode_g2(c.delta_g2),
                encode_g1(c.delta_g1_after),
            )
            if transcript != c.transcript_hash:
                raise SetupIntegrityError(f"contribution {index}: transcript mismatch")
            prev = c.delta_g1_after

        if transcript != self.transcript_hash:
            raise SetupIntegrityError("final transcript hash mismatch")
        if not points_equal(self.delta_g1, prev):
            raise SetupIntegrityError("delta does not match last contribution")
        if not same_ratio(self.delta_g1, G2, G1, self.delta_g2):
            raise SetupIntegrityError("delta in G1 and G2 disagree")

        rng = rng or default_randomness()
        for name, current, initial in (
            ("L", self.l_query, self._initial_l),
            ("H", self.h_query, self._initial_h),
        ):
            if len(current) != len(initial):
                raise SetupIntegrityError(f"{name} query has wrong length")
            if not current:
                continue
            rhos = [rng.nonzero_scalar() for _ in current]
            lhs = multi_scalar_mul(current, rhos, Z1)
            rhs = multi_scalar_mul(initial, rhos, Z1)
            if not same_ratio(lhs, self.delta_g2, rhs, G2):
                raise SetupIntegrityError(f"{name} query not rescaled by delta")

        logger.info(
            "phase2_verified",
            circuit=self.circuit.key_id(self.version),
            contributions=len(self.contributions),
        )

    def finalize(self) -> KeyPair:
        """Key pair for the current ceremony state (call after ``verify``)."""
        circuit = self.circuit
        qap = self._qap
        provenance = KeyProvenance(
            mode=MULTI_PARTY,
            phase1_participants=self.phase1.participants,
            phase2_participants=self.participants,
            transcript_hash=self.transcript_hash,
        )
        key_id = circuit.key_id(self.version)
        alpha_g1 = self.phase1.alpha_tau_g1[0]
        beta_g1 = self.phase1.beta_tau_g1[0]
        beta_g2 = self.phase1.beta_g2
        pk = ProvingKey(
            circuit_type=circuit.circuit_type.value,
            key_id=key_id,
            version=self.version,
            shape=circuit.shape,
            constraint_digest=qap.digest,
            num_public=qap.num_public,
            num_wires=qap.num_wires,
            domain_size=qap.domain_size,
            alpha_g1=alpha_g1,
            beta_g1=beta_g1,
            beta_g2=beta_g2,
            delta_g1=self.delta_g1,
            delta_g2=self.delta_g2,
            a_query=tuple(self._a_query),
            b_g1_query=tuple(self._b_g1_query),
            b_g2_query=tuple(self._b_g2_query),
            l_query=tuple(self.l_query),
            h_query=tuple(self.h_query),
            provenance=provenance,
        )
        vk = VerificationKey(
            circuit_type=circuit.circuit_type.value,
            key_id=key_id,
            version=self.version,
            shape=circuit.shape,
            constraint_digest=qap.digest,
            num_public=qap.num_public,
            alpha_g1=alpha_g1,
            beta_g2=beta_g2,
            gamma_g2=G2,
            delta_g2=self.delta_g2,
            ic=tuple(self._ic),
            provenance=provenance,
        )
        return KeyPair(pk, vk)
