"""
⚠️ DRAFT - requires crypto review before production use

Setup manager: produces Groth16 key pairs for circuits.

Two routes:

* ``setup_for_testing`` samples tau, alpha, beta, gamma and delta in this
  process and discards them. One party knew the toxic waste, so the keys
  carry ``single-party-test`` provenance and are never production ready.
* ``setup(circuit, ceremony=...)`` finalises a verified two-phase
  ``CircuitCeremony``; ``run_ceremony`` drives both phases for a list of
  local contributors.
"""

from __future__ import annotations

import time
from typing import Optional, Sequence

from ..circuits.base import Circuit
from ..exceptions import MalformedInput, SetupIntegrityError
from ..security import RandomnessSource, default_randomness
from ...logging_config import get_logger
from .ceremony import CircuitCeremony, PowersOfTau
from .curve import G1, G2, FixedBaseTable
from .keys import SINGLE_PARTY_TEST, KeyPair, KeyProvenance, ProvingKey, VerificationKey
from .polynomial import QAP, R, inverse

logger = get_logger(__name__)


def _sample_tau(qap: QAP, rng: RandomnessSource) -> int:
    # tau on the domain would make the vanishing polynomial zero
    while True:
        tau = rng.nonzero_scalar()
        if qap.domain.vanishing_at(tau) != 0:
            return tau


def generate_test_keys(
    circuit: Circuit, version: int = 1, rng: Optional[RandomnessSource] = None
) -> KeyPair:
    """
    Single-party Groth16 key generation.

    Args:
        circuit: Circuit to generate keys for
        version: Key version stamped into the key id
        rng: Randomness source for the ceremony secrets

    Returns:
        KeyPair with ``single-party-test`` provenance
    """
    rng = rng or default_randomness()
    qap = QAP(circuit.compile())
    tau = _sample_tau(qap, rng)
    alpha, beta, gamma, delta = (rng.nonzero_scalar() for _ in range(4))
    gamma_inv = inverse(gamma)
    delta_inv = inverse(delta)

    u, v, w = qap.evaluate_at(tau)
    g1 = FixedBaseTable(G1)
    g2 = FixedBaseTable(G2)

    a_query = tuple(g1.mul(x) for x in u)
    b_g1_query = tuple(g1.mul(x) for x in v)
    b_g2_query = tuple(g2.mul(x) for x in v)

    k_values = [(beta * u[i] + alpha * v[i] + w[i]) % R for i in range(qap.num_wires)]
    boundary = qap.num_public + 1
    ic = tuple(g1.mul(k * gamma_inv) for k in k_values[:boundary])
    l_query = tuple(g1.mul(k * delta_inv) for k in k_values[boundary:])

    t_tau = qap.domain.vanishing_at(tau)
    h_query = []
    power = t_tau * delta_inv % R
    for _ in range(qap.domain_size - 1):
        h_query.append(g1.mul(power))
        power = power * tau % R

    provenance = KeyProvenance(mode=SINGLE_PARTY_TEST)
    key_id = circuit.key_id(version)
    alpha_g1 = g1.mul(alpha)
    beta_g2 = g2.mul(beta)
    delta_g2 = g2.mul(delta)
    pk = ProvingKey(
        circuit_type=circuit.circuit_type.value,
        key_id=key_id,
        version=version,
        shape=circuit.shape,
        constraint_digest=qap.digest,
        num_public=qap.num_public,
        num_wires=qap.num_wires,
        domain_size=qap.domain_size,
        alpha_g1=alpha_g1,
        beta_g1=g1.mul(beta),
        beta_g2=beta_g2,
        delta_g1=g1.mul(delta),
        delta_g2=delta_g2,
        a_query=a_query,
        b_g1_query=b_g1_query,
        b_g2_query=b_g2_query,
        l_query=l_query,
        h_query=tuple(h_query),
        provenance=provenance,
    )
    vk = VerificationKey(
        circuit_type=circuit.circuit_type.value,
        key_id=key_id,
        version=version,
        shape=circuit.shape,
        constraint_digest=qap.digest,
        num_public=qap.num_public,
        alpha_g1=alpha_g1,
        beta_g2=beta_g2,
        gamma_g2=g2.mul(gamma),
        delta_g2=delta_g2,
        ic=ic,
        provenance=provenance,
    )
    return KeyPair(pk, vk)


def ceremony_power(circuit: Circuit) -> int:
    """Smallest powers-of-tau size that fits ``circuit``."""
    return QAP(circuit.compile()).domain.log_size


class SetupManager:
    """
    Produces (and optionally stores) key pairs per circuit.

    Args:
        keystore: Optional ``KeyStore``; when given, every key pair produced
            is saved under its key id
        rng: Randomness source for ceremony secrets

    Example:
        >>> manager = SetupManager()
        >>> keys = manager.setup_for_testing(build_circuit("version"))
        >>> keys.provenance.production_ready
        False
    """

    def __init__(self, keystore=None, rng: Optional[RandomnessSource] = None):
        self.keystore = keystore
        self.rng = rng

    def setup(
        self,
        circuit: Circuit,
        *,
        ceremony: Optional[CircuitCeremony] = None,
        version: int = 1,
    ) -> KeyPair:
        """
        Produce a key pair for ``circuit``.

        Without a ceremony this falls back to the single-party test setup,
        and the returned keys say so in their provenance.

        Raises:
            SetupIntegrityError: Ceremony fails verification or belongs to
                a different circuit.
        """
        if ceremony is None:
            return self.setup_for_testing(circuit, version=version)

        if ceremony.circuit.digest() != circuit.digest():
            raise SetupIntegrityError("ceremony was run for a different circuit")
        if ceremony.version != version:
            raise SetupIntegrityError(
                f"ceremony is for version {ceremony.version}, not {version}"
            )
        ceremony.phase1.verify(self.rng)
        ceremony.verify(self.rng)
        keys = ceremony.finalize()
        logger.info(
            "setup_complete",
            key_id=keys.key_id,
            mode=keys.provenance.mode,
            production_ready=keys.provenance.production_ready,
        )
        return self._store(keys)

    def setup_for_testing(self, circuit: Circuit, version: int = 1) -> KeyPair:
        start = time.perf_counter()
        keys = generate_test_keys(circuit, version=version, rng=self.rng)
        logger.warning(
            "single_party_setup",
            key_id=keys.key_id,
            mode=keys.provenance.mode,
            production_ready=False,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return self._store(keys)

    def run_ceremony(
        self,
        circuit: Circuit,
        phase1_contributors: Sequence[str],
        phase2_contributors: Sequence[str],
        *,
        version: int = 1,
        phase1: Optional[PowersOfTau] = None,
    ) -> KeyPair:
        """
        Drive both ceremony phases with local contributors.

        Args:
            circuit: Circuit to generate keys for
            phase1_contributors: Participant names for powers of tau; ignored
                when an existing ``phase1`` is supplied
            phase2_contributors: Participant names for the circuit phase
            version: Key version
            phase1: Existing, already contributed powers of tau

        Raises:
            MalformedInput: No contributors for a phase.
            SetupIntegrityError: A contribution fails verification.
        """
        if not phase2_contributors:
            raise MalformedInput("circuit phase needs at least one contributor")
        if phase1 is None:
            if not phase1_contributors:
                raise MalformedInput("powers of tau needs at least one contributor")
            phase1 = PowersOfTau.new(ceremony_power(circuit))
            for name in phase1_contributors:
                phase1.contribute(name, self.rng)
        ceremony = CircuitCeremony(circuit, phase1, version=version)
        for name in phase2_contributors:
            ceremony.contribute(name, self.rng)
        return self.setup(circuit, ceremony=ceremony, version=version)

    def _store(self, keys: KeyPair) -> KeyPair:
        if self.keystore is not None:
            self.keystore.save(keys)
        return keys
