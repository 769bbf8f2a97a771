"""
⚠️ DRAFT - requires crypto review before production use

Groth16 prover.

A proof is built in one pass from the witness; there is no partial result.
Blinding factors r and s are drawn fresh for every call, so two proofs of
the same statement are unlinkable.
"""

from __future__ import annotations

import time
from typing import Any, Optional

from ..circuits.base import Circuit
from ..exceptions import KeyMismatch
from ..security import RandomnessSource, default_randomness
from ..types import Proof
from ...logging_config import get_logger, log_proof_generated
from .curve import Z1, add, encode_g1, encode_g2, multi_scalar_mul, neg, scalar_mul
from .keys import ProvingKey
from .polynomial import QAP, R

logger = get_logger(__name__)


def check_key_matches(circuit: Circuit, proving_key: ProvingKey) -> None:
    """
    Raises:
        KeyMismatch: The key was generated for another circuit type, shape
            or constraint system.
    """
    if proving_key.circuit_type != circuit.circuit_type.value:
        raise KeyMismatch(
            f"proving key is for {proving_key.circuit_type}, "
            f"circuit is {circuit.circuit_type.value}"
        )
    if proving_key.shape != circuit.shape:
        raise KeyMismatch(
            f"proving key shape {proving_key.shape} does not match {circuit.shape}"
        )
    if proving_key.constraint_digest != circuit.digest():
        raise KeyMismatch("proving key was generated for different constraints")


def prove(
    circuit: Circuit,
    inputs: Any,
    proving_key: ProvingKey,
    *,
    rng: Optional[RandomnessSource] = None,
) -> Proof:
    """
    Generate a Groth16 proof.

    Args:
        circuit: Circuit instance (type and shape must match the key)
        inputs: The circuit's inputs dataclass
        proving_key: Proving key for this circuit
        rng: Randomness source for the blinding factors

    Returns:
        Proof stamped with the key id and carrying the public signals

    Raises:
        KeyMismatch: Key does not belong to the circuit.
        MalformedInput: Inputs have the wrong shape or range.
        ConstraintViolation: Inputs do not satisfy the circuit.
    """
    start = time.perf_counter()
    check_key_matches(circuit, proving_key)
    cs = circuit.generate_witness(inputs)
    values = cs.values

    qap = QAP(circuit.compile())
    h = qap.compute_h(values)

    rng = rng or default_randomness()
    r = rng.blinding_scalar()
    s = rng.blinding_scalar()

    pk = proving_key
    boundary = pk.num_public + 1

    a = add(pk.alpha_g1, multi_scalar_mul(pk.a_query, values))
    a = add(a, scalar_mul(pk.delta_g1, r))

    b2 = add(pk.beta_g2, multi_scalar_mul(pk.b_g2_query, values))
    b2 = add(b2, scalar_mul(pk.delta_g2, s))

    b1 = add(pk.beta_g1, multi_scalar_mul(pk.b_g1_query, values))
    b1 = add(b1, scalar_mul(pk.delta_g1, s))

    c = multi_scalar_mul(pk.l_query, values[boundary:], zero=Z1)
    c = add(c, multi_scalar_mul(pk.h_query, h, zero=Z1))
    c = add(c, scalar_mul(a, s))
    c = add(c, scalar_mul(b1, r))
    c = add(c, neg(scalar_mul(pk.delta_g1, r * s % R)))

    proof = Proof(
        circuit_type=pk.circuit_type,
        key_id=pk.key_id,
        proof_bytes=encode_g1(a) + encode_g2(b2) + encode_g1(c),
        public_signals=tuple(cs.public_values()),
    )
    log_proof_generated(
        logger,
        circuit_type=pk.circuit_type,
        key_id=pk.key_id,
        duration_ms=(time.perf_counter() - start) * 1000,
        constraints=len(qap.rows),
    )
    return proof