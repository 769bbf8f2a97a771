"""Tests for Groth16 proving and verification."""

import pytest

from address_zk.zk_protocol.circuits import VersionInputs
from address_zk.zk_protocol.config import FIELD_MODULUS_Q, FIELD_MODULUS_R
from address_zk.zk_protocol.exceptions import (
    ConfigurationError,
    ConstraintViolation,
    KeyMismatch,
    MalformedInput,
)
from address_zk.zk_protocol.pid import identifier_to_field
from address_zk.zk_protocol.snark import (
    MembershipPolicy,
    generate_test_keys,
    prove,
    verify,
    verify_detailed,
    verify_proof,
)
from address_zk.zk_protocol.snark.curve import check_backend
from address_zk.zk_protocol.types import Proof


def _version_inputs(nonce: int = 11) -> VersionInputs:
    return VersionInputs(
        owner_secret=31337,
        old_identifier=identifier_to_field("JP-13-113-01"),
        new_identifier=identifier_to_field("JP-13-114-07"),
        nonce=nonce,
    )


@pytest.fixture(scope="module")
def version_proof(circuit_keys):
    circuit, keys = circuit_keys("version")
    return prove(circuit, _version_inputs(), keys.proving_key)


def test_prove_and_verify(circuit_keys, version_proof) -> None:
    circuit, keys = circuit_keys("version")
    assert version_proof.key_id == "version/v1/depth-0"
    assert list(version_proof.public_signals) == circuit.public_signals(_version_inputs())
    assert verify_proof(version_proof, keys.verification_key)


def test_proofs_are_randomised(product_circuit, product_inputs) -> None:
    keys = generate_test_keys(product_circuit)
    first = prove(product_circuit, product_inputs(3, 5), keys.proving_key)
    second = prove(product_circuit, product_inputs(3, 5), keys.proving_key)
    assert first.proof_bytes != second.proof_bytes
    assert first.public_signals == second.public_signals == (15,)
    assert verify_proof(first, keys.verification_key)
    assert verify_proof(second, keys.verification_key)


def test_tampered_public_signal_fails(circuit_keys, version_proof) -> None:
    _, keys = circuit_keys("version")
    signals = list(version_proof.public_signals)
    signals[3] = (signals[3] + 1) % FIELD_MODULUS_R
    assert not verify(version_proof, signals, keys.verification_key)

    result = verify_detailed(version_proof, keys.verification_key, public_signals=signals)
    assert not result.valid
    assert result.error == "pairing check failed"


def test_tampered_proof_bytes_fail(circuit_keys, version_proof) -> None:
    _, keys = circuit_keys("version")
    a_and_b = version_proof.proof_bytes[:192]
    swapped = Proof(
        circuit_type=version_proof.circuit_type,
        key_id=version_proof.key_id,
        proof_bytes=a_and_b + version_proof.proof_bytes[:64],
        public_signals=version_proof.public_signals,
    )
    assert not verify_proof(swapped, keys.verification_key)


def test_undecodable_points(circuit_keys, version_proof) -> None:
    _, keys = circuit_keys("version")
    garbage = Proof(
        circuit_type="version",
        key_id=version_proof.key_id,
        proof_bytes=b"\x01" * 256,
        public_signals=version_proof.public_signals,
    )
    with pytest.raises(MalformedInput):
        verify_proof(garbage, keys.verification_key)
    result = verify_detailed(garbage, keys.verification_key)
    assert not result.valid and result.error.startswith("malformed:")


def test_wrong_signal_count(circuit_keys, version_proof) -> None:
    _, keys = circuit_keys("version")
    with pytest.raises(MalformedInput):
        verify(version_proof, version_proof.public_signals[:3], keys.verification_key)


def test_key_mismatch_between_circuits(circuit_keys, version_proof) -> None:
    structure_circuit, structure_keys = circuit_keys("structure")
    version_circuit, _ = circuit_keys("version")
    with pytest.raises(KeyMismatch):
        verify_proof(version_proof, structure_keys.verification_key)
    result = verify_detailed(version_proof, structure_keys.verification_key)
    assert result.error.startswith("key mismatch:")
    with pytest.raises(KeyMismatch):
        prove(version_circuit, _version_inputs(), structure_keys.proving_key)


def test_key_mismatch_between_versions(circuit_keys, version_proof, product_circuit) -> None:
    version_circuit, _ = circuit_keys("version")
    rotated = generate_test_keys(version_circuit, version=2)
    with pytest.raises(KeyMismatch):
        verify_proof(version_proof, rotated.verification_key)
    # same type and shape, different constraints
    with pytest.raises(KeyMismatch):
        prove(product_circuit, None, rotated.proving_key)


def test_unsatisfiable_witness(circuit_keys) -> None:
    circuit, keys = circuit_keys("version")
    same = identifier_to_field("JP-13-113-01")
    inputs = VersionInputs(owner_secret=1, old_identifier=same, new_identifier=same, nonce=1)
    with pytest.raises(ConstraintViolation):
        prove(circuit, inputs, keys.proving_key)


def test_malformed_witness(circuit_keys) -> None:
    circuit, keys = circuit_keys("version")
    with pytest.raises(MalformedInput):
        prove(circuit, _version_inputs(nonce=FIELD_MODULUS_R), keys.proving_key)


def test_membership_policy_rules() -> None:
    now = 1_700_000_000
    policy = MembershipPolicy(max_age_seconds=60, max_clock_skew=5, is_known_root=lambda r: r == 7)
    assert policy.violation([0, 7, now - 10], now) is None
    assert policy.violation([0, 7, now + 60], now) == "timestamp is in the future"
    assert policy.violation([0, 7, now - 61], now) == "proof is older than the freshness window"
    assert policy.violation([0, 8, now], now) == "unknown accumulator root"


def test_curve_backend_matches_config() -> None:
    check_backend()
    with pytest.raises(ConfigurationError, match="curve order"):
        check_backend(order=FIELD_MODULUS_R + 2)
    with pytest.raises(ConfigurationError, match="field modulus"):
        check_backend(modulus=FIELD_MODULUS_Q - 2)
