"""Tests for single-use locker access tokens."""

import pytest

from address_zk.service.access import AccessTokenLedger
from address_zk.service.accumulator import AccumulatorService
from address_zk.zk_protocol.circuits import LockerInputs
from address_zk.zk_protocol.pid import facility_to_field, leaf_for, locker_to_field
from address_zk.zk_protocol.snark import prove

FACILITY = facility_to_field("FACILITY-OSAKA-3")
LOCKERS = [locker_to_field(f"LOCKER-{i}") for i in range(3)]


@pytest.fixture(scope="module")
def locker_setup(circuit_keys, tree_depth):
    circuit, keys = circuit_keys("locker")
    lockers = AccumulatorService.build([leaf_for(x) for x in LOCKERS], depth=tree_depth)
    return circuit, keys, lockers


def _locker_proof(locker_setup, nonce: int, facility: int = FACILITY):
    circuit, keys, lockers = locker_setup
    witness = lockers.witness(leaf_for(LOCKERS[1]))
    inputs = LockerInputs.from_witness(LOCKERS[1], witness, facility_id=facility, nonce=nonce)
    return prove(circuit, inputs, keys.proving_key)


def _ledger(locker_setup, clock=lambda: 1000.0) -> AccessTokenLedger:
    _, keys, lockers = locker_setup
    return AccessTokenLedger(FACILITY, keys.verification_key, lockers.is_known_root, clock=clock)


def test_token_redeemed_once(locker_setup) -> None:
    ledger = _ledger(locker_setup)
    proof = _locker_proof(locker_setup, nonce=101)
    token = proof.public_signals[0]

    first = ledger.redeem(proof)
    assert first.valid
    assert ledger.is_used(token)
    assert ledger.redeemed_at(token) == 1000.0

    second = ledger.redeem(proof)
    assert not second.valid
    assert second.error == "access token already used"


def test_other_facility_rejected(locker_setup) -> None:
    ledger = _ledger(locker_setup)
    proof = _locker_proof(locker_setup, nonce=102, facility=facility_to_field("FACILITY-KOBE-1"))
    result = ledger.redeem(proof)
    assert result.error == "proof is for another facility"
    assert not ledger.is_used(proof.public_signals[0])


def test_unknown_root_rejected(locker_setup) -> None:
    _, keys, _ = locker_setup
    ledger = AccessTokenLedger(FACILITY, keys.verification_key, lambda root: False)
    result = ledger.redeem(_locker_proof(locker_setup, nonce=103))
    assert result.error == "unknown locker set root"


def test_forged_signals_rejected(locker_setup) -> None:
    ledger = _ledger(locker_setup)
    proof = _locker_proof(locker_setup, nonce=104)
    forged = type(proof)(
        circuit_type=proof.circuit_type,
        key_id=proof.key_id,
        proof_bytes=proof.proof_bytes,
        public_signals=(proof.public_signals[0] + 1,) + proof.public_signals[1:],
    )
    result = ledger.redeem(forged)
    assert result.error == "pairing check failed"
    assert ledger.redeemed_at(forged.public_signals[0]) is None


def test_requires_locker_key(circuit_keys) -> None:
    _, version_keys = circuit_keys("version")
    with pytest.raises(ValueError):
        AccessTokenLedger(FACILITY, version_keys.verification_key, lambda root: True)
