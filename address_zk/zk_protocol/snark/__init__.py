"""Groth16 over BN254: ceremony, setup, proving, verification and key storage."""

from .ceremony import CircuitCeremony, Phase1Contribution, Phase2Contribution, PowersOfTau
from .keys import (
    MULTI_PARTY,
    SINGLE_PARTY_TEST,
    KeyPair,
    KeyProvenance,
    ProvingKey,
    VerificationKey,
)
from .keystore import KeyStore, clear_key_cache, parse_key_id
from .prover import prove
from .setup import SetupManager, ceremony_power, generate_test_keys
from .verifier import MembershipPolicy, verify, verify_detailed, verify_proof

__all__ = [
    "CircuitCeremony",
    "KeyPair",
    "KeyProvenance",
    "KeyStore",
    "MULTI_PARTY",
    "MembershipPolicy",
    "Phase1Contribution",
    "Phase2Contribution",
    "PowersOfTau",
    "ProvingKey",
    "SINGLE_PARTY_TEST",
    "SetupManager",
    "VerificationKey",
    "ceremony_power",
    "clear_key_cache",
    "generate_test_keys",
    "parse_key_id",
    "prove",
    "verify",
    "verify_detailed",
    "verify_proof",
]
