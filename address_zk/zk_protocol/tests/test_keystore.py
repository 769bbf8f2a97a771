"""Tests for the on-disk key store."""

import json

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from address_zk.zk_protocol.exceptions import KeyMismatch, MalformedInput, SetupIntegrityError
from address_zk.zk_protocol.settings import Settings
from address_zk.zk_protocol.snark import (
    KeyStore,
    SetupManager,
    clear_key_cache,
    generate_test_keys,
    parse_key_id,
    prove,
    verify_proof,
)


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_key_cache()
    yield
    clear_key_cache()


@pytest.fixture
def test_keys(product_circuit):
    return generate_test_keys(product_circuit)


def test_parse_key_id() -> None:
    assert parse_key_id("membership/v3/depth-16") == ("membership", 3, "depth-16")
    for bad in ("membership/3/depth-16", "membership/v1", "teleport/v1/depth-0", "a/vx/b"):
        with pytest.raises(MalformedInput):
            parse_key_id(bad)


def test_save_and_load(tmp_path, product_circuit, product_inputs, test_keys) -> None:
    store = KeyStore(tmp_path, allow_test_keys=True)
    directory = store.save(test_keys)
    assert directory == tmp_path / "version" / "v1" / "depth-0"
    assert {p.name for p in directory.iterdir()} == {"pk.bin", "vk.bin", "manifest.json"}

    loaded = store.load_keys("version/v1/depth-0")
    assert loaded.key_id == test_keys.key_id
    assert loaded.proving_key.constraint_digest == product_circuit.digest()
    proof = prove(product_circuit, product_inputs(2, 9), loaded.proving_key)
    assert verify_proof(proof, loaded.verification_key)

    assert store.versions("version", "depth-0") == [1]
    assert store.current_key_id(product_circuit) == "version/v1/depth-0"


def test_list_keys(tmp_path, test_keys) -> None:
    store = KeyStore(tmp_path)
    assert store.list_keys() == []
    store.save(test_keys)
    (manifest,) = store.list_keys()
    assert manifest["key_id"] == "version/v1/depth-0"
    assert manifest["provenance"]["mode"] == "single-party-test"
    assert manifest["provenance"]["production_ready"] is False
    assert len(manifest["vk_sha256"]) == 64


def test_keys_are_immutable(tmp_path, product_circuit, test_keys) -> None:
    store = KeyStore(tmp_path, allow_test_keys=True)
    store.save(test_keys)
    store.save(test_keys)
    with pytest.raises(SetupIntegrityError):
        store.save(generate_test_keys(product_circuit))


def test_test_keys_refused_by_default(tmp_path, test_keys) -> None:
    KeyStore(tmp_path).save(test_keys)
    with pytest.raises(SetupIntegrityError):
        KeyStore(tmp_path).load_verification_key("version/v1/depth-0")
    settings = Settings(keys_dir=str(tmp_path), prover_workers=1, allow_test_keys=True)
    store = KeyStore.from_settings(settings)
    assert store.load_verification_key("version/v1/depth-0").key_id == "version/v1/depth-0"


def test_missing_keys(tmp_path, product_circuit) -> None:
    store = KeyStore(tmp_path, allow_test_keys=True)
    with pytest.raises(SetupIntegrityError):
        store.load_proving_key("version/v1/depth-0")
    with pytest.raises(SetupIntegrityError):
        store.current_key_id(product_circuit)


def test_tampered_artifact(tmp_path, test_keys) -> None:
    store = KeyStore(tmp_path, allow_test_keys=True)
    directory = store.save(test_keys)
    data = bytearray((directory / "vk.bin").read_bytes())
    data[-1] ^= 0xFF
    (directory / "vk.bin").write_bytes(bytes(data))
    with pytest.raises(SetupIntegrityError):
        store.load_verification_key("version/v1/depth-0")


def test_tampered_manifest(tmp_path, test_keys) -> None:
    store = KeyStore(tmp_path, allow_test_keys=True)
    directory = store.save(test_keys)
    (directory / "manifest.json").write_text("{ not json")
    with pytest.raises(SetupIntegrityError):
        store.load_proving_key("version/v1/depth-0")


def test_rotation(tmp_path, product_circuit, product_inputs) -> None:
    store = KeyStore(tmp_path, allow_test_keys=True)
    manager = SetupManager(keystore=store)
    first = manager.setup_for_testing(product_circuit)
    old_proof = prove(product_circuit, product_inputs(4, 4), first.proving_key)

    rotated = store.rotate(product_circuit, manager)
    assert rotated.key_id == "version/v2/depth-0"
    assert store.versions("version", "depth-0") == [1, 2]
    assert store.current_key_id(product_circuit) == "version/v2/depth-0"

    current_vk = store.load_verification_key(store.current_key_id(product_circuit))
    with pytest.raises(KeyMismatch):
        verify_proof(old_proof, current_vk)
    # historical key still verifies its own proofs
    assert verify_proof(old_proof, store.load_verification_key("version/v1/depth-0"))


def test_signed_manifests(tmp_path, test_keys) -> None:
    coordinator = Ed25519PrivateKey.generate()
    KeyStore(tmp_path, signing_key=coordinator).save(test_keys)

    trusted = KeyStore(
        tmp_path, allow_test_keys=True, trusted_signers=[coordinator.public_key()]
    )
    assert trusted.load_verification_key("version/v1/depth-0")

    clear_key_cache()
    stranger = KeyStore(
        tmp_path,
        allow_test_keys=True,
        trusted_signers=[Ed25519PrivateKey.generate().public_key()],
    )
    with pytest.raises(SetupIntegrityError):
        stranger.load_verification_key("version/v1/depth-0")


def test_forged_manifest_signature(tmp_path, test_keys) -> None:
    coordinator = Ed25519PrivateKey.generate()
    directory = KeyStore(tmp_path, signing_key=coordinator).save(test_keys)
    manifest_path = directory / "manifest.json"
    manifest = json.loads(manifest_path.read_text())
    manifest["provenance"]["mode"] = "multi-party"
    manifest_path.write_text(json.dumps(manifest))

    store = KeyStore(tmp_path, allow_test_keys=True, trusted_signers=[coordinator.public_key()])
    with pytest.raises(SetupIntegrityError):
        store.load_verification_key("version/v1/depth-0")


def test_cached_keys_still_checked_against_signer_policy(tmp_path, test_keys) -> None:
    KeyStore(tmp_path).save(test_keys)
    key_id = "version/v1/depth-0"
    assert KeyStore(tmp_path, allow_test_keys=True).load_verification_key(key_id)

    coordinator = Ed25519PrivateKey.generate()
    strict = KeyStore(tmp_path, allow_test_keys=True, trusted_signers=[coordinator.public_key()])
    with pytest.raises(SetupIntegrityError, match="not signed by a trusted key"):
        strict.load_verification_key(key_id)
    with pytest.raises(SetupIntegrityError, match="not signed by a trusted key"):
        strict.load_proving_key(key_id)


def test_cached_signed_keys_refused_for_other_signers(tmp_path, test_keys) -> None:
    coordinator = Ed25519PrivateKey.generate()
    KeyStore(tmp_path, signing_key=coordinator).save(test_keys)
    key_id = "version/v1/depth-0"
    trusted = KeyStore(tmp_path, allow_test_keys=True, trusted_signers=[coordinator.public_key()])
    assert trusted.load_verification_key(key_id)

    stranger = KeyStore(
        tmp_path,
        allow_test_keys=True,
        trusted_signers=[Ed25519PrivateKey.generate().public_key()],
    )
    with pytest.raises(SetupIntegrityError):
        stranger.load_verification_key(key_id)
    assert trusted.load_verification_key(key_id)
