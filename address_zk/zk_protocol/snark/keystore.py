"""
On-disk key store with integrity checks and a process-wide cache.

Layout::

    <base>/<circuit_type>/v<version>/<shape>/pk.bin
    <base>/<circuit_type>/v<version>/<shape>/vk.bin
    <base>/<circuit_type>/v<version>/<shape>/manifest.json

The manifest records SHA-256 fingerprints of both artifacts, the
constraint digest and provenance, and optionally an Ed25519 signature by
the ceremony coordinator. Anything missing, corrupt or mismatched raises
``SetupIntegrityError``, which blocks that circuit entirely.
"""

from __future__ import annotations

import base64
import json
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives import serialization

from ..circuits.base import Circuit, CircuitType
from ..exceptions import MalformedInput, SetupIntegrityError
from ..security import constant_time_compare, sha256_hex
from ...logging_config import get_logger
from .keys import KeyPair, KeyProvenance, ProvingKey, VerificationKey

logger = get_logger(__name__)

PK_FILE = "pk.bin"
VK_FILE = "vk.bin"
MANIFEST_FILE = "manifest.json"
MANIFEST_VERSION = 1

# (key dir, kind) -> (manifest, key); policy checks still run per store on each load
_CACHE: Dict[Tuple[str, str], Tuple[dict, Union[ProvingKey, VerificationKey]]] = {}
_CACHE_LOCK = threading.Lock()


def clear_key_cache() -> None:
    with _CACHE_LOCK:
        _CACHE.clear()


def parse_key_id(key_id: str) -> Tuple[str, int, str]:
    """Split ``<type>/v<version>/<shape>``."""
    parts = key_id.split("/")
    if len(parts) != 3 or not parts[1].startswith("v") or not parts[1][1:].isdigit():
        raise MalformedInput(f"invalid key id: {key_id!r}")
    circuit_type = CircuitType.parse(parts[0]).value
    return circuit_type, int(parts[1][1:]), parts[2]


def _manifest_payload(manifest: dict) -> bytes:
    unsigned = {k: v for k, v in manifest.items() if k not in ("signature", "signer")}
    return json.dumps(unsigned, sort_keys=True, separators=(",", ":")).encode("utf-8")


def public_key_hex(key: Ed25519PublicKey) -> str:
    return key.public_bytes(
        encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw
    ).hex()


class KeyStore:
    """
    Versioned key artifacts for all circuits.

    Args:
        base_dir: Root directory of the store
        allow_test_keys: Whether keys with single-party test provenance may
            be loaded
        signing_key: Ed25519 key used to sign manifests on save
        trusted_signers: When non-empty, manifests must carry a valid
            signature by one of these keys

    Example:
        >>> store = KeyStore("/var/lib/address_zk/keys", allow_test_keys=True)
        >>> store.save(keys)
        >>> vk = store.load_verification_key("membership/v1/depth-16")
    """

    def __init__(
        self,
        base_dir: Union[str, Path],
        *,
        allow_test_keys: bool = False,
        signing_key: Optional[Ed25519PrivateKey] = None,
        trusted_signers: Sequence[Ed25519PublicKey] = (),
    ):
        self.base_dir = Path(base_dir)
        self.allow_test_keys = allow_test_keys
        self.signing_key = signing_key
        self.trusted_signers = {public_key_hex(k): k for k in trusted_signers}

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "KeyStore":
        return cls(settings.keys_path, allow_test_keys=settings.allow_test_keys, **kwargs)

    # ------------------------------------------------------------------
    # Paths and versions
    # ------------------------------------------------------------------

    def key_dir(self, key_id: str) -> Path:
        circuit_type, version, shape = parse_key_id(key_id)
        return self.base_dir / circuit_type / f"v{version}" / shape

    def versions(self, circuit_type: Union[CircuitType, str], shape: str) -> List[int]:
        type_dir = self.base_dir / CircuitType.parse(circuit_type).value
        if not type_dir.is_dir():
            return []
        found = []
        for entry in type_dir.iterdir():
            name = entry.name
            if name.startswith("v") and name[1:].isdigit():
                if (entry / shape / MANIFEST_FILE).exists():
                    found.append(int(name[1:]))
        return sorted(found)

    def latest_version(self, circuit_type: Union[CircuitType, str], shape: str) -> Optional[int]:
        versions = self.versions(circuit_type, shape)
        return versions[-1] if versions else None

    def current_key_id(self, circuit: Circuit) -> str:
        version = self.latest_version(circuit.circuit_type, circuit.shape)
        if version is None:
            raise SetupIntegrityError(f"no keys stored for {circuit!r}")
        return circuit.key_id(version)

    def list_keys(self) -> List[dict]:
        """Manifests of every stored key, sorted by key id."""
        manifests = []
        if not self.base_dir.is_dir():
            return manifests
        for path in sorted(self.base_dir.glob(f"*/v*/*/{MANIFEST_FILE}")):
            try:
                manifests.append(json.loads(path.read_text()))
            except (OSError, ValueError) as e:
                logger.warning("manifest_unreadable", path=str(path), error=str(e))
        return sorted(manifests, key=lambda m: m.get("key_id", ""))

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def save(self, keys: KeyPair) -> Path:
        """
        Write a key pair and its manifest.

        Keys are immutable: saving a different pair under an existing key id
        raises ``SetupIntegrityError``; re-saving the same pair is a no-op.
        """
        vk = keys.verification_key
        pk = keys.proving_key
        if pk.key_id != vk.key_id or pk.constraint_digest != vk.constraint_digest:
            raise SetupIntegrityError("proving and verification key do not belong together")

        directory = self.key_dir(vk.key_id)
        pk_bytes = pk.to_bytes()
        vk_bytes = vk.to_bytes()
        manifest = {
            "manifest_version": MANIFEST_VERSION,
            "key_id": vk.key_id,
            "circuit_type": vk.circuit_type,
            "version": vk.version,
            "shape": vk.shape,
            "constraint_digest": vk.constraint_digest,
            "num_public": vk.num_public,
            "pk_sha256": sha256_hex(pk_bytes),
            "vk_sha256": sha256_hex(vk_bytes),
            "provenance": vk.provenance.to_dict(),
        }

        manifest_path = directory / MANIFEST_FILE
        if manifest_path.exists():
            existing = self._read_manifest(directory)
            if existing.get("vk_sha256") == manifest["vk_sha256"] and existing.get(
                "pk_sha256"
            ) == manifest["pk_sha256"]:
                return directory
            raise SetupIntegrityError(
                f"keys for {vk.key_id} already exist; rotate to a new version instead"
            )

        if self.signing_key is not None:
            signature = self.signing_key.sign(_manifest_payload(manifest))
            manifest["signature"] = base64.b64encode(signature).decode("ascii")
            manifest["signer"] = public_key_hex(self.signing_key.public_key())

        directory.mkdir(parents=True, exist_ok=True)
        (directory / PK_FILE).write_bytes(pk_bytes)
        (directory / VK_FILE).write_bytes(vk_bytes)
        manifest_path.write_text(json.dumps(manifest, indent=2, sort_keys=True))
        logger.info(
            "keys_saved",
            key_id=vk.key_id,
            mode=vk.provenance.mode,
            vk_sha256=manifest["vk_sha256"],
            signed="signature" in manifest,
        )
        return directory

    def rotate(self, circuit: Circuit, manager) -> KeyPair:
        """
        Generate and store keys under the next version for ``circuit``.

        Proofs made under older versions no longer match the current key id
        and are rejected with ``KeyMismatch``.

        Args:
            circuit: Circuit to rotate keys for
            manager: ``SetupManager`` producing the new key pair
        """
        latest = self.latest_version(circuit.circuit_type, circuit.shape) or 0
        keys = manager.setup(circuit, version=latest + 1)
        self.save(keys)
        logger.info("keys_rotated", previous=latest or None, key_id=keys.key_id)
        return keys

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_verification_key(self, key_id: str) -> VerificationKey:
        return self._load(key_id, "vk")

    def load_proving_key(self, key_id: str) -> ProvingKey:
        return self._load(key_id, "pk")

    def load_keys(self, key_id: str) -> KeyPair:
        return KeyPair(self.load_proving_key(key_id), self.load_verification_key(key_id))

    def _load(self, key_id: str, kind: str):
        directory = self.key_dir(key_id)
        cache_key = (str(directory.resolve()), kind)
        with _CACHE_LOCK:
            cached = _CACHE.get(cache_key)
        if cached is None:
            cached = self._read_key(directory, key_id, kind)
            with _CACHE_LOCK:
                cached = _CACHE.setdefault(cache_key, cached)
        manifest, key = cached
        self._check_signature(manifest, key_id)
        self._check_provenance(key.provenance, key_id)
        return key

    def _read_manifest(self, directory: Path) -> dict:
        path = directory / MANIFEST_FILE
        try:
            manifest = json.loads(path.read_text())
        except FileNotFoundError:
            raise SetupIntegrityError(f"missing key manifest: {path}") from None
        except (OSError, ValueError) as e:
            raise SetupIntegrityError(f"unreadable key manifest {path}: {e}") from e
        if not isinstance(manifest, dict) or manifest.get("manifest_version") != MANIFEST_VERSION:
            raise SetupIntegrityError(f"unsupported key manifest: {path}")
        return manifest

    def _check_signature(self, manifest: dict, key_id: str) -> None:
        if not self.trusted_signers:
            return
        signer = manifest.get("signer")
        signature = manifest.get("signature")
        if signer not in self.trusted_signers or not signature:
            raise SetupIntegrityError(f"manifest for {key_id} is not signed by a trusted key")
        try:
            self.trusted_signers[signer].verify(
                base64.b64decode(signature), _manifest_payload(manifest)
            )
        except (InvalidSignature, ValueError) as e:
            raise SetupIntegrityError(f"manifest signature for {key_id} is invalid") from e

    def _read_key(self, directory: Path, key_id: str, kind: str):
        manifest = self._read_manifest(directory)
        if manifest.get("key_id") != key_id:
            raise SetupIntegrityError(f"manifest in {directory} is for {manifest.get('key_id')}")
        path = directory / (PK_FILE if kind == "pk" else VK_FILE)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise SetupIntegrityError(f"missing key artifact: {path}") from None
        except OSError as e:
            raise SetupIntegrityError(f"unreadable key artifact {path}: {e}") from e

        expected = manifest.get(f"{kind}_sha256", "")
        if not constant_time_compare(sha256_hex(data).encode(), str(expected).encode()):
            raise SetupIntegrityError(f"{kind} fingerprint mismatch for {key_id}")

        try:
            key = ProvingKey.from_bytes(data) if kind == "pk" else VerificationKey.from_bytes(data)
        except MalformedInput as e:
            raise SetupIntegrityError(f"corrupt {kind} for {key_id}: {e}") from e

        if key.key_id != key_id or key.constraint_digest != manifest.get("constraint_digest"):
            raise SetupIntegrityError(f"{kind} contents do not match manifest for {key_id}")
        logger.info("key_loaded", key_id=key_id, kind=kind, mode=key.provenance.mode)
        return manifest, key

    def _check_provenance(self, provenance: KeyProvenance, key_id: str) -> None:
        if provenance.is_test_setup and not self.allow_test_keys:
            raise SetupIntegrityError(
                f"{key_id} comes from a single-party test setup; "
                "enable allow_test_keys to use it"
            )
