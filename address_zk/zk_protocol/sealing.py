"""
⚠️ DRAFT - requires crypto review before production use

Authenticated encryption of payloads (typically serialized proofs or
revealed address fields) for a carrier.

Uses libsodium via PyNaCl:

* ``seal_for_carrier`` - anonymous sender, ``SealedBox`` (X25519 +
  XSalsa20-Poly1305). Only the carrier can open it.
* ``seal_between`` - authenticated sender, ``Box``. The carrier also learns
  which wallet key produced it.

Sealing keys are X25519 keys generated independently of any circuit
secret; nothing here is derived from identifier hashes or salts.
"""

from typing import Tuple

import cbor2
from nacl.exceptions import CryptoError
from nacl.public import Box, PrivateKey, PublicKey, SealedBox

from .exceptions import SealingError

ENVELOPE_VERSION = 1
MODE_SEALED = "sealed"
MODE_BOX = "box"
MAX_ENVELOPE_BYTES = 64 * 1024


def generate_keypair() -> Tuple[PrivateKey, PublicKey]:
    private = PrivateKey.generate()
    return private, private.public_key


def _envelope(mode: str, ciphertext: bytes) -> bytes:
    return cbor2.dumps({"v": ENVELOPE_VERSION, "m": mode, "c": ciphertext}, canonical=True)


def _open_envelope(data: bytes, mode: str) -> bytes:
    if not isinstance(data, (bytes, bytearray)) or len(data) > MAX_ENVELOPE_BYTES:
        raise SealingError("envelope must be bytes within the size limit")
    try:
        obj = cbor2.loads(bytes(data))
    except Exception as e:
        raise SealingError(f"envelope is not valid CBOR: {e}") from e
    if not isinstance(obj, dict) or obj.get("v") != ENVELOPE_VERSION:
        raise SealingError("unsupported envelope version")
    if obj.get("m") != mode:
        raise SealingError(f"expected a {mode!r} envelope")
    ciphertext = obj.get("c")
    if not isinstance(ciphertext, bytes):
        raise SealingError("envelope has no ciphertext")
    return ciphertext


def seal_for_carrier(payload: bytes, carrier_key: PublicKey) -> bytes:
    """
    Encrypt ``payload`` so that only the holder of ``carrier_key`` can read it.

    Args:
        payload: Plaintext bytes
        carrier_key: Carrier's X25519 public key

    Returns:
        CBOR envelope bytes
    """
    return _envelope(MODE_SEALED, SealedBox(carrier_key).encrypt(bytes(payload)))


def open_for_carrier(envelope: bytes, carrier_private: PrivateKey) -> bytes:
    """
    Raises:
        SealingError: Envelope malformed, tampered with or for another key.
    """
    ciphertext = _open_envelope(envelope, MODE_SEALED)
    try:
        return SealedBox(carrier_private).decrypt(ciphertext)
    except CryptoError as e:
        raise SealingError("sealed envelope failed authentication") from e


def seal_between(payload: bytes, sender_private: PrivateKey, recipient: PublicKey) -> bytes:
    """Encrypt with sender authentication; a fresh random nonce is embedded."""
    return _envelope(MODE_BOX, bytes(Box(sender_private, recipient).encrypt(bytes(payload))))


def open_between(envelope: bytes, recipient_private: PrivateKey, sender: PublicKey) -> bytes:
    ciphertext = _open_envelope(envelope, MODE_BOX)
    try:
        return Box(recipient_private, sender).decrypt(ciphertext)
    except CryptoError as e:
        raise SealingError("box envelope failed authentication") from e
