"""Unit tests for carrier envelopes."""

import cbor2
import pytest

from address_zk.zk_protocol.exceptions import SealingError
from address_zk.zk_protocol.sealing import (
    generate_keypair,
    open_between,
    open_for_carrier,
    seal_between,
    seal_for_carrier,
)

PAYLOAD = b"revealed: country=JP locality=Shibuya"


def test_sealed_box_round_trip() -> None:
    carrier_private, carrier_public = generate_keypair()
    envelope = seal_for_carrier(PAYLOAD, carrier_public)
    assert PAYLOAD not in envelope
    assert open_for_carrier(envelope, carrier_private) == PAYLOAD


def test_sealed_box_wrong_key() -> None:
    _, carrier_public = generate_keypair()
    other_private, _ = generate_keypair()
    with pytest.raises(SealingError):
        open_for_carrier(seal_for_carrier(PAYLOAD, carrier_public), other_private)


def test_sealed_box_tampered() -> None:
    carrier_private, carrier_public = generate_keypair()
    obj = cbor2.loads(seal_for_carrier(PAYLOAD, carrier_public))
    ciphertext = bytearray(obj["c"])
    ciphertext[-1] ^= 1
    obj["c"] = bytes(ciphertext)
    with pytest.raises(SealingError):
        open_for_carrier(cbor2.dumps(obj), carrier_private)


def test_authenticated_box() -> None:
    wallet_private, wallet_public = generate_keypair()
    carrier_private, carrier_public = generate_keypair()
    envelope = seal_between(PAYLOAD, wallet_private, carrier_public)
    assert open_between(envelope, carrier_private, wallet_public) == PAYLOAD

    _, impostor_public = generate_keypair()
    with pytest.raises(SealingError):
        open_between(envelope, carrier_private, impostor_public)


def test_envelope_mode_is_checked() -> None:
    wallet_private, _ = generate_keypair()
    carrier_private, carrier_public = generate_keypair()
    boxed = seal_between(PAYLOAD, wallet_private, carrier_public)
    with pytest.raises(SealingError):
        open_for_carrier(boxed, carrier_private)


@pytest.mark.parametrize("blob", [b"\xff", cbor2.dumps({"v": 9}), b"\x00" * (65 * 1024)])
def test_malformed_envelopes(blob) -> None:
    carrier_private, _ = generate_keypair()
    with pytest.raises(SealingError):
        open_for_carrier(blob, carrier_private)
