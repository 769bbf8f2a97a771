"""Tests for the local proof provider and the byte-level handler."""

import cbor2
import pytest

from address_zk.service.constants import MSG_V
from address_zk.service.errors import ProtocolError
from address_zk.service.messages import (
    ProofRequest,
    ProofResponse,
    decode_response,
    encode_request,
)
from address_zk.service.provider import (
    LocalProofProvider,
    ProviderConfig,
    handle_proof_request_bytes,
    verify_response,
)
from address_zk.zk_protocol.exceptions import (
    ConstraintViolation,
    KeyMismatch,
    ProvingTimeout,
    SetupIntegrityError,
    StaleRoot,
)
from address_zk.zk_protocol.types import Proof


def _request(**changes) -> ProofRequest:
    values = {"msg_v": MSG_V, "t": "membership", "key_v": 1, "d": 16, "nonce": b"\x42" * 16}
    values.update(changes)
    return ProofRequest(**values)


def _proof_for(req: ProofRequest) -> Proof:
    return Proof(
        circuit_type=req.t,
        key_id=req.key_id,
        proof_bytes=b"\x00" * 256,
        public_signals=(1, 2, 3),
    )


def _good_prover(req):
    return _proof_for(req), {"worker": "local"}


def _raising(exc):
    def prover(req):
        raise exc

    return prover


def test_successful_proof() -> None:
    resp = LocalProofProvider(prover=_good_prover).get_proof(_request())
    assert resp.ok and resp.err is None
    assert Proof.deserialize(resp.proof).key_id == "membership/v1/depth-16"
    meta = resp.decoded_meta()
    assert meta["available"] is True
    assert meta["prover_meta"] == {"worker": "local"}
    assert (meta["circuit"], meta["key_v"], meta["depth"]) == ("membership", 1, 16)


def test_no_prover() -> None:
    resp = LocalProofProvider().get_proof(_request())
    assert not resp.ok
    assert resp.err == "proving not available"
    assert resp.decoded_meta()["available"] is False


def test_schema_failure() -> None:
    resp = LocalProofProvider(prover=_good_prover).get_proof(_request(nonce=b"short"))
    assert not resp.ok
    assert resp.err == "nonce length out of bounds"
    assert resp.decoded_meta()["error"] == "SchemaError"


def test_strict_depth() -> None:
    provider = LocalProofProvider(ProviderConfig(strict=True, membership_depth=16), _good_prover)
    assert provider.get_proof(_request()).ok
    resp = provider.get_proof(_request(d=20))
    assert resp.err == "unsupported membership depth"


@pytest.mark.parametrize(
    "exc, reason",
    [
        (ConstraintViolation("membership", "root"), "witness does not satisfy circuit"),
        (StaleRoot(1, 2), "stale accumulator root"),
        (KeyMismatch("old key"), "key mismatch"),
        (SetupIntegrityError("missing manifest"), "keys unavailable"),
        (ProvingTimeout("too slow"), "proving timed out"),
    ],
)
def test_failures_name_the_class_only(exc, reason) -> None:
    resp = LocalProofProvider(prover=_raising(exc)).get_proof(_request())
    assert not resp.ok
    assert resp.err == reason
    assert resp.decoded_meta()["error"] == type(exc).__name__


def test_prover_using_wrong_key() -> None:
    def prover(req):
        return _proof_for(_request(key_v=2)), {}

    resp = LocalProofProvider(prover=prover).get_proof(_request())
    assert resp.err == "key mismatch"


def test_handler_round_trip() -> None:
    provider = LocalProofProvider(prover=_good_prover)
    resp = decode_response(handle_proof_request_bytes(encode_request(_request()), provider))
    assert resp.ok


def test_handler_bad_request() -> None:
    provider = LocalProofProvider(prover=_good_prover)
    resp = decode_response(handle_proof_request_bytes(b"\xa1\x01", provider))
    assert not resp.ok
    assert resp.err.startswith("bad request")

    blob = cbor2.dumps({"msg_v": MSG_V, "t": "teleport", "key_v": 1, "d": 0, "nonce": b"n" * 16})
    resp = decode_response(handle_proof_request_bytes(blob, provider))
    assert resp.err == "bad request: unsupported circuit type"


def test_handler_contains_provider_crash() -> None:
    class Crashing:
        def get_proof(self, req):
            raise RuntimeError("database exploded at /srv/secret/path")

    blob = handle_proof_request_bytes(encode_request(_request()), Crashing())
    resp = decode_response(blob)
    assert resp.err == "provider error"
    assert "secret" not in resp.err


def test_verify_response_refusal() -> None:
    refused = ProofResponse(
        msg_v=MSG_V, ok=False, t="membership", key_v=1, d=16, proof=b"", meta=b"", err="nope"
    )
    with pytest.raises(ProtocolError, match="provider refused: nope"):
        verify_response(refused, vk=None)


def test_verify_response_undecodable() -> None:
    garbled = ProofResponse(
        msg_v=MSG_V, ok=True, t="membership", key_v=1, d=16, proof=b"\x01\x02", meta=b"", err=None
    )
    with pytest.raises(ProtocolError, match="undecodable proof"):
        verify_response(garbled, vk=None)


def test_verify_response_header_mismatch() -> None:
    blob = _proof_for(_request(t="structure", d=0)).serialize()
    resp = ProofResponse(
        msg_v=MSG_V, ok=True, t="membership", key_v=1, d=16, proof=blob, meta=b"", err=None
    )
    with pytest.raises(ProtocolError, match="does not match"):
        verify_response(resp, vk=None)
