"""Unit tests for proof request/response schemas."""

import cbor2
import pytest

from address_zk.service.constants import MAX_ERR_CHARS, MAX_META_BYTES, MSG_V
from address_zk.service.errors import ProtocolError, SchemaError, SizeLimitError
from address_zk.service.messages import (
    ProofRequest,
    ProofResponse,
    decode_request,
    decode_response,
    encode_meta,
    encode_request,
    encode_response,
)


def _request(**changes) -> ProofRequest:
    values = {"msg_v": MSG_V, "t": "membership", "key_v": 1, "d": 16, "nonce": b"n" * 16}
    values.update(changes)
    return ProofRequest(**values)


def _response(**changes) -> ProofResponse:
    values = {
        "msg_v": MSG_V,
        "ok": True,
        "t": "structure",
        "key_v": 2,
        "d": 0,
        "proof": b"\x01" * 300,
        "meta": {"circuit": "structure"},
        "err": None,
    }
    values.update(changes)
    return ProofResponse(**values)


def test_request_round_trip() -> None:
    req = _request(nonce=b"\x07" * 32)
    decoded = decode_request(encode_request(req))
    assert decoded == req
    assert decoded.key_id == "membership/v1/depth-16"


def test_request_key_id_for_flat_circuit() -> None:
    assert _request(t="version", d=0).key_id == "version/v1/depth-0"


@pytest.mark.parametrize(
    "changes",
    [
        {"msg_v": 2},
        {"t": "teleport"},
        {"key_v": 0},
        {"d": 0},
        {"d": 33},
        {"t": "structure", "d": 4},
        {"nonce": b"short"},
        {"nonce": b"x" * 65},
        {"nonce": "not-bytes-but-long-enough"},
    ],
)
def test_request_schema_errors(changes) -> None:
    with pytest.raises(SchemaError):
        _request(**changes).validate()


@pytest.mark.parametrize(
    "blob",
    [
        b"\xff\x00",
        cbor2.dumps([1, 2]),
        cbor2.dumps({"msg_v": "1", "t": "membership", "key_v": 1, "d": 16, "nonce": b"n" * 16}),
        cbor2.dumps({"msg_v": 1, "t": "membership", "key_v": True, "d": 16, "nonce": b"n" * 16}),
        cbor2.dumps({"msg_v": 1, "t": "membership", "key_v": 1, "d": 16}),
    ],
)
def test_decode_request_rejects(blob) -> None:
    with pytest.raises(SchemaError):
        decode_request(blob)


def test_request_size_limit() -> None:
    with pytest.raises(SizeLimitError):
        decode_request(b"\x00" * 2048)


def test_response_round_trip() -> None:
    blob = encode_response(_response())
    decoded = decode_response(blob)
    assert decoded.ok
    assert decoded.proof == b"\x01" * 300
    assert decoded.decoded_meta() == {"circuit": "structure"}


def test_failure_response_round_trip() -> None:
    resp = _response(ok=False, proof=b"", err="keys unavailable", meta=None)
    decoded = decode_response(encode_response(resp))
    assert not decoded.ok
    assert decoded.err == "keys unavailable"
    assert decoded.decoded_meta() == {}


@pytest.mark.parametrize(
    "changes, error",
    [
        ({"proof": b""}, SchemaError),
        ({"err": "oops"}, SchemaError),
        ({"ok": False}, SchemaError),
        ({"ok": False, "proof": b"", "err": ""}, SchemaError),
        ({"ok": False, "proof": b"", "err": "x" * (MAX_ERR_CHARS + 1)}, SchemaError),
        ({"proof": b"\x01" * 5000}, SizeLimitError),
    ],
)
def test_response_validation(changes, error) -> None:
    with pytest.raises(error):
        encode_response(_response(**changes))


def test_response_rejects_non_bool_ok() -> None:
    payload = cbor2.loads(encode_response(_response()))
    payload["ok"] = 1
    with pytest.raises(SchemaError):
        decode_response(cbor2.dumps(payload))


def test_meta_limits() -> None:
    assert encode_meta(None) == b""
    assert cbor2.loads(encode_meta({"a": 1})) == {"a": 1}
    with pytest.raises(SizeLimitError):
        encode_meta({"blob": b"x" * (MAX_META_BYTES + 1)})
    with pytest.raises(SchemaError):
        encode_meta("text")


def test_errors_share_a_base() -> None:
    assert issubclass(SchemaError, ProtocolError)
    assert issubclass(SizeLimitError, ProtocolError)
