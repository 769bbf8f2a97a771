"""
CBOR messages for requesting and returning proofs.

A request names the circuit, key version and tree depth the verifier
holds plus a fresh challenge nonce. A response carries either a
serialized ``Proof`` or a short error string, never both.
"""

from __future__ import annotations

from dataclasses import astuple, dataclass, fields
from typing import Any, Dict, Optional, Union

import cbor2

from ..zk_protocol.config import MAX_TREE_DEPTH, MIN_TREE_DEPTH
from .constants import (
    MAX_ERR_CHARS,
    MAX_META_BYTES,
    MAX_NONCE_BYTES,
    MAX_PROOF_BYTES,
    MIN_NONCE_BYTES,
    MSG_V,
    TREE_CIRCUITS,
    is_valid_circuit_type,
)
from .errors import SchemaError, SizeLimitError

REQUEST_MAX_BYTES = 1024
RESPONSE_MAX_BYTES = MAX_PROOF_BYTES + MAX_META_BYTES + 1024

# Placeholders for absent payload fields; header and type checks reject them.
_MISSING = {int: -1, str: "", bytes: b""}


def _check_type(value: Any, expected: type, name: str) -> Any:
    if expected is bytes:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
    elif expected is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif isinstance(value, expected):
        return value
    raise SchemaError(f"{name} must be {expected.__name__}")


def _check_header(msg_v: int, t: str, key_v: int, d: int) -> None:
    if msg_v != MSG_V:
        raise SchemaError("unsupported msg_v")
    if not is_valid_circuit_type(t):
        raise SchemaError("unsupported circuit type")
    if key_v < 1:
        raise SchemaError("key_v must be >= 1")
    if t in TREE_CIRCUITS:
        if not MIN_TREE_DEPTH <= d <= MAX_TREE_DEPTH:
            raise SchemaError(f"{t} depth must be in [{MIN_TREE_DEPTH}, {MAX_TREE_DEPTH}]")
    elif d != 0:
        raise SchemaError(f"{t} depth must be 0")


@dataclass(frozen=True)
class ProofRequest:
    """
    A verifier's request for a proof.

    Attributes:
        msg_v: Message format version
        t: Circuit type
        key_v: Key version the verifier holds
        d: Tree depth (0 for circuits without a tree)
        nonce: Verifier challenge, 16 to 64 bytes
    """

    msg_v: int
    t: str
    key_v: int
    d: int
    nonce: bytes

    @property
    def key_id(self) -> str:
        return f"{self.t}/v{self.key_v}/depth-{self.d}"

    def validate(self) -> None:
        _check_header(self.msg_v, self.t, self.key_v, self.d)
        nonce = _check_type(self.nonce, bytes, "nonce")
        if not MIN_NONCE_BYTES <= len(nonce) <= MAX_NONCE_BYTES:
            raise SchemaError("nonce length out of bounds")


@dataclass(frozen=True)
class ProofResponse:
    msg_v: int
    ok: bool
    t: str
    key_v: int
    d: int
    proof: bytes
    meta: bytes
    err: Optional[str]

    def validate(self) -> None:
        _check_header(self.msg_v, self.t, self.key_v, self.d)
        if len(_check_type(self.proof, bytes, "proof")) > MAX_PROOF_BYTES:
            raise SizeLimitError("proof too large")
        if len(_check_type(self.meta, bytes, "meta")) > MAX_META_BYTES:
            raise SizeLimitError("meta too large")

        if self.ok:
            if not self.proof:
                raise SchemaError("proof required when ok=True")
            if self.err:
                raise SchemaError("err must be empty when ok=True")
            return
        if self.proof:
            raise SchemaError("proof must be empty when ok=False")
        if not isinstance(self.err, str) or not self.err:
            raise SchemaError("err required when ok=False")
        if len(self.err) > MAX_ERR_CHARS:
            raise SchemaError("err too long")

    def decoded_meta(self) -> Dict[str, Any]:
        return cbor2.loads(self.meta) if self.meta else {}


# ============================================================================
# CODEC
# ============================================================================


def _dump(message, limit: int, label: str) -> bytes:
    payload = {f.name: value for f, value in zip(fields(message), astuple(message))}
    blob = cbor2.dumps(payload, canonical=True)
    if len(blob) > limit:
        raise SizeLimitError(f"{label} too large")
    return blob


def _load(blob: Any, limit: int, label: str) -> Dict[str, Any]:
    if not isinstance(blob, (bytes, bytearray)):
        raise SchemaError(f"{label} blob must be bytes")
    if len(blob) > limit:
        raise SizeLimitError(f"{label} too large")
    try:
        payload = cbor2.loads(bytes(blob))
    except (cbor2.CBORDecodeError, ValueError, TypeError) as e:
        raise SchemaError(f"{label} is not valid CBOR") from e
    if not isinstance(payload, dict):
        raise SchemaError(f"{label} payload must be a map")
    return payload


def _typed_fields(payload: Dict[str, Any], **types: type) -> Dict[str, Any]:
    return {
        name: _check_type(payload.get(name, _MISSING[expected]), expected, name)
        for name, expected in types.items()
    }


def encode_request(req: ProofRequest) -> bytes:
    req.validate()
    return _dump(req, REQUEST_MAX_BYTES, "request")


def decode_request(blob: bytes) -> ProofRequest:
    payload = _load(blob, REQUEST_MAX_BYTES, "request")
    req = ProofRequest(
        **_typed_fields(payload, msg_v=int, t=str, key_v=int, d=int, nonce=bytes)
    )
    req.validate()
    return req


def encode_meta(meta: Union[bytes, Dict[str, Any], None]) -> bytes:
    """CBOR-encode a meta mapping; bytes pass through unchanged."""
    if meta is None:
        return b""
    encoded = cbor2.dumps(meta, canonical=True) if isinstance(meta, dict) else _check_type(
        meta, bytes, "meta"
    )
    if len(encoded) > MAX_META_BYTES:
        raise SizeLimitError("meta too large")
    return encoded


def encode_response(resp: ProofResponse) -> bytes:
    normalized = ProofResponse(
        msg_v=resp.msg_v,
        ok=resp.ok,
        t=resp.t,
        key_v=resp.key_v,
        d=resp.d,
        proof=bytes(resp.proof or b""),
        meta=encode_meta(resp.meta),
        err=resp.err,
    )
    normalized.validate()
    return _dump(normalized, RESPONSE_MAX_BYTES, "response")


def decode_response(blob: bytes) -> ProofResponse:
    payload = _load(blob, RESPONSE_MAX_BYTES, "response")
    ok = payload.get("ok", False)
    if not isinstance(ok, bool):
        raise SchemaError("ok must be a boolean")
    err = payload.get("err")
    if err is not None and not isinstance(err, str):
        raise SchemaError("err must be a string")
    resp = ProofResponse(
        ok=ok,
        err=err,
        **_typed_fields(
            payload, msg_v=int, t=str, key_v=int, d=int, proof=bytes, meta=bytes
        ),
    )
    resp.validate()
    return resp
