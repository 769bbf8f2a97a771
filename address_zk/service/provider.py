"""Proof provider and the byte-level request handler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from ..logging_config import get_logger
from ..zk_protocol.exceptions import (
    ConstraintViolation,
    KeyMismatch,
    MalformedInput,
    ProvingError,
    ProvingTimeout,
    SetupIntegrityError,
    StaleRoot,
)
from ..zk_protocol.snark.keys import VerificationKey
from ..zk_protocol.snark.verifier import MembershipPolicy, verify_detailed
from ..zk_protocol.types import Proof, VerificationResult
from .constants import DEFAULT_MEMBERSHIP_DEPTH, MAX_ERR_CHARS, MSG_V
from .errors import ProtocolError, SchemaError, SizeLimitError
from .messages import (
    ProofRequest,
    ProofResponse,
    decode_request,
    encode_meta,
    encode_response,
)

logger = get_logger(__name__)

ProverCallback = Callable[[ProofRequest], Tuple[Proof, Dict[str, Any]]]

# Client-facing reason for each failure class. Stack traces never leave.
_FAILURE_REASONS = (
    (ConstraintViolation, "witness does not satisfy circuit"),
    (StaleRoot, "stale accumulator root"),
    (KeyMismatch, "key mismatch"),
    (SetupIntegrityError, "keys unavailable"),
    (ProvingTimeout, "proving timed out"),
    (ProvingError, "proving failed"),
    (MalformedInput, "malformed input"),
)
_HANDLED = tuple(cls for cls, _ in _FAILURE_REASONS)


class ProofProvider(Protocol):
    def get_proof(self, req: ProofRequest) -> ProofResponse:
        ...


@dataclass(frozen=True)
class ProviderConfig:
    """
    Attributes:
        strict: Only accept the default membership depth
        membership_depth: Depth served when ``strict`` is set
    """

    strict: bool = False
    membership_depth: int = DEFAULT_MEMBERSHIP_DEPTH


def _meta(req: ProofRequest, **extra: Any) -> Dict[str, Any]:
    meta = {"circuit": req.t, "key_v": req.key_v, "depth": req.d}
    meta.update(extra)
    return meta


def _failure(req: ProofRequest, err: str, **extra: Any) -> ProofResponse:
    return ProofResponse(
        msg_v=req.msg_v,
        ok=False,
        t=req.t,
        key_v=req.key_v,
        d=req.d,
        proof=b"",
        meta=encode_meta(_meta(req, **extra)),
        err=err[:MAX_ERR_CHARS],
    )


def _validate_request(req: ProofRequest, config: ProviderConfig) -> None:
    req.validate()
    if config.strict and req.t == "membership" and req.d != config.membership_depth:
        raise SchemaError("unsupported membership depth")


class LocalProofProvider:
    """
    Answers proof requests with a local prover callback.

    The callback receives the validated request (including the verifier's
    nonce) and returns the proof plus prover metadata. Witness, key and
    infrastructure failures become ``ok=False`` responses naming the failure
    class only.
    """

    def __init__(
        self, config: ProviderConfig = ProviderConfig(), prover: Optional[ProverCallback] = None
    ) -> None:
        self._config = config
        self._prover = prover

    def get_proof(self, req: ProofRequest) -> ProofResponse:
        try:
            _validate_request(req, self._config)
        except ProtocolError as exc:
            return _failure(req, str(exc), available=False, error=type(exc).__name__)

        if self._prover is None:
            return _failure(req, "proving not available", available=False)

        try:
            proof, prover_meta = self._prover(req)
            if proof.key_id != req.key_id:
                raise KeyMismatch(f"prover used {proof.key_id}, request wants {req.key_id}")
            blob = proof.serialize()
            meta = _meta(req, available=True, prover_meta=prover_meta or {})
            return ProofResponse(
                msg_v=req.msg_v,
                ok=True,
                t=req.t,
                key_v=req.key_v,
                d=req.d,
                proof=blob,
                meta=encode_meta(meta),
                err=None,
            )
        except SizeLimitError as exc:
            return _failure(req, str(exc), available=True, error=type(exc).__name__)
        except _HANDLED as exc:
            reason = next(r for cls, r in _FAILURE_REASONS if isinstance(exc, cls))
            logger.warning(
                "proof_request_failed",
                key_id=req.key_id,
                error_type=type(exc).__name__,
            )
            return _failure(req, reason, available=True, error=type(exc).__name__)


def _error_response(
    err: str,
    circuit_type: str = "membership",
    key_v: int = 1,
    depth: int = DEFAULT_MEMBERSHIP_DEPTH,
) -> ProofResponse:
    return ProofResponse(
        msg_v=MSG_V,
        ok=False,
        t=circuit_type,
        key_v=key_v,
        d=depth,
        proof=b"",
        meta=encode_meta({"circuit": circuit_type, "key_v": key_v, "depth": depth}),
        err=err[:MAX_ERR_CHARS],
    )


def handle_proof_request_bytes(request_blob: bytes, provider: ProofProvider) -> bytes:
    """Decode a request, ask ``provider`` and always return an encoded response."""
    try:
        req = decode_request(request_blob)
    except ProtocolError as exc:
        try:
            return encode_response(_error_response(f"bad request: {exc}"))
        except ProtocolError:
            return encode_response(_error_response("bad request"))

    try:
        response = provider.get_proof(req)
    except Exception:
        logger.exception("provider_error", key_id=req.key_id)
        response = _error_response("provider error", req.t, req.key_v, req.d)

    try:
        return encode_response(response)
    except SizeLimitError:
        return encode_response(_error_response("response too large", req.t, req.key_v, req.d))


def verify_response(
    resp: ProofResponse,
    vk: VerificationKey,
    *,
    policy: Optional[MembershipPolicy] = None,
    now: Optional[float] = None,
) -> VerificationResult:
    """
    Client side: check a response against the verification key it expects.

    Raises:
        ProtocolError: The response reports a failure or its proof does not
            decode.
    """
    if not resp.ok:
        raise ProtocolError(f"provider refused: {resp.err}")
    try:
        proof = Proof.deserialize(resp.proof)
    except MalformedInput as e:
        raise ProtocolError(f"undecodable proof: {e}") from e
    if proof.circuit_type != resp.t:
        raise ProtocolError("proof circuit does not match response header")
    return verify_detailed(proof, vk, policy=policy, now=now)
