"""Proving services: accumulator owner, proving pool, request handling."""

from .access import AccessTokenLedger
from .accumulator import AccumulatorService
from .constants import MSG_V
from .errors import ProtocolError, SchemaError, SizeLimitError
from .messages import (
    ProofRequest,
    ProofResponse,
    decode_request,
    decode_response,
    encode_request,
    encode_response,
)
from .pool import ProvingPool
from .provider import (
    LocalProofProvider,
    ProofProvider,
    ProviderConfig,
    handle_proof_request_bytes,
    verify_response,
)

__all__ = [
    "AccessTokenLedger",
    "AccumulatorService",
    "MSG_V",
    "ProtocolError",
    "SchemaError",
    "SizeLimitError",
    "ProofRequest",
    "ProofResponse",
    "decode_request",
    "decode_response",
    "encode_request",
    "encode_response",
    "ProvingPool",
    "LocalProofProvider",
    "ProofProvider",
    "ProviderConfig",
    "handle_proof_request_bytes",
    "verify_response",
]
