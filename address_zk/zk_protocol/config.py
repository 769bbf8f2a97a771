"""
⚠️ DRAFT - requires crypto review before production use

Cryptographic configuration for address proofs.

All circuits, keys and proofs in this package live over the BN254
(alt_bn128) pairing curve. Circuit arithmetic is done in the scalar field
of that curve; point coordinates live in the base field.
"""

# ============================================================================
# CURVE SELECTION
# ============================================================================

# IMPLEMENTATION: BN254 via py_ecc.optimized_bn128
# - Pairing friendly (Groth16 needs a bilinear map)
# - 2-adic scalar field (radix-2 evaluation domains up to 2^28)
# - Same curve as the EVM precompiles and snarkjs/circom tooling

CURVE_NAME = "bn254"
CURVE_LIBRARY = "py_ecc"

# Scalar field (circuit arithmetic)
FIELD_MODULUS_R = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)
# Base field (point coordinates)
FIELD_MODULUS_Q = (
    21888242871839275222246405745257275088696311157297823662689037894645226208583
)
FIELD_BITS = 254
FIELD_BYTES = 32

# Multiplicative generator of Fr* and the 2-adicity of r - 1
FIELD_GENERATOR = 5
FIELD_TWO_ADICITY = 28

# ============================================================================
# POSEIDON PARAMETERS
# ============================================================================

POSEIDON_WIDTH = 3  # rate 2, capacity 1
POSEIDON_RATE = 2
POSEIDON_ALPHA = 5
POSEIDON_FULL_ROUNDS = 8
POSEIDON_PARTIAL_ROUNDS = 57

# Largest number of field elements a single hash call absorbs
MAX_HASH_INPUTS = 16

# ============================================================================
# DOMAIN SEPARATION
# ============================================================================

DOMAIN_SEPARATOR_PREFIX = b"ADDRESS_ZK_V1_"

DOMAIN_SEPARATORS = {
    "identifier": DOMAIN_SEPARATOR_PREFIX + b"PID",
    "component": DOMAIN_SEPARATOR_PREFIX + b"PID_COMPONENT",
    "address_field": DOMAIN_SEPARATOR_PREFIX + b"ADDRESS_FIELD",
    "locker": DOMAIN_SEPARATOR_PREFIX + b"LOCKER",
    "facility": DOMAIN_SEPARATOR_PREFIX + b"FACILITY",
    "transcript": DOMAIN_SEPARATOR_PREFIX + b"CEREMONY",
}

# ============================================================================
# CIRCUIT SHAPES
# ============================================================================

DEFAULT_TREE_DEPTH = 16
MIN_TREE_DEPTH = 1
MAX_TREE_DEPTH = 32
MAX_PID_LEVELS = 8
MAX_COMPONENT_LENGTH = 255
SELECTIVE_REVEAL_FIELDS = 8
TIMESTAMP_BITS = 64
ROOT_HISTORY_SIZE = 64

# ============================================================================
# PROOF SERIALIZATION
# ============================================================================

SERIALIZATION_FORMAT = "CBOR"
PROOF_VERSION = 1
KEY_FORMAT_VERSION = 1

G1_POINT_BYTES = 2 * FIELD_BYTES
G2_POINT_BYTES = 4 * FIELD_BYTES
PROOF_BYTES = 2 * G1_POINT_BYTES + G2_POINT_BYTES

MAX_SERIALIZED_PROOF_BYTES = 4 * 1024

# ============================================================================
# VALIDATION
# ============================================================================


def validate_config() -> bool:
    """
    Validate configuration parameters.

    Returns:
        True if configuration is valid

    Raises:
        AssertionError: If configuration is invalid
    """
    assert CURVE_NAME == "bn254", "Only BN254 is supported"
    assert CURVE_LIBRARY == "py_ecc", "BN254 requires py_ecc"
    assert FIELD_MODULUS_R.bit_length() == FIELD_BITS, "Unexpected scalar field size"
    assert (FIELD_MODULUS_R - 1) % (2**FIELD_TWO_ADICITY) == 0, "Bad two-adicity"
    assert POSEIDON_WIDTH == POSEIDON_RATE + 1, "Poseidon capacity must be 1"
    assert POSEIDON_FULL_ROUNDS % 2 == 0, "Full rounds must split evenly"
    assert 1 <= MAX_PID_LEVELS <= 15, "PID depth must fit in 4 bits"
    assert MIN_TREE_DEPTH <= DEFAULT_TREE_DEPTH <= MAX_TREE_DEPTH
    assert PROOF_BYTES == 256, "Groth16 proof is A(G1) + B(G2) + C(G1)"
    return True


# Auto-validate on import
validate_config()
