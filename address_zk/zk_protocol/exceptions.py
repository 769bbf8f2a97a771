"""
Custom exceptions for address proofs.

Witness problems, caller mistakes, key problems and infrastructure failures
each get their own type so callers can tell a bad witness apart from a
broken deployment.
"""

from __future__ import annotations


class AddressZKError(Exception):
    """Base exception for address proof errors."""

    pass


class ConstraintViolation(AddressZKError):
    """The witness does not satisfy the circuit (recoverable, bad input)."""

    def __init__(self, circuit_type: str, constraint: str):
        self.circuit_type = circuit_type
        self.constraint = constraint
        super().__init__(
            f"{circuit_type} witness violates constraint {constraint!r}"
        )

    def __reduce__(self):
        return (type(self), (self.circuit_type, self.constraint))


class MalformedInput(AddressZKError, ValueError):
    """Wrong arity, out-of-range value or an undecodable encoding."""

    pass


class CapacityExceeded(MalformedInput):
    """Merkle accumulator has no free leaf slot."""

    pass


class LeafNotFound(MalformedInput, LookupError):
    """Requested leaf is not present in the accumulator."""

    pass


class KeyMismatch(AddressZKError):
    """Proof, circuit and key disagree on circuit type, shape or version."""

    pass


class StaleRoot(AddressZKError):
    """A witness refers to a root that has since been superseded."""

    def __init__(self, witness_root: int, current_root: int):
        self.witness_root = witness_root
        self.current_root = current_root
        super().__init__(
            f"witness root {witness_root:#x} is stale (current {current_root:#x})"
        )

    def __reduce__(self):
        return (type(self), (self.witness_root, self.current_root))


class SetupIntegrityError(AddressZKError):
    """Ceremony transcript or key artifacts are missing or corrupt (fatal)."""

    pass


class ProvingError(AddressZKError):
    """Infrastructure failure while producing a proof."""

    pass


class ProvingTimeout(ProvingError):
    """Proof generation exceeded its deadline. No partial result exists."""

    pass


class PoolSaturated(ProvingError):
    """The proving pool refused work because its queue is full."""

    pass


class SealingError(AddressZKError):
    """A sealed carrier envelope failed authentication or decoding."""

    pass


class ConfigurationError(AddressZKError, ValueError):
    """Runtime settings could not be loaded or are invalid."""

    pass
