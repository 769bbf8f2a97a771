"""Zero-knowledge address proofs for postal identifiers."""

__version__ = "0.1.0"
