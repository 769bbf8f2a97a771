"""
Shared fixtures.

Groth16 key generation in pure Python takes seconds per circuit, so each
circuit's test keys are generated once per session at a small tree depth.
Ceremony and key store tests use ``ProductCircuit``, a one-multiplication
circuit whose domain fits a powers-of-tau of size four.
"""

from dataclasses import dataclass

import pytest

from address_zk.zk_protocol.circuits import Circuit, CircuitType, build_circuit, get_circuit_spec
from address_zk.zk_protocol.circuits.base import input_value, require_field_element
from address_zk.zk_protocol.config import FIELD_MODULUS_R
from address_zk.zk_protocol.exceptions import MalformedInput
from address_zk.zk_protocol.snark import generate_test_keys

TEST_TREE_DEPTH = 2


@dataclass(frozen=True)
class ProductInputs:
    x: int
    y: int


class ProductCircuit(Circuit):
    """Knowledge of ``x, y`` with ``x * y == product``."""

    circuit_type = CircuitType.VERSION
    public_names = ("product",)

    def validate_inputs(self, inputs):
        if not isinstance(inputs, ProductInputs):
            raise MalformedInput("expected ProductInputs")
        require_field_element(inputs.x, "x")
        require_field_element(inputs.y, "y")

    def public_signals(self, inputs):
        return [inputs.x * inputs.y % FIELD_MODULUS_R]

    def synthesize(self, cs, inputs):
        pub = self.allocate_public(cs, inputs)
        x = cs.private_input("x", input_value(inputs, "x"))
        y = cs.private_input("y", input_value(inputs, "y"))
        product = cs.mul(x, y, "product")
        cs.enforce_equal(product, pub["product"], "product.public")


@pytest.fixture(scope="session")
def tree_depth():
    return TEST_TREE_DEPTH


@pytest.fixture(scope="session")
def circuit_keys():
    """``get(circuit_type) -> (circuit, KeyPair)``, cached for the session."""
    cache = {}

    def get(circuit_type):
        spec = get_circuit_spec(circuit_type)
        if spec.circuit_type not in cache:
            depth = TEST_TREE_DEPTH if spec.takes_depth else None
            circuit = build_circuit(spec.circuit_type, depth)
            cache[spec.circuit_type] = (circuit, generate_test_keys(circuit))
        return cache[spec.circuit_type]

    return get


@pytest.fixture
def product_circuit():
    return ProductCircuit()


@pytest.fixture
def product_inputs():
    return ProductInputs
