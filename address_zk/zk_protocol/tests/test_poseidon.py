"""Unit tests for the Poseidon hash."""

import pytest

from address_zk.zk_protocol.config import FIELD_MODULUS_R, MAX_HASH_INPUTS
from address_zk.zk_protocol.exceptions import MalformedInput
from address_zk.zk_protocol.poseidon import commit, get_params, permute, poseidon_hash


def test_hash_is_deterministic_and_in_field() -> None:
    first = poseidon_hash([1, 2])
    assert first == poseidon_hash([1, 2])
    assert 0 <= first < FIELD_MODULUS_R


def test_hash_depends_on_order() -> None:
    assert poseidon_hash([1, 2]) != poseidon_hash([2, 1])


def test_length_is_domain_separated() -> None:
    assert poseidon_hash([5]) != poseidon_hash([5, 0])
    assert poseidon_hash([5, 0]) != poseidon_hash([5, 0, 0])


def test_max_arity_accepted() -> None:
    values = list(range(1, MAX_HASH_INPUTS + 1))
    assert 0 <= poseidon_hash(values) < FIELD_MODULUS_R


@pytest.mark.parametrize(
    "bad",
    [
        [],
        list(range(MAX_HASH_INPUTS + 1)),
        [-1],
        [FIELD_MODULUS_R],
        [True],
        ["1"],
        b"\x01\x02",
    ],
)
def test_bad_inputs_rejected(bad) -> None:
    with pytest.raises(MalformedInput):
        poseidon_hash(bad)


def test_params_are_stable() -> None:
    params = get_params()
    assert params is get_params()
    assert params.width == 3
    assert len(params.round_constants) == params.total_rounds * params.width
    assert len(params.mds) == 3


def test_permutation_requires_width() -> None:
    with pytest.raises(MalformedInput):
        permute([1, 2])
    assert permute([0, 1, 2]) != [0, 1, 2]


def test_commit_is_salted() -> None:
    assert commit([10, 20], salt=1) != commit([10, 20], salt=2)
    assert commit([10, 20], salt=1) == poseidon_hash([10, 20, 1])
