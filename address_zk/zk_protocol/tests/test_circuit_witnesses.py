"""
Witness-level tests for the five circuits.

These run the constraint system only (no keys), so they are fast and cover
every constraint the circuits enforce.
"""

from dataclasses import replace

import pytest

from address_zk.zk_protocol.circuits import (
    CIRCUIT_REGISTRY,
    CircuitType,
    LockerCircuit,
    LockerInputs,
    MembershipCircuit,
    MembershipInputs,
    SelectiveRevealCircuit,
    SelectiveRevealInputs,
    StructureCircuit,
    StructureInputs,
    VersionCircuit,
    VersionInputs,
    access_commitment,
    access_token_matches,
    address_commitment,
    build_circuit,
    identifier_commitment,
    membership_binding,
    structure_commitment,
    version_link,
)
from address_zk.zk_protocol.config import DEFAULT_TREE_DEPTH
from address_zk.zk_protocol.exceptions import ConstraintViolation, MalformedInput
from address_zk.zk_protocol.merkle import MerkleTree
from address_zk.zk_protocol.pid import (
    facility_to_field,
    identifier_to_field,
    leaf_for,
    locker_to_field,
)

PIDS = ["JP-13-113-01", "JP-13-113-02", "JP-27-100-05", "US-CA-94107"]
DEPTH = 2


def _membership_inputs(pid: str = PIDS[1]) -> MembershipInputs:
    tree = MerkleTree.build([leaf_for(identifier_to_field(p)) for p in PIDS], DEPTH)
    identifier = identifier_to_field(pid)
    return MembershipInputs.from_witness(
        identifier, tree.prove_membership(leaf_for(identifier)), timestamp=1_700_000_000
    )


def _locker_inputs() -> LockerInputs:
    lockers = [locker_to_field(f"LOCKER-{i}") for i in range(3)]
    tree = MerkleTree.build([leaf_for(locker) for locker in lockers], DEPTH)
    return LockerInputs.from_witness(
        lockers[2],
        tree.prove_membership(leaf_for(lockers[2])),
        facility_id=facility_to_field("FACILITY-TOKYO-1"),
        nonce=987654321,
    )


# ============================================================================
# MEMBERSHIP
# ============================================================================


def test_membership_witness_satisfies() -> None:
    circuit = MembershipCircuit(DEPTH)
    inputs = _membership_inputs()
    cs = circuit.generate_witness(inputs)
    assert cs.public_values() == [
        membership_binding(inputs.root, inputs.timestamp),
        inputs.root,
        inputs.timestamp,
    ]


def test_membership_flipped_direction_bit() -> None:
    inputs = _membership_inputs()
    flipped = (1 - inputs.path_indices[0],) + inputs.path_indices[1:]
    with pytest.raises(ConstraintViolation) as exc:
        MembershipCircuit(DEPTH).generate_witness(replace(inputs, path_indices=flipped))
    assert exc.value.circuit_type == "membership"
    assert exc.value.constraint == "root"


def test_membership_wrong_identifier() -> None:
    inputs = replace(_membership_inputs(), identifier=identifier_to_field("FR-75-001"))
    with pytest.raises(ConstraintViolation):
        MembershipCircuit(DEPTH).generate_witness(inputs)


@pytest.mark.parametrize(
    "changes",
    [
        {"path_elements": (1,)},
        {"path_indices": (0, 2)},
        {"timestamp": -1},
        {"timestamp": 1 << 64},
        {"identifier": "JP-13"},
    ],
)
def test_membership_malformed_inputs(changes) -> None:
    with pytest.raises(MalformedInput):
        MembershipCircuit(DEPTH).generate_witness(replace(_membership_inputs(), **changes))


# ============================================================================
# STRUCTURE
# ============================================================================


def test_structure_witness_satisfies() -> None:
    inputs = StructureInputs.from_pid("JP-13-113-01-T07", salt=12345)
    cs = StructureCircuit().generate_witness(inputs)
    assert cs.public_values() == [
        structure_commitment(inputs.components, 5, 12345),
        inputs.components[0],
        5,
    ]


def test_structure_tampered_length() -> None:
    inputs = StructureInputs.from_pid("JP-13-113", salt=1)
    lengths = list(inputs.lengths)
    lengths[3] = 4
    with pytest.raises(ConstraintViolation) as exc:
        StructureCircuit().generate_witness(replace(inputs, lengths=tuple(lengths)))
    assert exc.value.constraint == "level[3].populated"


def test_structure_depth_mismatch() -> None:
    inputs = StructureInputs.from_pid("JP-13-113", salt=1)
    with pytest.raises(ConstraintViolation):
        StructureCircuit().generate_witness(replace(inputs, depth=2))


def test_structure_depth_bounds() -> None:
    inputs = StructureInputs.from_pid("JP-13-113", salt=1)
    with pytest.raises(ConstraintViolation):
        StructureCircuit().generate_witness(replace(inputs, depth=0))
    with pytest.raises(ConstraintViolation):
        StructureCircuit().generate_witness(replace(inputs, depth=9))


def test_structure_padding_must_be_zero() -> None:
    inputs = StructureInputs.from_pid("JP-13-113", salt=1)
    components = list(inputs.components)
    components[5] = 77
    with pytest.raises(ConstraintViolation) as exc:
        StructureCircuit().generate_witness(replace(inputs, components=tuple(components)))
    assert exc.value.constraint == "level[5].padding"


def test_structure_rejects_other_level_counts() -> None:
    with pytest.raises(MalformedInput):
        StructureCircuit(max_levels=4)


# ============================================================================
# SELECTIVE REVEAL
# ============================================================================


def _reveal_inputs(mask=(1, 0, 0, 1, 0, 0, 0, 0)) -> SelectiveRevealInputs:
    return SelectiveRevealInputs(fields=tuple(range(11, 19)), salt=999, mask=tuple(mask))


def test_selective_reveal_publishes_only_masked_fields() -> None:
    inputs = _reveal_inputs()
    cs = SelectiveRevealCircuit().generate_witness(inputs)
    signals = cs.public_values()
    assert signals[0] == address_commitment(inputs.fields, 999)
    assert signals[1:9] == [1, 0, 0, 1, 0, 0, 0, 0]
    assert signals[9:] == [11, 0, 0, 14, 0, 0, 0, 0]


def test_selective_reveal_mask_must_be_bits() -> None:
    with pytest.raises(MalformedInput):
        SelectiveRevealCircuit().generate_witness(_reveal_inputs(mask=(2, 0, 0, 0, 0, 0, 0, 0)))


# ============================================================================
# VERSION
# ============================================================================


def test_version_witness_satisfies() -> None:
    inputs = VersionInputs(
        owner_secret=424242,
        old_identifier=identifier_to_field(PIDS[0]),
        new_identifier=identifier_to_field(PIDS[2]),
        nonce=7,
    )
    cs = VersionCircuit().generate_witness(inputs)
    assert cs.public_values() == [
        version_link(424242, 7),
        identifier_commitment(inputs.old_identifier, 424242),
        identifier_commitment(inputs.new_identifier, 424242),
        7,
    ]


def test_version_requires_distinct_identifiers() -> None:
    same = identifier_to_field(PIDS[0])
    inputs = VersionInputs(owner_secret=1, old_identifier=same, new_identifier=same, nonce=2)
    with pytest.raises(ConstraintViolation) as exc:
        VersionCircuit().generate_witness(inputs)
    assert exc.value.constraint == "identifiers.distinct"


# ============================================================================
# LOCKER
# ============================================================================


def test_locker_witness_satisfies() -> None:
    inputs = _locker_inputs()
    cs = LockerCircuit(DEPTH).generate_witness(inputs)
    token = access_commitment(inputs.locker_id, inputs.facility_id, inputs.nonce)
    assert cs.public_values() == [token, inputs.facility_id, inputs.locker_set_root]
    assert access_token_matches(token, inputs.locker_id, inputs.facility_id, inputs.nonce)
    assert not access_token_matches(token, inputs.locker_id, inputs.facility_id, inputs.nonce + 1)


def test_locker_outside_set() -> None:
    inputs = replace(_locker_inputs(), locker_id=locker_to_field("LOCKER-99"))
    with pytest.raises(ConstraintViolation) as exc:
        LockerCircuit(DEPTH).generate_witness(inputs)
    assert exc.value.constraint == "locker_set_root"


# ============================================================================
# REGISTRY AND PRIVACY OF PUBLIC SIGNALS
# ============================================================================


def test_registry_covers_all_types() -> None:
    assert set(CIRCUIT_REGISTRY) == set(CircuitType)
    for circuit_type, spec in CIRCUIT_REGISTRY.items():
        circuit = build_circuit(circuit_type, DEPTH if spec.takes_depth else None)
        assert circuit.circuit_type is circuit_type
        assert circuit.key_id(3).startswith(f"{circuit_type.value}/v3/depth-")


def test_build_circuit_rejects_bad_requests() -> None:
    with pytest.raises(MalformedInput):
        build_circuit("teleport")
    with pytest.raises(MalformedInput):
        build_circuit("version", 4)


def test_tree_circuits_share_the_default_depth() -> None:
    assert LockerCircuit().depth == MembershipCircuit().depth == DEFAULT_TREE_DEPTH
    assert build_circuit("locker").shape == f"depth-{DEFAULT_TREE_DEPTH}"
    assert build_circuit("locker").shape == build_circuit("membership").shape


def test_shape_is_independent_of_witness() -> None:
    circuit = MembershipCircuit(DEPTH)
    cs = circuit.generate_witness(_membership_inputs())
    assert cs.digest() == circuit.digest()


def test_private_values_never_public() -> None:
    membership = _membership_inputs()
    signals = MembershipCircuit(DEPTH).public_signals(membership)
    assert membership.identifier not in signals
    assert leaf_for(membership.identifier) not in signals

    locker = _locker_inputs()
    signals = LockerCircuit(DEPTH).public_signals(locker)
    assert locker.locker_id not in signals
    assert leaf_for(locker.locker_id) not in signals

    structure = StructureInputs.from_pid("JP-13-113", salt=5)
    signals = StructureCircuit().public_signals(structure)
    assert identifier_to_field("JP-13-113") not in signals
    assert not set(structure.components[1:3]) & set(signals)
