"""
Preparation of circuit inputs from human-readable descriptions.

Turns PIDs, address mappings, locker and facility names plus saved trees
into the field-element input dataclasses the circuits consume. Used by the
CLI; also handy in scripts and tests.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .zk_protocol.circuits import (
    CircuitType,
    LockerInputs,
    MembershipInputs,
    SelectiveRevealInputs,
    StructureInputs,
    VersionInputs,
)
from .zk_protocol.exceptions import MalformedInput
from .zk_protocol.merkle import MerkleTree
from .zk_protocol.pid import (
    facility_to_field,
    identifier_to_field,
    leaf_for,
    locker_to_field,
)

TREE_FILE_VERSION = 1


def parse_int(value: Any, name: str) -> int:
    """Accept ints or decimal/``0x`` strings."""
    if isinstance(value, bool):
        raise MalformedInput(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip(), 0)
    except ValueError:
        raise MalformedInput(f"{name} must be an integer, got {value!r}") from None


def _require(spec: Mapping[str, Any], name: str) -> Any:
    if name not in spec or spec[name] in (None, ""):
        raise MalformedInput(f"missing input field {name!r}")
    return spec[name]


# ============================================================================
# TREE FILES
# ============================================================================


def save_tree(tree: MerkleTree, path: Union[str, Path], kind: str = "identifier") -> None:
    """Write the ordered leaves of ``tree`` as JSON."""
    payload = {
        "v": TREE_FILE_VERSION,
        "kind": kind,
        "depth": tree.depth,
        "root": str(tree.root),
        "leaves": [str(leaf) for leaf in tree.leaves()],
    }
    Path(path).write_text(json.dumps(payload, indent=2))


def load_tree(path: Union[str, Path]) -> MerkleTree:
    """
    Rebuild a tree saved by ``save_tree``.

    Raises:
        MalformedInput: Unreadable file or a root that does not match.
    """
    try:
        payload = json.loads(Path(path).read_text())
    except (OSError, ValueError) as e:
        raise MalformedInput(f"cannot read tree file {path}: {e}") from e
    if not isinstance(payload, dict) or payload.get("v") != TREE_FILE_VERSION:
        raise MalformedInput("unsupported tree file")
    tree = MerkleTree.build(
        [parse_int(leaf, "leaf") for leaf in payload.get("leaves", [])],
        parse_int(payload.get("depth"), "depth"),
    )
    if "root" in payload and parse_int(payload["root"], "root") != tree.root:
        raise MalformedInput("tree file root does not match its leaves")
    return tree


def identifier_tree(pids, depth: int) -> MerkleTree:
    return MerkleTree.build([leaf_for(identifier_to_field(p)) for p in pids], depth)


def locker_tree(locker_ids, depth: int) -> MerkleTree:
    return MerkleTree.build([leaf_for(locker_to_field(name)) for name in locker_ids], depth)


# ============================================================================
# INPUT BUILDERS
# ============================================================================


def _membership(spec: Mapping[str, Any], tree: Optional[MerkleTree]) -> MembershipInputs:
    if tree is None:
        raise MalformedInput("membership inputs need a tree")
    identifier = identifier_to_field(_require(spec, "pid"))
    timestamp = spec.get("timestamp")
    return MembershipInputs.from_witness(
        identifier,
        tree.prove_membership(leaf_for(identifier)),
        timestamp=int(time.time()) if timestamp is None else parse_int(timestamp, "timestamp"),
    )


def _structure(spec: Mapping[str, Any], tree: Optional[MerkleTree]) -> StructureInputs:
    return StructureInputs.from_pid(_require(spec, "pid"), parse_int(_require(spec, "salt"), "salt"))


def _selective_reveal(
    spec: Mapping[str, Any], tree: Optional[MerkleTree]
) -> SelectiveRevealInputs:
    address = _require(spec, "address")
    if not isinstance(address, Mapping):
        raise MalformedInput("address must be a mapping of field names to values")
    return SelectiveRevealInputs.from_address(
        address,
        parse_int(_require(spec, "salt"), "salt"),
        spec.get("reveal") or [],
    )


def _version(spec: Mapping[str, Any], tree: Optional[MerkleTree]) -> VersionInputs:
    return VersionInputs(
        owner_secret=parse_int(_require(spec, "owner_secret"), "owner_secret"),
        old_identifier=identifier_to_field(_require(spec, "old_pid")),
        new_identifier=identifier_to_field(_require(spec, "new_pid")),
        nonce=parse_int(_require(spec, "nonce"), "nonce"),
    )


def _locker(spec: Mapping[str, Any], tree: Optional[MerkleTree]) -> LockerInputs:
    if tree is None:
        raise MalformedInput("locker inputs need a tree")
    locker_id = locker_to_field(str(_require(spec, "locker_id")))
    return LockerInputs.from_witness(
        locker_id,
        tree.prove_membership(leaf_for(locker_id)),
        facility_id=facility_to_field(str(_require(spec, "facility_id"))),
        nonce=parse_int(_require(spec, "nonce"), "nonce"),
    )


_BUILDERS = {
    CircuitType.MEMBERSHIP: _membership,
    CircuitType.STRUCTURE: _structure,
    CircuitType.SELECTIVE_REVEAL: _selective_reveal,
    CircuitType.VERSION: _version,
    CircuitType.LOCKER: _locker,
}


def build_inputs(
    circuit_type, spec: Mapping[str, Any], tree: Optional[MerkleTree] = None
) -> Any:
    """
    Build circuit inputs from a description.

    Fields per circuit:
        membership: ``pid``, optional ``timestamp``; needs ``tree``
        structure: ``pid``, ``salt``
        selective_reveal: ``address`` mapping, ``salt``, ``reveal`` names
        version: ``owner_secret``, ``old_pid``, ``new_pid``, ``nonce``
        locker: ``locker_id``, ``facility_id``, ``nonce``; needs ``tree``

    Raises:
        MalformedInput: Missing or invalid fields, or a member absent from
            the tree.
    """
    return _BUILDERS[CircuitType.parse(circuit_type)](spec, tree)

