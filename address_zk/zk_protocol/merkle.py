"""
Fixed-depth sparse Merkle accumulator over Poseidon.

Empty slots hold ``EMPTY_LEAF = Poseidon(0)`` and every empty subtree
hashes to a precomputed zero value, so only populated paths are stored.
Writes touch one root-to-leaf path. Recent roots are remembered so proofs
made against an earlier root can still be checked against that root.
"""

from __future__ import annotations

import heapq
from collections import deque
from dataclasses import dataclass
from functools import lru_cache
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import (
    DEFAULT_TREE_DEPTH,
    FIELD_MODULUS_R,
    MAX_TREE_DEPTH,
    MIN_TREE_DEPTH,
    ROOT_HISTORY_SIZE,
)
from .exceptions import CapacityExceeded, LeafNotFound, MalformedInput
from .poseidon import poseidon_hash


def hash_node(left: int, right: int) -> int:
    """Hash two child nodes with fixed left||right ordering."""
    return poseidon_hash([left, right])


EMPTY_LEAF = poseidon_hash([0])


@lru_cache(maxsize=None)
def zero_hashes(depth: int) -> Tuple[int, ...]:
    """Root of an empty subtree at each level ``0..depth``."""
    zeros = [EMPTY_LEAF]
    for _ in range(depth):
        zeros.append(hash_node(zeros[-1], zeros[-1]))
    return tuple(zeros)


@dataclass(frozen=True)
class MembershipWitness:
    """
    Authentication path for one leaf, bound to the root it was made from.

    Attributes:
        leaf: Leaf value
        index: Leaf position
        path_elements: Sibling hashes from the leaf level upwards
        path_indices: 1 where the running node is the right child
        root: Root at the time the witness was generated
    """

    leaf: int
    index: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]
    root: int

    @property
    def depth(self) -> int:
        return len(self.path_elements)

    def compute_root(self) -> int:
        current = self.leaf
        for sibling, direction in zip(self.path_elements, self.path_indices):
            if direction:
                current = hash_node(sibling, current)
            else:
                current = hash_node(current, sibling)
        return current


@dataclass(frozen=True)
class PendingWrite:
    """Precomputed node updates for one leaf write."""

    index: int
    old_leaf: Optional[int]
    new_leaf: Optional[int]
    updates: Tuple[Tuple[Tuple[int, int], int], ...]
    base_root: int

    @property
    def new_root(self) -> int:
        return self.updates[-1][1]


def validate_depth(depth: int) -> int:
    if isinstance(depth, bool) or not isinstance(depth, int):
        raise MalformedInput("depth must be an int")
    if depth < MIN_TREE_DEPTH or depth > MAX_TREE_DEPTH:
        raise MalformedInput(
            f"depth must be in [{MIN_TREE_DEPTH}, {MAX_TREE_DEPTH}], got {depth}"
        )
    return depth


def _validate_leaf(leaf: int) -> int:
    if isinstance(leaf, bool) or not isinstance(leaf, int):
        raise MalformedInput("leaf must be an int field element")
    if leaf < 0 or leaf >= FIELD_MODULUS_R:
        raise MalformedInput("leaf outside the scalar field")
    if leaf == EMPTY_LEAF:
        raise MalformedInput("leaf collides with the empty-slot value")
    return leaf


class MerkleTree:
    """
    Sparse Merkle accumulator of fixed depth.

    Example:
        >>> tree = MerkleTree.build([leaf_a, leaf_b, leaf_c], depth=16)
        >>> witness = tree.prove_membership(leaf_b)
        >>> tree.verify_witness(witness)
        True
    """

    def __init__(
        self,
        depth: int = DEFAULT_TREE_DEPTH,
        history_size: int = ROOT_HISTORY_SIZE,
    ):
        self.depth = validate_depth(depth)
        self._zeros = zero_hashes(self.depth)
        self._nodes: Dict[Tuple[int, int], int] = {}
        self._index_of: Dict[int, int] = {}
        self._free: List[int] = []
        self._next_index = 0
        self._history: Deque[int] = deque(maxlen=max(1, history_size))
        self._history.append(self.root)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        leaves: Iterable[int],
        depth: int = DEFAULT_TREE_DEPTH,
        history_size: int = ROOT_HISTORY_SIZE,
    ) -> "MerkleTree":
        """
        Build a tree from ``leaves`` in order, padding with empty slots.

        Raises:
            CapacityExceeded: More leaves than ``2**depth``.
            MalformedInput: Duplicate or invalid leaves.
        """
        tree = cls(depth, history_size)
        values = [_validate_leaf(leaf) for leaf in leaves]
        if len(values) > tree.capacity:
            raise CapacityExceeded(
                f"{len(values)} leaves exceed capacity {tree.capacity}"
            )
        if len(set(values)) != len(values):
            raise MalformedInput("duplicate leaves")

        level_nodes = {}
        for index, leaf in enumerate(values):
            level_nodes[index] = leaf
            tree._index_of[leaf] = index
        tree._next_index = len(values)

        for level in range(tree.depth + 1):
            for index, value in level_nodes.items():
                if value != tree._zeros[level]:
                    tree._nodes[(level, index)] = value
            if level == tree.depth:
                break
            parents = {}
            for parent in sorted({i // 2 for i in level_nodes}):
                parents[parent] = hash_node(
                    level_nodes.get(2 * parent, tree._zeros[level]),
                    level_nodes.get(2 * parent + 1, tree._zeros[level]),
                )
            level_nodes = parents

        tree._history.clear()
        tree._history.append(tree.root)
        return tree

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def size(self) -> int:
        return len(self._index_of)

    @property
    def root(self) -> int:
        return self.node(self.depth, 0)

    @property
    def history(self) -> Tuple[int, ...]:
        return tuple(self._history)

    def node(self, level: int, index: int) -> int:
        return self._nodes.get((level, index), self._zeros[level])

    def leaves(self) -> List[int]:
        return [leaf for leaf, _ in sorted(self._index_of.items(), key=lambda kv: kv[1])]

    def contains(self, leaf: int) -> bool:
        return leaf in self._index_of

    def index_of(self, leaf: int) -> int:
        try:
            return self._index_of[leaf]
        except KeyError:
            raise LeafNotFound("leaf not present in tree") from None

    def is_known_root(self, root: int) -> bool:
        return root in self._history

    def export(self) -> Dict[str, int]:
        return {"root": self.root, "depth": self.depth, "size": self.size}

    # ------------------------------------------------------------------
    # Proofs
    # ------------------------------------------------------------------

    def prove_membership(self, leaf: int) -> MembershipWitness:
        """
        Authentication path for ``leaf`` against the current root.

        Raises:
            LeafNotFound: If the leaf is absent.
        """
        index = self.index_of(leaf)
        elements = []
        indices = []
        position = index
        for level in range(self.depth):
            elements.append(self.node(level, position ^ 1))
            indices.append(position & 1)
            position >>= 1
        return MembershipWitness(
            leaf=leaf,
            index=index,
            path_elements=tuple(elements),
            path_indices=tuple(indices),
            root=self.root,
        )

    def verify_witness(
        self, witness: MembershipWitness, root: Optional[int] = None
    ) -> bool:
        """Recompute the root from ``witness`` and compare."""
        if witness.depth != self.depth:
            return False
        expected = witness.root if root is None else root
        return witness.compute_root() == expected

    # ------------------------------------------------------------------
    # Writes (prepare + commit)
    # ------------------------------------------------------------------

    def _plan(self, index: int, value: int) -> Tuple[Tuple[Tuple[int, int], int], ...]:
        updates = [((0, index), value)]
        current = value
        position = index
        for level in range(self.depth):
            sibling = self.node(level, position ^ 1)
            if position & 1:
                current = hash_node(sibling, current)
            else:
                current = hash_node(current, sibling)
            position >>= 1
            updates.append(((level + 1, position), current))
        return tuple(updates)

    def _next_free_index(self) -> int:
        if self._free:
            return self._free[0]
        if self._next_index >= self.capacity:
            raise CapacityExceeded(f"tree of capacity {self.capacity} is full")
        return self._next_index

    def prepare_insert(self, leaf: int) -> PendingWrite:
        leaf = _validate_leaf(leaf)
        if leaf in self._index_of:
            raise MalformedInput("leaf already present")
        index = self._next_free_index()
        return PendingWrite(index, None, leaf, self._plan(index, leaf), self.root)

    def prepare_remove(self, leaf: int) -> PendingWrite:
        index = self.index_of(leaf)
        return PendingWrite(index, leaf, None, self._plan(index, EMPTY_LEAF), self.root)

    def prepare_update(self, old_leaf: int, new_leaf: int) -> PendingWrite:
        index = self.index_of(old_leaf)
        new_leaf = _validate_leaf(new_leaf)
        if new_leaf in self._index_of:
            raise MalformedInput("leaf already present")
        return PendingWrite(index, old_leaf, new_leaf, self._plan(index, new_leaf), self.root)

    def commit(self, pending: PendingWrite) -> int:
        """
        Apply a prepared write and return the new root.

        Raises:
            RuntimeError: If the tree changed since the write was prepared.
        """
        if pending.base_root != self.root:
            raise RuntimeError("tree changed since write was prepared")

        for (level, index), value in pending.updates:
            if value == self._zeros[level]:
                self._nodes.pop((level, index), None)
            else:
                self._nodes[(level, index)] = value

        if pending.old_leaf is not None:
            del self._index_of[pending.old_leaf]
        if pending.new_leaf is not None:
            self._index_of[pending.new_leaf] = pending.index
            if self._free and self._free[0] == pending.index:
                heapq.heappop(self._free)
            elif pending.index == self._next_index:
                self._next_index += 1
        else:
            heapq.heappush(self._free, pending.index)

        self._history.append(self.root)
        return self.root

    def insert(self, leaf: int) -> int:
        """
        Insert ``leaf`` into the lowest free slot and return its index.

        Raises:
            CapacityExceeded: If every slot is taken.
            MalformedInput: If the leaf is invalid or already present.
        """
        pending = self.prepare_insert(leaf)
        self.commit(pending)
        return pending.index

    def remove(self, leaf: int) -> int:
        """Empty the slot holding ``leaf`` and return the new root."""
        return self.commit(self.prepare_remove(leaf))

    def update(self, old_leaf: int, new_leaf: int) -> int:
        """Replace ``old_leaf`` in place and return the new root."""
        return self.commit(self.prepare_update(old_leaf, new_leaf))


def verify_path(
    leaf: int,
    path_elements: Sequence[int],
    path_indices: Sequence[int],
    root: int,
) -> bool:
    """Check an authentication path without a tree instance."""
    witness = MembershipWitness(
        leaf=leaf,
        index=0,
        path_elements=tuple(path_elements),
        path_indices=tuple(path_indices),
        root=root,
    )
    return witness.compute_root() == root
