"""
Single-writer owner of a Merkle accumulator.

Writers (insert, remove, update) are serialised by a writer lock. The new
path is hashed while readers keep going against the current tree; only the
final swap of path nodes happens under the publish lock. Readers receive
witnesses stamped with the root they were generated against, so a caller
can always tell which root a proof will bind to.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, Optional

from ..logging_config import get_logger, log_accumulator_write
from ..zk_protocol.config import DEFAULT_TREE_DEPTH, ROOT_HISTORY_SIZE
from ..zk_protocol.exceptions import StaleRoot
from ..zk_protocol.merkle import MembershipWitness, MerkleTree, PendingWrite

logger = get_logger(__name__)


class AccumulatorService:
    """
    Thread-safe accumulator service.

    Args:
        tree: Existing tree to take ownership of; a new empty tree of
            ``depth`` when omitted
        depth: Depth of the new tree
        name: Label used in log events

    Example:
        >>> service = AccumulatorService.build([leaf_a, leaf_b], depth=10)
        >>> witness = service.witness(leaf_a)
        >>> service.insert(leaf_c)
        >>> service.assert_current(witness.root)  # raises StaleRoot
    """

    def __init__(
        self,
        tree: Optional[MerkleTree] = None,
        *,
        depth: int = DEFAULT_TREE_DEPTH,
        name: str = "default",
    ):
        self._tree = tree if tree is not None else MerkleTree(depth)
        self.name = name
        self._writer = threading.Lock()
        self._publish = threading.Lock()

    @classmethod
    def build(
        cls,
        leaves: Iterable[int],
        depth: int = DEFAULT_TREE_DEPTH,
        *,
        history_size: int = ROOT_HISTORY_SIZE,
        name: str = "default",
    ) -> "AccumulatorService":
        return cls(MerkleTree.build(leaves, depth, history_size), name=name)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def depth(self) -> int:
        return self._tree.depth

    @property
    def root(self) -> int:
        with self._publish:
            return self._tree.root

    def export(self) -> Dict[str, int]:
        with self._publish:
            return self._tree.export()

    def contains(self, leaf: int) -> bool:
        with self._publish:
            return self._tree.contains(leaf)

    def is_known_root(self, root: int) -> bool:
        with self._publish:
            return self._tree.is_known_root(root)

    def witness(self, leaf: int) -> MembershipWitness:
        """
        Membership witness from a consistent snapshot.

        Raises:
            LeafNotFound: If the leaf is absent.
        """
        with self._publish:
            return self._tree.prove_membership(leaf)

    def assert_current(self, root: int) -> None:
        """
        Raises:
            StaleRoot: ``root`` is not the current root; carries both roots.
        """
        current = self.root
        if root != current:
            raise StaleRoot(root, current)

    def fresh_witness(self, leaf: int, previous: Optional[MembershipWitness] = None) -> MembershipWitness:
        """Return ``previous`` if it is still current, otherwise a new witness."""
        with self._publish:
            if previous is not None and previous.root == self._tree.root:
                return previous
            return self._tree.prove_membership(leaf)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _apply(self, operation: str, pending: PendingWrite) -> int:
        with self._publish:
            old_root = self._tree.root
            new_root = self._tree.commit(pending)
        log_accumulator_write(
            logger,
            operation,
            pending.index,
            old_root,
            new_root,
            accumulator=self.name,
        )
        return new_root

    def insert(self, leaf: int) -> int:
        """
        Insert a leaf and return its slot index.

        Raises:
            CapacityExceeded: If the tree is full.
            MalformedInput: If the leaf is invalid or already present.
        """
        with self._writer:
            pending = self._tree.prepare_insert(leaf)
            self._apply("insert", pending)
            return pending.index

    def remove(self, leaf: int) -> int:
        """Remove a leaf and return the new root."""
        with self._writer:
            return self._apply("remove", self._tree.prepare_remove(leaf))

    def update(self, old_leaf: int, new_leaf: int) -> int:
        """Replace a leaf in place and return the new root."""
        with self._writer:
            return self._apply("update", self._tree.prepare_update(old_leaf, new_leaf))
