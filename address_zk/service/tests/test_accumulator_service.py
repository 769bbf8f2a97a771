"""Tests for the single-writer accumulator service."""

import pickle
import threading

import pytest

from address_zk.service.accumulator import AccumulatorService
from address_zk.zk_protocol.exceptions import LeafNotFound, StaleRoot
from address_zk.zk_protocol.merkle import MerkleTree, verify_path
from address_zk.zk_protocol.pid import identifier_to_field, leaf_for


def _leaf(pid: str) -> int:
    return leaf_for(identifier_to_field(pid))


A, B, C, D = (_leaf(p) for p in ("JP-1-1", "JP-1-2", "JP-1-3", "JP-1-4"))


def test_build_matches_tree() -> None:
    service = AccumulatorService.build([A, B, C], depth=3, name="delivery")
    assert service.root == MerkleTree.build([A, B, C], 3).root
    assert service.depth == 3
    assert service.export() == {"root": service.root, "depth": 3, "size": 3}
    assert service.contains(B) and not service.contains(D)


def test_witness_is_stamped_with_root() -> None:
    service = AccumulatorService.build([A, B, C], depth=3)
    witness = service.witness(B)
    assert witness.root == service.root
    assert verify_path(B, witness.path_elements, witness.path_indices, witness.root)
    with pytest.raises(LeafNotFound):
        service.witness(D)


def test_stale_root_detection() -> None:
    service = AccumulatorService.build([A, B], depth=3)
    old = service.witness(A)
    service.insert(C)
    with pytest.raises(StaleRoot) as exc:
        service.assert_current(old.root)
    assert exc.value.witness_root == old.root
    assert exc.value.current_root == service.root
    assert service.is_known_root(old.root)

    stale = pickle.loads(pickle.dumps(exc.value))
    assert stale.current_root == service.root


def test_fresh_witness() -> None:
    service = AccumulatorService.build([A, B], depth=3)
    witness = service.witness(A)
    assert service.fresh_witness(A, witness) is witness
    service.insert(C)
    renewed = service.fresh_witness(A, witness)
    assert renewed.root == service.root != witness.root
    service.assert_current(renewed.root)


def test_remove_and_update() -> None:
    service = AccumulatorService.build([A, B, C], depth=3)
    before = service.root
    root = service.remove(B)
    assert root == service.root != before
    assert not service.contains(B)
    assert service.insert(D) == 1
    service.update(D, B)
    assert service.root == before


def test_concurrent_inserts_are_serialised() -> None:
    service = AccumulatorService(depth=6)
    leaves = [_leaf(f"JP-9-{i}") for i in range(40)]
    placed = []
    lock = threading.Lock()

    def writer(chunk):
        for leaf in chunk:
            index = service.insert(leaf)
            with lock:
                placed.append((index, leaf))

    threads = [threading.Thread(target=writer, args=(leaves[i::4],)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    placed.sort()
    assert [index for index, _ in placed] == list(range(40))
    assert sorted(leaf for _, leaf in placed) == sorted(leaves)
    expected = MerkleTree(6)
    for index, leaf in placed:
        assert expected.insert(leaf) == index
    slot_of = {leaf: index for index, leaf in placed}
    assert service.witness(leaves[7]).index == slot_of[leaves[7]]
    assert service.root == expected.root


def test_readers_see_consistent_witnesses() -> None:
    service = AccumulatorService.build([A], depth=6)
    stop = threading.Event()
    failures = []

    def reader():
        while not stop.is_set():
            w = service.witness(A)
            if not verify_path(A, w.path_elements, w.path_indices, w.root):
                failures.append(w)

    thread = threading.Thread(target=reader)
    thread.start()
    try:
        for i in range(20):
            service.insert(_leaf(f"JP-8-{i}"))
    finally:
        stop.set()
        thread.join()
    assert failures == []
