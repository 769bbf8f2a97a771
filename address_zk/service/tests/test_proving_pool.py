"""Tests for the bounded proving pool (thread workers, fake provers)."""

import threading
import time

import pytest
import trio

from address_zk.service.pool import ProvingPool
from address_zk.zk_protocol.exceptions import (
    ConstraintViolation,
    PoolSaturated,
    ProvingError,
    ProvingTimeout,
)
from address_zk.zk_protocol.settings import Settings
from address_zk.zk_protocol.types import Proof


class _FakeKey:
    key_id = "version/v1/depth-0"


class _FakeCircuit:
    class circuit_type:
        value = "version"


def _fake_proof(tag: int = 1) -> Proof:
    return Proof(
        circuit_type="version",
        key_id=_FakeKey.key_id,
        proof_bytes=b"\x00" * 256,
        public_signals=(tag,),
    )


def _wait_until(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _blocking_prover(gate: threading.Event):
    def prove_fn(circuit, inputs, proving_key):
        gate.wait(5)
        return _fake_proof(inputs)

    return prove_fn


def test_prove_sync_returns_proof() -> None:
    with ProvingPool(2, 4, 5.0, use_processes=False, prove_fn=lambda c, i, k: _fake_proof(i)) as pool:
        proof = pool.prove_sync(_FakeCircuit(), 7, _FakeKey())
    assert proof.public_signals == (7,)


def test_pool_saturation() -> None:
    gate = threading.Event()
    pool = ProvingPool(1, 1, 5.0, use_processes=False, prove_fn=_blocking_prover(gate))
    try:
        future = pool.submit(_FakeCircuit(), 1, _FakeKey())
        assert pool.pending == 1
        with pytest.raises(PoolSaturated):
            pool.submit(_FakeCircuit(), 2, _FakeKey())
        gate.set()
        assert future.result(timeout=5).public_signals == (1,)
        assert _wait_until(lambda: pool.pending == 0)
        assert pool.submit(_FakeCircuit(), 3, _FakeKey()).result(timeout=5).public_signals == (3,)
    finally:
        gate.set()
        pool.shutdown()


def test_prove_sync_timeout() -> None:
    gate = threading.Event()
    pool = ProvingPool(1, 2, 5.0, use_processes=False, prove_fn=_blocking_prover(gate))
    try:
        with pytest.raises(ProvingTimeout):
            pool.prove_sync(_FakeCircuit(), 1, _FakeKey(), timeout=0.05)
    finally:
        gate.set()
        pool.shutdown()


def test_worker_errors_propagate() -> None:
    def failing(circuit, inputs, proving_key):
        raise ConstraintViolation("version", "identifiers.distinct")

    with ProvingPool(1, 2, 5.0, use_processes=False, prove_fn=failing) as pool:
        with pytest.raises(ConstraintViolation) as exc:
            pool.prove_sync(_FakeCircuit(), 1, _FakeKey())
    assert exc.value.constraint == "identifiers.distinct"


def test_shutdown_refuses_work() -> None:
    pool = ProvingPool(1, 2, 5.0, use_processes=False, prove_fn=lambda c, i, k: _fake_proof())
    pool.shutdown()
    with pytest.raises(ProvingError):
        pool.submit(_FakeCircuit(), 1, _FakeKey())


def test_invalid_limits() -> None:
    with pytest.raises(ValueError):
        ProvingPool(1, 0, use_processes=False)
    with pytest.raises(ValueError):
        ProvingPool(1, 1, 0, use_processes=False)


def test_from_settings(tmp_path) -> None:
    settings = Settings(keys_dir=str(tmp_path), prover_workers=1, max_pending=3, prove_timeout=9.0)
    with ProvingPool.from_settings(settings, use_processes=False) as pool:
        assert pool.max_pending == 3
        assert pool.timeout == 9.0


@pytest.mark.trio
async def test_async_prove() -> None:
    with ProvingPool(2, 4, 5.0, use_processes=False, prove_fn=lambda c, i, k: _fake_proof(i)) as pool:
        results = {}

        async def run(tag):
            results[tag] = await pool.prove(_FakeCircuit(), tag, _FakeKey())

        async with trio.open_nursery() as nursery:
            for tag in (1, 2, 3):
                nursery.start_soon(run, tag)
    assert {tag: proof.public_signals for tag, proof in results.items()} == {
        1: (1,),
        2: (2,),
        3: (3,),
    }


@pytest.mark.trio
async def test_async_timeout() -> None:
    gate = threading.Event()
    pool = ProvingPool(1, 2, 5.0, use_processes=False, prove_fn=_blocking_prover(gate))
    try:
        with pytest.raises(ProvingTimeout):
            await pool.prove(_FakeCircuit(), 1, _FakeKey(), timeout=0.05)
    finally:
        gate.set()
        pool.shutdown()
