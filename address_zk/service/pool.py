"""
Bounded proving pool.

Proving is CPU bound and orders of magnitude slower than verification, so
jobs run on a worker pool with bounded admission: once ``max_pending`` jobs
are queued or running, ``submit`` raises ``PoolSaturated`` instead of
queueing without limit. A job that outlives its deadline is a failure; its
result is discarded even if the worker later finishes.
"""

from __future__ import annotations

import concurrent.futures
import threading
import time
from concurrent.futures.process import BrokenProcessPool
from typing import Any, Callable, Optional

import trio

from ..logging_config import get_logger
from ..zk_protocol.circuits.base import Circuit
from ..zk_protocol.exceptions import PoolSaturated, ProvingError, ProvingTimeout
from ..zk_protocol.snark.keys import ProvingKey
from ..zk_protocol.snark.prover import prove
from ..zk_protocol.types import Proof

logger = get_logger(__name__)

ProveFn = Callable[[Circuit, Any, ProvingKey], Proof]


class ProvingPool:
    """
    Worker pool for ``prove`` with backpressure and deadlines.

    Args:
        max_workers: Worker count (defaults to the executor's CPU-based size)
        max_pending: Jobs admitted at once (queued plus running)
        timeout: Default deadline in seconds per job
        use_processes: Process workers (default) or threads
        prove_fn: Proving function; must be picklable for process workers

    Example:
        >>> async with trio.open_nursery():
        ...     proof = await pool.prove(circuit, inputs, proving_key)
    """

    def __init__(
        self,
        max_workers: Optional[int] = None,
        max_pending: int = 16,
        timeout: float = 120.0,
        *,
        use_processes: bool = True,
        prove_fn: ProveFn = prove,
    ):
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if use_processes:
            self._executor: concurrent.futures.Executor = (
                concurrent.futures.ProcessPoolExecutor(max_workers=max_workers)
            )
        else:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="prover"
            )
        self.max_pending = max_pending
        self.timeout = timeout
        self._prove_fn = prove_fn
        self._slots = threading.BoundedSemaphore(max_pending)
        self._lock = threading.Lock()
        self._pending = 0
        self._closed = False

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "ProvingPool":
        return cls(
            max_workers=settings.prover_workers,
            max_pending=settings.max_pending,
            timeout=settings.prove_timeout,
            **kwargs,
        )

    @property
    def pending(self) -> int:
        with self._lock:
            return self._pending

    def _release(self, _future: concurrent.futures.Future) -> None:
        with self._lock:
            self._pending -= 1
        self._slots.release()

    def submit(
        self, circuit: Circuit, inputs: Any, proving_key: ProvingKey
    ) -> concurrent.futures.Future:
        """
        Admit a proving job.

        Raises:
            PoolSaturated: ``max_pending`` jobs are already admitted.
            ProvingError: The pool is shut down.
        """
        if self._closed:
            raise ProvingError("proving pool is shut down")
        if not self._slots.acquire(blocking=False):
            logger.warning(
                "pool_saturated",
                circuit_type=circuit.circuit_type.value,
                max_pending=self.max_pending,
            )
            raise PoolSaturated(f"proving pool is full ({self.max_pending} pending)")
        with self._lock:
            self._pending += 1
        try:
            future = self._executor.submit(self._prove_fn, circuit, inputs, proving_key)
        except BaseException:
            self._release(None)
            raise
        future.add_done_callback(self._release)
        return future

    @staticmethod
    def _result(future: concurrent.futures.Future, timeout: Optional[float]) -> Proof:
        try:
            return future.result(timeout=timeout)
        except BrokenProcessPool as e:
            raise ProvingError("proving worker died") from e

    def prove_sync(
        self,
        circuit: Circuit,
        inputs: Any,
        proving_key: ProvingKey,
        *,
        timeout: Optional[float] = None,
    ) -> Proof:
        """Blocking variant of ``prove`` for non-async callers."""
        deadline = self.timeout if timeout is None else timeout
        future = self.submit(circuit, inputs, proving_key)
        try:
            return self._result(future, deadline)
        except concurrent.futures.TimeoutError:
            future.cancel()
            logger.warning("prove_timeout", key_id=proving_key.key_id, timeout=deadline)
            raise ProvingTimeout(f"proof generation exceeded {deadline}s") from None

    async def prove(
        self,
        circuit: Circuit,
        inputs: Any,
        proving_key: ProvingKey,
        *,
        timeout: Optional[float] = None,
    ) -> Proof:
        """
        Prove on a worker and await the result.

        Raises:
            PoolSaturated: The pool refused the job.
            ProvingTimeout: The deadline passed; no proof is returned.
            ConstraintViolation, MalformedInput, KeyMismatch: From ``prove``.
        """
        deadline = self.timeout if timeout is None else timeout
        start = time.perf_counter()
        future = self.submit(circuit, inputs, proving_key)
        try:
            with trio.fail_after(deadline):
                proof = await trio.to_thread.run_sync(
                    self._result, future, None, abandon_on_cancel=True
                )
        except trio.TooSlowError:
            future.cancel()
            logger.warning("prove_timeout", key_id=proving_key.key_id, timeout=deadline)
            raise ProvingTimeout(f"proof generation exceeded {deadline}s") from None
        logger.debug(
            "pool_job_done",
            key_id=proving_key.key_id,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return proof

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "ProvingPool":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
