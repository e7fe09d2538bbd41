"""Worker-pool capability: lifecycle, per-worker channels and loss detection."""

from __future__ import annotations

import logging
import multiprocessing
import os
from abc import ABC, abstractmethod
from collections import deque
from multiprocessing.connection import Connection, wait
from typing import Any

from machine.tape import TapeMachine
from workers.tester_worker import handle_request, worker_main

LOGGER = logging.getLogger(__name__)


class WorkerLostError(RuntimeError):
    """Raised when a worker exits while the pool is running. Not recoverable."""

    def __init__(
        self,
        worker_id: int,
        pid: int | None = None,
        exitcode: int | None = None,
        signal: int | None = None,
    ) -> None:
        self.worker_id = worker_id
        self.pid = pid
        self.exitcode = exitcode
        self.signal = signal
        super().__init__(
            f"Tester {pid} (worker {worker_id}) died with code: {exitcode}, and signal: {signal}"
        )


class WorkerPool(ABC):
    """Fixed set of independent evaluation units addressed by worker id.

    Implementations must:
        - create every unit in :meth:`start` and return only once all are ready,
        - deliver each :meth:`send` to exactly the addressed unit,
        - raise :class:`WorkerLostError` from :meth:`receive` when a unit exits.
    """

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of workers in the pool."""

    @abstractmethod
    def start(self) -> None:
        """Create all workers and block until each has reported ready."""

    @abstractmethod
    def send(self, worker_id: int, message: dict[str, Any]) -> None:
        """Send one request to worker ``worker_id``."""

    @abstractmethod
    def receive(self) -> tuple[int, dict[str, Any]]:
        """Block until any worker replies; return ``(worker_id, reply)``."""

    @abstractmethod
    def close(self) -> None:
        """Shut down every worker."""

    def __enter__(self) -> "WorkerPool":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class ProcessWorkerPool(WorkerPool):
    """One ``multiprocessing`` process per worker, each on a private duplex pipe."""

    def __init__(
        self,
        goal: str,
        tape_size: int,
        max_ops: int,
        workers: int | None = None,
        start_method: str | None = None,
        ready_timeout: float | None = None,
    ) -> None:
        self.goal = goal
        self.tape_size = int(tape_size)
        self.max_ops = int(max_ops)
        self._size = max(1, int(workers or os.cpu_count() or 1))
        self._context = multiprocessing.get_context(start_method)
        self._ready_timeout = ready_timeout
        self.processes: list[Any] = []
        self._connections: list[Connection] = []
        self._worker_by_connection: dict[Connection, int] = {}
        self._worker_by_sentinel: dict[int, int] = {}

    @property
    def size(self) -> int:
        return self._size

    def start(self) -> None:
        if self.processes:
            raise RuntimeError("Worker pool already started.")

        for worker_id in range(self._size):
            parent_conn, child_conn = self._context.Pipe(duplex=True)
            process = self._context.Process(
                target=worker_main,
                args=(child_conn, self.goal, self.tape_size, self.max_ops),
                name=f"tester-{worker_id}",
                daemon=True,
            )
            process.start()
            child_conn.close()
            self.processes.append(process)
            self._connections.append(parent_conn)
            self._worker_by_connection[parent_conn] = worker_id
            self._worker_by_sentinel[process.sentinel] = worker_id

        online: set[int] = set()
        while len(online) < self._size:
            worker_id, message = self._next_message(timeout=self._ready_timeout)
            if message.get("event") != "ready":
                raise RuntimeError(f"Worker {worker_id} sent {message!r} before reporting ready.")
            online.add(worker_id)
            LOGGER.info("Tester %s is online", message.get("pid"))
        LOGGER.info("All %d testers online", self._size)

    def send(self, worker_id: int, message: dict[str, Any]) -> None:
        try:
            self._connections[worker_id].send(message)
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise self._lost(worker_id) from exc

    def receive(self) -> tuple[int, dict[str, Any]]:
        return self._next_message()

    def close(self) -> None:
        for conn in self._connections:
            try:
                conn.send(None)
            except OSError:
                # worker already gone; join/terminate below reaps it
                continue
        for process in self.processes:
            process.join(timeout=2)
            if process.is_alive():
                process.terminate()
                process.join(timeout=2)
        for conn in self._connections:
            conn.close()
        self.processes = []
        self._connections = []
        self._worker_by_connection = {}
        self._worker_by_sentinel = {}

    def _next_message(self, timeout: float | None = None) -> tuple[int, dict[str, Any]]:
        if not self._connections:
            raise RuntimeError("Worker pool is not running.")

        ready = wait([*self._connections, *self._worker_by_sentinel], timeout=timeout)
        if not ready:
            raise TimeoutError("Timed out waiting for testers.")

        for obj in ready:
            if isinstance(obj, int) and obj in self._worker_by_sentinel:
                raise self._lost(self._worker_by_sentinel[obj])

        conn = next(obj for obj in ready if isinstance(obj, Connection))
        worker_id = self._worker_by_connection[conn]
        try:
            return worker_id, conn.recv()
        except EOFError as exc:
            raise self._lost(worker_id) from exc

    def _lost(self, worker_id: int) -> WorkerLostError:
        process = self.processes[worker_id]
        process.join(timeout=1)
        exitcode = process.exitcode
        signal = -exitcode if exitcode is not None and exitcode < 0 else None
        error = WorkerLostError(worker_id, pid=process.pid, exitcode=exitcode, signal=signal)
        LOGGER.error("%s", error)
        return error


class InlineWorkerPool(WorkerPool):
    """Runs every worker's interpreter inside the calling process.

    Replies are queued first-in first-out. Useful for single-core runs and for
    deterministic tests of the coordinator.
    """

    def __init__(self, goal: str, tape_size: int, max_ops: int, workers: int = 1) -> None:
        self.goal = goal
        self.tape_size = int(tape_size)
        self.max_ops = int(max_ops)
        self._size = max(1, int(workers))
        self.machines: list[TapeMachine] = []
        self._outbox: deque[tuple[int, dict[str, Any]]] = deque()

    @property
    def size(self) -> int:
        return self._size

    def start(self) -> None:
        self.machines = [
            TapeMachine(goal=self.goal, tape_size=self.tape_size, max_ops=self.max_ops)
            for _ in range(self._size)
        ]
        self._outbox.clear()

    def send(self, worker_id: int, message: dict[str, Any]) -> None:
        if not self.machines:
            raise RuntimeError("Worker pool is not running.")
        self._outbox.append((worker_id, handle_request(self.machines[worker_id], dict(message))))

    def receive(self) -> tuple[int, dict[str, Any]]:
        if not self._outbox:
            raise RuntimeError("No evaluation in flight.")
        return self._outbox.popleft()

    def close(self) -> None:
        self.machines = []
        self._outbox.clear()
