"""Pull-based fan-out of genome evaluations across a worker pool."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from evolution.genome import Genome
from machine.tape import FitnessResult
from workers.pool import WorkerPool

LOGGER = logging.getLogger(__name__)


class EvaluationProtocolError(RuntimeError):
    """Raised when a reply cannot be matched to an outstanding request."""


class EvaluationCoordinator:
    """Scores a whole population on a :class:`WorkerPool` behind a barrier.

    Each worker is primed with one request; whenever it replies it is handed
    the next unsent genome, so faster workers take more of the load. Replies
    are matched by their ``index`` field, never by arrival order, and
    :meth:`evaluate_all` returns only once every index has been received.
    """

    def __init__(self, pool: WorkerPool) -> None:
        self.pool = pool
        self.last_dispatch_counts: list[int] = []

    def evaluate_all(self, genomes: Sequence[Genome]) -> dict[int, FitnessResult]:
        total = len(genomes)
        requests = [{"index": index, "genes": bytes(genome.genes)} for index, genome in enumerate(genomes)]
        pending: dict[int, bool] = {index: False for index in range(total)}
        results: dict[int, FitnessResult] = {}
        dispatch_counts = [0] * self.pool.size
        cursor = 0

        def send_next(worker_id: int) -> None:
            nonlocal cursor
            if cursor < total:
                self.pool.send(worker_id, requests[cursor])
                dispatch_counts[worker_id] += 1
                cursor += 1

        for worker_id in range(self.pool.size):
            send_next(worker_id)

        while len(results) < total:
            worker_id, reply = self.pool.receive()
            index = self._claim(pending, reply)
            result = FitnessResult.from_dict(reply["fitness_result"])
            genomes[index].fitness = result
            results[index] = result
            send_next(worker_id)

        self.last_dispatch_counts = dispatch_counts
        LOGGER.debug("Evaluated %d genomes, dispatch per worker: %s", total, dispatch_counts)
        return results

    @staticmethod
    def _claim(pending: dict[int, bool], reply: dict[str, Any]) -> int:
        index = reply.get("index")
        if index not in pending:
            raise EvaluationProtocolError(f"Reply for unknown genome index {index!r}.")
        if pending[index]:
            raise EvaluationProtocolError(f"Duplicate reply for genome index {index}.")
        pending[index] = True
        return int(index)
