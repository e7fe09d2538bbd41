"""Generational GA driver over a fixed arena of genome slots."""

from __future__ import annotations

import enum
import functools
import logging
import math
import random
from dataclasses import dataclass

from core.evaluation_coordinator import EvaluationCoordinator
from data.logger import GenerationSnapshot, SearchLogger
from evolution.genome import GeneGenerator, Genome, Rates, compare_fitness, gene_generator
from workers.pool import WorkerPool

LOGGER = logging.getLogger(__name__)


class PopulationState(str, enum.Enum):
    """Phases of one generation."""

    EVALUATING = "evaluating"
    SELECTING = "selecting"
    MATING = "mating"
    DONE = "done"


@dataclass(frozen=True)
class SearchOutcome:
    """Winning genome and the generation in which it was found."""

    genome: Genome
    generation: int


def survivor_count(survival: float, population_size: int) -> int:
    """Number of top-ranked slots kept unchanged; never fewer than two."""
    return max(2, math.floor(survival * population_size))


class Population:
    """Fixed-size population evolved until some genome reproduces the goal.

    Slots are reused in place: mating overwrites the contents of the lowest
    ranked slots ("victims") and leaves the survivors untouched.
    """

    def __init__(
        self,
        population_size: int,
        genome_length: int,
        rates: Rates,
        pool: WorkerPool,
        generator: GeneGenerator | None = None,
        rng: random.Random | None = None,
        report_interval: int = 100,
        logger: SearchLogger | None = None,
        run_id: str | None = None,
    ) -> None:
        if population_size < 2:
            raise ValueError("population_size must be >= 2 so two distinct parents exist")

        self.rates = rates
        self.rng = rng or random.Random()
        self.generator = generator or gene_generator(self.rng)
        self.genomes = [Genome.initialize(genome_length, self.generator) for _ in range(population_size)]
        self.coordinator = EvaluationCoordinator(pool)
        self.report_interval = int(report_interval)
        self.logger = logger
        self.run_id = run_id

        self.generation = 0
        self.state = PopulationState.EVALUATING
        self.last_snapshot: GenerationSnapshot | None = None

    @property
    def size(self) -> int:
        return len(self.genomes)

    @property
    def survivor_count(self) -> int:
        return survivor_count(self.rates.survival, len(self.genomes))

    def live(self) -> SearchOutcome:
        """Run generations until a winner appears. There is no generation cap."""
        while True:
            winner = self.step_generation()
            if winner is not None:
                return SearchOutcome(genome=winner, generation=self.generation)
            self.generation += 1

    def step_generation(self) -> Genome | None:
        """Evaluate, then either return the first winner or select and mate."""
        if self.state == PopulationState.DONE:
            raise RuntimeError("Population already produced a winner.")

        self.state = PopulationState.EVALUATING
        self.coordinator.evaluate_all(self.genomes)

        winners = [genome for genome in self.genomes if genome.is_winning()]
        if winners:
            self.state = PopulationState.DONE
            winner = winners[0]
            LOGGER.info("winner! generation=%d fitness=%s", self.generation, winner.fitness)
            if self.logger is not None and self.run_id is not None:
                self.logger.log_winner(
                    self.run_id,
                    generation_index=self.generation,
                    program=winner.program,
                    ops_used=winner.fitness.ops_used if winner.fitness else 0,
                )
            return winner

        self.state = PopulationState.SELECTING
        self.genomes.sort(key=functools.cmp_to_key(compare_fitness))
        snapshot = self._snapshot()

        self.state = PopulationState.MATING
        self._mate_victims()

        if self.report_interval > 0 and self.generation % self.report_interval == 0:
            self._report(snapshot)
        self.state = PopulationState.EVALUATING
        return None

    def _mate_victims(self) -> None:
        survivors = self.survivor_count
        for victim_index in range(survivors, len(self.genomes)):
            pick1 = self.rng.randrange(survivors)
            pick2 = self.rng.randrange(survivors)
            while pick2 == pick1:
                pick2 = self.rng.randrange(survivors)
            self.genomes[pick1].mate(
                self.genomes[pick2],
                self.genomes[victim_index],
                self.rates,
                self.generator,
                rng=self.rng,
            )

    def _snapshot(self) -> GenerationSnapshot:
        best = self.genomes[0]
        distances = [genome.fitness.distance for genome in self.genomes if genome.fitness is not None]
        self.last_snapshot = GenerationSnapshot(
            generation_index=self.generation,
            best_distance=best.fitness.distance if best.fitness else -1,
            best_ops_used=best.fitness.ops_used if best.fitness else -1,
            mean_distance=float(sum(distances) / len(distances)) if distances else 0.0,
            best_program=best.program,
        )
        return self.last_snapshot

    def _report(self, snapshot: GenerationSnapshot) -> None:
        LOGGER.info(
            "Generation %d ... best distance=%d ops=%d mean distance=%.2f",
            snapshot.generation_index,
            snapshot.best_distance,
            snapshot.best_ops_used,
            snapshot.mean_distance,
        )
        LOGGER.info("%s", snapshot.best_program)
        if self.logger is not None and self.run_id is not None:
            self.logger.log_generation(self.run_id, snapshot)
