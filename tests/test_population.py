"""Tests for the generational GA driver."""

from __future__ import annotations

import random
from typing import Callable

import pytest

from evolution.genome import Rates, gene_generator
from evolution.population import Population, PopulationState, survivor_count
from workers.pool import InlineWorkerPool

HI_PROGRAM = ("+" * 104 + ".+.").encode("ascii")


def _population(
    goal: str = "hi",
    population_size: int = 10,
    genome_length: int = 110,
    rates: Rates | None = None,
    seed: int = 1,
    generator: Callable[[], int] | None = None,
) -> Population:
    pool = InlineWorkerPool(goal=goal, tape_size=10, max_ops=1000, workers=2)
    pool.start()
    return Population(
        population_size=population_size,
        genome_length=genome_length,
        rates=rates or Rates(survival=0.2),
        pool=pool,
        generator=generator or gene_generator(random.Random(seed)),
        rng=random.Random(seed + 1),
        report_interval=1,
    )


def _plant(population: Population, slot: int, program: bytes) -> None:
    genes = population.genomes[slot].genes
    genes[: len(program)] = program


@pytest.mark.parametrize(
    ("survival", "population_size", "expected"),
    [
        (0.0, 10, 2),
        (0.05, 1000, 50),
        (0.5, 7, 3),
        (1.0, 4, 4),
        (0.1, 2, 2),
        (0.25, 20, 5),
    ],
)
def test_survivor_count_is_clamped_floor(survival: float, population_size: int, expected: int) -> None:
    assert survivor_count(survival, population_size) == expected


def test_population_requires_two_slots() -> None:
    pool = InlineWorkerPool(goal="a", tape_size=4, max_ops=10)
    with pytest.raises(ValueError, match="population_size"):
        Population(population_size=1, genome_length=5, rates=Rates(), pool=pool)


def test_first_winner_in_population_order_is_returned() -> None:
    population = _population()
    _plant(population, 3, HI_PROGRAM)
    _plant(population, 7, HI_PROGRAM + b"+")

    winner = population.step_generation()

    assert winner is population.genomes[3]
    assert winner.is_winning()
    assert population.state == PopulationState.DONE


def test_generation_without_winner_keeps_survivors_and_refills_victims() -> None:
    population = _population(population_size=10, rates=Rates(survival=0.2))
    before = {bytes(g.genes) for g in population.genomes}

    assert population.step_generation() is None

    assert len(population.genomes) == 10
    assert population.state == PopulationState.EVALUATING
    survivors, victims = population.genomes[:2], population.genomes[2:]
    assert all(g.fitness is not None for g in survivors)
    assert all(bytes(g.genes) in before for g in survivors)
    assert all(g.fitness is None for g in victims)
    assert all(len(g) == 110 for g in population.genomes)
    assert survivors[0].fitness.sort_key() <= survivors[1].fitness.sort_key()


def test_snapshot_reports_best_after_sorting() -> None:
    population = _population()

    population.step_generation()

    snapshot = population.last_snapshot
    assert snapshot is not None
    assert snapshot.generation_index == 0
    assert snapshot.best_program == population.genomes[0].program
    assert snapshot.best_distance <= snapshot.mean_distance


def _never_emits() -> int:
    return ord(">")


def test_live_returns_winner_with_generation() -> None:
    # programs that never emit leave the output zeroed, matching a zero goal
    population = _population(goal="\x00", generator=_never_emits)

    outcome = population.live()

    assert outcome.generation == 0
    assert outcome.genome is population.genomes[0]


def test_live_finds_planted_winner_after_first_generation() -> None:
    population = _population(population_size=6, rates=Rates(survival=0.5, mutation=0.0))
    real_step = population.step_generation

    def step_and_plant():
        result = real_step()
        if result is None and population.generation == 0:
            _plant(population, 4, HI_PROGRAM)
        return result

    population.step_generation = step_and_plant  # type: ignore[method-assign]

    outcome = population.live()

    assert outcome.generation == 1
    assert outcome.genome.program.startswith(HI_PROGRAM.decode("ascii"))


def test_same_seed_same_search() -> None:
    first = _population(seed=11)
    second = _population(seed=11)

    for _ in range(3):
        first.step_generation()
        second.step_generation()

    assert [bytes(g.genes) for g in first.genomes] == [bytes(g.genes) for g in second.genomes]


def test_step_after_done_is_rejected() -> None:
    population = _population(goal="\x00", generator=_never_emits)
    population.step_generation()

    with pytest.raises(RuntimeError, match="winner"):
        population.step_generation()
