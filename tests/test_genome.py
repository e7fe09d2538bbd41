"""Tests for genome initialization, scoring and mating operators."""

from __future__ import annotations

import random

import pytest

from evolution.genome import Genome, Rates, compare_fitness, gene_generator, random_operation
from machine.tape import OPERATIONS, FitnessResult, TapeMachine

DOT = ord(".")


def _dot() -> int:
    return DOT


def _scored(distance: int, ops_used: int) -> Genome:
    genome = Genome(b"+")
    genome.fitness = FitnessResult(distance=distance, ops_used=ops_used)
    return genome


def test_initialize_draws_length_symbols_from_alphabet() -> None:
    genome = Genome.initialize(64, gene_generator(random.Random(3)))

    assert len(genome) == 64
    assert set(genome.program) <= set(OPERATIONS)
    assert genome.fitness is None


def test_random_operation_covers_alphabet() -> None:
    rng = random.Random(0)

    drawn = {chr(random_operation(rng)) for _ in range(500)}

    assert drawn == set(OPERATIONS)


def test_evaluate_stores_result_and_chains() -> None:
    machine = TapeMachine(goal="hi", tape_size=10, max_ops=1000)
    genome = Genome(("+" * 104 + ".+.").encode("ascii"))

    assert genome.evaluate(machine) is genome
    assert genome.is_winning()


def test_unscored_genome_is_not_winning() -> None:
    assert Genome(b"+.").is_winning() is False


def test_mate_preserves_length_and_sources_every_gene() -> None:
    parent = Genome(b"+" * 200)
    partner = Genome(b"-" * 200)
    target = Genome(b"<" * 200)
    rates = Rates(mutation=0.3, crossover=0.3, roulette_selection=0.3)

    child = parent.mate(partner, target, rates, _dot, rng=random.Random(5))

    assert child is target
    assert len(child) == 200
    assert set(child.program) == {"+", "-", "."}


def test_mate_with_full_mutation_uses_generator_only() -> None:
    child = Genome(b"+" * 10).mate(
        Genome(b"-" * 10), Genome(b"<" * 10), Rates(mutation=1.0), _dot, rng=random.Random(1)
    )

    assert child.program == "." * 10


def test_mate_without_variation_copies_self() -> None:
    rates = Rates(mutation=0.0, crossover=0.0, roulette_selection=0.0)

    child = Genome(b"+-+-<>").mate(Genome(b"......"), Genome(b"]]]]]]"), rates, _dot, rng=random.Random(1))

    assert child.program == "+-+-<>"


def test_crossover_flag_is_sticky_between_positions() -> None:
    rates = Rates(mutation=0.0, crossover=1.0, roulette_selection=0.0)

    child = Genome(b"++++++").mate(Genome(b"------"), Genome(b"......"), rates, _dot, rng=random.Random(1))

    assert child.program == "-+-+-+"


def test_roulette_takes_gene_from_inactive_parent() -> None:
    rates = Rates(mutation=0.0, crossover=0.0, roulette_selection=1.0)

    child = Genome(b"++++").mate(Genome(b"----"), Genome(b"...."), rates, _dot, rng=random.Random(1))

    assert child.program == "----"


def test_mate_clears_stale_fitness() -> None:
    target = _scored(0, 1)

    Genome(b"-").mate(Genome(b"+"), target, Rates(), _dot, rng=random.Random(2))

    assert target.fitness is None


def test_mate_rejects_mismatched_lengths() -> None:
    with pytest.raises(ValueError, match="lengths differ"):
        Genome(b"++").mate(Genome(b"+++"), Genome(b"++"), Rates(), _dot)


def test_mate_rejects_parent_as_target() -> None:
    parent = Genome(b"++")
    with pytest.raises(ValueError, match="target"):
        parent.mate(Genome(b"--"), parent, Rates(), _dot)


def test_compare_fitness_orders_by_distance_then_ops() -> None:
    assert compare_fitness(_scored(1, 50), _scored(2, 1)) == -1
    assert compare_fitness(_scored(2, 1), _scored(1, 50)) == 1
    assert compare_fitness(_scored(3, 4), _scored(3, 9)) == -1
    assert compare_fitness(_scored(3, 9), _scored(3, 9)) == 0
    assert compare_fitness(Genome(b"+"), _scored(99, 99)) == 1


def test_rates_reject_out_of_range_values() -> None:
    with pytest.raises(ValueError, match="mutation"):
        Rates(mutation=1.5)
