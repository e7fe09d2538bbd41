"""Program genome and the genetic operators applied to it."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Iterable

from machine.tape import OPERATIONS, FitnessResult, TapeMachine, decode

GeneGenerator = Callable[[], int]

_OPERATION_CODES: tuple[int, ...] = tuple(ord(op) for op in OPERATIONS)


def random_operation(rng: random.Random) -> int:
    """Return one instruction symbol drawn uniformly from the alphabet."""
    return _OPERATION_CODES[rng.randrange(len(_OPERATION_CODES))]


def gene_generator(rng: random.Random) -> GeneGenerator:
    """Bind ``random_operation`` to ``rng`` as a zero-argument generator."""
    return lambda: random_operation(rng)


@dataclass(frozen=True)
class Rates:
    """Probabilities steering selection and mating.

    ``rotation`` is accepted for configuration compatibility but has no effect.
    """

    survival: float = 0.05
    mutation: float = 0.05
    crossover: float = 0.05
    roulette_selection: float = 0.05
    rotation: float = 0.05

    def __post_init__(self) -> None:
        for name in ("survival", "mutation", "crossover", "roulette_selection", "rotation"):
            value = getattr(self, name)
            if not 0.0 <= float(value) <= 1.0:
                raise ValueError(f"rate '{name}' must be in [0.0, 1.0], got {value}")


class Genome:
    """Fixed-length instruction sequence plus its most recent fitness result."""

    def __init__(self, genes: Iterable[int] | bytes | bytearray) -> None:
        self.genes = bytearray(genes)
        self.fitness: FitnessResult | None = None

    @classmethod
    def initialize(cls, length: int, generator: GeneGenerator) -> "Genome":
        if length < 1:
            raise ValueError("genome length must be >= 1")
        return cls(generator() for _ in range(length))

    def __len__(self) -> int:
        return len(self.genes)

    def __repr__(self) -> str:
        return f"Genome(program={self.program!r}, fitness={self.fitness!r})"

    @property
    def program(self) -> str:
        return decode(self.genes)

    def evaluate(self, machine: TapeMachine) -> "Genome":
        self.fitness = machine.evaluate(self.genes)
        return self

    def is_winning(self) -> bool:
        return self.fitness is not None and self.fitness.distance == 0

    def mate(
        self,
        partner: "Genome",
        target: "Genome",
        rates: Rates,
        generator: GeneGenerator,
        rng: random.Random | None = None,
    ) -> "Genome":
        """Overwrite ``target`` with an offspring of ``self`` and ``partner``.

        Walks positions left to right. A mutation roll replaces the gene with
        ``generator()``; otherwise a crossover roll flips which parent is active
        for this and all later positions, and a roulette roll takes this one
        gene from the inactive parent. The target's stale fitness is cleared.
        """
        if target is self or target is partner:
            raise ValueError("mating target must not be one of the parents")
        length = len(target)
        if len(self) != length or len(partner) != length:
            raise ValueError(
                f"genome lengths differ: {len(self)}, {len(partner)}, target {length}"
            )

        local_rng = rng or random.Random()
        parents = (self.genes, partner.genes)
        active = 0

        for index in range(length):
            if local_rng.random() < rates.mutation:
                target.genes[index] = generator()
                continue

            if local_rng.random() < rates.crossover:
                active = 1 - active

            source = 1 - active if local_rng.random() < rates.roulette_selection else active
            target.genes[index] = parents[source][index]

        target.fitness = None
        return target


def compare_fitness(a: Genome, b: Genome) -> int:
    """Three-way comparison: negative when ``a`` is fitter than ``b``.

    Unscored genomes rank behind every scored one.
    """
    if a.fitness is None or b.fitness is None:
        return (a.fitness is None) - (b.fitness is None)
    delta = a.fitness.distance - b.fitness.distance
    if delta == 0:
        delta = a.fitness.ops_used - b.fitness.ops_used
    return (delta > 0) - (delta < 0)
