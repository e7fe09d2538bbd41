"""Search runner wiring config, worker pool and population together."""

from __future__ import annotations

from configs.loader import ConfigLoader, SearchConfig
from core.deterministic_rng import DeterministicRNG
from data.logger import SearchLogger
from evolution.genome import gene_generator
from evolution.population import Population, SearchOutcome
from workers.pool import ProcessWorkerPool, WorkerPool


def build_pool(config: SearchConfig) -> WorkerPool:
    """Create (but do not start) the process pool described by ``config``."""
    return ProcessWorkerPool(
        goal=config.goal,
        tape_size=config.tape_size,
        max_ops=config.max_ops,
        workers=config.workers,
    )


def build_population(
    config: SearchConfig,
    pool: WorkerPool,
    logger: SearchLogger | None = None,
) -> Population:
    """Build a population with seeded gene and selection streams."""
    rng = DeterministicRNG(config.seed)
    run_id = None
    if logger is not None:
        run_id = logger.start_run(config=config.to_dict(), seed=int(rng.seed or 0))

    return Population(
        population_size=config.population_size,
        genome_length=config.genome_length,
        rates=config.rates,
        pool=pool,
        generator=gene_generator(rng.stream("genes")),
        rng=rng.stream("selection"),
        report_interval=config.report_interval,
        logger=logger,
        run_id=run_id,
    )


def run_search(
    config: SearchConfig,
    pool: WorkerPool | None = None,
    logger: SearchLogger | None = None,
) -> SearchOutcome:
    """Start the pool, evolve until a winner appears, and shut the pool down."""
    active_pool = pool or build_pool(config)
    with active_pool:
        population = build_population(config, active_pool, logger=logger)
        return population.live()


def main(config_path: str = "configs/hello.yaml") -> None:
    """Load config and run the search to completion."""
    outcome = run_search(ConfigLoader.load(config_path))
    print(outcome.genome.fitness)
    print(outcome.genome.program)


if __name__ == "__main__":
    main()
