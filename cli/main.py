"""Command-line entry points for running searches and scoring programs."""

from __future__ import annotations

import argparse
import dataclasses
import logging
from pathlib import Path
import sys

# Allow `python cli/main.py ...` execution from IDEs by adding repo root to sys.path.
if __package__ in {None, ""}:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

from configs.loader import ConfigLoader, ConfigValidationError, SearchConfig
from data.logger import SearchLogger
from machine.tape import TapeMachine
from main import run_search
from workers.pool import WorkerLostError

LOGGER = logging.getLogger(__name__)


def _run(config: SearchConfig, db_path: str | None) -> int:
    logger = SearchLogger(Path(db_path)) if db_path else None
    try:
        outcome = run_search(config, logger=logger)
    except WorkerLostError as exc:
        LOGGER.error("Search aborted: %s", exc)
        return 1
    finally:
        if logger is not None:
            logger.close()

    fitness = outcome.genome.fitness
    print(f"generation={outcome.generation} distance={fitness.distance} ops={fitness.ops_used}")
    print(outcome.genome.program)
    return 0


def run_cli(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="bf-evolve")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)

    run_cmd = sub.add_parser("run")
    run_cmd.add_argument("--config", default="configs/hello.yaml")
    run_cmd.add_argument("--db")
    run_cmd.add_argument("--workers", type=int)
    run_cmd.add_argument("--seed", type=int)

    score_cmd = sub.add_parser("score")
    score_cmd.add_argument("program")
    score_cmd.add_argument("--goal", required=True)
    score_cmd.add_argument("--tape-size", type=int, default=50)
    score_cmd.add_argument("--max-ops", type=int, default=10000)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "run":
        try:
            config = ConfigLoader.load(args.config)
        except ConfigValidationError as exc:
            LOGGER.error("%s", exc)
            return 2
        overrides = {}
        if args.workers is not None:
            overrides["workers"] = args.workers
        if args.seed is not None:
            overrides["seed"] = args.seed
        if overrides:
            config = dataclasses.replace(config, **overrides)
        return _run(config, args.db)

    if args.command == "score":
        machine = TapeMachine(goal=args.goal, tape_size=args.tape_size, max_ops=args.max_ops)
        result = machine.evaluate(args.program)
        print(f"distance={result.distance} ops={result.ops_used} output={machine.output_text()!r}")
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(run_cli())
