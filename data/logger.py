"""SQLite-backed search metadata and per-generation snapshot logging."""

from __future__ import annotations

import hashlib
import json
import platform
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping


@dataclass(frozen=True)
class GenerationSnapshot:
    """Structured per-generation snapshot payload."""

    generation_index: int
    best_distance: int
    best_ops_used: int
    mean_distance: float
    best_program: str


class SearchLogger:
    """Persist search metadata, periodic snapshots and the winner in SQLite."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.connection = sqlite3.connect(self.db_path)
        self.connection.row_factory = sqlite3.Row
        self._ensure_schema()

    def close(self) -> None:
        self.connection.close()

    def _ensure_schema(self) -> None:
        self.connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS search_runs (
                run_id TEXT PRIMARY KEY,
                config_hash TEXT NOT NULL,
                seed INTEGER NOT NULL,
                config_json TEXT NOT NULL,
                runtime_metadata TEXT NOT NULL,
                winner_generation INTEGER,
                winner_program TEXT,
                winner_ops_used INTEGER,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS generation_snapshots (
                run_id TEXT NOT NULL,
                generation_index INTEGER NOT NULL,
                best_distance INTEGER NOT NULL,
                best_ops_used INTEGER NOT NULL,
                mean_distance REAL NOT NULL,
                best_program TEXT NOT NULL,
                PRIMARY KEY (run_id, generation_index),
                FOREIGN KEY (run_id)
                    REFERENCES search_runs (run_id)
                    ON DELETE CASCADE
            );
            """
        )
        self.connection.commit()

    def start_run(self, config: Mapping[str, Any], seed: int, metadata: Mapping[str, Any] | None = None) -> str:
        config_json = json.dumps(dict(config), sort_keys=True)
        runtime_metadata = {"python_version": platform.python_version(), "platform": platform.platform()}
        if metadata:
            runtime_metadata.update(dict(metadata))
        config_hash = hashlib.sha256(config_json.encode("utf-8")).hexdigest()
        run_nonce = str(time.time_ns())
        run_id = hashlib.sha256(f"{config_hash}:{seed}:{run_nonce}".encode("utf-8")).hexdigest()[:16]
        metadata_json = json.dumps(runtime_metadata, sort_keys=True)

        self.connection.execute(
            """
            INSERT OR IGNORE INTO search_runs (
                run_id, config_hash, seed, config_json, runtime_metadata
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (run_id, config_hash, seed, config_json, metadata_json),
        )
        self.connection.commit()
        return run_id

    def log_generation(self, run_id: str, snapshot: GenerationSnapshot) -> None:
        self.connection.execute(
            """
            INSERT OR REPLACE INTO generation_snapshots (
                run_id,
                generation_index,
                best_distance,
                best_ops_used,
                mean_distance,
                best_program
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                run_id,
                snapshot.generation_index,
                snapshot.best_distance,
                snapshot.best_ops_used,
                snapshot.mean_distance,
                snapshot.best_program,
            ),
        )
        self.connection.commit()

    def log_winner(self, run_id: str, generation_index: int, program: str, ops_used: int) -> None:
        self.connection.execute(
            """
            UPDATE search_runs
            SET winner_generation = ?, winner_program = ?, winner_ops_used = ?
            WHERE run_id = ?
            """,
            (generation_index, program, ops_used, run_id),
        )
        self.connection.commit()

    def fetch_generations(self, run_id: str) -> list[dict[str, Any]]:
        """Return ordered generation snapshots for analysis."""
        rows = self.connection.execute(
            """
            SELECT generation_index, best_distance, best_ops_used, mean_distance, best_program
            FROM generation_snapshots
            WHERE run_id = ?
            ORDER BY generation_index ASC
            """,
            (run_id,),
        ).fetchall()
        return [dict(row) for row in rows]

    def fetch_run(self, run_id: str) -> dict[str, Any] | None:
        row = self.connection.execute(
            "SELECT * FROM search_runs WHERE run_id = ?",
            (run_id,),
        ).fetchone()
        return dict(row) if row is not None else None

    def latest_run_id(self) -> str | None:
        """Return most recently created run id, if any."""
        row = self.connection.execute(
            """
            SELECT run_id
            FROM search_runs
            ORDER BY created_at DESC, rowid DESC
            LIMIT 1
            """
        ).fetchone()
        return str(row[0]) if row is not None else None
