from __future__ import annotations

import datetime as _dt
import json
import sqlite3
from pathlib import Path

import numpy as np

from .stats import RunSummary


def _percentiles(data: list[float]) -> tuple[float, float, float]:
    if not data:
        return 0.0, 0.0, 0.0
    arr = np.array(sorted(data))
    return float(np.percentile(arr, 10)), float(np.percentile(arr, 50)), float(np.percentile(arr, 90))


class TelemetryRecorder:
    """SQLite record of a campaign: one row per run, one per agent outcome."""

    def __init__(
        self,
        campaign_id: str,
        *,
        seed: int | None,
        config: dict,
        base_path: str | Path = "reports",
    ) -> None:
        self.campaign_id = campaign_id
        self.seed = seed
        self.config = config

        self.base_path = Path(base_path)
        self.campaign_dir = self.base_path / f"campaign_{self.campaign_id}"
        self.campaign_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = self.campaign_dir / f"campaign_{self.campaign_id}.sqlite"

        self._conn = sqlite3.connect(self.db_path)
        self._init_db()

    # ------------------------------------------------------------------ #
    # Database schema
    # ------------------------------------------------------------------ #
    def _init_db(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS campaign_meta (
                campaign_id TEXT PRIMARY KEY,
                seed INTEGER,
                config TEXT,
                start_time TEXT
            )
            """
        )
        cur.execute(
            """
            INSERT OR REPLACE INTO campaign_meta(campaign_id, seed, config, start_time)
            VALUES (?, ?, ?, ?)
            """,
            (
                self.campaign_id,
                self.seed,
                json.dumps(self.config),
                _dt.datetime.now(_dt.timezone.utc).isoformat(),
            ),
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS runs (
                run_index INTEGER PRIMARY KEY,
                sim_seconds REAL,
                wall_seconds REAL,
                agents_spawned INTEGER,
                agents_found INTEGER,
                found_sighted INTEGER,
                found_contact INTEGER,
                found_empathy INTEGER,
                timed_out INTEGER,
                q_table_size INTEGER,
                no_resource_areas INTEGER,
                p10_found_after REAL,
                median_found_after REAL,
                p90_found_after REAL
            )
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS agent_outcomes (
                run_index INTEGER,
                agent_id INTEGER,
                found INTEGER,
                found_via TEXT,
                found_after REAL,
                stuck_rescues INTEGER,
                memory_size INTEGER,
                rl_steps INTEGER,
                total_reward REAL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------ #
    # Recording
    # ------------------------------------------------------------------ #
    def record_run(self, summary: RunSummary) -> None:
        found_after = [a.found_after for a in summary.agents if a.found_after is not None]
        p10, p50, p90 = _percentiles(found_after)

        cur = self._conn.cursor()
        cur.execute(
            """
            INSERT OR REPLACE INTO runs(
                run_index, sim_seconds, wall_seconds, agents_spawned, agents_found,
                found_sighted, found_contact, found_empathy, timed_out, q_table_size,
                no_resource_areas, p10_found_after, median_found_after, p90_found_after
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                summary.run_index,
                summary.sim_seconds,
                summary.wall_seconds,
                summary.agents_spawned,
                summary.agents_found,
                summary.found_sighted,
                summary.found_contact,
                summary.found_empathy,
                int(summary.timed_out),
                summary.q_table_size,
                summary.no_resource_areas,
                p10,
                p50,
                p90,
            ),
        )
        cur.execute("DELETE FROM agent_outcomes WHERE run_index=?", (summary.run_index,))
        cur.executemany(
            """
            INSERT INTO agent_outcomes(
                run_index, agent_id, found, found_via, found_after,
                stuck_rescues, memory_size, rl_steps, total_reward
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    summary.run_index,
                    a.agent_id,
                    int(a.found),
                    a.found_via,
                    a.found_after,
                    a.stuck_rescues,
                    a.memory_size,
                    a.rl_steps,
                    a.total_reward,
                )
                for a in summary.agents
            ],
        )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()


__all__ = ["TelemetryRecorder"]
