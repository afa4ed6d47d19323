from __future__ import annotations

import sqlite3
from pathlib import Path

import matplotlib.pyplot as plt

from .persistence import PersistenceService
from .qtable import MODEL_KEY, QTable


class ReportGenerator:
    def __init__(self, db_path: Path, output_dir: Path) -> None:
        self.db_path = Path(db_path)
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        (self.output_dir / "charts").mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------ #
    def load_data(self):
        conn = sqlite3.connect(self.db_path)
        cur = conn.cursor()
        cur.execute("SELECT * FROM runs ORDER BY run_index ASC")
        run_rows = cur.fetchall()
        run_cols = [d[0] for d in cur.description]

        cur.execute("SELECT found_via, found_after FROM agent_outcomes")
        outcomes = cur.fetchall()

        cur.execute("SELECT campaign_id, seed, start_time FROM campaign_meta")
        meta_row = cur.fetchone()
        meta_cols = [d[0] for d in cur.description]
        conn.close()

        runs = [dict(zip(run_cols, row)) for row in run_rows]
        meta = dict(zip(meta_cols, meta_row)) if meta_row else {}
        return runs, outcomes, meta

    # ------------------------------------------------------------------ #
    def plot_run_durations(self, runs):
        if not runs:
            return None
        idx = [r["run_index"] for r in runs]
        durations = [r["sim_seconds"] for r in runs]
        colors = ["#e15759" if r["timed_out"] else "#4e79a7" for r in runs]

        fig, ax = plt.subplots(figsize=(8, 4))
        ax.bar(idx, durations, color=colors)
        ax.set_xlabel("Run")
        ax.set_ylabel("Simulated seconds")
        ax.set_xticks(idx)
        path = self.output_dir / "charts" / "run_durations.png"
        fig.tight_layout()
        fig.savefig(path)
        plt.close(fig)
        return path

    def plot_discovery_modes(self, outcomes):
        counts = {}
        for via, _ in outcomes:
            if via is None:
                continue
            counts[via] = counts.get(via, 0) + 1
        if not counts:
            return None

        labels = list(counts)
        sizes = [counts[c] for c in labels]

        fig, ax = plt.subplots(figsize=(5, 5))
        ax.pie(sizes, labels=labels, autopct="%1.0f%%")
        ax.set_title("How agents learnt the target location")
        path = self.output_dir / "charts" / "discovery_modes.png"
        fig.savefig(path)
        plt.close(fig)
        return path

    def plot_time_to_find(self, outcomes):
        times = [row[1] for row in outcomes if row[1] is not None]
        if not times:
            return None
        fig, ax = plt.subplots(figsize=(6, 4))
        ax.hist(times, bins=15, color="#9c755f", edgecolor="black")
        ax.set_xlabel("Seconds until found")
        ax.set_ylabel("Agents")
        path = self.output_dir / "charts" / "time_to_find.png"
        fig.tight_layout()
        fig.savefig(path)
        plt.close(fig)
        return path

    def plot_q_table(self, q_table: QTable | None, num_actions: int = 8):
        if q_table is None or len(q_table) == 0:
            return None
        grid = q_table.as_array(num_actions)

        fig, ax = plt.subplots(figsize=(6, max(3, 0.3 * grid.shape[0])))
        im = ax.imshow(grid, aspect="auto", cmap="viridis", origin="lower")
        ax.set_xlabel("Action")
        ax.set_ylabel("State (distance bin)")
        fig.colorbar(im, ax=ax, label="Q")
        path = self.output_dir / "charts" / "q_table.png"
        fig.tight_layout()
        fig.savefig(path)
        plt.close(fig)
        return path

    def write_html(self, meta, runs, charts):
        html_path = self.output_dir / "summary.html"
        parts = ["<html><head><title>Forager Campaign Report</title></head><body>"]
        parts.append("<h1>Campaign summary</h1>")
        parts.append("<ul>")
        for key, value in meta.items():
            parts.append(f"<li><b>{key}</b>: {value}</li>")
        parts.append(f"<li><b>runs</b>: {len(runs)}</li>")
        parts.append("</ul>")

        if runs:
            parts.append("<table border='1'><tr><th>Run</th><th>Seconds</th><th>Found</th><th>Timed out</th></tr>")
            for r in runs:
                parts.append(
                    f"<tr><td>{r['run_index']}</td><td>{r['sim_seconds']:.2f}</td>"
                    f"<td>{r['agents_found']}/{r['agents_spawned']}</td><td>{bool(r['timed_out'])}</td></tr>"
                )
            parts.append("</table>")

        for title, path in charts:
            if path is None:
                continue
            rel = Path("charts") / Path(path).name
            parts.append(f"<h2>{title}</h2><img src='{rel}' alt='{title}' style='max-width: 100%;'>")

        parts.append("</body></html>")
        html_path.write_text("\n".join(parts), encoding="utf-8")
        return html_path

    def generate(self, q_table: QTable | None = None, num_actions: int = 8):
        runs, outcomes, meta = self.load_data()
        charts = [
            ("Run durations", self.plot_run_durations(runs)),
            ("Discovery modes", self.plot_discovery_modes(outcomes)),
            ("Time to find", self.plot_time_to_find(outcomes)),
            ("Q-table", self.plot_q_table(q_table, num_actions)),
        ]
        return self.write_html(meta, runs, charts)


def generate_report(
    db_path: Path,
    output_dir: Path,
    *,
    persistence: PersistenceService | None = None,
    num_actions: int = 8,
) -> Path:
    """Write charts and ``summary.html``; the Q-table heatmap needs ``persistence``."""
    q_table = None
    if persistence is not None:
        q_table = QTable(persistence.load_table(MODEL_KEY))
    generator = ReportGenerator(db_path, output_dir)
    return generator.generate(q_table, num_actions)


__all__ = ["generate_report", "ReportGenerator"]
