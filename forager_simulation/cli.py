"""Command line entry point: run a headless foraging campaign."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import SimulationConfig
from .persistence import FilePersistence
from .reporting import generate_report
from .simulation import SimulationOrchestrator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Multi-agent foraging simulation with Q-learning",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Three training runs with the default cohort
  forager-sim --runs 3

  # Evaluate a saved model without writing it back
  forager-sim --evaluate --data-dir data

  # Heuristic explorers using the knowledge base, with a report
  forager-sim --no-rl --base-knowledge --telemetry --report
        """,
    )
    parser.add_argument("--config", type=str, help="JSON config file")
    parser.add_argument("--agents", type=int, help="Agents per run")
    parser.add_argument("--runs", type=int, help="Runs in the campaign")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--data-dir", type=str, help="Directory for the model, knowledge base and results log")
    parser.add_argument("--tick", type=float, help="Simulated seconds per tick")
    parser.add_argument("--max-run-seconds", type=float, help="Deadline per run (simulated seconds)")
    parser.add_argument("--max-ticks", type=int, help="Hard cap on ticks for the whole campaign")

    parser.add_argument("--evaluate", action="store_true", help="Load the model but never save it")
    parser.add_argument("--no-rl", action="store_true", help="Heuristic exploration instead of Q-learning")
    parser.add_argument("--base-knowledge", action="store_true", help="Use and update the persisted knowledge base")
    parser.add_argument("--no-empathy", action="store_true", help="Disable empathetic sharing and no-resource areas")

    parser.add_argument("--telemetry", action="store_true", help="Record runs to SQLite")
    parser.add_argument("--report", action="store_true", help="Write charts and an HTML summary (implies --telemetry)")
    parser.add_argument("--reports-dir", type=str, help="Where telemetry and reports go")
    parser.add_argument("--log-file", type=str, help="Also write the log to this file")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def config_from_args(args: argparse.Namespace) -> SimulationConfig:
    config = SimulationConfig.from_json(args.config) if args.config else SimulationConfig()

    if args.agents is not None:
        config.campaign.num_agents = args.agents
    if args.runs is not None:
        config.campaign.max_runs = args.runs
    if args.seed is not None:
        config.campaign.seed = args.seed
    if args.tick is not None:
        config.campaign.tick_seconds = args.tick
    if args.max_run_seconds is not None:
        config.campaign.max_run_seconds = args.max_run_seconds
    if args.evaluate:
        config.campaign.training_mode = False

    if args.no_rl:
        config.agent.use_reinforcement_learning = False
    if args.base_knowledge:
        config.agent.use_base_knowledge = True
    if args.no_empathy:
        config.agent.use_empathetic_behavior = False

    if args.data_dir is not None:
        config.storage.data_dir = args.data_dir
    if args.reports_dir is not None:
        config.storage.reports_dir = args.reports_dir
    if args.telemetry or args.report:
        config.storage.telemetry = True

    config.validate()
    return config


def _configure_logging(level: str, log_file: str | None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level, args.log_file)

    try:
        config = config_from_args(args)
    except (OSError, ValueError) as e:
        parser.error(str(e))

    sim = SimulationOrchestrator(config)
    db_path = sim.telemetry.db_path if sim.telemetry is not None else None
    try:
        stats = sim.run_campaign(max_ticks=args.max_ticks)
    finally:
        sim.shutdown()

    totals = stats.discovery_totals()
    logger.info(
        "%d runs, mean %.2f s; found by sight %d, contact %d, empathy %d; %d timeouts",
        stats.runs_completed,
        stats.mean_duration(),
        totals["sighted"],
        totals["contact"],
        totals["empathy"],
        stats.timeouts,
    )

    if args.report and db_path is not None:
        report = generate_report(
            db_path,
            db_path.parent,
            persistence=FilePersistence(config.storage.data_dir),
            num_actions=config.learning.num_actions,
        )
        logger.info("Report written to %s", report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
