from __future__ import annotations

import logging
import random
import time
from enum import Enum
from pathlib import Path

from .config import SimulationConfig
from .environment import Environment, Target
from .forager import ForagingAgent, RunContext
from .geometry import Vec3
from .navigation import Navigator
from .persistence import FilePersistence, PersistenceService
from .qtable import LearningStore
from .scheduler import ScheduledTask, Scheduler
from .stats import AgentOutcome, CampaignStats, RunSummary
from .telemetry import TelemetryRecorder

logger = logging.getLogger(__name__)


class CampaignState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    RUN_COMPLETE = "run_complete"
    CAMPAIGN_COMPLETE = "campaign_complete"


class SimulationOrchestrator:
    """Runs a campaign of foraging runs over one world.

    Each run spawns a fresh cohort, ticks until every agent has found the
    target (or the optional deadline passes), logs its duration and, after a
    settle delay, starts the next run. The Q-table and the persisted
    knowledge base carry over between runs.
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        *,
        persistence: PersistenceService | None = None,
    ):
        self.config = config or SimulationConfig()
        self.config.validate()
        world = self.config.world
        campaign = self.config.campaign
        storage = self.config.storage

        # Randomness & reproducibility
        self.base_seed = campaign.seed if campaign.seed is not None else random.randrange(2**32)
        self.seed_rng = random.Random(self.base_seed)
        self.agent_seeds: dict[int, int] = {}

        # Learned data shared by every run
        self.persistence = persistence or FilePersistence(storage.data_dir)
        self.store = LearningStore(self.persistence, training_mode=campaign.training_mode)
        self.store.load()

        # World
        self.env = Environment(world.width, world.depth, cell_size=world.cell_size)
        if world.target_position is not None:
            target_pos = self.env.clamp(Vec3(*world.target_position))
        else:
            target_pos = Vec3(
                self.seed_rng.uniform(0, world.width),
                self.env.ground_y,
                self.seed_rng.uniform(0, world.depth),
            )
        self.target = Target(target_pos, radius=world.target_radius)
        self.env.add_object(self.target)
        placed = self.env.populate(
            self.seed_rng,
            num_obstacles=world.num_obstacles,
            obstacle_radius=(world.obstacle_radius_min, world.obstacle_radius_max),
            keep_clear=[target_pos],
            clearance=world.obstacle_clearance,
        )
        if placed < world.num_obstacles:
            logger.info("Placed %d of %d obstacles", placed, world.num_obstacles)

        self.navigator = Navigator(self.env)
        self.scheduler = Scheduler()
        self.context = RunContext(
            self.store.knowledge,
            no_resource_radius=self.config.agent.no_resource_radius,
        )

        # Campaign state
        self.state = CampaignState.IDLE
        self.current_run = 0
        self.max_runs = campaign.max_runs
        self.agents: list[ForagingAgent] = []
        self._next_agent_id = 1
        self._run_wall_start = 0.0
        self._pending_restart: ScheduledTask | None = None

        # Outputs
        self.stats = CampaignStats()
        self.results_path: Path | None = None
        if storage.results_log:
            self.results_path = Path(storage.data_dir) / storage.results_log
        self.telemetry: TelemetryRecorder | None = None
        if storage.telemetry:
            self.telemetry = TelemetryRecorder(
                f"{self.base_seed}_{time.strftime('%Y%m%d_%H%M%S')}",
                seed=self.base_seed,
                config=self.config.to_dict(),
                base_path=storage.reports_dir,
            )

    def seed_manifest(self) -> dict:
        """Expose the seeds used for the campaign for offline replay."""
        return {
            "base_seed": self.base_seed,
            "agent_seeds": dict(self.agent_seeds),
        }

    # ------------------------------------------------------------------ #
    # Campaign control
    # ------------------------------------------------------------------ #
    def start_simulation(self) -> bool:
        """Begin run 1. Does nothing (returns False) when already started."""
        if self.state is not CampaignState.IDLE:
            logger.debug("Simulation already started")
            return False
        self.stats.clear()
        self.current_run = 1
        self._begin_run()
        return True

    def restart_simulation(self) -> bool:
        """Tear down the current cohort and start the next run.

        Once the last run has completed this only logs and returns False.
        """
        if self.state is CampaignState.CAMPAIGN_COMPLETE or self.current_run >= self.max_runs:
            logger.info("Campaign complete: all %d runs finished, nothing to restart", self.max_runs)
            return False
        if self.state is CampaignState.IDLE:
            logger.warning("Restart requested before the simulation was started")
            return False

        if self._pending_restart is not None:
            self._pending_restart.cancel()
            self._pending_restart = None
        self._clear_agents()
        self.current_run += 1
        self._begin_run()
        return True

    def reset_to_initial(self) -> None:
        """Drop every agent and pending transition; learned data is left as is."""
        self.scheduler.cancel_all()
        self._pending_restart = None
        self._clear_agents()
        self.context.reset(self.scheduler.now)
        self.stats.clear()
        self.current_run = 0
        self.state = CampaignState.IDLE
        logger.info("Simulation reset")

    def stop_simulation(self) -> None:
        """Save the model (training mode only), then reset."""
        self.save_model()
        self.reset_to_initial()

    def save_model(self) -> bool:
        saved = self.store.save_model()
        if saved:
            logger.info("Model saved (%d entries)", len(self.store.q_table))
        return saved

    def shutdown(self) -> None:
        self.store.shutdown()
        if self.telemetry is not None:
            self.telemetry.close()
            self.telemetry = None

    # ------------------------------------------------------------------ #
    # Main loop
    # ------------------------------------------------------------------ #
    def tick(self, dt: float | None = None) -> None:
        """Agents, then scheduled callbacks, then movement."""
        dt = self.config.campaign.tick_seconds if dt is None else dt

        if self.state is CampaignState.RUNNING:
            for agent in self.agents:
                agent.update(dt)
        self.scheduler.advance(dt)
        self.navigator.advance(dt)

        if self.state is CampaignState.RUNNING:
            self._check_run_complete()

    def run_campaign(self, max_ticks: int | None = None) -> CampaignStats:
        """Drive every run to completion (or until ``max_ticks``)."""
        self.start_simulation()
        ticks = 0
        while self.state is not CampaignState.CAMPAIGN_COMPLETE:
            if max_ticks is not None and ticks >= max_ticks:
                logger.warning("Stopping after %d ticks; campaign not complete", ticks)
                break
            self.tick()
            ticks += 1
        return self.stats

    # ------------------------------------------------------------------ #
    # Runs
    # ------------------------------------------------------------------ #
    def _begin_run(self) -> None:
        self.context.reset(self.scheduler.now)
        self._run_wall_start = time.perf_counter()
        self._spawn_cohort()
        self.state = CampaignState.RUNNING
        logger.info("Starting run %d of %d with %d agents", self.current_run, self.max_runs, len(self.agents))

    def _check_run_complete(self) -> None:
        if all(agent.found for agent in self.agents):
            self._complete_run(timed_out=False)
            return

        deadline = self.config.campaign.max_run_seconds
        if deadline is not None and self.scheduler.now - self.context.start_time >= deadline:
            logger.warning(
                "Run %d hit the %.1fs deadline with %d of %d agents found",
                self.current_run,
                deadline,
                self.context.found_count,
                len(self.agents),
            )
            self._complete_run(timed_out=True)

    def _complete_run(self, *, timed_out: bool) -> None:
        sim_seconds = self.scheduler.now - self.context.start_time
        wall_seconds = time.perf_counter() - self._run_wall_start
        self.state = CampaignState.RUN_COMPLETE
        logger.info("Run %d of %d completed in %.2f seconds", self.current_run, self.max_runs, sim_seconds)

        summary = RunSummary(
            run_index=self.current_run,
            sim_seconds=sim_seconds,
            wall_seconds=wall_seconds,
            agents_spawned=len(self.agents),
            agents_found=sum(1 for a in self.agents if a.found),
            found_sighted=self.context.found_by["sighted"],
            found_empathy=self.context.found_by["empathy"],
            timed_out=timed_out,
            q_table_size=len(self.store.q_table),
            no_resource_areas=len(self.context.no_resource),
            agents=[AgentOutcome.from_agent(a, self.context.start_time) for a in self.agents],
        )
        self.stats.record(summary)
        for agent in self.agents:
            agent.despawn()
        self._append_results(summary)
        if self.telemetry is not None:
            self.telemetry.record_run(summary)
        self.save_model()

        if self.current_run < self.max_runs:
            self._pending_restart = self.scheduler.call_later(
                self.config.campaign.settle_delay,
                self.restart_simulation,
            )
        else:
            self.state = CampaignState.CAMPAIGN_COMPLETE
            logger.info("Campaign complete: all %d runs finished", self.max_runs)

    def _append_results(self, summary: RunSummary) -> None:
        if self.results_path is None:
            return
        self.results_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.results_path, "a", encoding="utf-8") as f:
            f.write(f"Run {summary.run_index} of {self.max_runs} completed in {summary.sim_seconds:.2f} seconds.\n")

    # ------------------------------------------------------------------ #
    # Cohort
    # ------------------------------------------------------------------ #
    def _spawn_cohort(self) -> None:
        agent_cfg = self.config.agent
        for i in range(self.config.campaign.num_agents):
            position = self._random_spawn_position()
            if position is None:
                logger.warning("Failed to find a valid spawn position for agent %d", i)
                continue

            agent_id = self._next_agent_id
            self._next_agent_id += 1
            seed_value = self.seed_rng.randrange(2**32)
            self.agent_seeds[agent_id] = seed_value

            agent = ForagingAgent(
                agent_id,
                position,
                target=self.target,
                navigation=self.navigator,
                space=self.env,
                scheduler=self.scheduler,
                context=self.context,
                q_table=self.store.q_table,
                config=agent_cfg,
                learning=self.config.learning,
                rng=random.Random(seed_value),
            )
            self.navigator.register(agent.body, speed=agent_cfg.move_speed)
            self.agents.append(agent)
            agent.start()

        if not self.agents:
            logger.warning("No agents spawned for run %d; it completes immediately", self.current_run)

    def _random_spawn_position(self) -> Vec3 | None:
        campaign = self.config.campaign
        min_x, min_z, max_x, max_z = campaign.spawn_area or (0.0, 0.0, self.env.width, self.env.depth)
        for _ in range(campaign.spawn_attempts):
            pos = Vec3(
                self.seed_rng.uniform(min_x, max_x),
                self.env.ground_y,
                self.seed_rng.uniform(min_z, max_z),
            )
            blocked = any(
                getattr(e, "tag", None) == "obstacle"
                for e in self.env.overlap_sphere(pos, campaign.spawn_clearance)
            )
            if not blocked:
                return pos
        return None

    def _clear_agents(self) -> None:
        for agent in self.agents:
            agent.despawn()
        self.navigator.clear()
        self.agents = []
