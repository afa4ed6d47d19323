from __future__ import annotations

import logging
import math
import random
from collections import Counter
from enum import Enum

from .config import AgentConfig, LearningConfig
from .decision import DecisionEngine
from .environment import AgentBody, WorldObject
from .fuzzy import FuzzyState, fuzzy_similarity, sample_fuzzy_state
from .geometry import Vec3, distance, planar_distance
from .interfaces import NavigationService, SpatialQueryService
from .knowledge import KnowledgeBase, NoResourceAreaMap
from .memory import SpatialMemory
from .qtable import QTable
from .scheduler import ScheduledTask, Scheduler
from .sensors.vision import Vision

logger = logging.getLogger(__name__)


class RunState(Enum):
    SEARCHING = "searching"
    FOUND = "found"


class RunContext:
    """State shared by the agents of one run.

    Holds the found counter and the per-run no-resource list (layered over
    the persisted one). Rebuilt by the orchestrator before every cohort.
    """

    def __init__(self, knowledge: KnowledgeBase, *, no_resource_radius: float = 5.0, start_time: float = 0.0):
        self.knowledge = knowledge
        self.no_resource = NoResourceAreaMap(no_resource_radius, knowledge)
        self.found_count = 0
        self.found_by: Counter[str] = Counter()
        self.start_time = start_time

    def report_found(self, agent: "ForagingAgent", via: str) -> None:
        self.found_count += 1
        self.found_by[via] += 1
        logger.debug("Agent %d found the target (%s); %d found so far", agent.agent_id, via, self.found_count)

    def reset(self, start_time: float) -> None:
        self.found_count = 0
        self.found_by.clear()
        self.no_resource.clear()
        self.start_time = start_time


class ForagingAgent:
    """
    One forager of a run:
    - sighting (view cone + line of sight) and contact detection of the target
    - Q-learning moves, or heuristic exploration away from remembered points
    - no-resource marking when an exploration leg ends empty-handed
    - empathetic adoption of a peer's target through fuzzy similarity
    - stuck rescue when the path stops making progress
    Movement goes through a :class:`NavigationService`; world queries through
    a :class:`SpatialQueryService`.
    """

    def __init__(
        self,
        agent_id: int,
        position: Vec3,
        *,
        target: WorldObject,
        navigation: NavigationService,
        space: SpatialQueryService,
        scheduler: Scheduler,
        context: RunContext,
        q_table: QTable,
        config: AgentConfig | None = None,
        learning: LearningConfig | None = None,
        rng: random.Random | None = None,
    ):
        self.agent_id = agent_id
        self.config = config or AgentConfig()
        self.rng = rng or random.Random()

        # ---------------------------
        # Collaborators
        # ---------------------------
        self.target = target
        self.navigation = navigation
        self.space = space
        self.scheduler = scheduler
        self.context = context
        self.body = AgentBody(agent_id, position, owner=self, radius=self.config.body_radius)

        # ---------------------------
        # Behaviour modes
        # ---------------------------
        self.use_reinforcement_learning = self.config.use_reinforcement_learning
        self.use_base_knowledge = self.config.use_base_knowledge
        self.use_empathetic_behavior = self.config.use_empathetic_behavior

        # ---------------------------
        # Perception, memory, learning
        # ---------------------------
        self.vision = Vision(self.config.field_of_view, self.config.detection_range)
        self.memory = SpatialMemory(self.config.max_memory_count, self.config.memory_radius)
        self.decision = DecisionEngine(
            q_table,
            learning,
            rng=self.rng,
            wander_radius=self.config.wander_radius,
        )

        # ---------------------------
        # Run state
        # ---------------------------
        self.state = RunState.SEARCHING
        self.target_point: Vec3 | None = None
        self.found_via: str | None = None
        self.found_at: float | None = None
        self.last_position = position
        self.stuck_timer = 0.0
        self.stuck_rescues = 0
        self.active = False
        self._touching_obstacle = False
        self._exploration_task: ScheduledTask | None = None

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #
    @property
    def position(self) -> Vec3:
        return self.navigation.position(self.agent_id)

    @property
    def heading(self) -> float:
        return self.navigation.heading(self.agent_id)

    @property
    def found(self) -> bool:
        return self.state is RunState.FOUND

    @property
    def searching(self) -> bool:
        return self.state is RunState.SEARCHING

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def start(self) -> None:
        """Pick the first destination; the body must already be registered."""
        self.active = True
        self.last_position = self.position

        if self.use_reinforcement_learning:
            dest = self.decision.begin(self.position, self.heading, self.target.position)
            self.memory.remember(dest)
            self.navigation.set_destination(self.agent_id, dest)
            return

        if self.use_base_knowledge:
            best = self.context.knowledge.best_food_location()
            if best is not None:
                logger.debug("Agent %d heading to known target location %s", self.agent_id, best)
                self.navigation.set_destination(self.agent_id, best)

        self._exploration_task = self.scheduler.call_every(
            self.config.exploration_interval,
            self._exploration_cycle,
            first_delay=0.0,
        )

    def despawn(self) -> None:
        self.active = False
        self._cancel_exploration()
        self.decision.reset()

    def update(self, dt: float) -> None:
        """One tick of detection, learning and movement intent."""
        if not self.active:
            return

        if self.searching:
            self._detect_target()
        if self.searching and self.use_empathetic_behavior:
            self._detect_peers()
        if self.searching:
            self._check_obstacle_contact()

        if (
            self.use_reinforcement_learning
            and self.searching
            and not self.navigation.has_pending_path(self.agent_id)
            and self.navigation.remaining_distance(self.agent_id) < self.config.arrival_threshold
        ):
            self._reinforcement_step()

        if self.searching:
            self._check_stuck(dt)
        self.last_position = self.position

    # ------------------------------------------------------------------ #
    # Fuzzy state
    # ------------------------------------------------------------------ #
    def fuzzy_state(self) -> FuzzyState:
        d = distance(self.position, self.target.position) if self.target is not None else None
        return sample_fuzzy_state(self.rng, d, self.config.fuzzy_distance_scale)

    # ------------------------------------------------------------------ #
    # Detection
    # ------------------------------------------------------------------ #
    def _detect_target(self) -> None:
        pos = self.position
        target_pos = self.target.position

        reach = self.body.radius + self.target.radius + self.config.contact_margin
        if planar_distance(pos, target_pos) <= reach:
            self._on_target_found("contact")
            return

        if self.vision.can_see(self.space, pos, self.heading, target_pos, lambda e: e.tag == "target"):
            self._on_target_found("sighted")

    def _on_target_found(self, via: str) -> None:
        target_pos = self.target.position
        self._mark_found(target_pos, via)
        self.navigation.set_destination(self.agent_id, target_pos)

        self.context.knowledge.add_food_location(target_pos)
        purged = self.context.no_resource.remove_near(target_pos, persist=self.use_base_knowledge)
        if purged:
            logger.debug("Purged %d no-resource areas around the target", purged)

        if self.use_reinforcement_learning:
            # Terminal update; no further destination is proposed
            self.decision.step(self.position, self.heading, target_pos, reached=True)

    def _detect_peers(self) -> None:
        pos = self.position
        heading = self.heading
        for entity in self.space.overlap_sphere(pos, self.config.detection_range):
            if getattr(entity, "tag", None) != "agent":
                continue
            peer = entity.owner
            if peer is None or peer is self or not peer.found:
                continue
            if not self.vision.in_view(pos, heading, peer.position):
                continue
            if not self.vision.line_of_sight(self.space, pos, peer.position, lambda e, body=entity: e is body):
                continue

            similarity = fuzzy_similarity(self.fuzzy_state(), peer.fuzzy_state())
            if similarity > self.config.similarity_threshold:
                logger.info(
                    "Agent %d adopting destination of agent %d (similarity %.2f)",
                    self.agent_id,
                    peer.agent_id,
                    similarity,
                )
                self._mark_found(peer.target_point, "empathy")
                self.navigation.set_destination(self.agent_id, peer.target_point)
                return

    def _mark_found(self, point: Vec3, via: str) -> None:
        self.state = RunState.FOUND
        self.target_point = point
        self.found_via = via
        self.found_at = self.scheduler.now
        self._cancel_exploration()
        self.context.report_found(self, via)

    # ------------------------------------------------------------------ #
    # Reinforcement learning
    # ------------------------------------------------------------------ #
    def _is_avoided(self, point: Vec3) -> bool:
        return self.memory.is_visited(point) or self.context.no_resource.is_in_no_resource_area(point)

    def _reinforcement_step(self) -> None:
        dest = self.decision.step(
            self.position,
            self.heading,
            self.target.position,
            is_avoided=self._is_avoided,
        )
        if dest is None:
            return
        self.memory.remember(dest)
        self.navigation.set_destination(self.agent_id, dest)

    # ------------------------------------------------------------------ #
    # Exploration
    # ------------------------------------------------------------------ #
    def _random_point_near(self, center: Vec3, radius: float) -> Vec3:
        r = radius * math.sqrt(self.rng.random())
        theta = self.rng.uniform(0.0, 2.0 * math.pi)
        return Vec3(center.x + r * math.cos(theta), center.y, center.z + r * math.sin(theta))

    def new_exploration_point(self) -> Vec3:
        """Farthest of a handful of random nearby points not already covered.

        Candidates inside remembered points, and (with empathetic behaviour)
        inside no-resource areas, are skipped. The chosen point is remembered.
        """
        pos = self.position
        radius = self.config.wander_radius
        best: Vec3 | None = None
        best_distance = -1.0

        for _ in range(self.config.exploration_candidates):
            candidate = self._random_point_near(pos, radius)
            if self.use_empathetic_behavior and self.context.no_resource.is_in_no_resource_area(candidate):
                continue
            if self.memory.is_visited(candidate):
                continue
            d = planar_distance(pos, candidate)
            if d > best_distance:
                best, best_distance = candidate, d

        if best is None:
            best = self._random_point_near(pos, radius)
            logger.debug("Agent %d: every candidate was covered, using a random point", self.agent_id)

        self.memory.remember(best)
        return best

    def wander(self) -> None:
        point = self.new_exploration_point()
        dest = self.navigation.sample_valid_point(point, self.config.wander_radius)
        if dest is not None:
            if dest != point:
                self.memory.remember(dest)
            self.navigation.set_destination(self.agent_id, dest)

    def _exploration_cycle(self) -> None:
        if not self.active or not self.searching:
            self._cancel_exploration()
            return

        if (
            not self.navigation.has_path(self.agent_id)
            or self.navigation.remaining_distance(self.agent_id) < self.config.arrival_threshold
        ):
            if self.use_empathetic_behavior:
                pos = self.position
                if not self.context.no_resource.is_in_no_resource_area(pos):
                    self.context.no_resource.add(pos, persist=self.use_base_knowledge)
            self.wander()

    def _cancel_exploration(self) -> None:
        if self._exploration_task is not None:
            self._exploration_task.cancel()
            self._exploration_task = None

    # ------------------------------------------------------------------ #
    # Safety nets
    # ------------------------------------------------------------------ #
    def _check_obstacle_contact(self) -> None:
        reach = self.body.radius + self.config.contact_margin
        touching = any(
            getattr(e, "tag", None) == "obstacle" for e in self.space.overlap_sphere(self.position, reach)
        )
        if touching and not self._touching_obstacle:
            point = self._random_point_near(self.position, self.config.wander_radius)
            dest = self.navigation.sample_valid_point(point, self.config.wander_radius)
            if dest is not None:
                self.navigation.set_destination(self.agent_id, dest)
        self._touching_obstacle = touching

    def _check_stuck(self, dt: float) -> None:
        moved = planar_distance(self.position, self.last_position)
        if (
            moved < self.config.stuck_epsilon
            and self.navigation.has_path(self.agent_id)
            and self.navigation.remaining_distance(self.agent_id) > self.config.arrival_threshold
        ):
            self.stuck_timer += dt
            if self.stuck_timer > self.config.stuck_duration:
                logger.debug("Agent %d stuck for %.1fs, picking a new point", self.agent_id, self.stuck_timer)
                self.stuck_rescues += 1
                self.stuck_timer = 0.0
                self.wander()
        else:
            self.stuck_timer = 0.0
