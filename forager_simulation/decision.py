from __future__ import annotations

import math
import random
from typing import Callable

from .config import LearningConfig
from .geometry import Vec3, distance, heading_vector
from .qtable import QTable


class DecisionEngine:
    """
    Per-agent Q-learning loop:
    - distance-to-target discretized into bins as the state
    - epsilon-greedy action choice with random tie-breaking
    - exponential distance shaping as the reward
    - one-step Q update against the shared table
    Actions are compass sectors relative to the agent's heading.
    """

    def __init__(
        self,
        q_table: QTable,
        config: LearningConfig | None = None,
        *,
        rng: random.Random | None = None,
        wander_radius: float = 10.0,
    ):
        self.q_table = q_table
        self.config = config or LearningConfig()
        self.rng = rng or random.Random()
        self.wander_radius = wander_radius

        self.state: int = 0
        self.action: int = 0
        self.previous_position: Vec3 | None = None
        self.visited_states: set[int] = set()

        self.last_reward: float = 0.0
        self.total_reward: float = 0.0
        self.steps: int = 0

    # ------------------------------------------------------------------ #
    # Policy pieces
    # ------------------------------------------------------------------ #
    def get_state(self, position: Vec3, target: Vec3) -> int:
        """Distance to target in ``bin_size`` bins."""
        return int(math.floor(distance(position, target) / self.config.bin_size))

    def choose_action(self, state: int) -> int:
        n = self.config.num_actions
        if self.rng.random() < self.config.exploration_rate:
            return self.rng.randrange(n)

        values = self.q_table.values_for(state, n)
        best = max(values)
        ties = [a for a, q in enumerate(values) if abs(q - best) <= self.config.tie_tolerance]
        return self.rng.choice(ties)

    def compute_destination(self, position: Vec3, heading: float, action: int) -> Vec3:
        """Point ``wander_radius`` away in the action's sector, relative to heading."""
        angle = math.radians(action * (360.0 / self.config.num_actions))
        direction = heading_vector(heading + angle)
        return position + direction.scale(self.wander_radius)

    def reward(self, previous_distance: float, current_distance: float, *, reached: bool = False, revisit: bool = False) -> float:
        """Shaped reward for moving from ``previous_distance`` to ``current_distance``.

        ``exp(-λ·d)`` grows toward 1 as the agent closes in, so the same step
        is worth more near the target; moving away is negative.
        """
        lam = self.config.reward_decay
        r = math.exp(-lam * current_distance) - math.exp(-lam * previous_distance)
        if reached:
            r += self.config.goal_bonus
        if revisit:
            r += self.config.visited_state_penalty
        return r

    def update_q(self, state: int, action: int, reward: float, next_state: int) -> float:
        """One Q-learning backup; returns the new Q(state, action)."""
        alpha = self.config.learning_rate
        gamma = self.config.discount_factor
        max_next = self.q_table.max_value(next_state, self.config.num_actions)
        return self.q_table.update(
            state,
            action,
            lambda old: old + alpha * (reward + gamma * max_next - old),
        )

    # ------------------------------------------------------------------ #
    # Episode flow
    # ------------------------------------------------------------------ #
    def begin(self, position: Vec3, heading: float, target: Vec3) -> Vec3:
        """Pick the first state/action and return the first destination."""
        self.previous_position = position
        self.state = self.get_state(position, target)
        self.visited_states.add(self.state)
        self.action = self.choose_action(self.state)
        return self.compute_destination(position, heading, self.action)

    def step(
        self,
        position: Vec3,
        heading: float,
        target: Vec3,
        *,
        reached: bool = False,
        is_avoided: Callable[[Vec3], bool] | None = None,
    ) -> Vec3 | None:
        """Learn from the move just completed and propose the next destination.

        Candidates for which ``is_avoided`` is true are re-drawn up to
        ``destination_retries`` times; the last candidate is used if every
        draw is avoided. Returns ``None`` when ``reached`` (nothing left to
        explore).
        """
        new_state = self.get_state(position, target)
        revisit = new_state in self.visited_states
        if not revisit:
            self.visited_states.add(new_state)

        prev = self.previous_position if self.previous_position is not None else position
        r = self.reward(
            distance(prev, target),
            distance(position, target),
            reached=reached,
            revisit=revisit,
        )
        self.update_q(self.state, self.action, r, new_state)

        self.last_reward = r
        self.total_reward += r
        self.steps += 1

        self.state = new_state
        self.previous_position = position
        if reached:
            return None

        candidate = position
        for _ in range(self.config.destination_retries):
            self.action = self.choose_action(new_state)
            candidate = self.compute_destination(position, heading, self.action)
            if is_avoided is None or not is_avoided(candidate):
                break
        return candidate

    def reset(self) -> None:
        self.visited_states.clear()
        self.previous_position = None
        self.state = 0
        self.action = 0
        self.last_reward = 0.0
        self.total_reward = 0.0
        self.steps = 0
