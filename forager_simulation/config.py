"""
Forager Simulation Configuration
================================
Dataclass configuration for the world, the agents, Q-learning and the
multi-run campaign. Defaults reproduce the reference scenario.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


@dataclass
class WorldConfig:
    """Ground plane and static objects"""
    width: float = 60.0
    depth: float = 60.0
    cell_size: float = 10.0

    # Target resource; None places it uniformly at random
    target_position: Optional[Tuple[float, float, float]] = None
    target_radius: float = 0.5

    num_obstacles: int = 12
    obstacle_radius_min: float = 1.0
    obstacle_radius_max: float = 2.5
    obstacle_clearance: float = 3.0  # kept free around the target


@dataclass
class AgentConfig:
    """Forager behaviour and perception"""
    detection_range: float = 10.0
    move_speed: float = 3.5
    wander_radius: float = 10.0
    field_of_view: float = 60.0  # degrees, full cone angle
    body_radius: float = 0.5

    # Behaviour modes
    use_reinforcement_learning: bool = True
    use_base_knowledge: bool = False
    use_empathetic_behavior: bool = True

    # Spatial memory
    memory_radius: float = 1.0
    max_memory_count: int = 10

    # No-resource areas
    no_resource_radius: float = 5.0

    # Empathetic sharing
    similarity_threshold: float = 0.7
    fuzzy_distance_scale: float = 20.0

    # Movement bookkeeping
    arrival_threshold: float = 0.5
    exploration_interval: float = 0.5  # seconds between exploration cycles
    exploration_candidates: int = 10
    stuck_epsilon: float = 0.01
    stuck_duration: float = 2.0
    contact_margin: float = 0.25


@dataclass
class LearningConfig:
    """Tabular Q-learning"""
    learning_rate: float = 0.1  # α
    discount_factor: float = 0.95  # γ
    exploration_rate: float = 0.1  # ε
    bin_size: float = 5.0
    num_actions: int = 8
    reward_decay: float = 0.1  # λ in the distance shaping term
    goal_bonus: float = 10.0
    visited_state_penalty: float = -0.5
    destination_retries: int = 10
    tie_tolerance: float = 1e-6


@dataclass
class CampaignConfig:
    """Cohort size and run sequencing"""
    num_agents: int = 5
    max_runs: int = 3
    training_mode: bool = True
    settle_delay: float = 4.0  # seconds between a finished run and the next cohort
    tick_seconds: float = 0.1
    max_run_seconds: Optional[float] = None  # None: a run lasts until every agent found the target
    spawn_attempts: int = 10
    spawn_clearance: float = 0.5
    # Spawn rectangle (min_x, min_z, max_x, max_z); None uses the whole world
    spawn_area: Optional[Tuple[float, float, float, float]] = None
    seed: Optional[int] = None


@dataclass
class StorageConfig:
    """Where learned data, run logs and telemetry go"""
    data_dir: str = "data"
    results_log: Optional[str] = "SimulationResults.txt"
    telemetry: bool = False
    reports_dir: str = "reports"


@dataclass
class SimulationConfig:
    """Complete simulation configuration"""
    world: WorldConfig = field(default_factory=WorldConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    campaign: CampaignConfig = field(default_factory=CampaignConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    _SECTIONS = {
        "world": WorldConfig,
        "agent": AgentConfig,
        "learning": LearningConfig,
        "campaign": CampaignConfig,
        "storage": StorageConfig,
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        unknown = set(data) - set(cls._SECTIONS)
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")

        sections = {}
        for name, section_cls in cls._SECTIONS.items():
            values = dict(data.get(name, {}))
            allowed = {f.name for f in fields(section_cls)}
            bad = set(values) - allowed
            if bad:
                raise ValueError(f"Unknown keys in [{name}]: {sorted(bad)}")
            for key in ("target_position", "spawn_area"):
                if values.get(key) is not None:
                    values[key] = tuple(values[key])
            sections[name] = section_cls(**values)

        config = cls(**sections)
        config.validate()
        return config

    @classmethod
    def from_json(cls, path: str | Path) -> "SimulationConfig":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict[str, Any]:
        return {name: asdict(getattr(self, name)) for name in self._SECTIONS}

    def validate(self) -> None:
        """Raise ``ValueError`` for values the simulation cannot run with."""
        w, a, l, c = self.world, self.agent, self.learning, self.campaign
        checks = [
            (w.width > 0 and w.depth > 0, "world dimensions must be positive"),
            (w.num_obstacles >= 0, "num_obstacles must be >= 0"),
            (0 < w.obstacle_radius_min <= w.obstacle_radius_max, "invalid obstacle radius range"),
            (a.detection_range > 0, "detection_range must be positive"),
            (a.move_speed > 0, "move_speed must be positive"),
            (a.wander_radius > 0, "wander_radius must be positive"),
            (0 < a.field_of_view <= 360, "field_of_view must be in (0, 360]"),
            (a.max_memory_count >= 1, "max_memory_count must be >= 1"),
            (a.memory_radius >= 0, "memory_radius must be >= 0"),
            (a.no_resource_radius >= 0, "no_resource_radius must be >= 0"),
            (0 <= a.similarity_threshold <= 1, "similarity_threshold must be in [0, 1]"),
            (a.fuzzy_distance_scale > 0, "fuzzy_distance_scale must be positive"),
            (a.exploration_interval > 0, "exploration_interval must be positive"),
            (a.exploration_candidates >= 1, "exploration_candidates must be >= 1"),
            (0 < l.learning_rate <= 1, "learning_rate must be in (0, 1]"),
            (0 <= l.discount_factor <= 1, "discount_factor must be in [0, 1]"),
            (0 <= l.exploration_rate <= 1, "exploration_rate must be in [0, 1]"),
            (l.bin_size > 0, "bin_size must be positive"),
            (l.num_actions >= 1, "num_actions must be >= 1"),
            (l.destination_retries >= 1, "destination_retries must be >= 1"),
            (c.num_agents >= 0, "num_agents must be >= 0"),
            (c.max_runs >= 1, "max_runs must be >= 1"),
            (c.tick_seconds > 0, "tick_seconds must be positive"),
            (c.settle_delay >= 0, "settle_delay must be >= 0"),
            (c.max_run_seconds is None or c.max_run_seconds > 0, "max_run_seconds must be positive"),
            (c.spawn_attempts >= 1, "spawn_attempts must be >= 1"),
        ]
        for ok, message in checks:
            if not ok:
                raise ValueError(message)
