# forager_simulation/stats.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Iterable


# ----------------------------------------------------------------------
# Per-agent outcome of one run
# ----------------------------------------------------------------------
@dataclass
class AgentOutcome:
    agent_id: int
    found: bool
    found_via: str | None
    found_after: float | None  # simulated seconds since the run started
    stuck_rescues: int
    memory_size: int
    rl_steps: int
    total_reward: float

    @classmethod
    def from_agent(cls, agent, run_start: float) -> "AgentOutcome":
        return cls(
            agent_id=agent.agent_id,
            found=agent.found,
            found_via=agent.found_via,
            found_after=None if agent.found_at is None else agent.found_at - run_start,
            stuck_rescues=agent.stuck_rescues,
            memory_size=len(agent.memory),
            rl_steps=agent.decision.steps,
            total_reward=agent.decision.total_reward,
        )


# ----------------------------------------------------------------------
# One completed run
# ----------------------------------------------------------------------
@dataclass
class RunSummary:
    run_index: int
    sim_seconds: float
    wall_seconds: float
    agents_spawned: int
    agents_found: int
    found_sighted: int
    found_empathy: int
    timed_out: bool
    q_table_size: int
    no_resource_areas: int
    agents: list[AgentOutcome] = field(default_factory=list)

    @property
    def found_contact(self) -> int:
        return self.agents_found - self.found_sighted - self.found_empathy

    def as_dict(self, *, include_agents: bool = False) -> dict:
        data = asdict(self)
        if not include_agents:
            data.pop("agents")
        return data


# ----------------------------------------------------------------------
# Campaign history
# ----------------------------------------------------------------------
@dataclass
class CampaignStats:
    """
    History of completed runs for the current campaign:
    - simulated and wall-clock duration per run
    - how each agent learnt where the target was (sight, contact, empathy)
    - how many runs hit the deadline
    """
    history: list[RunSummary] = field(default_factory=list)

    latest: RunSummary | None = None

    def record(self, summary: RunSummary) -> None:
        self.latest = summary
        self.history.append(summary)

    def clear(self) -> None:
        self.history.clear()
        self.latest = None

    def history_as_dicts(self) -> list[dict]:
        return [s.as_dict() for s in self.history]

    @property
    def runs_completed(self) -> int:
        return len(self.history)

    @property
    def timeouts(self) -> int:
        return sum(1 for s in self.history if s.timed_out)

    def mean_duration(self) -> float:
        return _mean(s.sim_seconds for s in self.history)

    def discovery_totals(self) -> dict[str, int]:
        totals = {"sighted": 0, "contact": 0, "empathy": 0}
        for s in self.history:
            totals["sighted"] += s.found_sighted
            totals["contact"] += s.found_contact
            totals["empathy"] += s.found_empathy
        return totals


def _mean(values: Iterable[float]) -> float:
    vals = list(values)
    return sum(vals) / len(vals) if vals else 0.0
