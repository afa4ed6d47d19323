import sqlite3

from forager_simulation.stats import AgentOutcome, CampaignStats, RunSummary
from forager_simulation.telemetry import TelemetryRecorder


def _summary(run_index=1, *, timed_out=False):
    agents = [
        AgentOutcome(1, True, "sighted", 4.0, 0, 3, 2, 0.4),
        AgentOutcome(2, True, "empathy", 6.0, 1, 5, 3, -0.1),
        AgentOutcome(3, True, "contact", 8.0, 0, 2, 1, 10.2),
    ]
    return RunSummary(
        run_index=run_index,
        sim_seconds=8.0,
        wall_seconds=0.02,
        agents_spawned=3,
        agents_found=3,
        found_sighted=1,
        found_empathy=1,
        timed_out=timed_out,
        q_table_size=24,
        no_resource_areas=2,
        agents=agents,
    )


def _make_recorder(tmp_path):
    return TelemetryRecorder("test_campaign", seed=123, config={"campaign": {"max_runs": 3}}, base_path=tmp_path)


def test_run_rows_record_discovery_breakdown(tmp_path):
    recorder = _make_recorder(tmp_path)
    recorder.record_run(_summary())

    conn = sqlite3.connect(recorder.db_path)
    row = conn.execute(
        "SELECT agents_found, found_sighted, found_contact, found_empathy, timed_out, median_found_after "
        "FROM runs WHERE run_index=1"
    ).fetchone()
    conn.close()
    recorder.close()

    assert row == (3, 1, 1, 1, 0, 6.0)


def test_agent_outcomes_are_stored_per_run(tmp_path):
    recorder = _make_recorder(tmp_path)
    recorder.record_run(_summary(1))
    recorder.record_run(_summary(2, timed_out=True))

    conn = sqlite3.connect(recorder.db_path)
    count = conn.execute("SELECT COUNT(*) FROM agent_outcomes").fetchone()[0]
    vias = {r[0] for r in conn.execute("SELECT found_via FROM agent_outcomes WHERE run_index=2")}
    seed = conn.execute("SELECT seed FROM campaign_meta").fetchone()[0]
    conn.close()
    recorder.close()

    assert count == 6
    assert vias == {"sighted", "empathy", "contact"}
    assert seed == 123


def test_campaign_stats_aggregate_history():
    stats = CampaignStats()
    stats.record(_summary(1))
    stats.record(_summary(2, timed_out=True))

    assert stats.runs_completed == 2
    assert stats.timeouts == 1
    assert stats.mean_duration() == 8.0
    assert stats.discovery_totals() == {"sighted": 2, "contact": 2, "empathy": 2}
    assert "agents" not in stats.history_as_dicts()[0]


def test_rerecording_a_run_replaces_its_agent_outcomes(tmp_path):
    recorder = _make_recorder(tmp_path)
    recorder.record_run(_summary(1))
    recorder.record_run(_summary(1, timed_out=True))

    conn = sqlite3.connect(recorder.db_path)
    runs = conn.execute("SELECT COUNT(*), timed_out FROM runs").fetchone()
    outcomes = conn.execute("SELECT COUNT(*) FROM agent_outcomes WHERE run_index=1").fetchone()[0]
    conn.close()
    recorder.close()

    assert runs == (1, 1)
    assert outcomes == 3
