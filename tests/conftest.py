import random
import sys
from pathlib import Path

import pytest

# Ensure the repository root is importable when tests are invoked from arbitrary
# working directories (e.g., running a single file from within ``tests/``).
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from forager_simulation.config import SimulationConfig
from forager_simulation.persistence import InMemoryPersistence


@pytest.fixture()
def rng():
    return random.Random(1234)


@pytest.fixture()
def memory_store():
    return InMemoryPersistence()


@pytest.fixture()
def small_config(tmp_path):
    """A small, fast, obstacle-free scenario writing only under ``tmp_path``."""
    config = SimulationConfig()
    config.world.width = 30.0
    config.world.depth = 30.0
    config.world.num_obstacles = 0
    config.world.target_position = (15.0, 0.0, 15.0)
    config.campaign.num_agents = 3
    config.campaign.max_runs = 3
    config.campaign.seed = 7
    config.campaign.settle_delay = 1.0
    config.campaign.max_run_seconds = 120.0
    config.storage.data_dir = str(tmp_path / "data")
    config.storage.results_log = None
    config.storage.reports_dir = str(tmp_path / "reports")
    return config
