from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Iterator, Tuple

import numpy as np

from .knowledge import KnowledgeBase
from .persistence import PersistenceService

logger = logging.getLogger(__name__)

MODEL_KEY = "trained_model"

QKey = Tuple[int, int]


class QTable:
    """Learned values for (discretized state, action) pairs.

    Unknown pairs read as ``0.0`` and are stored on first read. All agents of
    a process share one instance; :meth:`update` performs the read-modify-write
    of a Q-learning step under a lock.
    """

    def __init__(self, values: Dict[QKey, float] | None = None):
        self._values: Dict[QKey, float] = dict(values or {})
        self._lock = threading.RLock()

    def get(self, state: int, action: int) -> float:
        key = (state, action)
        with self._lock:
            value = self._values.get(key)
            if value is None:
                self._values[key] = 0.0
                return 0.0
            return value

    def set(self, state: int, action: int, value: float) -> None:
        with self._lock:
            self._values[(state, action)] = float(value)

    def values_for(self, state: int, num_actions: int) -> list[float]:
        with self._lock:
            return [self.get(state, a) for a in range(num_actions)]

    def max_value(self, state: int, num_actions: int) -> float:
        return max(self.values_for(state, num_actions))

    def update(self, state: int, action: int, fn: Callable[[float], float]) -> float:
        """Replace Q(state, action) with ``fn(old)`` atomically; returns the new value."""
        with self._lock:
            new = float(fn(self.get(state, action)))
            self._values[(state, action)] = new
            return new

    def snapshot(self) -> Dict[QKey, float]:
        with self._lock:
            return dict(self._values)

    def replace(self, values: Dict[QKey, float]) -> None:
        with self._lock:
            self._values = dict(values)

    def as_array(self, num_actions: int) -> np.ndarray:
        """Dense ``(num_states, num_actions)`` matrix; missing pairs are 0."""
        snap = self.snapshot()
        num_states = max((s for s, _ in snap), default=-1) + 1
        grid = np.zeros((num_states, num_actions), dtype=float)
        for (s, a), v in snap.items():
            if a < num_actions:
                grid[s, a] = v
        return grid

    def __contains__(self, key: QKey) -> bool:
        with self._lock:
            return key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def __iter__(self) -> Iterator[QKey]:
        return iter(self.snapshot())


class LearningStore:
    """Owns the process-wide learning data and its save points.

    Holds the shared :class:`QTable` and :class:`KnowledgeBase`. In training
    mode the table is written back on :meth:`save_model` and
    :meth:`shutdown`; in evaluation mode it is loaded but never written.
    """

    def __init__(
        self,
        persistence: PersistenceService,
        *,
        training_mode: bool = True,
        model_key: str = MODEL_KEY,
    ):
        self.persistence = persistence
        self.training_mode = training_mode
        self.model_key = model_key
        self.q_table = QTable()
        self.knowledge = KnowledgeBase(persistence)

    def load(self) -> None:
        self.q_table.replace(self.persistence.load_table(self.model_key))
        self.knowledge.load()

    def save_model(self) -> bool:
        """Write the Q-table now. Returns False (and writes nothing) in evaluation mode."""
        if not self.training_mode:
            logger.debug("Evaluation mode: model not saved.")
            return False
        self.persistence.save_table(self.model_key, self.q_table.snapshot())
        return True

    def shutdown(self) -> None:
        self.save_model()
