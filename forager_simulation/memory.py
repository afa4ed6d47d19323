from __future__ import annotations

from collections import deque
from typing import Iterable

from .geometry import Vec3, distance


class SpatialMemory:
    """Bounded history of points an agent has headed for.

    Holds at most ``max_count`` points; the oldest one is forgotten first.
    """

    def __init__(self, max_count: int = 10, radius: float = 1.0):
        if max_count < 1:
            raise ValueError("max_count must be at least 1")
        self.radius = radius
        self._points: deque[Vec3] = deque(maxlen=max_count)

    @property
    def max_count(self) -> int:
        return self._points.maxlen or 0

    def remember(self, point: Vec3) -> None:
        self._points.append(point)

    def extend(self, points: Iterable[Vec3]) -> None:
        for p in points:
            self.remember(p)

    def is_visited(self, point: Vec3) -> bool:
        """True if any remembered point lies within ``radius`` of ``point``."""
        return any(distance(point, p) < self.radius for p in self._points)

    def points(self) -> list[Vec3]:
        """Remembered points, oldest first."""
        return list(self._points)

    def clear(self) -> None:
        self._points.clear()

    def __len__(self) -> int:
        return len(self._points)
