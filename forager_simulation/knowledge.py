from __future__ import annotations

import logging
import threading
from typing import List

from .geometry import Vec3, distance
from .persistence import PersistenceService

logger = logging.getLogger(__name__)

FOOD_LOCATIONS_KEY = "KnowledgeBase"
NO_RESOURCE_AREAS_KEY = "NoFoodAreas"


class KnowledgeBase:
    """Persisted record of where the target was found and where it was not.

    Both collections are append-only in memory and are rewritten to storage in
    full after every mutation. Mutations hold a lock so the append and the
    rewrite happen as one unit.
    """

    def __init__(
        self,
        persistence: PersistenceService,
        *,
        food_key: str = FOOD_LOCATIONS_KEY,
        no_resource_key: str = NO_RESOURCE_AREAS_KEY,
    ):
        self.persistence = persistence
        self.food_key = food_key
        self.no_resource_key = no_resource_key
        self.food_locations: List[Vec3] = []
        self.no_resource_areas: List[Vec3] = []
        self._lock = threading.RLock()

    def load(self) -> None:
        with self._lock:
            self.food_locations = list(self.persistence.load_points(self.food_key))
            self.no_resource_areas = list(self.persistence.load_points(self.no_resource_key))
        logger.info(
            "Knowledge base loaded: %d target locations, %d no-resource areas",
            len(self.food_locations),
            len(self.no_resource_areas),
        )

    # ------------------------------------------------------------------ #
    # Target locations
    # ------------------------------------------------------------------ #
    def add_food_location(self, location: Vec3) -> None:
        with self._lock:
            self.food_locations.append(location)
            self.persistence.save_points(self.food_key, self.food_locations)

    def best_food_location(self) -> Vec3 | None:
        """Most recently recorded target location, or ``None`` if there is none."""
        with self._lock:
            if not self.food_locations:
                return None
            return self.food_locations[-1]

    def remove_food_locations_near(self, point: Vec3, radius: float) -> int:
        with self._lock:
            kept = [p for p in self.food_locations if distance(p, point) >= radius]
            removed = len(self.food_locations) - len(kept)
            self.food_locations = kept
            self.persistence.save_points(self.food_key, self.food_locations)
        return removed

    # ------------------------------------------------------------------ #
    # No-resource areas
    # ------------------------------------------------------------------ #
    def add_no_resource_area(self, location: Vec3) -> None:
        with self._lock:
            self.no_resource_areas.append(location)
            self.persistence.save_points(self.no_resource_key, self.no_resource_areas)

    def remove_no_resource_areas_near(self, point: Vec3, radius: float) -> int:
        with self._lock:
            kept = [p for p in self.no_resource_areas if distance(p, point) >= radius]
            removed = len(self.no_resource_areas) - len(kept)
            self.no_resource_areas = kept
            self.persistence.save_points(self.no_resource_key, self.no_resource_areas)
        return removed

    def no_resource_areas_snapshot(self) -> List[Vec3]:
        with self._lock:
            return list(self.no_resource_areas)


class NoResourceAreaMap:
    """Regions where the target was looked for and not found.

    Combines the per-run list shared by the current cohort with the
    persisted list of a :class:`KnowledgeBase`. A point counts as covered
    when it lies within ``radius`` of a center from either list.
    """

    def __init__(self, radius: float = 5.0, knowledge: KnowledgeBase | None = None):
        self.radius = radius
        self.knowledge = knowledge
        self.areas: List[Vec3] = []

    def is_in_no_resource_area(self, point: Vec3) -> bool:
        if any(distance(point, a) < self.radius for a in self.areas):
            return True
        if self.knowledge is not None:
            return any(distance(point, a) < self.radius for a in self.knowledge.no_resource_areas_snapshot())
        return False

    def add(self, point: Vec3, *, persist: bool = False) -> None:
        self.areas.append(point)
        if persist and self.knowledge is not None:
            self.knowledge.add_no_resource_area(point)
        logger.debug("Marking area as no-resource: %s", point)

    def remove_near(self, point: Vec3, *, persist: bool = False) -> int:
        """Forget every center within ``radius`` of ``point``.

        The persisted list is purged too when ``persist`` is set.
        """
        before = len(self.areas)
        self.areas = [a for a in self.areas if distance(a, point) >= self.radius]
        removed = before - len(self.areas)
        if persist and self.knowledge is not None:
            removed += self.knowledge.remove_no_resource_areas_near(point, self.radius)
        return removed

    def clear(self) -> None:
        """Drop the per-run list; persisted areas are untouched."""
        self.areas.clear()

    def __len__(self) -> int:
        return len(self.areas)
