# sensors/vision.py
from __future__ import annotations

from typing import Any, Callable

from ..geometry import Vec3, angle_between, heading_vector
from ..interfaces import SpatialQueryService


class Vision:
    """
    Forward-facing vision: a cone of ``fov_deg`` (full angle) around the
    owner's heading, with line of sight checked by a single ray.
    """
    def __init__(self, fov_deg: float = 60.0, vision_range: float = 10.0):
        self.fov = fov_deg
        self.range = vision_range

    def in_view(self, origin: Vec3, heading: float, point: Vec3) -> bool:
        """True when ``point`` lies inside the planar view cone."""
        to_point = (point - origin).planar()
        if to_point.length() < 1e-9:
            return True
        return angle_between(heading_vector(heading), to_point) <= self.fov / 2.0

    def line_of_sight(
        self,
        space: SpatialQueryService,
        origin: Vec3,
        point: Vec3,
        accept: Callable[[Any], bool],
    ) -> bool:
        """Cast toward ``point``; visible when nothing is hit or the hit is accepted."""
        direction = point - origin
        hit = space.raycast(origin, direction, self.range)
        return hit is None or accept(hit.entity)

    def can_see(
        self,
        space: SpatialQueryService,
        origin: Vec3,
        heading: float,
        point: Vec3,
        accept: Callable[[Any], bool],
    ) -> bool:
        if (point - origin).length() > self.range:
            return False
        return self.in_view(origin, heading, point) and self.line_of_sight(space, origin, point, accept)
