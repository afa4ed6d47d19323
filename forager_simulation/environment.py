from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Type

from .geometry import Vec3, distance, planar_distance
from .spatial_hash import SpatialHash


# ------------------------------------------------------------------ #
# World objects
# ------------------------------------------------------------------ #
class WorldObject:
    """Base class for objects in the world (spheres resting on the ground)."""

    def __init__(self, position: Vec3, *, radius: float = 0.5, solid: bool = False):
        self.position = position
        self.radius = radius
        self.solid = solid
        self.tag = "object"
        self.owner = None


class Target(WorldObject):
    """The resource the foragers are looking for."""

    def __init__(self, position: Vec3, radius: float = 0.5):
        super().__init__(position, radius=radius, solid=False)
        self.tag = "target"


class Obstacle(WorldObject):
    """A solid obstacle that blocks movement and line of sight."""

    def __init__(self, position: Vec3, radius: float = 1.5):
        super().__init__(position, radius=radius, solid=True)
        self.tag = "obstacle"


class AgentBody(WorldObject):
    """Physical presence of an agent; ``owner`` points back at the agent."""

    def __init__(self, agent_id: int, position: Vec3, owner=None, radius: float = 0.5):
        super().__init__(position, radius=radius, solid=False)
        self.tag = "agent"
        self.agent_id = agent_id
        self.owner = owner


@dataclass(frozen=True)
class RaycastHit:
    entity: WorldObject
    distance: float
    point: Vec3

    @property
    def tag(self) -> str:
        return self.entity.tag


# ------------------------------------------------------------------ #
# Environment
# ------------------------------------------------------------------ #
class Environment:
    """Bounded ground plane with static objects and agent bodies.

    Answers the spatial queries the agents rely on (ray casts, sphere
    overlaps, walkability) and keeps a spatial index for each kind of entity.
    """

    def __init__(self, width: float, depth: float, *, ground_y: float = 0.0, cell_size: float = 10.0):
        self.width = width
        self.depth = depth
        self.ground_y = ground_y

        # Static objects (targets, obstacles)
        self.objects: List[WorldObject] = []
        self.object_index = SpatialHash(cell_size=cell_size)
        self._max_object_radius = 0.0

        # Agent bodies
        self.bodies: dict[int, AgentBody] = {}
        self.body_index = SpatialHash(cell_size=cell_size)
        self._max_body_radius = 0.0

    # ------------------------------------------------------------------ #
    # Population
    # ------------------------------------------------------------------ #
    def add_object(self, obj: WorldObject) -> None:
        self.objects.append(obj)
        self.object_index.insert(obj, obj.position.x, obj.position.z)
        self._max_object_radius = max(self._max_object_radius, obj.radius)

    @property
    def obstacles(self) -> list[Obstacle]:
        return [obj for obj in self.objects if isinstance(obj, Obstacle)]

    def populate(
        self,
        rng: random.Random,
        *,
        num_obstacles: int,
        obstacle_radius: tuple[float, float] = (1.0, 2.5),
        keep_clear: Sequence[Vec3] = (),
        clearance: float = 3.0,
    ) -> int:
        """Scatter obstacles uniformly, keeping ``clearance`` around ``keep_clear``.

        Returns the number of obstacles actually placed.
        """
        placed = 0
        for _ in range(num_obstacles):
            for _attempt in range(20):
                r = rng.uniform(*obstacle_radius)
                p = Vec3(rng.uniform(0, self.width), self.ground_y, rng.uniform(0, self.depth))
                if any(planar_distance(p, c) < r + clearance for c in keep_clear):
                    continue
                if any(planar_distance(p, o.position) < r + o.radius for o in self.obstacles):
                    continue
                self.add_object(Obstacle(p, radius=r))
                placed += 1
                break
        return placed

    # ------------------------------------------------------------------ #
    # Agent bodies
    # ------------------------------------------------------------------ #
    def add_body(self, body: AgentBody) -> None:
        self.bodies[body.agent_id] = body
        self.body_index.insert(body, body.position.x, body.position.z)
        self._max_body_radius = max(self._max_body_radius, body.radius)

    def move_body(self, agent_id: int, position: Vec3) -> None:
        body = self.bodies[agent_id]
        self.body_index.remove(body, body.position.x, body.position.z)
        body.position = position
        self.body_index.insert(body, position.x, position.z)

    def clear_bodies(self) -> None:
        self.bodies.clear()
        self.body_index.clear()

    # ------------------------------------------------------------------ #
    # Bounds & walkability
    # ------------------------------------------------------------------ #
    def clamp(self, point: Vec3) -> Vec3:
        return Vec3(
            max(0.0, min(self.width, point.x)),
            self.ground_y,
            max(0.0, min(self.depth, point.z)),
        )

    def blocking_obstacle(self, point: Vec3, radius: float = 0.0) -> Obstacle | None:
        """Return the solid object overlapping a circle at ``point``, if any."""
        for obj in self.query_objects_near(point, radius, classes=(Obstacle,)):
            if obj.solid and planar_distance(point, obj.position) < obj.radius + radius:
                return obj
        return None

    def nearest_walkable_point(self, near: Vec3, max_distance: float, *, margin: float = 0.5) -> Vec3 | None:
        """Project ``near`` onto the walkable area.

        The point is clamped into bounds and pushed out of any obstacle it
        falls in; ``None`` when the result would be farther than
        ``max_distance`` from ``near`` or still blocked.
        """
        point = self.clamp(near)
        for _ in range(4):
            obstacle = self.blocking_obstacle(point, margin)
            if obstacle is None:
                break
            dx = point.x - obstacle.position.x
            dz = point.z - obstacle.position.z
            d = math.hypot(dx, dz)
            if d < 1e-6:
                dx, dz, d = 1.0, 0.0, 1.0
            push = obstacle.radius + margin + 1e-3
            point = self.clamp(
                Vec3(
                    obstacle.position.x + dx / d * push,
                    self.ground_y,
                    obstacle.position.z + dz / d * push,
                )
            )

        if self.blocking_obstacle(point, margin) is not None:
            return None
        if planar_distance(point, near) > max_distance:
            return None
        return point

    # ------------------------------------------------------------------ #
    # Spatial queries
    # ------------------------------------------------------------------ #
    def query_objects_near(
        self,
        point: Vec3,
        radius: float,
        classes: Sequence[Type[WorldObject]] | None = None,
    ) -> Iterable[WorldObject]:
        """Return static objects in cells near ``point`` using the spatial index."""

        candidates = self.object_index.query_radius(
            point.x,
            point.z,
            radius + self._max_object_radius,
        )

        if not classes:
            return candidates

        return (obj for obj in candidates if isinstance(obj, tuple(classes)))

    def overlap_sphere(self, center: Vec3, radius: float) -> list[WorldObject]:
        """All objects and bodies whose sphere intersects the query sphere."""
        hits: list[WorldObject] = []
        for obj in self.query_objects_near(center, radius):
            if distance(center, obj.position) < radius + obj.radius:
                hits.append(obj)
        for body in self.body_index.query_radius(center.x, center.z, radius + self._max_body_radius):
            if distance(center, body.position) < radius + body.radius:
                hits.append(body)
        return hits

    def raycast(self, origin: Vec3, direction: Vec3, max_distance: float) -> RaycastHit | None:
        """Closest entity hit by a ray, ignoring entities that contain the origin."""
        d = direction.normalized()
        if d.length() < 1e-9:
            return None

        best: RaycastHit | None = None
        for obj in list(self.objects) + list(self.bodies.values()):
            t = _ray_sphere(origin, d, obj.position, obj.radius)
            if t is None or t > max_distance:
                continue
            if best is None or t < best.distance:
                best = RaycastHit(entity=obj, distance=t, point=origin + d.scale(t))
        return best


def _ray_sphere(origin: Vec3, direction: Vec3, center: Vec3, radius: float) -> float | None:
    """Entry distance of a unit ray into a sphere, or None.

    Spheres that contain the origin are not reported.
    """
    oc = origin - center
    c = oc.dot(oc) - radius * radius
    if c <= 0.0:
        return None
    b = oc.dot(direction)
    if b > 0.0:
        return None  # pointing away
    disc = b * b - c
    if disc < 0.0:
        return None
    t = -b - math.sqrt(disc)
    return t if t >= 0.0 else None
