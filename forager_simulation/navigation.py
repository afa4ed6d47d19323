from __future__ import annotations

import math
from dataclasses import dataclass

from .environment import AgentBody, Environment
from .geometry import Vec3, planar_distance, yaw_of


@dataclass
class _Route:
    speed: float
    heading: float = 0.0
    destination: Vec3 | None = None
    pending: bool = False


class Navigator:
    """Straight-line movement over an :class:`Environment`.

    A destination becomes an active path on the next :meth:`advance` (until
    then the path is *pending*). Agents walk toward it at their speed, slide
    along obstacles they brush against, and stop dead when both the direct and
    the sliding step are blocked.
    """

    def __init__(self, env: Environment, *, stopping_distance: float = 0.05):
        self.env = env
        self.stopping_distance = stopping_distance
        self._routes: dict[int, _Route] = {}

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def register(self, body: AgentBody, *, speed: float, heading: float = 0.0) -> None:
        self.env.add_body(body)
        self._routes[body.agent_id] = _Route(speed=speed, heading=heading)

    def clear(self) -> None:
        self._routes.clear()
        self.env.clear_bodies()

    # ------------------------------------------------------------------ #
    # Navigation service
    # ------------------------------------------------------------------ #
    def set_destination(self, agent_id: int, point: Vec3) -> None:
        route = self._routes[agent_id]
        route.destination = self.env.clamp(point)
        route.pending = True

    def remaining_distance(self, agent_id: int) -> float:
        route = self._routes[agent_id]
        if route.destination is None:
            return 0.0
        return planar_distance(self.position(agent_id), route.destination)

    def has_pending_path(self, agent_id: int) -> bool:
        return self._routes[agent_id].pending

    def has_path(self, agent_id: int) -> bool:
        return self._routes[agent_id].destination is not None

    def destination(self, agent_id: int) -> Vec3 | None:
        return self._routes[agent_id].destination

    def sample_valid_point(self, near: Vec3, radius: float) -> Vec3 | None:
        return self.env.nearest_walkable_point(near, radius)

    def position(self, agent_id: int) -> Vec3:
        return self.env.bodies[agent_id].position

    def heading(self, agent_id: int) -> float:
        return self._routes[agent_id].heading

    # ------------------------------------------------------------------ #
    # Movement
    # ------------------------------------------------------------------ #
    def advance(self, dt: float) -> None:
        for agent_id, route in self._routes.items():
            route.pending = False
            if route.destination is None:
                continue

            body = self.env.bodies[agent_id]
            pos = body.position
            remaining = planar_distance(pos, route.destination)
            if remaining <= self.stopping_distance:
                route.destination = None
                continue

            direction = Vec3(route.destination.x - pos.x, 0.0, route.destination.z - pos.z).scale(1.0 / remaining)
            step = min(route.speed * dt, remaining)
            route.heading = yaw_of(direction)

            new_pos = self._try_step(pos, direction, step, body.radius)
            if new_pos is not None:
                self.env.move_body(agent_id, new_pos)

    def _try_step(self, pos: Vec3, direction: Vec3, step: float, radius: float) -> Vec3 | None:
        candidate = self.env.clamp(pos + direction.scale(step))
        obstacle = self.env.blocking_obstacle(candidate, radius)
        if obstacle is None:
            return candidate

        # Slide along the obstacle's tangent
        nx = pos.x - obstacle.position.x
        nz = pos.z - obstacle.position.z
        n = math.hypot(nx, nz)
        if n < 1e-9:
            return None
        tx, tz = -nz / n, nx / n
        if tx * direction.x + tz * direction.z < 0.0:
            tx, tz = -tx, -tz
        slide = self.env.clamp(Vec3(pos.x + tx * step, pos.y, pos.z + tz * step))
        if self.env.blocking_obstacle(slide, radius) is None:
            return slide
        return None
