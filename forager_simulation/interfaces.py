"""Contracts between the decision core and the services it drives.

The agents only ever talk to navigation and spatial queries through these
protocols, so the in-process stand-ins in ``navigation`` and ``environment``
can be swapped for a real engine binding.
"""
from __future__ import annotations

from typing import Any, Protocol

from .geometry import Vec3


class NavigationService(Protocol):
    def set_destination(self, agent_id: int, point: Vec3) -> None: ...

    def remaining_distance(self, agent_id: int) -> float: ...

    def has_pending_path(self, agent_id: int) -> bool: ...

    def has_path(self, agent_id: int) -> bool: ...

    def sample_valid_point(self, near: Vec3, radius: float) -> Vec3 | None: ...

    def position(self, agent_id: int) -> Vec3: ...

    def heading(self, agent_id: int) -> float: ...


class RaycastResult(Protocol):
    @property
    def tag(self) -> str: ...

    @property
    def entity(self) -> Any: ...

    @property
    def distance(self) -> float: ...


class SpatialQueryService(Protocol):
    def raycast(self, origin: Vec3, direction: Vec3, max_distance: float) -> RaycastResult | None: ...

    def overlap_sphere(self, center: Vec3, radius: float) -> list[Any]: ...
