# forager_simulation/geometry.py
from __future__ import annotations

import math
from typing import NamedTuple


class Vec3(NamedTuple):
    """A point or direction in world space. The ground plane is x/z, y is up."""

    x: float
    y: float
    z: float

    def __add__(self, other: "Vec3") -> "Vec3":  # type: ignore[override]
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def scale(self, factor: float) -> "Vec3":
        return Vec3(self.x * factor, self.y * factor, self.z * factor)

    def dot(self, other: "Vec3") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def normalized(self) -> "Vec3":
        mag = self.length()
        if mag < 1e-9:
            return Vec3(0.0, 0.0, 0.0)
        return Vec3(self.x / mag, self.y / mag, self.z / mag)

    def planar(self) -> "Vec3":
        """Drop the vertical component."""
        return Vec3(self.x, 0.0, self.z)

    def format(self) -> str:
        """Storage form used by the point-list files: ``x,y,z``."""
        return f"{self.x!r},{self.y!r},{self.z!r}"

    @classmethod
    def parse(cls, text: str) -> "Vec3":
        """Inverse of :meth:`format`. Raises ``ValueError`` on malformed input."""
        tokens = text.strip().split(",")
        if len(tokens) != 3:
            raise ValueError(f"expected 3 comma separated values, got {len(tokens)}")
        x, y, z = (float(t) for t in tokens)
        if not all(math.isfinite(v) for v in (x, y, z)):
            raise ValueError("non-finite coordinate")
        return cls(x, y, z)


ZERO = Vec3(0.0, 0.0, 0.0)


def distance(a: Vec3, b: Vec3) -> float:
    dx = a.x - b.x
    dy = a.y - b.y
    dz = a.z - b.z
    return math.sqrt(dx * dx + dy * dy + dz * dz)


def planar_distance(a: Vec3, b: Vec3) -> float:
    return math.hypot(a.x - b.x, a.z - b.z)


def heading_vector(yaw: float) -> Vec3:
    """Unit forward vector for a yaw angle in radians (yaw 0 faces +z)."""
    return Vec3(math.sin(yaw), 0.0, math.cos(yaw))


def yaw_of(direction: Vec3) -> float:
    """Yaw angle (radians) of a planar direction; inverse of :func:`heading_vector`."""
    return math.atan2(direction.x, direction.z)


def angle_between(a: Vec3, b: Vec3) -> float:
    """Unsigned angle in degrees between two vectors (0 if either is degenerate)."""
    mag = a.length() * b.length()
    if mag < 1e-9:
        return 0.0
    cos_theta = max(-1.0, min(1.0, a.dot(b) / mag))
    return math.degrees(math.acos(cos_theta))


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))
