# spatial_hash.py
from __future__ import annotations
from typing import List, Tuple
from collections import defaultdict

class SpatialHash:
    """
    Spatial hash grid over the ground plane (x/z) for fast neighbour queries.
    Reduces O(n²) to O(n) for proximity checks.
    """

    def __init__(self, cell_size: float = 10.0):
        self.cell_size = cell_size
        self.grid: dict[Tuple[int, int], List] = defaultdict(list)

    def clear(self):
        """Clear all cells."""
        self.grid.clear()

    def _get_cell(self, x: float, z: float) -> Tuple[int, int]:
        """Get the cell coordinates for a position."""
        return (int(x // self.cell_size), int(z // self.cell_size))

    def insert(self, obj, x: float, z: float):
        """Insert an object at position (x, z)."""
        cell = self._get_cell(x, z)
        self.grid[cell].append(obj)

    def remove(self, obj, x: float, z: float) -> bool:
        """Remove an object previously inserted at (x, z)."""
        cell = self._get_cell(x, z)
        bucket = self.grid.get(cell)
        if not bucket:
            return False
        try:
            bucket.remove(obj)
        except ValueError:
            return False
        if not bucket:
            del self.grid[cell]
        return True

    def query_radius(self, x: float, z: float, radius: float) -> List:
        """
        Get all objects in cells overlapping the radius around (x, z).
        Only checks nearby cells, not the entire world; callers still
        filter by exact distance.
        """
        results = []

        cell_radius = int(radius / self.cell_size) + 1
        center_cell = self._get_cell(x, z)

        for dx in range(-cell_radius, cell_radius + 1):
            for dz in range(-cell_radius, cell_radius + 1):
                cell = (center_cell[0] + dx, center_cell[1] + dz)
                if cell in self.grid:
                    results.extend(self.grid[cell])

        return results
