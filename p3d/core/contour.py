"""Cross-section data structures.

A Contour holds the closed loops of one horizontal slice. Loops are stored
as ``(k, 2)`` arrays with implicit closure (the first point is not
repeated at the end).
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import shapely
from numpy.typing import NDArray


@dataclass(frozen=True)
class Rect:
    """Axis-aligned XY rectangle."""

    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def __post_init__(self) -> None:
        if self.x_max < self.x_min or self.y_max < self.y_min:
            raise ValueError(f"Degenerate rectangle: {self}")

    @classmethod
    def from_bounds(cls, bounds: NDArray[np.float64]) -> Rect:
        """Build from a ``(2, 3)`` min/max bounds array."""
        return cls(
            x_min=float(bounds[0, 0]),
            x_max=float(bounds[1, 0]),
            y_min=float(bounds[0, 1]),
            y_max=float(bounds[1, 1]),
        )

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min


@dataclass
class Contour:
    """The cross-section of a mesh at one slice level.

    Attributes:
        level: Index of the slice level (0-based, bottom first)
        z: Height of the slice in the aligned frame
        loops: Closed loops, each an (k, 2) array of XY points
    """

    level: int
    z: float
    loops: tuple[NDArray[np.float64], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        loops = []
        for loop in self.loops:
            loop = np.asarray(loop, dtype=np.float64)
            if loop.ndim != 2 or loop.shape[1] != 2:
                raise ValueError(f"Loops must be Nx2 arrays, got shape {loop.shape}")
            loops.append(loop)
        self.loops = tuple(loops)

    def __len__(self) -> int:
        """Return total number of points over all loops."""
        return sum(len(loop) for loop in self.loops)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    @property
    def points(self) -> NDArray[np.float64]:
        """All loop points as one flat ordered sequence."""
        if self.is_empty:
            return np.empty((0, 2))
        return np.vstack(self.loops)

    @property
    def area(self) -> float:
        """Even-odd area of the section (holes subtracted)."""
        # Loops are counter-clockwise, so nesting depth decides the sign.
        total = 0.0
        for i, loop in enumerate(self.loops):
            probe = loop[:1]
            depth = sum(
                bool(self._loop_contains(other, probe)[0])
                for j, other in enumerate(self.loops) if j != i
            )
            sign = -1.0 if depth % 2 else 1.0
            total += sign * abs(float(shapely.Polygon(loop).area))
        return total

    @staticmethod
    def _loop_contains(loop: NDArray[np.float64], xy: NDArray[np.float64]) -> NDArray[np.bool_]:
        return shapely.contains_xy(shapely.Polygon(loop), xy[:, 0], xy[:, 1])

    def contains(self, xy: NDArray[np.float64]) -> NDArray[np.bool_]:
        """Even-odd containment of an (N, 2) array of points.

        A point inside an odd number of loops is inside the section, so
        holes (loops nested in another loop) are excluded.
        """
        xy = np.asarray(xy, dtype=np.float64)
        inside = np.zeros(len(xy), dtype=bool)
        for loop in self.loops:
            inside ^= self._loop_contains(loop, xy)
        return inside

    def boundary_distance(self, xy: NDArray[np.float64]) -> NDArray[np.float64]:
        """Distance from each point to the nearest loop edge."""
        xy = np.asarray(xy, dtype=np.float64)
        if self.is_empty:
            return np.full(len(xy), np.inf)
        boundary = shapely.MultiLineString([np.vstack([loop, loop[:1]]) for loop in self.loops])
        return shapely.distance(boundary, shapely.points(xy))
