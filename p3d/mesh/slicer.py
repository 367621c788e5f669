"""Mesh slicing into horizontal cross-sections.

This module intersects an aligned mesh with horizontal planes at evenly
spaced interior levels and assembles each level's segments into a Contour.

Two intersection modes are available:

- ``exact``: plain plane/triangle intersection. Triangles lying in the
  plane are not handled specially and may produce nothing.
- ``tolerant``: vertices inside the slab ``[z - eps, z + eps]`` are
  classified as lying on the slab's upper face. No vertex is then exactly
  on the plane, so every triangle either misses or crosses with exactly
  two edges. Crossing points are projected onto the mid-plane, giving a
  single contour rather than a ribbon.
"""

from __future__ import annotations

import logging
from typing import Iterator, Literal

import numpy as np
import trimesh
from numpy.typing import NDArray

from ..core.contour import Contour
from .contour_builder import DEFAULT_TOLERANCE, build_contour

logger = logging.getLogger(__name__)

SliceMode = Literal["exact", "tolerant"]

# Edges as (start, end) vertex slots within a triangle.
_EDGES = ((0, 1), (1, 2), (2, 0))


def slice_levels(z_min: float, z_max: float, n_sections: int) -> NDArray[np.float64]:
    """Evenly spaced interior slice heights.

    Level ``i`` sits at ``z_min + (i + 1) * (z_max - z_min) / (n_sections + 1)``,
    so no level touches the bottom or top of the mesh.
    """
    if n_sections <= 0:
        return np.empty(0)
    step = (z_max - z_min) / (n_sections + 1.0)
    return z_min + (np.arange(n_sections) + 1.0) * step


def _crossings(
    triangles: NDArray[np.float64],
    heights: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Segments where triangles change sign over ``heights``.

    Args:
        triangles: (N, 3, 3) triangle vertices
        heights: (N, 3) signed vertex heights relative to the plane

    Returns:
        (M, 2, 2) array of XY segments
    """
    points = np.zeros((len(triangles), 6, 2))
    valid = np.zeros((len(triangles), 6), dtype=bool)

    for k, (a, b) in enumerate(_EDGES):
        da, db = heights[:, a], heights[:, b]
        cross = da * db < 0
        t = np.zeros(len(triangles))
        t[cross] = da[cross] / (da[cross] - db[cross])
        va, vb = triangles[:, a, :2], triangles[:, b, :2]
        points[:, k] = va + (vb - va) * t[:, None]
        valid[:, k] = cross

    # Vertices exactly on the plane contribute themselves
    on_plane = heights == 0
    points[:, 3:] = triangles[:, :, :2]
    valid[:, 3:] = on_plane

    hits = valid.sum(axis=1) == 2
    if not hits.any():
        return np.empty((0, 2, 2))

    # Stable sort puts the two valid slots first, in slot order
    slots = np.argsort(~valid[hits], axis=1, kind="stable")[:, :2]
    return np.take_along_axis(points[hits], slots[:, :, None], axis=1)


def intersect(triangles: NDArray[np.float64], z: float) -> NDArray[np.float64]:
    """Exact plane/triangle intersection at height ``z``."""
    triangles = np.asarray(triangles, dtype=np.float64)
    if len(triangles) == 0:
        return np.empty((0, 2, 2))
    return _crossings(triangles, triangles[:, :, 2] - z)


def intersect_tolerant(triangles: NDArray[np.float64], z: float, eps: float) -> NDArray[np.float64]:
    """Slab intersection at height ``z`` with half-thickness ``eps``.

    Vertices within ``eps`` of the plane are treated as lying at ``z + eps``.
    """
    if eps <= 0:
        raise ValueError(f"Slab half-thickness must be positive, got {eps}")
    triangles = np.asarray(triangles, dtype=np.float64)
    if len(triangles) == 0:
        return np.empty((0, 2, 2))
    heights = triangles[:, :, 2] - z
    heights = np.where(np.abs(heights) <= eps, eps, heights)
    return _crossings(triangles, heights)


class MeshSlicer:
    """Slice an aligned mesh into 2D cross-sections at interior Z levels."""

    def __init__(self, mesh: trimesh.Trimesh):
        """Initialize slicer with a mesh.

        Args:
            mesh: The (already aligned) trimesh object to slice
        """
        self.mesh = mesh
        self._bounds = mesh.bounds
        self._triangles = np.asarray(mesh.vertices[mesh.faces], dtype=np.float64)

    @property
    def z_min(self) -> float:
        """Minimum Z coordinate of mesh."""
        return float(self._bounds[0, 2])

    @property
    def z_max(self) -> float:
        """Maximum Z coordinate of mesh."""
        return float(self._bounds[1, 2])

    @property
    def z_height(self) -> float:
        """Total height in Z direction."""
        return self.z_max - self.z_min

    def level_spacing(self, n_sections: int) -> float:
        """Distance between consecutive slice levels."""
        return self.z_height / (n_sections + 1.0)

    def levels(self, n_sections: int) -> NDArray[np.float64]:
        """Interior slice heights for ``n_sections`` levels."""
        return slice_levels(self.z_min, self.z_max, n_sections)

    def segments_at(
        self,
        z: float,
        mode: SliceMode = "exact",
        eps: float | None = None,
    ) -> NDArray[np.float64]:
        """Intersection segments at height ``z``.

        Args:
            z: Height to slice at
            mode: ``"exact"`` or ``"tolerant"``
            eps: Slab half-thickness, required in tolerant mode

        Returns:
            (M, 2, 2) array of XY segments
        """
        if mode == "exact":
            return intersect(self._triangles, z)
        if mode == "tolerant":
            if eps is None:
                raise ValueError("Tolerant slicing needs a slab half-thickness")
            return intersect_tolerant(self._triangles, z, eps)
        raise ValueError(f"Unknown slice mode: {mode}")

    def slice_at(
        self,
        z: float,
        level: int = 0,
        mode: SliceMode = "exact",
        eps: float | None = None,
        tolerance: float = DEFAULT_TOLERANCE,
    ) -> Contour:
        """Slice mesh at a specific Z height and assemble the contour."""
        segments = self.segments_at(z, mode=mode, eps=eps)
        return build_contour(segments, level=level, z=z, tolerance=tolerance)

    def iter_sections(
        self,
        n_sections: int,
        mode: SliceMode = "exact",
        slab_fraction: float = 0.01,
        tolerance: float = DEFAULT_TOLERANCE,
    ) -> Iterator[Contour]:
        """Iterate over the contours of every level, bottom first.

        Yields:
            Contour objects one at a time (possibly empty)
        """
        if self.z_height <= 0:
            return

        eps = self.level_spacing(n_sections) * slab_fraction if mode == "tolerant" else None

        for i, z in enumerate(self.levels(n_sections)):
            contour = self.slice_at(float(z), level=i, mode=mode, eps=eps, tolerance=tolerance)
            logger.debug(f"Level {i}: z={z:.6f}, {len(contour.loops)} loop(s), {len(contour)} points")
            yield contour

    def slice_sections(
        self,
        n_sections: int,
        mode: SliceMode = "exact",
        slab_fraction: float = 0.01,
        tolerance: float = DEFAULT_TOLERANCE,
    ) -> list[Contour]:
        """Non-empty contours of all levels, in increasing Z order."""
        return [
            contour
            for contour in self.iter_sections(n_sections, mode, slab_fraction, tolerance)
            if not contour.is_empty
        ]
