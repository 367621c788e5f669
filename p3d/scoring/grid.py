"""Grid scoring strategies.

Each strategy lays a uniform grid over the XY bounding rectangle and scores
every cell by how consistently its center falls inside the stacked slice
contours. Cells covered by no contour are never returned.

All strategies rank by score first, so a cell inside every contour never
ranks below a cell inside a strict subset of them. Remaining ties fall
through strategy-specific keys and finally the row-major cell index.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from ..core.config import AlgoType
from ..core.contour import Contour, Rect
from ..core.errors import UnsupportedVariantError
from ..mesh.slicer import SliceMode


@dataclass(frozen=True)
class Candidate:
    """A scored grid cell.

    Attributes:
        row: Grid row (Y index)
        col: Grid column (X index)
        x: X of the cell center
        y: Y of the cell center
        score: Coverage score in [0, 1]
        coverage: Number of contours containing the cell center
        spread: Standard deviation of boundary clearance over covering contours
    """

    row: int
    col: int
    x: float
    y: float
    score: float
    coverage: int
    spread: float


@dataclass(frozen=True)
class CandidateGrid:
    """Uniform ``size x size`` partition of a rectangle."""

    rect: Rect
    size: int

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError(f"Grid size must be positive, got {self.size}")

    @property
    def num_cells(self) -> int:
        return self.size * self.size

    def centers(self) -> NDArray[np.float64]:
        """Cell centers as a (size*size, 2) array in row-major order."""
        t = (np.arange(self.size) + 0.5) / self.size
        xs = self.rect.x_min + t * self.rect.width
        ys = self.rect.y_min + t * self.rect.height
        xx, yy = np.meshgrid(xs, ys)
        return np.column_stack([xx.ravel(), yy.ravel()])


def coverage(
    contours: Sequence[Contour],
    points: NDArray[np.float64],
) -> tuple[NDArray[np.bool_], NDArray[np.float64]]:
    """Containment and clearance of points against each contour.

    Returns:
        Tuple of (inside, clearance), both (len(contours), len(points));
        clearance is the distance to the contour boundary for inside
        points and 0 elsewhere
    """
    inside = np.zeros((len(contours), len(points)), dtype=bool)
    clearance = np.zeros((len(contours), len(points)))
    for i, contour in enumerate(contours):
        inside[i] = contour.contains(points)
        if inside[i].any():
            clearance[i, inside[i]] = contour.boundary_distance(points[inside[i]])
    return inside, clearance


def weighted_spread(
    inside: NDArray[np.bool_],
    clearance: NDArray[np.float64],
    weights: NDArray[np.float64] | None = None,
) -> NDArray[np.float64]:
    """Weighted standard deviation of clearance over covering contours."""
    if weights is None:
        weights = np.ones(len(inside))
    w = weights[:, None] * inside
    total = w.sum(axis=0)
    safe = np.where(total > 0, total, 1.0)
    mean = (w * clearance).sum(axis=0) / safe
    var = (w * (clearance - mean) ** 2).sum(axis=0) / safe
    return np.sqrt(var)


def _check_levels(contours: Sequence[Contour], n_sections: int) -> NDArray[np.intp]:
    levels = np.array([c.level for c in contours], dtype=np.intp)
    if len(levels) and (levels.min() < 0 or levels.max() >= n_sections):
        raise ValueError(f"Contour levels {levels.tolist()} outside 0..{n_sections - 1}")
    if np.any(np.diff(levels) <= 0):
        raise ValueError("Contours must be ordered by increasing level")
    return levels


class BaseScorer(ABC):
    """Abstract base class for grid scoring strategies."""

    slice_mode: SliceMode = "exact"
    supported: bool = True

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name for display/logging."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of this strategy."""
        pass

    @abstractmethod
    def _score(
        self,
        contours: Sequence[Contour],
        inside: NDArray[np.bool_],
        clearance: NDArray[np.float64],
        n_sections: int,
    ) -> tuple[NDArray[np.float64], list[NDArray[np.float64]], NDArray[np.float64]]:
        """Per-cell score, extra ascending tie-break keys, and spread."""
        pass

    def rank(
        self,
        contours: Sequence[Contour],
        depth: int,
        n_sections: int,
        grid_size: int,
        rect: Rect,
    ) -> list[Candidate]:
        """Rank grid cells by coverage of the stacked contours.

        Args:
            contours: Non-empty slice contours in increasing Z order
            depth: Maximum number of candidates to return
            n_sections: Number of slice levels that were computed
            grid_size: Grid subdivisions per axis
            rect: XY rectangle to lay the grid over

        Returns:
            Up to ``depth`` candidates, best first
        """
        grid = CandidateGrid(rect=rect, size=grid_size)
        if depth <= 0 or not contours:
            return []

        centers = grid.centers()
        inside, clearance = coverage(contours, centers)
        score, ties, spread = self._score(contours, inside, clearance, n_sections)

        counts = inside.sum(axis=0)
        index = np.arange(grid.num_cells)
        # lexsort takes the primary key last
        keys = [index, *reversed(ties), -score]
        order = np.lexsort(keys)
        order = order[counts[order] > 0][:depth]

        return [
            Candidate(
                row=int(i // grid.size),
                col=int(i % grid.size),
                x=float(centers[i, 0]),
                y=float(centers[i, 1]),
                score=float(score[i]),
                coverage=int(counts[i]),
                spread=float(spread[i]),
            )
            for i in order
        ]


class PooledScorer(BaseScorer):
    """Treat every supplied contour as one undifferentiated population.

    Score is the fraction of contours containing the cell center. Ties go
    to the cell whose distance to the boundary varies least.
    """

    @property
    def name(self) -> str:
        return AlgoType.GRID2D.value

    @property
    def description(self) -> str:
        return "Pooled coverage over all contours"

    def _score(
        self,
        contours: Sequence[Contour],
        inside: NDArray[np.bool_],
        clearance: NDArray[np.float64],
        n_sections: int,
    ) -> tuple[NDArray[np.float64], list[NDArray[np.float64]], NDArray[np.float64]]:
        score = inside.sum(axis=0) / float(len(contours))
        spread = weighted_spread(inside, clearance)
        return score, [spread], spread


class LevelAwareScorer(BaseScorer):
    """Weight each contour by its slice level.

    Level ``l`` of ``n`` weighs ``(n - l) / n``, so lower sections count
    more. The score is normalized by the weight of all ``n`` levels, so a
    level that produced no contour counts as uncovered.
    """

    @property
    def name(self) -> str:
        return AlgoType.GRID2D_V2.value

    @property
    def description(self) -> str:
        return "Level-weighted coverage (lower sections weigh more)"

    @staticmethod
    def level_weights(levels: NDArray[np.intp], n_sections: int) -> NDArray[np.float64]:
        return (n_sections - levels) / float(n_sections)

    def _weighted(
        self,
        contours: Sequence[Contour],
        inside: NDArray[np.bool_],
        n_sections: int,
    ) -> tuple[NDArray[np.intp], NDArray[np.float64], NDArray[np.float64]]:
        levels = _check_levels(contours, n_sections)
        weights = self.level_weights(levels, n_sections)
        total = self.level_weights(np.arange(n_sections), n_sections).sum()
        score = (weights[:, None] * inside).sum(axis=0) / total
        return levels, weights, score

    def _score(
        self,
        contours: Sequence[Contour],
        inside: NDArray[np.bool_],
        clearance: NDArray[np.float64],
        n_sections: int,
    ) -> tuple[NDArray[np.float64], list[NDArray[np.float64]], NDArray[np.float64]]:
        _, weights, score = self._weighted(contours, inside, n_sections)
        spread = weighted_spread(inside, clearance, weights)
        return score, [spread], spread


class LevelAwareRefinedScorer(LevelAwareScorer):
    """Level-weighted coverage with a stricter tie-break.

    Among equal scores, prefer the longest run of consecutive covered
    levels, then the largest minimum clearance to any covering contour
    (cells hugging a wall lose), then the smallest clearance spread.
    """

    @property
    def name(self) -> str:
        return AlgoType.GRID2D_V3.value

    @property
    def description(self) -> str:
        return "Level-weighted coverage, continuity and wall-clearance tie-break"

    def _score(
        self,
        contours: Sequence[Contour],
        inside: NDArray[np.bool_],
        clearance: NDArray[np.float64],
        n_sections: int,
    ) -> tuple[NDArray[np.float64], list[NDArray[np.float64]], NDArray[np.float64]]:
        levels, weights, score = self._weighted(contours, inside, n_sections)
        spread = weighted_spread(inside, clearance, weights)

        covered = np.zeros((n_sections, inside.shape[1]), dtype=bool)
        covered[levels] = inside
        run = np.zeros(inside.shape[1], dtype=np.intp)
        longest = np.zeros(inside.shape[1], dtype=np.intp)
        for row in covered:
            run = np.where(row, run + 1, 0)
            longest = np.maximum(longest, run)

        min_clearance = np.where(inside, clearance, np.inf).min(axis=0)
        min_clearance = np.where(np.isfinite(min_clearance), min_clearance, 0.0)

        return score, [-longest.astype(np.float64), -min_clearance, spread], spread


class ToleranceCoupledScorer(LevelAwareRefinedScorer):
    """Refined level-aware scoring fed by tolerant (slab) slicing.

    Intended for meshes with faces coplanar to the slice planes, where
    exact slicing produces broken contours.
    """

    slice_mode: SliceMode = "tolerant"

    @property
    def name(self) -> str:
        return AlgoType.GRID2D_V3A.value

    @property
    def description(self) -> str:
        return "Refined level-aware scoring on tolerant slab slices"


class SpectralScorer(BaseScorer):
    """Reserved algorithm tag without an implementation."""

    supported = False

    @property
    def name(self) -> str:
        return AlgoType.SPECTRAL.value

    @property
    def description(self) -> str:
        return "Reserved (not implemented)"

    def _score(
        self,
        contours: Sequence[Contour],
        inside: NDArray[np.bool_],
        clearance: NDArray[np.float64],
        n_sections: int,
    ) -> tuple[NDArray[np.float64], list[NDArray[np.float64]], NDArray[np.float64]]:
        raise UnsupportedVariantError(f"Algorithm '{self.name}' is not implemented")

    def rank(
        self,
        contours: Sequence[Contour],
        depth: int,
        n_sections: int,
        grid_size: int,
        rect: Rect,
    ) -> list[Candidate]:
        raise UnsupportedVariantError(f"Algorithm '{self.name}' is not implemented")


# Scorer registry
SCORERS: dict[str, type[BaseScorer]] = {
    AlgoType.GRID2D.value: PooledScorer,
    AlgoType.GRID2D_V2.value: LevelAwareScorer,
    AlgoType.GRID2D_V3.value: LevelAwareRefinedScorer,
    AlgoType.GRID2D_V3A.value: ToleranceCoupledScorer,
    AlgoType.SPECTRAL.value: SpectralScorer,
}


def get_scorer(name: AlgoType | str) -> BaseScorer:
    """Get a scorer instance by name.

    Args:
        name: Algorithm tag

    Returns:
        Scorer instance

    Raises:
        UnsupportedVariantError: If the tag is unknown
    """
    key = name.value if isinstance(name, AlgoType) else str(name)
    if key not in SCORERS:
        raise UnsupportedVariantError(f"Unknown algorithm: {key}. Available: {list(SCORERS.keys())}")

    return SCORERS[key]()


def list_scorers() -> list[dict]:
    """List all registered scorers with descriptions.

    Returns:
        List of dicts with 'name', 'description' and 'supported' keys
    """
    return [
        {"name": cls().name, "description": cls().description, "supported": cls.supported}
        for cls in SCORERS.values()
    ]
