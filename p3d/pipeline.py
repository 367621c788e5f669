"""End-to-end processing: mesh bytes in, ranked candidate strings out.

Stages run in a fixed order and the first failure aborts the run:
load -> build mesh -> principal alignment (+ auxiliary rotation) ->
slice every level -> assemble contours -> grid scoring -> formatting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import trimesh
from pydantic import ValidationError

from .core.config import AlgoType, AuxiliaryRotation, InputFileType, ProcessParams
from .core.contour import Contour, Rect
from .core.errors import InvalidParametersError, UnsupportedVariantError
from .mesh.alignment import AlignmentTransform, align_mesh
from .mesh.loader import build_mesh, load_geometry
from .mesh.slicer import MeshSlicer
from .scoring.formatter import format_candidates
from .scoring.grid import BaseScorer, Candidate, get_scorer

logger = logging.getLogger(__name__)

DEFAULT_DEPTH = 10


@dataclass
class ProcessResult:
    """Everything a pipeline run produced.

    Attributes:
        params: Parameters the run used
        mesh: The aligned mesh
        transform: Principal-axis transform that was applied
        rect: XY extents of the aligned mesh
        contours: Non-empty contours in increasing Z order
        candidates: Ranked candidates, best first
    """

    params: ProcessParams
    mesh: trimesh.Trimesh
    transform: AlignmentTransform
    rect: Rect
    contours: list[Contour] = field(default_factory=list)
    candidates: list[Candidate] = field(default_factory=list)

    @property
    def results(self) -> list[str]:
        """Ranked candidates rendered as result strings."""
        return format_candidates(self.candidates)


def resolve_scorer(algorithm: AlgoType | str) -> BaseScorer:
    """Look up a scorer and reject variants without an implementation."""
    scorer = get_scorer(algorithm)
    if not scorer.supported:
        raise UnsupportedVariantError(f"Algorithm '{scorer.name}' is not implemented")
    return scorer


def analyze(data: bytes, params: ProcessParams) -> ProcessResult:
    """Run the full pipeline and keep intermediate products.

    Args:
        data: Raw mesh file contents
        params: Validated processing parameters

    Returns:
        ProcessResult with the aligned mesh, contours and candidates
    """
    scorer = resolve_scorer(params.algorithm)

    positions, indices = load_geometry(data, params.file_type)
    mesh = build_mesh(positions, indices)
    logger.info(f"Mesh: {len(mesh.vertices)} vertices, {len(mesh.faces)} faces")

    transform = align_mesh(mesh, params.rotation)
    rect = Rect.from_bounds(mesh.bounds)

    slicer = MeshSlicer(mesh)
    contours = slicer.slice_sections(
        params.n_sections,
        mode=scorer.slice_mode,
        slab_fraction=params.tolerant_slab_fraction,
        tolerance=params.contour_tolerance,
    )
    logger.info(
        f"Sliced {params.n_sections} level(s) ({scorer.slice_mode}): "
        f"{len(contours)} non-empty contour(s)"
    )

    candidates = scorer.rank(
        contours,
        depth=params.depth,
        n_sections=params.n_sections,
        grid_size=params.grid_size,
        rect=rect,
    )
    logger.info(f"Scored with {scorer.name}: {len(candidates)} candidate(s)")

    return ProcessResult(
        params=params,
        mesh=mesh,
        transform=transform,
        rect=rect,
        contours=contours,
        candidates=candidates,
    )


def run(data: bytes, params: ProcessParams) -> list[str]:
    """Run the pipeline and return the ranked result strings."""
    return analyze(data, params).results


def make_params(**values: Any) -> ProcessParams:
    """Validate parameters, raising InvalidParametersError on failure."""
    try:
        return ProcessParams(**values)
    except ValidationError as e:
        raise InvalidParametersError(str(e)) from e


def _decode_rotation(trans: bytes | Sequence[int] | None) -> AuxiliaryRotation | None:
    if trans is None:
        return None
    try:
        return AuxiliaryRotation.from_bytes(trans)
    except (ValidationError, ValueError) as e:
        raise InvalidParametersError(f"Invalid auxiliary rotation {list(trans)}: {e}") from e


def p3d_process_n(
    data: bytes,
    file_type: InputFileType | str,
    algo: AlgoType | str,
    depth: int,
    grid_size: int,
    n_sections: int,
    trans: bytes | Sequence[int] | None = None,
) -> list[str]:
    """Process mesh bytes into at most ``depth`` ranked result strings.

    Args:
        data: Raw mesh file contents
        file_type: Declared input format
        algo: Scoring variant tag
        depth: Number of candidates to return
        grid_size: Grid subdivisions per axis
        n_sections: Number of slice levels
        trans: Optional 4-byte packed auxiliary rotation

    Raises:
        P3DError: Subclass describing the stage that failed
    """
    # Unknown or reserved algorithms fail before any parsing work
    resolve_scorer(algo)
    params = make_params(
        file_type=file_type,
        algorithm=algo,
        depth=depth,
        grid_size=grid_size,
        n_sections=n_sections,
        rotation=_decode_rotation(trans),
    )
    return run(data, params)


def p3d_process(
    data: bytes,
    file_type: InputFileType | str,
    algo: AlgoType | str,
    grid_size: int,
    n_sections: int,
    trans: bytes | Sequence[int] | None = None,
) -> list[str]:
    """Process mesh bytes into the top 10 ranked result strings."""
    return p3d_process_n(data, file_type, algo, DEFAULT_DEPTH, grid_size, n_sections, trans)


def process_file(path: str | Path, params: ProcessParams | None = None) -> list[str]:
    """Process a mesh file; the format is inferred from its suffix.

    An explicit ``params`` keeps its own ``file_type``.
    """
    path = Path(path)
    if params is None:
        params = ProcessParams(file_type=InputFileType.from_path(path))
    return run(path.read_bytes(), params)
