"""p3d - Anchor/placement candidates from sliced triangle meshes.

Aligns a mesh to its principal inertia axes, slices it into horizontal
cross-sections and ranks 2D grid cells by how consistently they fall
inside the stacked sections.
"""

__version__ = "0.1.0"

from .core.config import AlgoType, AuxiliaryRotation, InputFileType, ProcessParams
from .core.errors import (
    InvalidInputError,
    InvalidParametersError,
    MathError,
    MeshConstructionError,
    NoGeometryError,
    P3DError,
    UnsupportedVariantError,
)
from .mesh.loader import MeshLoader, load_mesh
from .mesh.slicer import MeshSlicer
from .pipeline import analyze, p3d_process, p3d_process_n, process_file, run
from .scoring.grid import get_scorer, list_scorers

__all__ = [
    "AlgoType",
    "AuxiliaryRotation",
    "InputFileType",
    "InvalidInputError",
    "InvalidParametersError",
    "MathError",
    "MeshConstructionError",
    "MeshLoader",
    "MeshSlicer",
    "NoGeometryError",
    "P3DError",
    "ProcessParams",
    "UnsupportedVariantError",
    "analyze",
    "get_scorer",
    "list_scorers",
    "load_mesh",
    "p3d_process",
    "p3d_process_n",
    "process_file",
    "run",
]
