"""Mesh processing modules for p3d."""

from .alignment import AlignmentTransform, align_mesh, principal_inertia_transform, triangle_soup
from .contour_builder import build_contour
from .loader import MeshLoader, build_mesh, load_geometry, load_mesh
from .slicer import MeshSlicer, slice_levels

__all__ = [
    "AlignmentTransform",
    "MeshLoader",
    "MeshSlicer",
    "align_mesh",
    "build_contour",
    "build_mesh",
    "load_geometry",
    "load_mesh",
    "principal_inertia_transform",
    "slice_levels",
    "triangle_soup",
]
