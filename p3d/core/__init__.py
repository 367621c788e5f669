"""Core modules for p3d."""

from .config import AlgoType, AuxiliaryRotation, InputFileType, ProcessParams
from .contour import Contour, Rect
from .errors import (
    InvalidInputError,
    InvalidParametersError,
    MathError,
    MeshConstructionError,
    NoGeometryError,
    P3DError,
    UnsupportedVariantError,
)

__all__ = [
    "AlgoType",
    "AuxiliaryRotation",
    "Contour",
    "InputFileType",
    "InvalidInputError",
    "InvalidParametersError",
    "MathError",
    "MeshConstructionError",
    "NoGeometryError",
    "P3DError",
    "ProcessParams",
    "Rect",
    "UnsupportedVariantError",
]
