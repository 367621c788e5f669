"""Exception types raised by the p3d pipeline.

Every stage fails fast: the first error aborts the whole run and is
surfaced to the caller unchanged. Errors coming from third-party parsers
are chained (``raise ... from``) so the original message stays available.
"""

from __future__ import annotations


class P3DError(Exception):
    """Base class for all pipeline failures."""


class InvalidInputError(P3DError):
    """The input bytes cannot be parsed under the declared format."""


class NoGeometryError(P3DError):
    """The container parsed, but holds no mesh with positions and indices."""


class MeshConstructionError(P3DError):
    """Positions/indices failed the mesh builder's validity checks."""


class MathError(P3DError):
    """The principal-axis rotation is singular or not finite."""


class UnsupportedVariantError(P3DError):
    """The requested scoring algorithm has no implementation."""


class InvalidParametersError(P3DError):
    """Processing parameters are out of range or malformed."""
