"""Principal-axis alignment of a triangle mesh.

The mesh is treated as a set of uniform-density triangular laminae. The
area-weighted inertia tensor of that set is diagonalized and the mesh is
rotated so the principal axes coincide with the coordinate axes, with the
centroid at the origin. The axis of least inertia (the long direction of
the part) ends up on Z, which is the slicing direction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import trimesh
from numpy.typing import NDArray

from ..core.config import AuxiliaryRotation
from ..core.errors import MathError

logger = logging.getLogger(__name__)

# Rotations with |det| below this are treated as singular.
SINGULAR_TOLERANCE = 1e-9


def triangle_soup(mesh: trimesh.Trimesh) -> NDArray[np.float64]:
    """Return a (face_count, 3, 3) copy of the mesh triangles."""
    return np.array(mesh.vertices[mesh.faces], dtype=np.float64)


def inertia_tensor(triangles: NDArray[np.float64]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Area-weighted inertia tensor of a triangle soup.

    Args:
        triangles: (N, 3, 3) array of triangle vertices

    Returns:
        Tuple of (tensor, centroid): the 3x3 inertia tensor about the
        centroid and the area-weighted centroid
    """
    triangles = np.asarray(triangles, dtype=np.float64)
    v0, v1, v2 = triangles[:, 0], triangles[:, 1], triangles[:, 2]

    areas = 0.5 * np.linalg.norm(np.cross(v1 - v0, v2 - v0), axis=1)
    total = areas.sum()
    if not np.isfinite(total) or total <= 0:
        raise MathError(f"Triangle soup has no usable area (total={total})")

    centers = triangles.mean(axis=1)
    centroid = (areas[:, None] * centers).sum(axis=0) / total

    # Second moment of a uniform triangle: A/12 * (sum v v^T + s s^T), s = v0+v1+v2
    s = v0 + v1 + v2
    outer = (
        np.einsum("ni,nj->nij", v0, v0)
        + np.einsum("ni,nj->nij", v1, v1)
        + np.einsum("ni,nj->nij", v2, v2)
        + np.einsum("ni,nj->nij", s, s)
    )
    second = (areas[:, None, None] * outer).sum(axis=0) / 12.0

    covariance = second / total - np.outer(centroid, centroid)
    tensor = np.trace(covariance) * np.eye(3) - covariance
    return tensor, centroid


@dataclass
class AlignmentTransform:
    """Rotation onto the principal axes plus the centroid offset.

    Attributes:
        rotation: 3x3 orthonormal matrix whose rows are the principal axes
        translation: Offset that moves the centroid to the origin
        components: Principal inertia components in row order of ``rotation``
    """

    rotation: NDArray[np.float64]
    translation: NDArray[np.float64]
    components: NDArray[np.float64]

    def to_matrix(self) -> NDArray[np.float64]:
        """4x4 homogeneous matrix: translate first, then rotate."""
        matrix = np.eye(4, dtype=np.float64)
        matrix[:3, :3] = self.rotation
        matrix[:3, 3] = self.rotation @ self.translation
        return matrix


def principal_inertia_transform(triangles: NDArray[np.float64]) -> AlignmentTransform:
    """Compute the principal-axis transform of a triangle soup.

    Axis order matches ``trimesh.Trimesh.principal_inertia_transform``: the
    two largest inertia components map to X and Y (descending) and Z is
    their cross product.

    Raises:
        MathError: If the tensor is not finite or the rotation is singular
    """
    tensor, centroid = inertia_tensor(triangles)
    if not np.all(np.isfinite(tensor)):
        raise MathError("Inertia tensor is not finite")

    try:
        components, vectors = np.linalg.eigh(tensor)
    except np.linalg.LinAlgError as e:
        raise MathError(f"Inertia tensor could not be diagonalized: {e}") from e

    order = np.argsort(components)[1:][::-1]
    axes = vectors[:, order].T
    rotation = np.vstack((axes, np.cross(axes[0], axes[1])))

    det = np.linalg.det(rotation)
    if not np.isfinite(det) or abs(det) < SINGULAR_TOLERANCE:
        raise MathError(f"Principal axis rotation is singular (det={det})")
    try:
        np.linalg.inv(rotation)
    except np.linalg.LinAlgError as e:
        raise MathError(f"Principal axis rotation is not invertible: {e}") from e

    last = np.argsort(components)[0]
    return AlignmentTransform(
        rotation=rotation,
        translation=-centroid,
        components=np.append(components[order], components[last]),
    )


def align_mesh(
    mesh: trimesh.Trimesh,
    rotation: AuxiliaryRotation | None = None,
) -> AlignmentTransform:
    """Align a mesh to its principal axes in place.

    Args:
        mesh: Mesh to transform; vertex positions are overwritten
        rotation: Optional auxiliary rotation applied after alignment

    Returns:
        The principal-axis transform that was applied
    """
    transform = principal_inertia_transform(triangle_soup(mesh))
    mesh.apply_transform(transform.to_matrix())
    logger.debug(f"Principal components: {np.round(transform.components, 6).tolist()}")

    if rotation is not None:
        mesh.apply_transform(rotation.to_matrix())
        logger.debug(f"Applied auxiliary rotation: {rotation.angle_deg:.3f} deg about {rotation.axis.round(4).tolist()}")

    return transform
