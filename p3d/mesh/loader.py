"""Mesh loading utilities using trimesh.

This module maps raw input bytes plus a declared format (OBJ, glTF, GLB)
to flat vertex/index buffers, and builds the triangle mesh the rest of the
pipeline works on.
"""

from __future__ import annotations

import io
import json
import logging
import struct
from pathlib import Path
from typing import Any

import numpy as np
import trimesh
from numpy.typing import NDArray

from ..core.config import InputFileType
from ..core.errors import InvalidInputError, MeshConstructionError, NoGeometryError

logger = logging.getLogger(__name__)

GLB_MAGIC = b"glTF"
GLB_JSON_CHUNK = 0x4E4F534A

_FORMAT_LABELS = {
    InputFileType.OBJ: "OBJ",
    InputFileType.GLTF: "glTF",
    InputFileType.GLB: "GLB",
}


def _read_glb_header(data: bytes) -> dict[str, Any]:
    """Decode the JSON chunk of a binary glTF container."""
    if len(data) < 20 or data[:4] != GLB_MAGIC:
        raise InvalidInputError("GLB parsing error: missing glTF magic header")

    _, version, length = struct.unpack_from("<4sII", data, 0)
    if version != 2:
        raise InvalidInputError(f"GLB parsing error: unsupported container version {version}")
    if length > len(data):
        raise InvalidInputError(
            f"GLB parsing error: declared length {length} exceeds buffer size {len(data)}"
        )

    chunk_length, chunk_type = struct.unpack_from("<II", data, 12)
    if chunk_type != GLB_JSON_CHUNK or 20 + chunk_length > len(data):
        raise InvalidInputError("GLB parsing error: first chunk is not a valid JSON chunk")

    try:
        header = json.loads(data[20:20 + chunk_length].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidInputError(f"GLB parsing error: {e}") from e
    if not isinstance(header, dict) or "asset" not in header:
        raise InvalidInputError("GLB parsing error: JSON chunk is not a glTF document")
    return header


def _read_gltf_header(data: bytes) -> dict[str, Any]:
    """Decode a JSON glTF document."""
    try:
        header = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidInputError(f"glTF parsing error: {e}") from e
    if not isinstance(header, dict) or "asset" not in header:
        raise InvalidInputError("glTF parsing error: document has no 'asset' section")
    return header


def _has_indexed_primitive(header: dict[str, Any]) -> bool:
    """Check whether any mesh primitive declares both positions and indices.

    Raises:
        InvalidInputError: If the 'meshes' section has the wrong structure
    """
    malformed = InvalidInputError("glTF parsing error: malformed 'meshes' section")

    meshes = header.get("meshes") or []
    if not isinstance(meshes, list):
        raise malformed
    for mesh in meshes:
        if not isinstance(mesh, dict):
            raise malformed
        primitives = mesh.get("primitives") or []
        if not isinstance(primitives, list):
            raise malformed
        for primitive in primitives:
            if not isinstance(primitive, dict):
                raise malformed
            attributes = primitive.get("attributes") or {}
            if not isinstance(attributes, dict):
                raise malformed
            if "POSITION" in attributes and primitive.get("indices") is not None:
                return True
    return False


def _first_geometry(loaded: trimesh.Trimesh | trimesh.Scene) -> trimesh.Trimesh | None:
    """Select the first mesh that has both vertices and faces."""
    if isinstance(loaded, trimesh.Scene):
        candidates = list(loaded.geometry.values())
    else:
        candidates = [loaded]

    for geom in candidates:
        if not isinstance(geom, trimesh.Trimesh):
            continue
        if len(geom.vertices) > 0 and len(geom.faces) > 0:
            return geom
    return None


def load_geometry(
    data: bytes,
    file_type: InputFileType | str,
) -> tuple[NDArray[np.float64], NDArray[np.int64]]:
    """Parse raw bytes into flat position and index buffers.

    Args:
        data: Raw file contents
        file_type: Declared format of ``data``

    Returns:
        Tuple of (positions, indices): positions is a flat float array of
        xyz triples, indices a flat array of vertex index triples

    Raises:
        InvalidInputError: If the bytes cannot be parsed as ``file_type``
        NoGeometryError: If the container holds no usable mesh
    """
    file_type = InputFileType(file_type)
    label = _FORMAT_LABELS[file_type]

    if file_type is InputFileType.GLB:
        header = _read_glb_header(data)
    elif file_type is InputFileType.GLTF:
        header = _read_gltf_header(data)
    else:
        header = None

    if header is not None and not _has_indexed_primitive(header):
        raise NoGeometryError(f"No valid geometry (vertices/indices) found in {label} file")

    try:
        loaded = trimesh.load(io.BytesIO(data), file_type=file_type.value, process=False)
    except Exception as e:
        raise InvalidInputError(f"{label} parsing error: {e}") from e

    geom = _first_geometry(loaded)
    if geom is None:
        raise NoGeometryError(f"No valid geometry (vertices/indices) found in {label} file")

    positions = np.asarray(geom.vertices, dtype=np.float64).ravel()
    indices = np.asarray(geom.faces, dtype=np.int64).ravel()
    logger.debug(f"Loaded {label}: {len(positions) // 3} vertices, {len(indices) // 3} faces")
    return positions, indices


def build_mesh(
    positions: NDArray[np.float64] | list[float],
    indices: NDArray[np.int64] | list[int],
) -> trimesh.Trimesh:
    """Build a triangle mesh from flat position and index buffers.

    The mesh is created with ``process=False`` so vertex order and
    connectivity are exactly those of the buffers.

    Raises:
        MeshConstructionError: If the buffers do not describe a valid
            triangle mesh
    """
    positions = np.asarray(positions, dtype=np.float64).ravel()
    indices = np.asarray(indices).ravel()

    if len(positions) == 0 or len(indices) == 0:
        raise MeshConstructionError("Mesh needs at least one vertex and one face")
    if len(positions) % 3 != 0:
        raise MeshConstructionError(f"Position buffer length {len(positions)} is not a multiple of 3")
    if len(indices) % 3 != 0:
        raise MeshConstructionError(f"Index buffer length {len(indices)} is not a multiple of 3")
    if not np.issubdtype(indices.dtype, np.integer):
        raise MeshConstructionError(f"Indices must be integers, got {indices.dtype}")
    if not np.all(np.isfinite(positions)):
        raise MeshConstructionError("Position buffer contains non-finite values")

    vertices = positions.reshape(-1, 3)
    faces = indices.astype(np.int64).reshape(-1, 3)

    bad = (faces < 0) | (faces >= len(vertices))
    if bad.any():
        face = int(np.argwhere(bad.any(axis=1))[0, 0])
        raise MeshConstructionError(
            f"Face {face} references vertex out of range (have {len(vertices)} vertices)"
        )

    repeated = (
        (faces[:, 0] == faces[:, 1])
        | (faces[:, 1] == faces[:, 2])
        | (faces[:, 2] == faces[:, 0])
    )
    if repeated.any():
        face = int(np.argmax(repeated))
        raise MeshConstructionError(f"Face {face} repeats a vertex index: {faces[face].tolist()}")

    return trimesh.Trimesh(vertices=vertices, faces=faces, process=False)


class MeshLoader:
    """Load and prepare a mesh from bytes or a file."""

    def __init__(self, data: bytes, file_type: InputFileType | str):
        """Load a mesh from raw bytes.

        Args:
            data: Raw file contents
            file_type: Declared format of ``data``
        """
        self.file_type = InputFileType(file_type)
        positions, indices = load_geometry(data, self.file_type)
        self._mesh = build_mesh(positions, indices)

    @classmethod
    def from_path(cls, path: str | Path, file_type: InputFileType | str | None = None) -> MeshLoader:
        """Load a mesh file, inferring the format from its suffix if not given."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Mesh file not found: {path}")
        if file_type is None:
            file_type = InputFileType.from_path(path)
        return cls(path.read_bytes(), file_type)

    @property
    def mesh(self) -> trimesh.Trimesh:
        """Return the loaded trimesh object."""
        return self._mesh

    @property
    def bounds(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Return (min, max) bounding box coordinates."""
        return self._mesh.bounds[0], self._mesh.bounds[1]

    @property
    def size(self) -> NDArray[np.float64]:
        """Return size of bounding box (x, y, z)."""
        return self._mesh.bounds[1] - self._mesh.bounds[0]

    @property
    def num_vertices(self) -> int:
        return len(self._mesh.vertices)

    @property
    def num_faces(self) -> int:
        return len(self._mesh.faces)

    def stats(self) -> dict:
        """Return statistics about the mesh."""
        return {
            "format": self.file_type.value,
            "num_vertices": self.num_vertices,
            "num_faces": self.num_faces,
            "is_watertight": bool(self._mesh.is_watertight),
            "bounds_min": self.bounds[0].tolist(),
            "bounds_max": self.bounds[1].tolist(),
            "size": self.size.tolist(),
        }

    def __repr__(self) -> str:
        return (
            f"MeshLoader({self.file_type.value}, "
            f"{self.num_vertices} vertices, "
            f"{self.num_faces} faces, "
            f"size={self.size.round(2)})"
        )


def load_mesh(path: str | Path) -> trimesh.Trimesh:
    """Convenience function to load a mesh directly.

    Args:
        path: Path to mesh file

    Returns:
        trimesh.Trimesh object
    """
    return MeshLoader.from_path(path).mesh
