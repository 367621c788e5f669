"""Configuration management for p3d.

This module defines the processing parameters using Pydantic for validation.
Parameters can be loaded from JSON files or constructed programmatically.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, Field, field_validator
from scipy.spatial.transform import Rotation

# Quantization step shared by the axis and angle bytes.
ROTATION_STEP = 45.0 / 256.0


class InputFileType(str, Enum):
    """Supported mesh interchange formats."""

    OBJ = "obj"
    GLTF = "gltf"
    GLB = "glb"

    @classmethod
    def from_path(cls, path: str | Path) -> InputFileType:
        """Infer the format from a file suffix."""
        suffix = Path(path).suffix.lower().lstrip(".")
        try:
            return cls(suffix)
        except ValueError:
            raise ValueError(
                f"Unsupported format: .{suffix}. "
                f"Supported: {[f.value for f in cls]}"
            ) from None


class AlgoType(str, Enum):
    """Grid scoring variants."""

    GRID2D = "grid2d"
    GRID2D_V2 = "grid2d_v2"
    GRID2D_V3 = "grid2d_v3"
    GRID2D_V3A = "grid2d_v3a"
    SPECTRAL = "spectral"


class AuxiliaryRotation(BaseModel):
    """Optional user rotation packed into four quantized bytes.

    The first three bytes are the rotation axis and the fourth the angle.
    Each axis component decodes to ``byte * 45/256`` (the axis is then
    normalized) and the angle to ``byte * 45/256 * 360/256`` degrees.
    """

    axis_bytes: tuple[int, int, int] = Field(description="Quantized axis (x, y, z)")
    angle_byte: int = Field(default=0, ge=0, le=255, description="Quantized angle")

    model_config = {"frozen": True}

    @field_validator("axis_bytes")
    @classmethod
    def _check_axis(cls, value: tuple[int, int, int]) -> tuple[int, int, int]:
        if any(b < 0 or b > 255 for b in value):
            raise ValueError(f"Axis bytes must be in 0..255, got {value}")
        if not any(value):
            raise ValueError("Rotation axis must be non-zero")
        return value

    @classmethod
    def from_bytes(cls, packed: bytes | bytearray | tuple[int, ...] | list[int]) -> AuxiliaryRotation:
        """Decode the 4-byte packed form ``(ax, ay, az, angle)``."""
        values = tuple(packed)
        if len(values) != 4:
            raise ValueError(f"Packed rotation needs 4 bytes, got {len(values)}")
        return cls(axis_bytes=values[:3], angle_byte=values[3])

    def to_bytes(self) -> bytes:
        return bytes((*self.axis_bytes, self.angle_byte))

    @property
    def axis(self) -> NDArray[np.float64]:
        """Unit rotation axis."""
        raw = np.asarray(self.axis_bytes, dtype=np.float64) * ROTATION_STEP
        return raw / np.linalg.norm(raw)

    @property
    def angle_deg(self) -> float:
        """Rotation angle in degrees."""
        return self.angle_byte * ROTATION_STEP * 360.0 / 256.0

    def to_matrix(self) -> NDArray[np.float64]:
        """Convert to a 4x4 homogeneous rotation matrix about the origin."""
        rot = Rotation.from_rotvec(self.axis * np.radians(self.angle_deg))
        matrix = np.eye(4, dtype=np.float64)
        matrix[:3, :3] = rot.as_matrix()
        return matrix


class ProcessParams(BaseModel):
    """Parameters for one pipeline run."""

    file_type: InputFileType = Field(default=InputFileType.GLB, description="Input mesh format")
    algorithm: AlgoType = Field(default=AlgoType.GRID2D, description="Grid scoring variant")

    grid_size: int = Field(default=20, ge=1, le=4096, description="Grid subdivisions per axis")
    n_sections: int = Field(default=10, ge=1, le=4096, description="Number of slice levels")
    depth: int = Field(default=10, ge=1, description="Number of candidates to return")

    rotation: AuxiliaryRotation | None = Field(
        default=None,
        description="Optional rotation applied after principal alignment"
    )

    # Slicer / contour tuning
    tolerant_slab_fraction: float = Field(
        default=0.01,
        gt=0,
        lt=0.5,
        description="Half-thickness of the tolerant slab as a fraction of level spacing"
    )
    contour_tolerance: float = Field(
        default=1e-9,
        gt=0,
        description="Endpoint matching tolerance relative to the slice extent"
    )

    @classmethod
    def from_file(cls, path: Path | str) -> ProcessParams:
        """Load parameters from a JSON file."""
        path = Path(path)
        with open(path) as f:
            data = json.load(f)
        return cls.model_validate(data)

    def to_file(self, path: Path | str) -> None:
        """Save parameters to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)

    @classmethod
    def default(cls) -> ProcessParams:
        """Create default parameters."""
        return cls()
