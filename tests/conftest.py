"""Shared fixtures: small meshes and their serialized forms."""

import json

import numpy as np
import pytest
import trimesh

TETRA_OBJ = b"""# unit tetrahedron
v 0 0 0
v 1 0 0
v 0 1 0
v 0 0 1
f 1 3 2
f 1 2 4
f 1 4 3
f 2 3 4
"""

EMPTY_SCENE_GLTF = json.dumps({
    "asset": {"version": "2.0"},
    "scene": 0,
    "scenes": [{"nodes": []}],
    "meshes": [],
}).encode()


@pytest.fixture
def simple_box() -> trimesh.Trimesh:
    """Create a box with three distinct extents."""
    return trimesh.creation.box(extents=[2.0, 4.0, 10.0])


@pytest.fixture
def cube() -> trimesh.Trimesh:
    """Create a unit cube; all three principal components are equal."""
    return trimesh.creation.box(extents=[1.0, 1.0, 1.0])


@pytest.fixture
def tetrahedron() -> trimesh.Trimesh:
    """Create an irregular tetrahedron."""
    vertices = np.array([
        [0.0, 0.0, 0.0],
        [3.0, 0.0, 0.0],
        [0.0, 2.0, 0.0],
        [0.5, 0.5, 5.0],
    ])
    faces = np.array([[0, 2, 1], [0, 1, 3], [0, 3, 2], [1, 2, 3]])
    return trimesh.Trimesh(vertices=vertices, faces=faces, process=False)


@pytest.fixture
def box_glb(simple_box) -> bytes:
    """The box serialized as binary glTF."""
    return simple_box.export(file_type="glb")


@pytest.fixture
def cube_glb(cube) -> bytes:
    return cube.export(file_type="glb")


@pytest.fixture
def tetra_obj() -> bytes:
    return TETRA_OBJ


@pytest.fixture
def empty_scene_gltf() -> bytes:
    """A valid glTF document describing no meshes."""
    return EMPTY_SCENE_GLTF
