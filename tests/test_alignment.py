"""Tests for principal-axis alignment."""

import numpy as np
import pytest

from p3d.core.config import AuxiliaryRotation
from p3d.core.errors import MathError
from p3d.mesh.alignment import (
    AlignmentTransform,
    align_mesh,
    inertia_tensor,
    principal_inertia_transform,
    triangle_soup,
)


class TestInertiaTensor:
    """Test the lamina inertia tensor."""

    def test_centroid_of_offset_box(self, simple_box):
        simple_box.apply_translation([1.0, -2.0, 3.0])
        _, centroid = inertia_tensor(triangle_soup(simple_box))
        np.testing.assert_array_almost_equal(centroid, [1.0, -2.0, 3.0])

    def test_symmetric(self, tetrahedron):
        tensor, _ = inertia_tensor(triangle_soup(tetrahedron))
        np.testing.assert_array_almost_equal(tensor, tensor.T)

    def test_zero_area_raises(self):
        """Test a soup of collinear triangles has no inertia."""
        triangles = np.array([[[0, 0, 0], [1, 1, 1], [2, 2, 2]]], dtype=float)
        with pytest.raises(MathError):
            inertia_tensor(triangles)

    def test_non_finite_raises(self):
        triangles = np.array([[[0, 0, 0], [1, 0, 0], [0, np.nan, 0]]], dtype=float)
        with pytest.raises(MathError):
            principal_inertia_transform(triangles)


class TestPrincipalTransform:
    """Test the rotation onto principal axes."""

    @pytest.mark.parametrize("fixture", ["cube", "simple_box", "tetrahedron"])
    def test_proper_rotation(self, fixture, request):
        """Test the rotation is orthonormal with determinant one."""
        mesh = request.getfixturevalue(fixture)
        transform = principal_inertia_transform(triangle_soup(mesh))

        assert isinstance(transform, AlignmentTransform)
        np.testing.assert_array_almost_equal(transform.rotation @ transform.rotation.T, np.eye(3))
        assert np.linalg.det(transform.rotation) == pytest.approx(1.0)

    def test_least_inertia_last(self, tetrahedron):
        transform = principal_inertia_transform(triangle_soup(tetrahedron))
        components = transform.components
        assert components[0] >= components[1] >= components[2]

    def test_matrix_rotates_about_centroid(self, tetrahedron):
        """Test the 4x4 matrix centers the mesh, then rotates it."""
        transform = principal_inertia_transform(triangle_soup(tetrahedron))
        _, centroid = inertia_tensor(triangle_soup(tetrahedron))
        points = np.asarray(tetrahedron.vertices)

        homogeneous = np.column_stack([points, np.ones(len(points))]) @ transform.to_matrix().T
        expected = (points - centroid) @ transform.rotation.T
        np.testing.assert_array_almost_equal(homogeneous[:, :3], expected)


class TestAlignMesh:
    """Test in-place alignment of meshes."""

    def test_box_long_axis_on_z(self, simple_box):
        """Test a rotated box comes back axis aligned with its long side on Z."""
        simple_box.apply_transform(
            AuxiliaryRotation.from_bytes([3, 7, 1, 90]).to_matrix()
        )
        simple_box.apply_translation([5.0, 5.0, 5.0])

        align_mesh(simple_box)
        np.testing.assert_array_almost_equal(simple_box.extents, [2.0, 4.0, 10.0])

    def test_cube_keeps_shape(self, cube):
        """Test a cube with equal principal components is centered and not distorted."""
        area = cube.area
        transform = align_mesh(cube)

        np.testing.assert_array_almost_equal(transform.components, np.full(3, transform.components[0]))
        _, centroid = inertia_tensor(triangle_soup(cube))
        np.testing.assert_array_almost_equal(centroid, np.zeros(3))
        assert cube.area == pytest.approx(area)
        np.testing.assert_array_almost_equal(np.linalg.norm(cube.vertices, axis=1), np.full(8, np.sqrt(0.75)))

    def test_centroid_at_origin(self, tetrahedron):
        align_mesh(tetrahedron)
        _, centroid = inertia_tensor(triangle_soup(tetrahedron))
        np.testing.assert_array_almost_equal(centroid, np.zeros(3))

    def test_aligned_tensor_is_diagonal(self, tetrahedron):
        align_mesh(tetrahedron)
        tensor, _ = inertia_tensor(triangle_soup(tetrahedron))
        off_diagonal = tensor - np.diag(np.diag(tensor))
        assert np.abs(off_diagonal).max() < 1e-9 * np.abs(tensor).max()

    def test_auxiliary_rotation_applied_after(self, tetrahedron):
        """Test aligning with a rotation equals aligning then rotating."""
        rotation = AuxiliaryRotation.from_bytes([0, 1, 0, 64])
        expected = tetrahedron.copy()
        align_mesh(expected)
        expected.apply_transform(rotation.to_matrix())

        align_mesh(tetrahedron, rotation)
        np.testing.assert_array_almost_equal(tetrahedron.vertices, expected.vertices)
