"""End-to-end tests for the processing entry points and CLI."""

import json

import numpy as np
import pytest
import trimesh
from click.testing import CliRunner

from p3d.cli import main
from p3d.core.config import ProcessParams
from p3d.core.errors import (
    InvalidInputError,
    InvalidParametersError,
    NoGeometryError,
    P3DError,
    UnsupportedVariantError,
)
from p3d.pipeline import analyze, p3d_process, p3d_process_n, process_file, run


@pytest.fixture
def stepped_glb() -> bytes:
    """A 6x6x4 block under a 2x2x6 column, so the step face sits on a slice level."""
    block = trimesh.creation.box(extents=[6.0, 6.0, 4.0])
    block.apply_translation([0.0, 0.0, 2.0])
    column = trimesh.creation.box(extents=[2.0, 2.0, 6.0])
    column.apply_translation([0.0, 0.0, 7.0])
    return trimesh.util.concatenate([block, column]).export(file_type="glb")


def parse(line):
    x, y, score = (float(v) for v in line.split(","))
    return x, y, score


class TestProcess:
    """Test the byte-level entry points."""

    def test_box_glb(self, box_glb):
        results = p3d_process(box_glb, "glb", "grid2d", 4, 5)

        assert len(results) == 10
        for line in results:
            x, y, score = parse(line)
            assert -1.0 <= x <= 1.0
            assert -2.0 <= y <= 2.0
            assert score == pytest.approx(1.0)

    @pytest.mark.parametrize("algo", ["grid2d", "grid2d_v2", "grid2d_v3", "grid2d_v3a"])
    def test_every_variant(self, box_glb, algo):
        results = p3d_process(box_glb, "glb", algo, 3, 4)
        assert 0 < len(results) <= 9

    @pytest.mark.parametrize("algo", ["grid2d", "grid2d_v2", "grid2d_v3", "grid2d_v3a"])
    def test_cube(self, cube_glb, algo):
        """Test a cube, whose principal axes are not unique, processes repeatably."""
        first = p3d_process(cube_glb, "glb", algo, 4, 5)
        second = p3d_process(cube_glb, "glb", algo, 4, 5)

        assert 0 < len(first) <= 10
        assert first == second

    def test_tolerant_variant_slices_step_face(self, stepped_glb):
        """Test the tolerant variant gives one outline where exact slicing sees a hole."""
        exact = analyze(stepped_glb, ProcessParams(file_type="glb", algorithm="grid2d_v3", n_sections=4))
        tolerant = analyze(stepped_glb, ProcessParams(file_type="glb", algorithm="grid2d_v3a", n_sections=4))

        assert len(exact.contours) == len(tolerant.contours) == 4
        assert all(len(c.loops) == 1 for c in tolerant.contours)

        split = [c.level for c in exact.contours if len(c.loops) > 1]
        assert len(split) == 1
        step = tolerant.contours[split[0]]
        assert step.area == pytest.approx(36.0)
        assert exact.contours[split[0]].area < step.area

    def test_deterministic(self, box_glb):
        first = p3d_process(box_glb, "glb", "grid2d_v3", 8, 6)
        second = p3d_process(box_glb, "glb", "grid2d_v3", 8, 6)
        assert first == second

    @pytest.mark.parametrize("depth", [1, 3, 16, 50])
    def test_depth_bound(self, box_glb, depth):
        results = p3d_process_n(box_glb, "glb", "grid2d_v2", depth, 4, 5)
        assert len(results) == min(depth, 16)

    def test_obj_input(self, tetra_obj):
        results = p3d_process(tetra_obj, "obj", "grid2d_v3", 5, 5)
        assert 0 < len(results) <= 10
        scores = [parse(line)[2] for line in results]
        assert scores == sorted(scores, reverse=True)

    def test_auxiliary_rotation(self, box_glb):
        """Test a rotation about Z turns the aligned XY footprint."""
        result = analyze(
            box_glb,
            ProcessParams(file_type="glb", rotation={"axis_bytes": (0, 0, 1), "angle_byte": 200}),
        )
        angle = np.radians(200 * (45 / 256) * (360 / 256))
        width = 2.0 * abs(np.cos(angle)) + 4.0 * abs(np.sin(angle))
        assert result.rect.width == pytest.approx(width)

    def test_rotation_bytes(self, box_glb):
        results = p3d_process(box_glb, "glb", "grid2d", 4, 5, trans=bytes([0, 0, 1, 128]))
        assert len(results) > 0

    def test_contours_increase_in_z(self, box_glb):
        result = analyze(box_glb, ProcessParams(file_type="glb", n_sections=7))
        assert len(result.contours) == 7
        assert np.all(np.diff([c.z for c in result.contours]) > 0)
        assert result.results == run(box_glb, ProcessParams(file_type="glb", n_sections=7))

    def test_process_file(self, tmp_path, box_glb):
        path = tmp_path / "box.glb"
        path.write_bytes(box_glb)
        assert process_file(path) == p3d_process(box_glb, "glb", "grid2d", 20, 10)


class TestFailures:
    """Test each stage surfaces a typed error."""

    def test_spectral_unsupported(self, box_glb):
        with pytest.raises(UnsupportedVariantError):
            p3d_process(box_glb, "glb", "spectral", 4, 5)

    def test_spectral_checked_before_parsing(self):
        with pytest.raises(UnsupportedVariantError):
            p3d_process(b"garbage", "glb", "spectral", 4, 5)

    def test_unknown_algorithm(self, box_glb):
        with pytest.raises(UnsupportedVariantError):
            p3d_process(box_glb, "glb", "grid3d", 4, 5)

    @pytest.mark.parametrize("grid_size, n_sections, depth", [(0, 5, 10), (4, 0, 10), (4, 5, 0)])
    def test_invalid_parameters(self, box_glb, grid_size, n_sections, depth):
        with pytest.raises(InvalidParametersError):
            p3d_process_n(box_glb, "glb", "grid2d", depth, grid_size, n_sections)

    def test_unknown_format(self, box_glb):
        with pytest.raises(InvalidParametersError):
            p3d_process(box_glb, "stl", "grid2d", 4, 5)

    def test_zero_rotation_axis(self, box_glb):
        with pytest.raises(InvalidParametersError, match="non-zero"):
            p3d_process(box_glb, "glb", "grid2d", 4, 5, trans=[0, 0, 0, 10])

    def test_short_rotation(self, box_glb):
        with pytest.raises(InvalidParametersError):
            p3d_process(box_glb, "glb", "grid2d", 4, 5, trans=[1, 2])

    def test_malformed_glb(self):
        with pytest.raises(InvalidInputError):
            p3d_process(b"not a mesh at all", "glb", "grid2d", 4, 5)

    def test_empty_scene(self, empty_scene_gltf):
        with pytest.raises(NoGeometryError):
            p3d_process(empty_scene_gltf, "gltf", "grid2d", 4, 5)

    def test_errors_share_base(self):
        with pytest.raises(P3DError):
            p3d_process(b"", "gltf", "grid2d", 4, 5)


class TestCLI:
    """Test the click command group."""

    @pytest.fixture
    def box_path(self, tmp_path, box_glb):
        path = tmp_path / "box.glb"
        path.write_bytes(box_glb)
        return str(path)

    def test_process_plain(self, box_path, box_glb):
        result = CliRunner().invoke(main, ["process", box_path, "--plain", "-g", "4", "-s", "5"])

        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        expected = p3d_process(box_glb, "glb", "grid2d", 4, 5)
        assert [line for line in lines if line in expected] == expected

    def test_process_json(self, box_path):
        result = CliRunner().invoke(main, ["process", box_path, "--json", "-n", "3", "-a", "grid2d_v3"])

        assert result.exit_code == 0, result.output
        candidates = json.loads(result.stdout[result.stdout.index("[\n"):])
        assert [c["rank"] for c in candidates] == [1, 2, 3]

    def test_process_table(self, box_path):
        result = CliRunner().invoke(main, ["process", box_path, "-g", "2"])
        assert result.exit_code == 0, result.output
        assert "Candidates" in result.output

    def test_process_spectral_aborts(self, box_path):
        result = CliRunner().invoke(main, ["process", box_path, "-a", "spectral"])
        assert result.exit_code != 0
        assert "UnsupportedVariantError" in result.output

    def test_process_rotation_echoed(self, box_path):
        result = CliRunner().invoke(main, ["process", box_path, "-g", "2", "-r", "0,0,1,128"])
        assert result.exit_code == 0, result.output
        assert "Auxiliary rotation 0,0,1,128" in result.output

    def test_bad_rotation(self, box_path):
        result = CliRunner().invoke(main, ["process", box_path, "-r", "1,2"])
        assert result.exit_code != 0

    def test_info(self, box_path):
        result = CliRunner().invoke(main, ["info", box_path])
        assert result.exit_code == 0, result.output
        assert "Aligned size" in result.output

    def test_info_section_areas(self, box_path):
        """Test the box reports its constant 2x4 cross-section."""
        result = CliRunner().invoke(main, ["info", box_path, "-s", "4"])
        assert result.exit_code == 0, result.output
        assert "Section area" in result.output
        assert "min 8.000, max 8.000" in result.output

    def test_algorithms(self):
        result = CliRunner().invoke(main, ["algorithms"])
        assert result.exit_code == 0
        assert "grid2d_v3a" in result.output

    def test_init_config(self, tmp_path, box_path):
        output = tmp_path / "params.json"
        result = CliRunner().invoke(main, ["init-config", "-o", str(output)])

        assert result.exit_code == 0
        assert ProcessParams.from_file(output) == ProcessParams.default()

        result = CliRunner().invoke(main, ["process", box_path, "-c", str(output), "--plain"])
        assert result.exit_code == 0, result.output
