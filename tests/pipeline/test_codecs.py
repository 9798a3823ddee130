"""
Unit tests for mesh and solution readers/writers.
"""
import pytest
import numpy as np

from surface_adapt.pipeline.codecs import load_mesh, load_solution, save_mesh, save_solution
from surface_adapt.pipeline.formats import (
    MeshFormat,
    default_output_path,
    default_solution_path,
    get_format,
    local_parameter_path,
)
from surface_adapt.pipeline.mesh import SolutionField, SCALAR, TENSOR
from surface_adapt.pipeline.status import LoadStatus


class TestFormats:
    """Test suite for format detection and default names"""

    @pytest.mark.parametrize("name,fmt", [
        ("a.mesh", MeshFormat.MEDIT_ASCII),
        ("a.MESHB", MeshFormat.MEDIT_BINARY),
        ("a.msh", MeshFormat.GMSH),
        ("a.vtk", MeshFormat.VTK),
        ("a.vtu", MeshFormat.VTU),
        ("a.vtp", MeshFormat.VTP),
        ("a.pvtu", MeshFormat.PVTU),
        ("a.pvtp", MeshFormat.PVTP),
        ("a.stl", MeshFormat.STL),
    ])
    def test_extension_mapping(self, name, fmt):
        assert get_format(name) is fmt

    def test_unknown_extension_uses_default(self):
        assert get_format("a.xyz") is MeshFormat.MEDIT_ASCII
        assert get_format("a", default=MeshFormat.GMSH) is MeshFormat.GMSH

    def test_default_names(self):
        assert default_output_path("dir/part.mesh") == "dir/part.o.mesh"
        assert default_output_path("dir/part.meshb") == "dir/part.o.mesh"
        assert default_output_path("dir/part.msh") == "dir/part.o.msh"
        assert default_output_path("dir/part") == "dir/part.o.mesh"
        assert default_solution_path("dir/part.o.mesh") == "dir/part.o.sol"
        assert str(local_parameter_path("dir/part.mesh")) == "dir/part.mmgs"


class TestMeshIO:
    """Test suite for load_mesh / save_mesh"""

    def test_load_medit(self, medit_mesh_file):
        status, mesh, solution = load_mesh(str(medit_mesh_file), MeshFormat.MEDIT_ASCII)

        assert status is LoadStatus.OK
        assert mesh.n_points == 10
        assert mesh.n_triangles == 16
        assert mesh.triangle_references() == [1, 2]
        assert solution is None

    def test_load_missing(self, temp_dir, caplog):
        path = temp_dir / "missing.mesh"
        status, mesh, _ = load_mesh(str(path), MeshFormat.MEDIT_ASCII)
        assert status is LoadStatus.NOT_FOUND
        assert mesh is None
        assert f"{path}  NOT FOUND." in caplog.text
        assert "FILE_NOT_FOUND" not in caplog.text

    def test_load_garbage(self, temp_dir):
        path = temp_dir / "garbage.vtk"
        path.write_text("not a mesh at all\n")
        status, mesh, _ = load_mesh(str(path), MeshFormat.VTK)
        assert status is LoadStatus.READ_ERROR
        assert mesh is None

    def test_medit_save_keeps_references(self, bipyramid_mesh, temp_dir):
        path = temp_dir / "copy.mesh"

        assert save_mesh(bipyramid_mesh, str(path), MeshFormat.MEDIT_ASCII)
        status, mesh, _ = load_mesh(str(path), MeshFormat.MEDIT_ASCII)

        assert status is LoadStatus.OK
        assert np.allclose(mesh.points, bipyramid_mesh.points)
        assert np.array_equal(mesh.triangle_refs, bipyramid_mesh.triangle_refs)

    def test_gmsh_carries_metric(self, bipyramid_mesh, temp_dir):
        path = temp_dir / "copy.msh"
        metric = SolutionField(np.arange(10, dtype=float))

        assert save_mesh(bipyramid_mesh, str(path), MeshFormat.GMSH, metric)
        status, mesh, solution = load_mesh(str(path), MeshFormat.GMSH)

        assert status is LoadStatus.OK
        assert mesh.triangle_references() == [1, 2]
        assert solution.kind == SCALAR
        assert np.allclose(solution.values[:, 0], np.arange(10))

    def test_vtu_carries_tensor_metric(self, bipyramid_mesh, temp_dir):
        path = temp_dir / "copy.vtu"
        metric = SolutionField(np.tile([1.0, 0.1, 0.0, 2.0, 0.0, 3.0], (10, 1)), TENSOR)

        assert save_mesh(bipyramid_mesh, str(path), MeshFormat.VTU, metric)
        status, _, solution = load_mesh(str(path), MeshFormat.VTU)

        assert status is LoadStatus.OK
        assert solution.kind == TENSOR
        assert np.allclose(solution.values, metric.values)

    def test_stl_vertices_merged(self, bipyramid_mesh, temp_dir):
        path = temp_dir / "copy.stl"

        assert save_mesh(bipyramid_mesh, str(path), MeshFormat.STL)
        status, mesh, _ = load_mesh(str(path), MeshFormat.STL)

        assert status is LoadStatus.OK
        assert mesh.n_points == 10
        assert mesh.n_triangles == 16

    @pytest.mark.parametrize("fmt", [MeshFormat.VTP, MeshFormat.PVTU, MeshFormat.PVTP])
    def test_unsupported_writers(self, bipyramid_mesh, temp_dir, fmt):
        assert save_mesh(bipyramid_mesh, str(temp_dir / "out"), fmt) is False


class TestSolutionIO:
    """Test suite for load_solution / save_solution"""

    def test_scalar_round_trip(self, bipyramid_mesh, temp_dir):
        path = temp_dir / "size.sol"
        solution = SolutionField(np.linspace(0.1, 1.0, 10))

        assert save_solution(solution, str(path))
        status, loaded = load_solution(str(path), bipyramid_mesh)

        assert status is LoadStatus.OK
        assert loaded.kind == SCALAR
        assert np.allclose(loaded.values, solution.values)

    def test_tensor_file(self, bipyramid_mesh, temp_dir, write_sol):
        path = write_sol(temp_dir / "met.sol", np.tile([1.0, 0.0, 0.0, 1.0, 0.0, 1.0], (10, 1)), 3)

        status, loaded = load_solution(str(path), bipyramid_mesh)

        assert status is LoadStatus.OK
        assert loaded.kind == TENSOR
        assert loaded.values.shape == (10, 6)

    def test_missing(self, bipyramid_mesh, temp_dir):
        assert load_solution(str(temp_dir / "none.sol"), bipyramid_mesh) == (LoadStatus.NOT_FOUND, None)

    def test_wrong_size(self, bipyramid_mesh, temp_dir, write_sol):
        path = write_sol(temp_dir / "short.sol", np.ones(4))
        status, loaded = load_solution(str(path), bipyramid_mesh)
        assert status is LoadStatus.READ_ERROR
        assert loaded is None

    def test_wrong_kind(self, bipyramid_mesh, temp_dir, write_sol):
        path = write_sol(temp_dir / "met.sol", np.tile([1.0, 0.0, 0.0, 1.0, 0.0, 1.0], (10, 1)), 3)
        status, _ = load_solution(str(path), bipyramid_mesh, SCALAR)
        assert status is LoadStatus.READ_ERROR

    def test_vector_solution_rejected(self, bipyramid_mesh, temp_dir, write_sol):
        path = write_sol(temp_dir / "vec.sol", np.ones((10, 3)), 2)
        status, _ = load_solution(str(path), bipyramid_mesh)
        assert status is LoadStatus.READ_ERROR

    def test_binary_solution_rejected(self, bipyramid_mesh, temp_dir):
        path = temp_dir / "met.solb"
        path.write_bytes(b"\x01\x00\x00\x00")
        status, _ = load_solution(str(path), bipyramid_mesh)
        assert status is LoadStatus.READ_ERROR
