"""
Pytest configuration and shared fixtures for surface adaptation tests.
"""
import pytest
import tempfile
import json
from pathlib import Path
from unittest.mock import MagicMock
import numpy as np

from surface_adapt.pipeline.engines import AdaptationEngine
from surface_adapt.pipeline.mesh import SurfaceMesh
from surface_adapt.pipeline.services import Services
from surface_adapt.pipeline.status import Status


def build_bipyramid(n_ring=8):
    """Closed surface: a ring of n_ring points plus two apexes, refs 1 (top) and 2 (bottom)"""
    angles = np.linspace(0.0, 2.0 * np.pi, n_ring, endpoint=False)
    ring = np.column_stack([np.cos(angles), np.sin(angles), np.zeros(n_ring)])
    points = np.vstack([ring, [[0.0, 0.0, 1.0], [0.0, 0.0, -1.0]]])
    top, bottom = n_ring, n_ring + 1

    triangles, refs = [], []
    for i in range(n_ring):
        j = (i + 1) % n_ring
        triangles.append([i, j, top])
        refs.append(1)
        triangles.append([j, i, bottom])
        refs.append(2)
    return SurfaceMesh(points=points, triangles=np.array(triangles), triangle_refs=np.array(refs))


def medit_text(mesh):
    """Medit ASCII text for a SurfaceMesh (1-based indices)"""
    lines = ["MeshVersionFormatted 2", "", "Dimension 3", "", "Vertices", str(mesh.n_points)]
    lines += [f"{x!r} {y!r} {z!r} 0" for x, y, z in mesh.points.tolist()]
    lines += ["", "Triangles", str(mesh.n_triangles)]
    lines += [f"{a + 1} {b + 1} {c + 1} {ref}"
              for (a, b, c), ref in zip(mesh.triangles.tolist(), mesh.triangle_refs.tolist())]
    lines += ["", "End", ""]
    return "\n".join(lines)


def sol_text(values, sol_type=1):
    """Medit ASCII .sol text with one solution per vertex"""
    values = np.atleast_2d(np.asarray(values, dtype=float))
    if values.shape[0] == 1 and sol_type == 1:
        values = values.T
    lines = ["MeshVersionFormatted 2", "", "Dimension 3", "", "SolAtVertices", str(len(values)),
             f"1 {sol_type}", ""]
    lines += [" ".join(repr(v) for v in row) for row in values.tolist()]
    lines += ["", "End", ""]
    return "\n".join(lines)


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def in_temp_dir(temp_dir, monkeypatch):
    """Run the test from the temporary directory (DEFAULT.mmgs is looked up in the cwd)"""
    monkeypatch.chdir(temp_dir)
    return temp_dir


@pytest.fixture
def bipyramid_mesh():
    """10 points, 16 triangles, triangle references 1 and 2"""
    return build_bipyramid()


@pytest.fixture
def medit_mesh_file(temp_dir, bipyramid_mesh):
    """Bipyramid saved as a Medit ASCII mesh"""
    path = temp_dir / "surface.mesh"
    path.write_text(medit_text(bipyramid_mesh))
    return path


@pytest.fixture
def scalar_sol_file(temp_dir, bipyramid_mesh):
    """Scalar solution (one value per vertex) matching the bipyramid"""
    path = temp_dir / "surface.sol"
    path.write_text(sol_text(np.linspace(-0.5, 0.5, bipyramid_mesh.n_points)))
    return path


@pytest.fixture
def sample_local_params():
    """Side-car content with two triangle references"""
    return """parameters
2
1 Triangle 0.01 0.2 0.001
2 triangles 0.05 0.5 0.005
"""


@pytest.fixture
def sample_config():
    """Sample JSON configuration for testing"""
    return {
        "LOGGING": {
            "verbosity": 3,
            "log_file": "job.log"
        },
        "REMESHER": {
            "command": "mmgs_O3 -nreg",
            "timeout": 600
        },
        "SIZES": {
            "hausd": 0.002,
            "hgrad": 1.5
        }
    }


@pytest.fixture
def sample_config_file(temp_dir, sample_config):
    """Create sample configuration file"""
    config_file = temp_dir / "config.json"
    with open(config_file, 'w') as f:
        json.dump(sample_config, f, indent=2)
    return config_file


@pytest.fixture
def fake_engine():
    """Adaptation engine leaving the mesh untouched"""
    engine = MagicMock(spec=AdaptationEngine)
    engine.adapt_by_metric.return_value = Status.SUCCESS
    engine.adapt_by_level_set.return_value = Status.SUCCESS
    return engine


@pytest.fixture
def services(fake_engine):
    """Real codecs, scaling and sizing with a fake adaptation engine"""
    return Services(engine=fake_engine)


@pytest.fixture
def write_medit():
    """Writer for arbitrary SurfaceMesh objects as Medit ASCII files"""
    def _write(path, mesh):
        Path(path).write_text(medit_text(mesh))
        return Path(path)
    return _write


@pytest.fixture
def write_sol():
    """Writer for Medit ASCII .sol files (sol_type 1 scalar, 3 tensor)"""
    def _write(path, values, sol_type=1):
        Path(path).write_text(sol_text(values, sol_type))
        return Path(path)
    return _write
