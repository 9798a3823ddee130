"""
Unit tests for the default-option sub-pipeline.
"""
import pytest
import numpy as np
from unittest.mock import MagicMock

from surface_adapt.pipeline.config_manager import EntityType, JobConfig
from surface_adapt.pipeline.default_option import run_default_option
from surface_adapt.pipeline.local_params import read_local_parameters
from surface_adapt.pipeline.mesh import SolutionField
from surface_adapt.pipeline.services import Services
from surface_adapt.pipeline.status import Status


@pytest.fixture
def job(in_temp_dir):
    return JobConfig(mesh_in=str(in_temp_dir / "surface.mesh"), mark=True)


@pytest.fixture
def mock_services():
    """Every collaborator succeeds; calls are recorded in order"""
    calls = []

    def recorder(name, result):
        def _call(*args, **kwargs):
            calls.append(name)
            return result
        return MagicMock(side_effect=_call)

    services = Services(
        scale_mesh=recorder("scale", True),
        unscale_mesh=recorder("unscale", True),
        compute_default_sizing=recorder("sizing", True),
        truncate_sizes=recorder("truncate", None),
        compute_constant_size=recorder("constant", (True, 0.1)),
        write_local_parameters=recorder("write", True),
        engine=MagicMock(),
    )
    services.calls = calls
    return services


class TestDefaultOption:
    """Test suite for run_default_option with mocked collaborators"""

    def test_success_order(self, job, bipyramid_mesh, mock_services):
        job.optim = True
        job.hsiz = 0.1

        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, mock_services)

        assert status is Status.SUCCESS
        assert mock_services.calls == ["scale", "sizing", "truncate", "constant", "unscale", "write"]
        assert job.mark is False

    def test_plain_run_skips_sizing(self, job, bipyramid_mesh, mock_services):
        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, mock_services)

        assert status is Status.SUCCESS
        assert mock_services.calls == ["scale", "unscale", "write"]

    def test_existing_local_parameters(self, job, bipyramid_mesh, mock_services):
        """Explicit local parameters make default computation meaningless"""
        job.local_params.declare(1)
        job.local_params.register(EntityType.TRIANGLE, 1, 0.1, 0.2, 0.01)

        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, mock_services)

        assert status is Status.LOW_FAILURE
        assert mock_services.calls == []

    def test_mismatched_solutions_discarded(self, job, bipyramid_mesh, mock_services, caplog):
        metric = SolutionField(np.ones(3))
        level_set = SolutionField(np.ones(4))

        status = run_default_option(bipyramid_mesh, metric, level_set, job, mock_services)

        assert status is Status.SUCCESS
        assert not metric.has_data
        assert not level_set.has_data
        assert "WRONG SOLUTION NUMBER. IGNORED" in caplog.text

    def test_matching_solution_kept(self, job, bipyramid_mesh, mock_services):
        metric = SolutionField(np.ones(bipyramid_mesh.n_points))

        run_default_option(bipyramid_mesh, metric, None, job, mock_services)

        assert metric.size == bipyramid_mesh.n_points

    def test_scale_failure(self, job, bipyramid_mesh, mock_services):
        mock_services.scale_mesh.side_effect = None
        mock_services.scale_mesh.return_value = False

        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, mock_services)

        assert status is Status.STRONG_FAILURE
        mock_services.write_local_parameters.assert_not_called()

    def test_sizing_failure_unscales(self, job, bipyramid_mesh, mock_services):
        job.optim = True
        mock_services.compute_default_sizing.side_effect = None
        mock_services.compute_default_sizing.return_value = False

        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, mock_services)

        assert status is Status.LOW_FAILURE
        assert mock_services.calls == ["scale", "unscale"]

    def test_sizing_failure_then_unscale_failure(self, job, bipyramid_mesh, mock_services):
        job.optim = True
        mock_services.compute_default_sizing.side_effect = None
        mock_services.compute_default_sizing.return_value = False
        mock_services.unscale_mesh.side_effect = None
        mock_services.unscale_mesh.return_value = False

        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, mock_services)

        assert status is Status.STRONG_FAILURE

    def test_constant_size_failure(self, job, bipyramid_mesh, mock_services):
        job.hsiz = 0.1
        mock_services.compute_constant_size.side_effect = None
        mock_services.compute_constant_size.return_value = (False, 0.0)

        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, mock_services)

        assert status is Status.STRONG_FAILURE
        mock_services.unscale_mesh.assert_called_once()
        mock_services.write_local_parameters.assert_not_called()

    def test_unscale_failure(self, job, bipyramid_mesh, mock_services):
        mock_services.unscale_mesh.side_effect = None
        mock_services.unscale_mesh.return_value = False

        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, mock_services)

        assert status is Status.STRONG_FAILURE
        mock_services.write_local_parameters.assert_not_called()

    def test_writer_failure(self, job, bipyramid_mesh, mock_services):
        mock_services.write_local_parameters.side_effect = None
        mock_services.write_local_parameters.return_value = False

        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, mock_services)

        assert status is Status.LOW_FAILURE
        assert job.mark is False


class TestDefaultOptionIntegration:
    """run_default_option with the real scaling, sizing and writer"""

    def test_writes_default_parameters(self, job, bipyramid_mesh, in_temp_dir):
        original_points = bipyramid_mesh.points.copy()

        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, Services(engine=MagicMock()))

        assert status is Status.SUCCESS
        assert not bipyramid_mesh.scaled
        assert np.allclose(bipyramid_mesh.points, original_points)

        # Default sizes are expressed in mesh units (largest extent is 2)
        assert job.hmin == pytest.approx(0.002)
        assert job.hmax == pytest.approx(4.0)
        assert job.hausd == pytest.approx(0.02)

        reread = JobConfig(mesh_in=job.mesh_in)
        assert read_local_parameters(reread.mesh_in, reread) is True
        assert [p.ref for p in reread.local_params] == [1, 2]
        assert reread.local_params.lookup(EntityType.TRIANGLE, 1).hmax == pytest.approx(4.0)

    def test_optim_sizes(self, job, bipyramid_mesh, in_temp_dir):
        job.optim = True
        metric = SolutionField()

        status = run_default_option(bipyramid_mesh, metric, None, job, Services(engine=MagicMock()))

        assert status is Status.SUCCESS
        assert metric.size == bipyramid_mesh.n_points
        assert 0 < job.hmin < job.hmax
        assert (in_temp_dir / "surface.mmgs").exists()

    def test_constant_size(self, job, bipyramid_mesh, in_temp_dir):
        job.hsiz = 0.2

        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, Services(engine=MagicMock()))

        assert status is Status.SUCCESS
        assert job.hsiz == pytest.approx(0.2)
        assert job.hmin == pytest.approx(0.02)
        assert job.hmax == pytest.approx(2.0)

    @pytest.mark.parametrize("given,expected", [
        ({"hmin": 5.0}, (5.0, 500.0)),
        ({"hmax": 0.001}, (1e-05, 0.001)),
    ])
    def test_single_bound_keeps_sizes_ordered(self, job, bipyramid_mesh, in_temp_dir, given, expected):
        """The default for the missing bound follows the given one"""
        for name, value in given.items():
            setattr(job, name, value)
            setattr(job, "set" + name, True)

        status = run_default_option(bipyramid_mesh, SolutionField(), None, job, Services(engine=MagicMock()))

        assert status is Status.SUCCESS
        assert (job.hmin, job.hmax) == pytest.approx(expected)

        reread = JobConfig(mesh_in=job.mesh_in)
        assert read_local_parameters(reread.mesh_in, reread) is True
        entry = reread.local_params.lookup(EntityType.TRIANGLE, 1)
        assert entry.hmin <= entry.hmax
