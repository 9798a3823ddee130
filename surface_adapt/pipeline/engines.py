"""
Adaptation engines.

The remeshing itself is done by an external executable; this module only
stages the inputs in a scratch directory, runs the command and adopts the
adapted mesh and metric back into the job.
"""
import logging
import shlex
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from .codecs import load_mesh, load_solution, save_mesh, save_solution
from .config_manager import JobConfig
from .constants import DEFAULT_CONSTANTS
from .formats import MeshFormat
from .local_params import dump_local_parameters
from .mesh import SurfaceMesh, SolutionField, SCALAR
from .status import LoadStatus, Status
from ..utils import find_executable, run_command

logger = logging.getLogger(__name__)


class AdaptationEngine(ABC):
    """Level-set driven and metric driven surface adaptation"""

    @abstractmethod
    def adapt_by_level_set(self, mesh: SurfaceMesh, level_set: SolutionField,
                           metric: SolutionField, config: JobConfig) -> Status:
        """Discretize the zero level of `level_set` into the mesh, then adapt"""

    @abstractmethod
    def adapt_by_metric(self, mesh: SurfaceMesh, metric: SolutionField,
                        config: JobConfig) -> Status:
        """Adapt the mesh to `metric` (or to the default sizing when it is empty)"""


class ExternalRemesherEngine(AdaptationEngine):
    """Runs a Medit-format command line remesher (mmgs compatible options)"""

    def __init__(self, command: Optional[str] = None):
        self.command = command

    def adapt_by_level_set(self, mesh, level_set, metric, config):
        return self._run(mesh, metric, config, level_set=level_set)

    def adapt_by_metric(self, mesh, metric, config):
        return self._run(mesh, metric, config)

    def _build_command(self, command: str, in_mesh: Path, out_mesh: Path,
                       sol: Optional[Path], config: JobConfig) -> List[str]:
        cmd = shlex.split(command) + ["-in", str(in_mesh), "-out", str(out_mesh), "-v", str(config.verbosity)]
        if config.iso:
            cmd.append("-ls")
        if sol is not None:
            cmd.extend(["-sol", str(sol)])
        if config.optim:
            cmd.append("-optim")
        for option in ("hmin", "hmax", "hausd", "hgrad", "hsiz"):
            value = getattr(config, option)
            if value is not None:
                cmd.extend([f"-{option}", repr(float(value))])
        return cmd

    def _run(self, mesh: SurfaceMesh, metric: SolutionField, config: JobConfig,
             level_set: Optional[SolutionField] = None) -> Status:
        command = self.command or config.remesher_command
        if not command or find_executable(command) is None:
            logger.error(f"\n  ## ERROR: REMESHER NOT FOUND: {command}")
            return Status.STRONG_FAILURE

        with tempfile.TemporaryDirectory(prefix="surface_adapt_") as tmp:
            work = Path(tmp)
            in_mesh, out_mesh = work / "input.mesh", work / "output.mesh"
            sol = None

            if not save_mesh(mesh, str(in_mesh), MeshFormat.MEDIT_ASCII):
                return Status.STRONG_FAILURE
            staged = level_set if level_set is not None else metric
            if staged is not None and staged.has_data:
                sol = work / "input.sol"
                if not save_solution(staged, str(sol)):
                    return Status.STRONG_FAILURE
            if config.local_params:
                dump_local_parameters(config.local_params, work / "input.mmgs")

            try:
                result = run_command(
                    self._build_command(command, in_mesh, out_mesh, sol, config),
                    cwd=work,
                    timeout=config.remesher_timeout,
                    max_memory_gb=config.max_memory_gb,
                )
            except RuntimeError as e:
                logger.error(f"\n  ## ERROR: REMESHER FAILED: {e}")
                return Status.STRONG_FAILURE

            low_failure = DEFAULT_CONSTANTS['remesher'].LOW_FAILURE_RETURN_CODE
            if result.returncode not in (0, low_failure):
                tail = "\n".join((result.stdout + result.stderr).splitlines()[-20:])
                logger.error(f"\n  ## ERROR: REMESHER EXITED WITH CODE {result.returncode}\n{tail}")
                return Status.STRONG_FAILURE
            status = Status.LOW_FAILURE if result.returncode == low_failure else Status.SUCCESS

            return Status.worst(status, self._adopt(mesh, metric, out_mesh))

    def _adopt(self, mesh: SurfaceMesh, metric: SolutionField, out_mesh: Path) -> Status:
        """Replace the job mesh and metric with the remesher outputs"""
        load_status, adapted, _ = load_mesh(str(out_mesh), MeshFormat.MEDIT_ASCII)
        if load_status is not LoadStatus.OK:
            logger.error("\n  ## ERROR: NO ADAPTED MESH PRODUCED")
            return Status.STRONG_FAILURE

        mesh.points = adapted.points
        mesh.triangles = adapted.triangles
        mesh.triangle_refs = adapted.triangle_refs
        mesh.edges = adapted.edges
        mesh.edge_refs = adapted.edge_refs
        mesh.point_refs = adapted.point_refs

        sol_status, adapted_metric = load_solution(str(out_mesh.with_suffix(".sol")), mesh)
        if sol_status is LoadStatus.OK:
            metric.kind = adapted_metric.kind
            metric.values = adapted_metric.values
        else:
            # sizes of the old vertices cannot be kept on the new ones
            metric.kind = SCALAR
            metric.clear()
        return Status.SUCCESS
