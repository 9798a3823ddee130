"""
Job orchestrator: drives one adaptation job from its inputs to its outputs.

Stages run in a fixed order and each returns a Status:

    init -> load_inputs -> parse_local_params -> dispatch -> save_outputs

followed by cleanup on every path. A STRONG_FAILURE stops the job without
saving; a LOW_FAILURE from the adaptation still saves the mesh.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from .config_manager import JobConfig
from .default_option import run_default_option
from .formats import MeshFormat, get_format
from .mesh import SurfaceMesh, SolutionField, SCALAR
from .services import Services
from .status import LoadStatus, Status
from .timing import Chrono
from ..exceptions import ConfigurationConflict

logger = logging.getLogger(__name__)


def check_adaptation_inputs(config: JobConfig) -> None:
    """Raise ConfigurationConflict for a metric and a level-set given together outside iso mode"""
    if not config.iso and config.explicit_metric and config.explicit_level_set:
        raise ConfigurationConflict(
            "IMPOSSIBLE TO PROVIDE BOTH A METRIC AND A SOLUTION IN ADAPTATION MODE",
            options=["-met", "-sol"])


@dataclass
class JobResult:
    """Final status of a job and the stopwatch started with it"""
    status: Status
    chrono: Chrono = field(default_factory=Chrono)

    @property
    def exit_code(self) -> int:
        return self.status.exit_code


class JobOrchestrator:
    """
    Run a surface adaptation job.

    Args:
        config: Job configuration (owned by this job)
        services: Codecs, scaling, sizing, engine and side-car functions
    """

    def __init__(self, config: JobConfig, services: Optional[Services] = None,
                 chrono: Optional[Chrono] = None):
        self.config = config
        self.services = services or Services()
        self.chrono = chrono or Chrono()
        self.mesh: Optional[SurfaceMesh] = None
        self.metric: Optional[SolutionField] = None
        self.level_set: Optional[SolutionField] = None
        self.input_format: Optional[MeshFormat] = None

    def run(self) -> JobResult:
        self.chrono.start()
        try:
            status = self._run_stages()
        finally:
            self.cleanup()
            self.chrono.stop()
        return JobResult(status, self.chrono)

    def _run_stages(self) -> Status:
        status = self.init()
        if status is not Status.SUCCESS:
            return status

        status = self.load_inputs()
        if status is not Status.SUCCESS:
            return status

        # A job whose side-car file is unreadable stops here without saving
        status = self.parse_local_params()
        if status is not Status.SUCCESS:
            return status

        if self.config.mark:
            return self.run_default_option()

        status = self.dispatch()
        if not status.allows_save:
            return status
        return Status.worst(status, self.save_outputs())

    def init(self) -> Status:
        self.mesh = None
        self.metric = SolutionField(name_in=self.config.metric_in, name_out=self.config.metric_out)
        self.level_set = None
        return Status.SUCCESS

    def load_inputs(self) -> Status:
        """Load the mesh and its metric or level-set"""
        config = self.config
        stage_chrono = Chrono().start()
        logger.info("\n  -- INPUT DATA")

        self.input_format = get_format(config.mesh_in)
        load_status, mesh, inline = self.services.load_mesh(config.mesh_in, self.input_format)
        if load_status is not LoadStatus.OK:
            logger.error("  ** UNABLE TO OPEN INPUT FILE.")
            return Status.STRONG_FAILURE
        self.mesh = mesh
        self.mesh.name_out = config.mesh_out

        if self.input_format is MeshFormat.GMSH:
            status = self._adopt_inline_solution(inline)
        elif config.iso:
            status = self._load_iso_inputs()
        else:
            status = self._load_metric_inputs()
        if status is not Status.SUCCESS:
            return status

        if config.iso and (self.level_set is None or not self.level_set.has_data):
            logger.error("\n  ## ERROR: NO ISOVALUE DATA.")
            return Status.STRONG_FAILURE

        stage_chrono.stop()
        logger.info(f"  -- DATA READING COMPLETED.     {stage_chrono.format()}")
        return Status.SUCCESS

    def _adopt_inline_solution(self, inline: Optional[SolutionField]) -> Status:
        """Gmsh files carry the level-set (iso mode) or the metric in the mesh file"""
        if inline is None:
            return Status.SUCCESS
        if self.config.iso:
            inline.name_in = self.config.mesh_in
            self.level_set = inline
        else:
            self.metric.kind = inline.kind
            self.metric.values = inline.values
        return Status.SUCCESS

    def _load_iso_inputs(self) -> Status:
        config = self.config
        ls_status, level_set = self.services.load_solution(config.level_set_in, self.mesh, SCALAR)
        if ls_status is LoadStatus.READ_ERROR:
            logger.error("  ## ERROR: UNABLE TO LOAD LEVEL-SET.")
            return Status.STRONG_FAILURE
        if ls_status is LoadStatus.OK:
            self.level_set = level_set

        if config.explicit_metric:
            met_status, metric = self.services.load_solution(config.metric_in, self.mesh)
            if met_status is not LoadStatus.OK:
                logger.error("  ## ERROR: UNABLE TO LOAD METRIC.")
                return Status.STRONG_FAILURE
            self.metric.kind = metric.kind
            self.metric.values = metric.values
        return Status.SUCCESS

    def _load_metric_inputs(self) -> Status:
        config = self.config
        if config.explicit_level_set and not config.explicit_metric:
            logger.warning(f"  ## Warning: level-set {config.level_set_in} ignored outside "
                           "level-set mode")

        met_status, metric = self.services.load_solution(config.metric_in, self.mesh)
        if met_status is LoadStatus.READ_ERROR:
            logger.error("\n  ## ERROR: WRONG DATA TYPE OR WRONG SOLUTION NUMBER.")
            return Status.STRONG_FAILURE
        if met_status is LoadStatus.OK:
            self.metric.kind = metric.kind
            self.metric.values = metric.values
        return Status.SUCCESS

    def parse_local_params(self) -> Status:
        if not self.services.read_local_parameters(self.config.mesh_in, self.config):
            return Status.LOW_FAILURE
        return Status.SUCCESS

    def run_default_option(self) -> Status:
        return run_default_option(self.mesh, self.metric, self.level_set,
                                  self.config, self.services)

    def dispatch(self) -> Status:
        """Run the level-set or metric driven adaptation"""
        config = self.config
        engine = self.services.engine

        if config.iso:
            return engine.adapt_by_level_set(self.mesh, self.level_set, self.metric, config)

        try:
            check_adaptation_inputs(config)
        except ConfigurationConflict as e:
            logger.error(f"\n  ## ERROR: {e.message}.")
            logger.debug(str(e))
            return Status.STRONG_FAILURE

        return engine.adapt_by_metric(self.mesh, self.metric, config)

    def save_outputs(self) -> Status:
        """Write the adapted mesh and its metric in the output format"""
        config = self.config
        stage_chrono = Chrono().start()
        logger.info(f"\n  -- WRITING DATA FILE {config.mesh_out}")

        fmt = get_format(config.mesh_out, default=self.input_format)
        save_mesh = self.services.save_mesh

        if fmt is MeshFormat.GMSH or fmt in (MeshFormat.VTK, MeshFormat.VTU):
            saved = save_mesh(self.mesh, config.mesh_out, fmt, self.metric)
        elif fmt in (MeshFormat.VTP, MeshFormat.PVTU, MeshFormat.PVTP):
            logger.error(f"  ** Output format {fmt.value} not supported: {config.mesh_out}")
            saved = False
        else:
            if not save_mesh(self.mesh, config.mesh_out, fmt, None):
                return Status.STRONG_FAILURE
            saved = True
            if self.metric is not None and self.metric.has_data:
                saved = self.services.save_solution(self.metric, config.metric_out)

        if not saved:
            return Status.STRONG_FAILURE

        stage_chrono.stop()
        logger.info(f"  -- WRITING COMPLETED     {stage_chrono.format()}")
        return Status.SUCCESS

    def cleanup(self) -> None:
        """Drop the job's references to its mesh and solutions"""
        self.mesh = None
        self.metric = None
        self.level_set = None
