"""
Default-option sub-pipeline: compute default sizes for a mesh and save them
as its local parameter file instead of adapting it.
"""
import logging
from typing import Optional

from .config_manager import JobConfig
from .mesh import SurfaceMesh, SolutionField
from .services import Services
from .status import Status
from .timing import Chrono

logger = logging.getLogger(__name__)


def _discard_mismatched(field: Optional[SolutionField], mesh: SurfaceMesh) -> None:
    if field is not None and field.size and field.size != mesh.n_points:
        logger.warning(f"  ## WARNING: WRONG SOLUTION NUMBER. IGNORED ({field.size} values, "
                       f"{mesh.n_points} vertices)")
        field.clear()


def _unscale_after_failure(mesh, metric, level_set, config, services, status: Status) -> Status:
    """Return `status`, or STRONG_FAILURE if the mesh cannot be moved back"""
    if not services.unscale_mesh(mesh, metric, level_set, config):
        return Status.STRONG_FAILURE
    return status


def _run(mesh: SurfaceMesh, metric: SolutionField, level_set: Optional[SolutionField],
         config: JobConfig, services: Services) -> Status:
    if config.local_params:
        logger.error("\n  ## ERROR: UNABLE TO SAVE LOCAL PARAMETERS: "
                     f"{len(config.local_params)} LOCAL PARAMETERS ALREADY PROVIDED")
        return Status.LOW_FAILURE

    _discard_mismatched(metric, mesh)
    _discard_mismatched(level_set, mesh)

    if not services.scale_mesh(mesh, metric, level_set, config):
        return Status.STRONG_FAILURE

    if config.optim:
        if not services.compute_default_sizing(mesh, metric, config):
            logger.error("\n  ## ERROR: UNABLE TO COMPUTE THE DEFAULT SIZES")
            return _unscale_after_failure(mesh, metric, level_set, config, services,
                                          Status.LOW_FAILURE)
        services.truncate_sizes(metric, config)

    if config.hsiz is not None:
        ok, hsiz = services.compute_constant_size(mesh, metric, config)
        if not ok:
            logger.error("\n  ## ERROR: UNABLE TO COMPUTE THE CONSTANT SIZE")
            return _unscale_after_failure(mesh, metric, level_set, config, services,
                                          Status.STRONG_FAILURE)
        logger.debug(f"Constant size {hsiz:g} (scaled)")

    if not services.unscale_mesh(mesh, metric, level_set, config):
        return Status.STRONG_FAILURE

    config.mark = False
    if not services.write_local_parameters(mesh, config):
        logger.error("\n  ## ERROR: UNABLE TO SAVE LOCAL PARAMETERS")
        return Status.LOW_FAILURE
    return Status.SUCCESS


def run_default_option(mesh: SurfaceMesh, metric: SolutionField,
                       level_set: Optional[SolutionField], config: JobConfig,
                       services: Services) -> Status:
    """
    Compute default sizing parameters and write them to <mesh base>.mmgs.

    Computations run on the scaled mesh; the mesh is always unscaled again
    before returning, and a failed unscale is STRONG_FAILURE.

    Returns:
        LOW_FAILURE when local parameters are already registered, when the
        sizes cannot be computed, or when the file cannot be written
    """
    chrono = Chrono()
    logger.info("\n  -- DEFAULT PARAMETERS COMPUTATION")
    with chrono:
        status = _run(mesh, metric, level_set, config, services)
    if status is Status.SUCCESS:
        logger.info(f"  -- DEFAULT PARAMETERS COMPUTATION COMPLETED.     {chrono.format()}")
    else:
        logger.info(f"  -- DEFAULT PARAMETERS COMPUTATION FAILED.     {chrono.format()}")
    return status
