"""
Bounding box normalisation of a mesh and everything sized in its units.

Sizing computations run in a unit bounding box. scale_mesh and unscale_mesh
must be paired; a mesh left scaled is refused by the mesh writers.
"""
import logging
from typing import Optional

import numpy as np

from .config_manager import JobConfig, LocalParameter
from .constants import DEFAULT_CONSTANTS
from .mesh import SurfaceMesh, SolutionField, TENSOR
from ..exceptions import ScalingFailure

logger = logging.getLogger(__name__)


def _rescale_sizes(config: JobConfig, factor: float) -> None:
    """Multiply every length carried by the configuration by `factor`"""
    for name in ("hmin", "hmax", "hausd", "hsiz"):
        value = getattr(config, name)
        if value is not None:
            setattr(config, name, value * factor)

    config.local_params.replace_all([
        LocalParameter(p.entity_type, p.ref, p.hmin * factor, p.hmax * factor, p.hausd * factor)
        for p in config.local_params
    ])


def _rescale_metric(metric: Optional[SolutionField], factor: float) -> None:
    """Scalar metrics are sizes (x factor), tensor metrics are 1/h^2 (/ factor^2)"""
    if metric is None or not metric.has_data:
        return
    if metric.kind == TENSOR:
        metric.values = metric.values / (factor * factor)
    else:
        metric.values = metric.values * factor


def _set_default_sizes(config: JobConfig) -> None:
    """
    Fill unset truncation sizes and Hausdorff distance, in scaled units.

    When only one bound was given, the default for the other one follows it
    so that hmin <= hmax still holds.
    """
    sizes = DEFAULT_CONSTANTS['sizes']
    if config.hmin is None:
        config.hmin = sizes.HMIN_COEF
        if config.hmax is not None:
            config.hmin = min(config.hmin, sizes.HMIN_FROM_HMAX * config.hmax)
    if config.hmax is None:
        config.hmax = max(sizes.HMAX_COEF, sizes.HMAX_FROM_HMIN * config.hmin)
    if config.hausd is None:
        config.hausd = sizes.HAUSD_DEFAULT


def scale_mesh(mesh: SurfaceMesh, metric: Optional[SolutionField],
               level_set: Optional[SolutionField], config: JobConfig) -> bool:
    """
    Move the mesh into its unit bounding box.

    Points are translated to the box minimum and divided by the largest
    extent. Global sizes, local parameters, metric and level-set follow.

    Returns:
        False when the mesh is already scaled, empty, degenerate, or the
        requested sizes are inconsistent
    """
    try:
        if mesh.scaled:
            raise ScalingFailure("Mesh is already scaled")
        if mesh.n_points == 0:
            raise ScalingFailure("Empty mesh")

        origin = mesh.points.min(axis=0)
        delta = float((mesh.points.max(axis=0) - origin).max())
        if delta < DEFAULT_CONSTANTS['scaling'].MIN_EXTENT:
            raise ScalingFailure("Degenerate bounding box", extent=delta)

        if config.sethmin and config.sethmax and config.hmin > config.hmax:
            raise ScalingFailure(f"Mismatched sizes: hmin ({config.hmin}) > hmax ({config.hmax})")
    except ScalingFailure as e:
        logger.error(f"  ## Error: unable to scale mesh: {e}")
        return False

    mesh.points = (mesh.points - origin) / delta
    mesh.scale_origin = origin
    mesh.scale_delta = delta
    mesh.scaled = True

    _rescale_sizes(config, 1.0 / delta)
    _set_default_sizes(config)
    _rescale_metric(metric, 1.0 / delta)
    if level_set is not None and level_set.has_data:
        level_set.values = level_set.values / delta

    logger.debug(f"Mesh scaled: origin={origin.tolist()}, extent={delta:.6g}")
    return True


def unscale_mesh(mesh: SurfaceMesh, metric: Optional[SolutionField],
                 level_set: Optional[SolutionField], config: JobConfig) -> bool:
    """Undo scale_mesh; fails if the mesh is not currently scaled"""
    if not mesh.scaled or mesh.scale_origin is None:
        logger.error("  ## Error: unable to unscale mesh: mesh is not scaled")
        return False

    delta = mesh.scale_delta
    mesh.points = mesh.points * delta + mesh.scale_origin
    mesh.scale_origin = None
    mesh.scale_delta = 1.0
    mesh.scaled = False

    _rescale_sizes(config, delta)
    _rescale_metric(metric, delta)
    if level_set is not None and level_set.has_data:
        level_set.values = level_set.values * delta

    if not np.all(np.isfinite(mesh.points)):
        logger.error("  ## Error: unable to unscale mesh: non-finite coordinates")
        return False
    return True
