"""
Size field computations used to derive default sizing parameters.
All functions expect the mesh in scaled coordinates.
"""
import logging
from typing import Optional, Tuple

import numpy as np

from .config_manager import JobConfig
from .constants import DEFAULT_CONSTANTS
from .mesh import SurfaceMesh, SolutionField, SCALAR, TENSOR

logger = logging.getLogger(__name__)


def unique_edges(triangles: np.ndarray) -> np.ndarray:
    """Undirected edges of a triangulation, each listed once as (low, high)"""
    edges = np.concatenate([triangles[:, [0, 1]], triangles[:, [1, 2]], triangles[:, [2, 0]]])
    edges.sort(axis=1)
    return np.unique(edges, axis=0)


def compute_default_sizing(mesh: SurfaceMesh, metric: SolutionField, config: JobConfig) -> bool:
    """
    Isotropic size at each vertex: mean length of the incident edges.

    The metric is overwritten with the computed scalar sizes.

    Returns:
        False for a mesh without triangles or with only zero-length edges
    """
    if mesh.n_triangles == 0:
        logger.error("  ## Error: unable to compute sizes on a mesh without triangles")
        return False

    edges = unique_edges(mesh.triangles)
    lengths = np.linalg.norm(mesh.points[edges[:, 0]] - mesh.points[edges[:, 1]], axis=1)
    if not np.any(lengths > DEFAULT_CONSTANTS['scaling'].EPS_SIZE):
        logger.error("  ## Error: unable to compute sizes: all edges are degenerate")
        return False

    sums = np.zeros(mesh.n_points)
    counts = np.zeros(mesh.n_points)
    for column in (0, 1):
        np.add.at(sums, edges[:, column], lengths)
        np.add.at(counts, edges[:, column], 1.0)

    unused = counts == 0
    sizes = np.divide(sums, counts, out=np.zeros_like(sums), where=~unused)
    if np.any(unused):
        logger.debug(f"{int(unused.sum())} vertices not used by any triangle")
        sizes[unused] = config.hmax if config.hmax is not None else sizes[~unused].max()

    if metric.has_data:
        logger.warning("  ## Warning: existing metric replaced by computed sizes")
    metric.kind = SCALAR
    metric.values = sizes.reshape(-1, 1)
    return True


def truncate_sizes(metric: SolutionField, config: JobConfig) -> None:
    """
    Clamp a size field into [hmin, hmax].

    Unset bounds are derived from the field itself (0.1 x smallest size,
    10 x largest size) before clamping.
    """
    if not metric.has_data:
        return
    sizes = DEFAULT_CONSTANTS['sizes']

    if metric.kind == TENSOR:
        matrices = _sym6_to_matrices(metric.values)
        eigvals, eigvecs = np.linalg.eigh(matrices)
        local_sizes = 1.0 / np.sqrt(np.maximum(eigvals, DEFAULT_CONSTANTS['scaling'].EPS_SIZE))
    else:
        local_sizes = metric.values[:, 0]

    if not config.sethmin:
        config.hmin = sizes.DERIVED_HMIN_RATIO * float(local_sizes.min())
    if not config.sethmax:
        config.hmax = sizes.DERIVED_HMAX_RATIO * float(local_sizes.max())

    clipped = np.clip(local_sizes, config.hmin, config.hmax)
    if metric.kind == TENSOR:
        lam = 1.0 / (clipped * clipped)
        matrices = np.einsum("nij,nj,nkj->nik", eigvecs, lam, eigvecs)
        metric.values = _matrices_to_sym6(matrices)
    else:
        metric.values = clipped.reshape(-1, 1)


def compute_constant_size(mesh: SurfaceMesh, metric: Optional[SolutionField],
                          config: JobConfig) -> Tuple[bool, float]:
    """
    Resolve the constant target size `hsiz` against the hmin/hmax bounds.

    Explicit bounds win over hsiz (with a warning); missing bounds are
    derived from hsiz. When a metric is given it is filled with hsiz.

    Returns:
        (success, hsiz)
    """
    sizes = DEFAULT_CONSTANTS['sizes']
    hsiz = config.hsiz
    if hsiz is None or hsiz <= 0:
        logger.error(f"  ## Error: invalid constant size {hsiz}")
        return False, 0.0

    if config.sethmin and config.hmin > hsiz:
        logger.warning(f"  ## Warning: hsiz ({hsiz:g}) lower than hmin ({config.hmin:g}), hsiz set to hmin")
        hsiz = config.hmin
    if config.sethmax and config.hmax < hsiz:
        logger.warning(f"  ## Warning: hsiz ({hsiz:g}) greater than hmax ({config.hmax:g}), hsiz set to hmax")
        hsiz = config.hmax

    if not config.sethmin:
        config.hmin = sizes.DERIVED_HMIN_RATIO * hsiz
    if not config.sethmax:
        config.hmax = sizes.DERIVED_HMAX_RATIO * hsiz

    if config.hmin > config.hmax:
        logger.error(f"  ## Error: mismatched sizes hmin ({config.hmin:g}) > hmax ({config.hmax:g})")
        return False, 0.0

    config.hsiz = hsiz
    if metric is not None:
        metric.kind = SCALAR
        metric.values = np.full((mesh.n_points, 1), hsiz)
    return True, hsiz


def _sym6_to_matrices(values: np.ndarray) -> np.ndarray:
    m11, m12, m13, m22, m23, m33 = values.T
    return np.stack([
        np.stack([m11, m12, m13], axis=-1),
        np.stack([m12, m22, m23], axis=-1),
        np.stack([m13, m23, m33], axis=-1),
    ], axis=1)


def _matrices_to_sym6(matrices: np.ndarray) -> np.ndarray:
    return np.column_stack([matrices[:, 0, 0], matrices[:, 0, 1], matrices[:, 0, 2],
                            matrices[:, 1, 1], matrices[:, 1, 2], matrices[:, 2, 2]])
