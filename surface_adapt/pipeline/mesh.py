"""
In-memory surface mesh and solution containers.
Plain numpy arrays; the remeshing data structures live in the external remesher.
"""
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

SCALAR = "scalar"
TENSOR = "tensor"

# Components per vertex for a 3D symmetric tensor (xx, xy, xz, yy, yz, zz)
TENSOR_COMPONENTS = 6


def _empty(shape_tail, dtype=float) -> np.ndarray:
    return np.zeros((0,) + tuple(shape_tail), dtype=dtype)


@dataclass
class SurfaceMesh:
    """Triangulated surface with integer references on triangles, edges and points"""
    points: np.ndarray = field(default_factory=lambda: _empty((3,)))
    triangles: np.ndarray = field(default_factory=lambda: _empty((3,), int))
    triangle_refs: np.ndarray = field(default_factory=lambda: _empty((), int))
    edges: np.ndarray = field(default_factory=lambda: _empty((2,), int))
    edge_refs: np.ndarray = field(default_factory=lambda: _empty((), int))
    point_refs: Optional[np.ndarray] = None
    name_in: Optional[str] = None
    name_out: Optional[str] = None
    scaled: bool = False
    scale_origin: Optional[np.ndarray] = None
    scale_delta: float = 1.0

    def __post_init__(self):
        self.points = np.asarray(self.points, dtype=float).reshape(-1, 3)
        self.triangles = np.asarray(self.triangles, dtype=int).reshape(-1, 3)
        if len(self.triangle_refs) != len(self.triangles):
            self.triangle_refs = np.zeros(len(self.triangles), dtype=int)
        self.triangle_refs = np.asarray(self.triangle_refs, dtype=int)
        self.edges = np.asarray(self.edges, dtype=int).reshape(-1, 2)
        if len(self.edge_refs) != len(self.edges):
            self.edge_refs = np.zeros(len(self.edges), dtype=int)
        self.edge_refs = np.asarray(self.edge_refs, dtype=int)

    @property
    def n_points(self) -> int:
        return len(self.points)

    @property
    def n_triangles(self) -> int:
        return len(self.triangles)

    def triangle_references(self) -> list:
        """Distinct triangle references, sorted ascending"""
        return [int(r) for r in np.unique(self.triangle_refs)]


@dataclass
class SolutionField:
    """Per-vertex solution: a scalar (level-set, isotropic size) or a symmetric tensor metric"""
    values: np.ndarray = field(default_factory=lambda: _empty((1,)))
    kind: str = SCALAR
    name_in: Optional[str] = None
    name_out: Optional[str] = None

    def __post_init__(self):
        ncomp = TENSOR_COMPONENTS if self.kind == TENSOR else 1
        self.values = np.asarray(self.values, dtype=float).reshape(-1, ncomp)

    @property
    def size(self) -> int:
        return len(self.values)

    @property
    def has_data(self) -> bool:
        return self.size > 0

    def clear(self) -> None:
        ncomp = TENSOR_COMPONENTS if self.kind == TENSOR else 1
        self.values = _empty((ncomp,))
