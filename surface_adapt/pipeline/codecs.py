"""
Mesh and solution readers/writers.

Medit, Gmsh and VTK meshes go through meshio, STL surfaces through
numpy-stl, and Medit ASCII .sol solutions through a small token reader.
Every entry point returns a status instead of raising, so the pipeline
stages only deal with LoadStatus / bool.
"""
import logging
from pathlib import Path
from typing import Optional, Tuple
from xml.etree.ElementTree import ParseError

import meshio
import numpy as np
from stl import mesh as np_stl_mesh

from .formats import MeshFormat
from .mesh import SurfaceMesh, SolutionField, SCALAR, TENSOR, TENSOR_COMPONENTS
from .status import LoadStatus
from ..exceptions import FileNotFound, ReadError, WriteError

logger = logging.getLogger(__name__)

_MESHIO_FORMATS = {
    MeshFormat.MEDIT_ASCII: "medit",
    MeshFormat.MEDIT_BINARY: "medit",
    MeshFormat.GMSH: "gmsh",
    MeshFormat.VTK: "vtk",
    MeshFormat.VTU: "vtu",
}

# cell_data keys holding entity references, by preference
_REF_KEYS = ("medit:ref", "gmsh:physical", "ref", "CellEntityIds")
_POINT_REF_KEYS = ("medit:ref", "ref")

# Medit solution type codes
_SOL_SCALAR = 1
_SOL_TENSOR = 3

_MESHIO_ERRORS = (meshio.ReadError, ParseError, OSError, ValueError, KeyError, IndexError)


def _sym6_to_full9(values: np.ndarray) -> np.ndarray:
    m11, m12, m13, m22, m23, m33 = values.T
    return np.column_stack([m11, m12, m13, m12, m22, m23, m13, m23, m33])


def _full9_to_sym6(values: np.ndarray) -> np.ndarray:
    return values[:, [0, 1, 2, 4, 5, 8]]


def _solution_from_array(values: np.ndarray, n_points: int, path: str) -> SolutionField:
    """Wrap a meshio point_data array as a scalar or tensor solution"""
    values = np.asarray(values, dtype=float)
    if values.ndim == 1:
        values = values.reshape(-1, 1)
    if len(values) != n_points:
        raise ReadError(f"Wrong solution number: {len(values)} values for {n_points} points", path=path)
    ncomp = values.shape[1]
    if ncomp == 1:
        return SolutionField(values, SCALAR, name_in=path)
    if ncomp == TENSOR_COMPONENTS:
        return SolutionField(values, TENSOR, name_in=path)
    if ncomp == 9:
        return SolutionField(_full9_to_sym6(values), TENSOR, name_in=path)
    raise ReadError(f"Unsupported solution with {ncomp} components per point", path=path)


def _read_meshio(path: str, fmt: MeshFormat) -> Tuple[SurfaceMesh, Optional[SolutionField]]:
    m = meshio.read(path, file_format=_MESHIO_FORMATS[fmt])

    points = np.asarray(m.points, dtype=float)
    if points.shape[1] == 2:
        points = np.column_stack([points, np.zeros(len(points))])

    ref_key = next((k for k in _REF_KEYS if k in m.cell_data), None)
    tris, tri_refs, edges, edge_refs = [], [], [], []
    for i, block in enumerate(m.cells):
        refs = (np.asarray(m.cell_data[ref_key][i], dtype=int) if ref_key
                else np.zeros(len(block.data), dtype=int))
        if block.type == "triangle":
            tris.append(np.asarray(block.data, dtype=int))
            tri_refs.append(refs)
        elif block.type == "line":
            edges.append(np.asarray(block.data, dtype=int))
            edge_refs.append(refs)
        else:
            logger.debug(f"Ignoring {len(block.data)} {block.type} cells from {path}")

    if not tris:
        raise ReadError("No triangle found in mesh", path=path)

    mesh = SurfaceMesh(
        points=points,
        triangles=np.concatenate(tris),
        triangle_refs=np.concatenate(tri_refs),
        edges=np.concatenate(edges) if edges else np.zeros((0, 2), dtype=int),
        edge_refs=np.concatenate(edge_refs) if edge_refs else np.zeros(0, dtype=int),
        name_in=path,
    )

    solution = None
    for key, values in m.point_data.items():
        if key in _POINT_REF_KEYS:
            mesh.point_refs = np.asarray(values, dtype=int)
        elif key.startswith("gmsh:"):
            continue
        elif solution is None:
            solution = _solution_from_array(values, mesh.n_points, path)
    return mesh, solution


def _read_stl(path: str) -> SurfaceMesh:
    stl = np_stl_mesh.Mesh.from_file(path)
    vertices = np.asarray(stl.vectors, dtype=float).reshape(-1, 3)
    if len(vertices) == 0:
        raise ReadError("No triangle found in mesh", path=path)
    points, inverse = np.unique(vertices, axis=0, return_inverse=True)
    return SurfaceMesh(points=points, triangles=np.asarray(inverse).reshape(-1, 3), name_in=path)


def load_mesh(path: str, fmt: MeshFormat
              ) -> Tuple[LoadStatus, Optional[SurfaceMesh], Optional[SolutionField]]:
    """
    Load a surface mesh and, for formats carrying one, its point solution.

    Returns:
        (status, mesh, solution); mesh is None unless status is OK
    """
    try:
        if not Path(path).is_file():
            raise FileNotFound(f"{path}  NOT FOUND.", path=path)
        if fmt is MeshFormat.STL:
            mesh, solution = _read_stl(path), None
        elif fmt in _MESHIO_FORMATS:
            mesh, solution = _read_meshio(path, fmt)
        else:
            raise ReadError(f"Reading {fmt.value} files is not supported", path=path)
    except FileNotFound as e:
        logger.error(f"  ** {e.message}")
        return LoadStatus.NOT_FOUND, None, None
    except ReadError as e:
        logger.error(f"  ** {e}")
        return LoadStatus.READ_ERROR, None, None
    except _MESHIO_ERRORS as e:
        logger.error(f"  ** UNABLE TO READ {path}: {e}")
        return LoadStatus.READ_ERROR, None, None

    logger.info(f"  %% {path} OPENED")
    logger.info(f"     NUMBER OF VERTICES   {mesh.n_points:8d}")
    logger.info(f"     NUMBER OF TRIANGLES  {mesh.n_triangles:8d}")
    return LoadStatus.OK, mesh, solution


def _parse_sol(path: str, n_points: int) -> SolutionField:
    with open(path, "r") as f:
        tokens = [tok for line in f for tok in line.split("#", 1)[0].split()]

    dim, values, kind = 3, None, None
    pos = 0
    try:
        while pos < len(tokens):
            keyword = tokens[pos]
            pos += 1
            if keyword == "MeshVersionFormatted":
                pos += 1
            elif keyword == "Dimension":
                dim = int(tokens[pos])
                pos += 1
            elif keyword == "SolAtVertices":
                count, nsols = int(tokens[pos]), int(tokens[pos + 1])
                types = [int(t) for t in tokens[pos + 2:pos + 2 + nsols]]
                pos += 2 + nsols
                if nsols != 1:
                    raise ReadError(f"Expected a single solution per vertex, found {nsols}", path=path)
                if types[0] == _SOL_SCALAR:
                    kind, ncomp = SCALAR, 1
                elif types[0] == _SOL_TENSOR and dim == 3:
                    kind, ncomp = TENSOR, TENSOR_COMPONENTS
                else:
                    raise ReadError(f"Wrong data type: solution type {types[0]} in dimension {dim}",
                                    path=path)
                if count != n_points:
                    raise ReadError(f"Wrong solution number: {count} values for {n_points} points",
                                    path=path)
                chunk = tokens[pos:pos + count * ncomp]
                if len(chunk) != count * ncomp:
                    raise ReadError("Unexpected end of solution file", path=path)
                values = np.array([float(t) for t in chunk]).reshape(count, ncomp)
                pos += count * ncomp
            elif keyword == "End":
                break
    except (IndexError, ValueError) as e:
        raise ReadError(f"Malformed solution file: {e}", path=path)

    if values is None:
        raise ReadError("No SolAtVertices section", path=path)
    return SolutionField(values, kind, name_in=path)


def load_solution(path: str, mesh: SurfaceMesh, expected_kind: Optional[str] = None
                  ) -> Tuple[LoadStatus, Optional[SolutionField]]:
    """
    Load a Medit ASCII solution attached to the vertices of `mesh`.

    Args:
        path: .sol file
        mesh: Mesh the solution must match point for point
        expected_kind: SCALAR or TENSOR to enforce a type, None to accept both
    """
    if not path or not Path(path).is_file():
        return LoadStatus.NOT_FOUND, None
    if Path(path).suffix.lower() == ".solb":
        logger.error(f"  ** Binary solution files are not supported: {path}")
        return LoadStatus.READ_ERROR, None

    try:
        solution = _parse_sol(path, mesh.n_points)
        if expected_kind is not None and solution.kind != expected_kind:
            raise ReadError(f"Wrong data type: expected {expected_kind}, found {solution.kind}",
                            path=path)
    except ReadError as e:
        logger.error(f"  ** {e}")
        return LoadStatus.READ_ERROR, None
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"  ** UNABLE TO READ {path}: {e}")
        return LoadStatus.READ_ERROR, None

    logger.info(f"  %% {path} OPENED")
    return LoadStatus.OK, solution


def save_solution(solution: SolutionField, path: str) -> bool:
    """Write a Medit ASCII .sol file"""
    sol_type = _SOL_TENSOR if solution.kind == TENSOR else _SOL_SCALAR
    try:
        with open(path, "w") as f:
            f.write("MeshVersionFormatted 2\n\nDimension 3\n\n")
            f.write(f"SolAtVertices\n{solution.size}\n1 {sol_type}\n\n")
            for row in solution.values:
                f.write(" ".join(f"{v:.15g}" for v in row) + "\n")
            f.write("\nEnd\n")
    except OSError as e:
        logger.error(f"  ** {WriteError(f'Unable to write solution: {e}', path=path)}")
        return False
    logger.info(f"  %% {path} OPENED")
    return True


def _write_meshio(mesh: SurfaceMesh, path: str, fmt: MeshFormat,
                  metric: Optional[SolutionField]) -> None:
    cells = [("triangle", mesh.triangles)]
    refs = [mesh.triangle_refs]
    if len(mesh.edges):
        cells.append(("line", mesh.edges))
        refs.append(mesh.edge_refs)

    point_data = {}
    kwargs = {}
    if fmt.is_medit:
        cell_data = {"medit:ref": refs}
        point_data["medit:ref"] = (mesh.point_refs if mesh.point_refs is not None
                                   else np.zeros(mesh.n_points, dtype=int))
        file_format = "medit"
    elif fmt is MeshFormat.GMSH:
        cell_data = {"gmsh:physical": refs, "gmsh:geometrical": refs}
        file_format = "gmsh22"
        kwargs["binary"] = False
    else:
        cell_data = {"ref": refs}
        file_format = _MESHIO_FORMATS[fmt]

    if metric is not None and metric.has_data and not fmt.is_medit:
        values = metric.values
        if metric.kind == TENSOR:
            values = _sym6_to_full9(values)
        point_data["metric"] = values[:, 0] if values.shape[1] == 1 else values

    out = meshio.Mesh(mesh.points, cells, point_data=point_data, cell_data=cell_data)
    meshio.write(path, out, file_format=file_format, **kwargs)


def _write_stl(mesh: SurfaceMesh, path: str) -> None:
    stl = np_stl_mesh.Mesh(np.zeros(mesh.n_triangles, dtype=np_stl_mesh.Mesh.dtype))
    stl.vectors[:] = mesh.points[mesh.triangles]
    stl.save(path)


def save_mesh(mesh: SurfaceMesh, path: str, fmt: MeshFormat,
              metric: Optional[SolutionField] = None) -> bool:
    """
    Write a mesh. Gmsh and VTK outputs carry the metric as point data;
    Medit and STL outputs need a separate save_solution call.
    """
    if mesh.scaled:
        logger.error(f"  ** {WriteError('Refusing to save a mesh in scaled coordinates', path=path)}")
        return False
    if fmt is not MeshFormat.STL and fmt not in _MESHIO_FORMATS:
        logger.error(f"  ** Writing {fmt.value} files is not supported: {path}")
        return False

    try:
        if fmt is MeshFormat.STL:
            _write_stl(mesh, path)
        else:
            _write_meshio(mesh, path, fmt, metric)
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"  ** {WriteError(f'Unable to write mesh: {e}', path=path)}")
        return False

    logger.info(f"  %% {path} OPENED")
    return True
