"""
Mesh file format families, selected from the file extension.
"""
from enum import Enum
from pathlib import Path
from typing import Optional

from .constants import DEFAULT_CONSTANTS


class MeshFormat(Enum):
    MEDIT_ASCII = "medit"
    MEDIT_BINARY = "meditb"
    GMSH = "gmsh"
    VTK = "vtk"
    VTU = "vtu"
    VTP = "vtp"
    PVTU = "pvtu"
    PVTP = "pvtp"
    STL = "stl"

    @property
    def is_medit(self) -> bool:
        return self in (MeshFormat.MEDIT_ASCII, MeshFormat.MEDIT_BINARY)


_EXTENSIONS = {
    ".mesh": MeshFormat.MEDIT_ASCII,
    ".meshb": MeshFormat.MEDIT_BINARY,
    ".msh": MeshFormat.GMSH,
    ".vtk": MeshFormat.VTK,
    ".vtu": MeshFormat.VTU,
    ".vtp": MeshFormat.VTP,
    ".pvtu": MeshFormat.PVTU,
    ".pvtp": MeshFormat.PVTP,
    ".stl": MeshFormat.STL,
}


def get_format(path, default: Optional[MeshFormat] = None) -> MeshFormat:
    """
    Format family of a path from its last extension.

    Args:
        path: File path
        default: Format used when the extension is missing or unknown
            (Medit ASCII when not given)

    Returns:
        MeshFormat
    """
    fmt = _EXTENSIONS.get(Path(path).suffix.lower())
    if fmt is not None:
        return fmt
    return default if default is not None else MeshFormat.MEDIT_ASCII


def strip_extension(path) -> str:
    """Path without its last extension (directories kept)"""
    p = Path(path)
    return str(p.with_suffix("")) if p.suffix else str(p)


def local_parameter_path(mesh_path) -> Path:
    """Side-car local parameter file for a mesh: <mesh base>.mmgs"""
    return Path(strip_extension(mesh_path) + DEFAULT_CONSTANTS['files'].LOCAL_PARAM_EXT)


def default_output_path(mesh_path) -> str:
    """<base>.o.mesh for Medit inputs, <base>.o<ext> for the other families"""
    files = DEFAULT_CONSTANTS['files']
    p = Path(mesh_path)
    fmt = get_format(p)
    ext = ".mesh" if fmt.is_medit or not p.suffix else p.suffix
    return strip_extension(p) + files.OUTPUT_TAG + ext


def default_solution_path(mesh_path) -> str:
    """<mesh base>.sol"""
    return strip_extension(mesh_path) + DEFAULT_CONSTANTS['files'].SOLUTION_EXT
