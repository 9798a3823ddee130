"""
Constants for the surface adaptation pipeline.
All magic numbers, default names and thresholds centralized here.
"""
from dataclasses import dataclass
from typing import Dict, Any

@dataclass
class FileNames:
    """Side-car and default file naming"""
    LOCAL_PARAM_EXT = ".mmgs"
    DEFAULT_LOCAL_PARAM_FILE = "DEFAULT.mmgs"
    SOLUTION_EXT = ".sol"
    OUTPUT_TAG = ".o"              # input.mesh -> input.o.mesh
    LOG_FILE = "surface_adapt.log"

@dataclass
class SizeDefaults:
    """Default sizing values, expressed in scaled (unit bounding box) coordinates"""
    HMIN_COEF = 0.001              # hmin = 0.001 x largest extent
    HMAX_COEF = 2.0                # hmax = 2 x largest extent
    HAUSD_DEFAULT = 0.01

    # Default bound derived from the one given, when only one is given
    HMIN_FROM_HMAX = 0.01
    HMAX_FROM_HMIN = 100.0

    # Bounds derived from a target or computed size when not given
    DERIVED_HMIN_RATIO = 0.1
    DERIVED_HMAX_RATIO = 10.0

@dataclass
class ScalingLimits:
    """Bounding box normalisation"""
    MIN_EXTENT = 1e-200            # below this the geometry is degenerate
    EPS_SIZE = 1e-30

@dataclass
class RemesherDefaults:
    """External remesher invocation"""
    COMMAND = "mmgs_O3"
    LOW_FAILURE_RETURN_CODE = 1
    MAX_MEMORY_GB = 2.0
    TIMEOUT = None                 # seconds, None = wait for completion

# Process exit codes, indexed by Status value
EXIT_CODES = (0, 1, 2)

# Export all constants as a single config dict
DEFAULT_CONSTANTS: Dict[str, Any] = {
    'files': FileNames(),
    'sizes': SizeDefaults(),
    'scaling': ScalingLimits(),
    'remesher': RemesherDefaults(),
}
