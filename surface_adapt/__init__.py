"""
Surface mesh adaptation driver

Runs a surface remeshing job end to end:
- Load the mesh and its metric or level-set
- Apply per-reference local parameters from <mesh>.mmgs
- Adapt through an external remesher, or only compute default parameters
- Save the adapted mesh and metric
"""

from .pipeline.orchestrator import JobOrchestrator, JobResult
from .pipeline.config_manager import ConfigManager, JobConfig
from .pipeline.local_params import read_local_parameters, write_local_parameters
from .pipeline.default_option import run_default_option
from .pipeline.status import Status

__version__ = "1.0.0"
__all__ = ["JobOrchestrator", "JobResult", "ConfigManager", "JobConfig", "read_local_parameters",
           "write_local_parameters", "run_default_option", "Status"]
