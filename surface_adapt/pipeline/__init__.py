"""
Surface adaptation pipeline modules.
"""

from .config_manager import ConfigManager, EntityType, JobConfig, LocalParameter, LocalParameterSet
from .default_option import run_default_option
from .local_params import read_local_parameters, write_local_parameters
from .orchestrator import JobOrchestrator, JobResult
from .services import Services
from .status import LoadStatus, Status
from .timing import Chrono

__all__ = [
    'ConfigManager',
    'EntityType',
    'JobConfig',
    'LocalParameter',
    'LocalParameterSet',
    'run_default_option',
    'read_local_parameters',
    'write_local_parameters',
    'JobOrchestrator',
    'JobResult',
    'Services',
    'LoadStatus',
    'Status',
    'Chrono',
]
