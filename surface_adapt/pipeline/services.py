"""
Collaborators a job is run with.

The orchestrator and the default-option sub-pipeline only talk to these
callables, so any of them can be replaced (tests use fakes and mocks).
"""
from dataclasses import dataclass, field
from typing import Callable

from . import codecs, scaling, sizing
from .engines import AdaptationEngine, ExternalRemesherEngine
from .local_params import read_local_parameters, write_local_parameters


@dataclass
class Services:
    load_mesh: Callable = codecs.load_mesh
    load_solution: Callable = codecs.load_solution
    save_mesh: Callable = codecs.save_mesh
    save_solution: Callable = codecs.save_solution
    scale_mesh: Callable = scaling.scale_mesh
    unscale_mesh: Callable = scaling.unscale_mesh
    compute_default_sizing: Callable = sizing.compute_default_sizing
    truncate_sizes: Callable = sizing.truncate_sizes
    compute_constant_size: Callable = sizing.compute_constant_size
    read_local_parameters: Callable = read_local_parameters
    write_local_parameters: Callable = write_local_parameters
    engine: AdaptationEngine = field(default_factory=ExternalRemesherEngine)
