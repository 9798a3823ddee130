"""
Configuration management for surface adaptation jobs.
Holds the per-job configuration, the local parameter registry, and the JSON
defaults layer the command line is merged over.
"""
import copy
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Iterator, List, Optional

from .constants import DEFAULT_CONSTANTS
from .formats import default_output_path, default_solution_path
from ..exceptions import MalformedParameterRecord

logger = logging.getLogger(__name__)


class EntityType(Enum):
    """Mesh entity kinds a local parameter can target"""
    TRIANGLE = "triangle"

    @classmethod
    def from_token(cls, token: str) -> Optional["EntityType"]:
        """Map a side-car file token (any case, singular or plural) to an entity type"""
        word = token.lower()
        if word in ("triangle", "triangles"):
            return cls.TRIANGLE
        return None


@dataclass(frozen=True)
class LocalParameter:
    """Size and geometric tolerance bounds for one referenced region"""
    entity_type: EntityType
    ref: int
    hmin: float
    hmax: float
    hausd: float


class LocalParameterSet:
    """
    Ordered registry of local parameters, unique per (entity type, reference).

    `declare(n)` resets the registry and sets how many entries may be
    registered, mirroring the count announced in a side-car file header.
    """

    def __init__(self):
        self._entries: Dict[tuple, LocalParameter] = {}
        self.capacity = 0

    def declare(self, count: int) -> None:
        if count < 0:
            raise MalformedParameterRecord(f"Negative number of local parameters: {count}",
                                           token=str(count))
        if self._entries:
            logger.warning("Previously registered local parameters are discarded")
        self._entries = {}
        self.capacity = count

    def register(self, entity_type: EntityType, ref: int, hmin: float, hmax: float,
                 hausd: float) -> LocalParameter:
        """
        Add or update the entry for (entity_type, ref).

        Raises:
            MalformedParameterRecord: unsupported entity type, invalid sizes,
                or a new entry beyond the declared capacity
        """
        if entity_type is not EntityType.TRIANGLE:
            raise MalformedParameterRecord(f"Unsupported entity type for local parameters: {entity_type}",
                                           token=str(entity_type))
        if hmin <= 0 or hmax <= 0 or hausd <= 0:
            raise MalformedParameterRecord(
                f"Non-positive local size for reference {ref}: hmin={hmin}, hmax={hmax}, hausd={hausd}")
        if hmin > hmax:
            raise MalformedParameterRecord(
                f"Local hmin ({hmin}) greater than hmax ({hmax}) for reference {ref}")

        key = (entity_type, ref)
        if key not in self._entries and len(self._entries) >= self.capacity:
            raise MalformedParameterRecord(
                f"Unable to set a new local parameter: max number of local parameters is {self.capacity}")
        if key in self._entries:
            logger.warning(f"New parameters (hausd, hmin and hmax) for {entity_type.value} of ref {ref}")

        entry = LocalParameter(entity_type, int(ref), float(hmin), float(hmax), float(hausd))
        self._entries[key] = entry
        return entry

    def replace_all(self, entries: List[LocalParameter]) -> None:
        """Swap the registry contents (used to rescale entries in place)"""
        self._entries = {(e.entity_type, e.ref): e for e in entries}
        self.capacity = max(self.capacity, len(self._entries))

    def lookup(self, entity_type: EntityType, ref: int) -> Optional[LocalParameter]:
        return self._entries.get((entity_type, ref))

    def clear(self) -> None:
        self._entries = {}
        self.capacity = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LocalParameter]:
        return iter(list(self._entries.values()))

    def __bool__(self) -> bool:
        return bool(self._entries)


@dataclass
class JobConfig:
    """Everything a single adaptation job needs, owned by that job"""
    mesh_in: str
    mesh_out: Optional[str] = None
    metric_in: Optional[str] = None
    metric_out: Optional[str] = None
    level_set_in: Optional[str] = None
    verbosity: int = 1

    # Mode flags
    iso: bool = False
    optim: bool = False
    hsiz: Optional[float] = None
    mark: bool = False

    # Global sizes (None until set by the user or computed)
    hmin: Optional[float] = None
    hmax: Optional[float] = None
    hausd: Optional[float] = None
    hgrad: Optional[float] = None

    explicit_metric: bool = False
    explicit_level_set: bool = False
    sethmin: bool = False
    sethmax: bool = False

    local_params: LocalParameterSet = field(default_factory=LocalParameterSet)

    # External remesher
    remesher_command: str = DEFAULT_CONSTANTS['remesher'].COMMAND
    remesher_timeout: Optional[float] = DEFAULT_CONSTANTS['remesher'].TIMEOUT
    max_memory_gb: float = DEFAULT_CONSTANTS['remesher'].MAX_MEMORY_GB

    def __post_init__(self):
        self.explicit_metric = self.explicit_metric or self.metric_in is not None
        self.explicit_level_set = self.explicit_level_set or self.level_set_in is not None
        self.sethmin = self.sethmin or self.hmin is not None
        self.sethmax = self.sethmax or self.hmax is not None
        if self.mesh_out is None:
            self.mesh_out = default_output_path(self.mesh_in)
        if self.metric_in is None:
            self.metric_in = default_solution_path(self.mesh_in)
        if self.level_set_in is None and self.iso:
            self.level_set_in = default_solution_path(self.mesh_in)
        if self.metric_out is None:
            self.metric_out = default_solution_path(self.mesh_out)


class ConfigManager:
    """JSON defaults merged under the command line options"""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = Path(config_file) if config_file else None
        self.config = self._load_config(self.config_file)
        self._validate_config()

    def _load_config(self, config_file: Optional[Path]) -> Dict[str, Any]:
        """Load configuration from file over the defaults"""
        config = self._get_default_config()
        if config_file is None:
            return config
        if not config_file.exists():
            logger.warning(f"Config file not found: {config_file}, using defaults")
            return config
        try:
            with open(config_file, 'r') as f:
                user_config = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load config file: {e}, using defaults")
            return config

        for section, values in user_config.items():
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values
        logger.info(f"Loaded configuration from {config_file}")
        return config

    def _get_default_config(self) -> Dict[str, Any]:
        remesher = DEFAULT_CONSTANTS['remesher']
        return {
            "LOGGING": {
                "verbosity": 1,
                "log_file": DEFAULT_CONSTANTS['files'].LOG_FILE
            },
            "REMESHER": {
                "command": remesher.COMMAND,
                "timeout": remesher.TIMEOUT,
                "max_memory_gb": remesher.MAX_MEMORY_GB
            },
            "SIZES": {
                "hmin": None,
                "hmax": None,
                "hausd": None,
                "hgrad": None,
                "hsiz": None
            }
        }

    def _validate_config(self) -> None:
        """Fall back to defaults for missing or malformed sections"""
        defaults = self._get_default_config()
        for section, values in defaults.items():
            if not isinstance(self.config.get(section), dict):
                logger.warning(f"Missing config section {section}, using defaults")
                self.config[section] = copy.deepcopy(values)

        for key in ("hmin", "hmax", "hausd", "hgrad", "hsiz"):
            value = self.config["SIZES"].get(key)
            if value is not None and (not isinstance(value, (int, float)) or value <= 0):
                logger.warning(f"Ignoring invalid SIZES.{key} = {value!r}")
                self.config["SIZES"][key] = None

    def get(self, key_path: str, default=None):
        """
        Get configuration value using dot notation.

        Args:
            key_path: Dot-separated path (e.g., "REMESHER.command")
            default: Default value if key not found
        """
        value = self.config
        try:
            for key in key_path.split('.'):
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation"""
        keys = key_path.split('.')
        target = self.config
        for key in keys[:-1]:
            target = target.setdefault(key, {})
        target[keys[-1]] = value
        logger.debug(f"Updated config: {key_path} = {value}")

    def build_job_config(self, args) -> JobConfig:
        """
        Create the job configuration from parsed command line arguments.

        Command line values win; unset ones fall back to the JSON sizes,
        remesher settings and verbosity.
        """
        def pick(name, key_path):
            value = getattr(args, name, None)
            return value if value is not None else self.get(key_path)

        verbosity = pick("verbosity", "LOGGING.verbosity")
        return JobConfig(
            mesh_in=args.mesh_in,
            mesh_out=getattr(args, "mesh_out", None),
            metric_in=getattr(args, "metric_in", None),
            level_set_in=getattr(args, "level_set_in", None),
            verbosity=int(verbosity if verbosity is not None else 1),
            iso=bool(getattr(args, "iso", False)),
            optim=bool(getattr(args, "optim", False)),
            hsiz=pick("hsiz", "SIZES.hsiz"),
            mark=bool(getattr(args, "mark", False)),
            hmin=pick("hmin", "SIZES.hmin"),
            hmax=pick("hmax", "SIZES.hmax"),
            hausd=pick("hausd", "SIZES.hausd"),
            hgrad=pick("hgrad", "SIZES.hgrad"),
            remesher_command=pick("remesher", "REMESHER.command"),
            remesher_timeout=pick("timeout", "REMESHER.timeout"),
            max_memory_gb=float(self.get("REMESHER.max_memory_gb",
                                         DEFAULT_CONSTANTS['remesher'].MAX_MEMORY_GB)),
        )

    def save_config(self, output_file: Path) -> None:
        """Save current configuration to file"""
        try:
            with open(output_file, 'w') as f:
                json.dump(self.config, f, indent=2)
            logger.info(f"Saved configuration to {output_file}")
        except OSError as e:
            logger.error(f"Failed to save config: {e}")
