"""
Local parameter side-car file (<mesh base>.mmgs or DEFAULT.mmgs).

Format:

    parameters
    <N>
    <ref> <triangle|triangles> <hmin> <hmax> <hausd>     (N records)

Keywords are case-insensitive. Any top-level token other than `parameters`
is skipped, so files written for newer versions with extra sections still
load. Once a file is opened, every record in it must parse or the whole read
fails and the registry is left empty.

The record count and references are strict integers: `2.0` or `+2e0` is
rejected rather than truncated.
"""
import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .config_manager import EntityType, JobConfig, LocalParameter, LocalParameterSet
from .constants import DEFAULT_CONSTANTS
from .formats import local_parameter_path
from .mesh import SurfaceMesh
from ..exceptions import CannotOpenOutput, MalformedParameterRecord, NothingToWrite, WriteError

logger = logging.getLogger(__name__)

PARAMETERS_KEYWORD = "parameters"


class ParameterTokens:
    """Whitespace separated token stream with typed reads"""

    def __init__(self, text: str):
        self._tokens: Iterator[str] = iter(text.split())

    def __iter__(self):
        return self._tokens

    def next_token(self, what: str, record: Optional[int] = None) -> str:
        token = next(self._tokens, None)
        if token is None:
            raise MalformedParameterRecord(f"Unexpected end of file while reading {what}",
                                           record_index=record)
        return token

    def next_int(self, what: str, record: Optional[int] = None) -> int:
        token = self.next_token(what, record)
        try:
            return int(token)
        except ValueError:
            raise MalformedParameterRecord(f"Wrong format for {what}: {token}",
                                           token=token, record_index=record)

    def next_float(self, what: str, record: Optional[int] = None) -> float:
        token = self.next_token(what, record)
        try:
            return float(token)
        except ValueError:
            raise MalformedParameterRecord(f"Wrong format for {what}: {token}",
                                           token=token, record_index=record)


def find_local_parameter_file(mesh_path: str) -> Optional[Path]:
    """<mesh base>.mmgs if it exists, else DEFAULT.mmgs in the working directory, else None"""
    candidate = local_parameter_path(mesh_path)
    if candidate.is_file():
        return candidate
    fallback = Path(DEFAULT_CONSTANTS['files'].DEFAULT_LOCAL_PARAM_FILE)
    if fallback.is_file():
        return fallback
    return None


def _parse_parameters_block(tokens: ParameterTokens, params: LocalParameterSet) -> None:
    count = tokens.next_int("the number of local parameters")
    params.declare(count)

    for i in range(count):
        ref = tokens.next_int("the reference", record=i)
        type_token = tokens.next_token("the entity type", record=i)
        hmin = tokens.next_float("hmin", record=i)
        hmax = tokens.next_float("hmax", record=i)
        hausd = tokens.next_float("hausd", record=i)

        entity_type = EntityType.from_token(type_token)
        if entity_type is None:
            raise MalformedParameterRecord(f"Wrong format: {type_token}",
                                           token=type_token, record_index=i)
        params.register(entity_type, ref, hmin, hmax, hausd)


def parse_local_parameters(text: str, params: LocalParameterSet) -> int:
    """
    Register the records of a side-car file's content.

    A later `parameters` block replaces an earlier one.

    Returns:
        Number of registered entries

    Raises:
        MalformedParameterRecord: on any unreadable or rejected record
    """
    tokens = ParameterTokens(text)
    for token in tokens:
        if token.lower() == PARAMETERS_KEYWORD:
            _parse_parameters_block(tokens, params)
        else:
            logger.debug(f"Skipping unknown keyword in local parameter file: {token}")
    return len(params)


def read_local_parameters(mesh_path: str, config: JobConfig) -> bool:
    """
    Read the side-car local parameter file of a mesh into the job configuration.

    The file is optional: when neither <mesh base>.mmgs nor DEFAULT.mmgs
    exists this succeeds with no entry.

    Returns:
        False if the file exists but cannot be read or parsed entirely
    """
    path = find_local_parameter_file(mesh_path)
    if path is None:
        return True

    logger.info(f"\n  %% {path} OPENED")
    try:
        with open(path, "r") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"  ## Error: unable to read {path}: {e}")
        config.local_params.clear()
        return False

    try:
        count = parse_local_parameters(text, config.local_params)
    except MalformedParameterRecord as e:
        logger.error(f"  %% {e}")
        config.local_params.clear()
        return False

    logger.info(f"     NUMBER OF LOCAL PARAMETERS {count}")
    return True


def format_record(entry: LocalParameter) -> str:
    return f"{entry.ref} Triangle {entry.hmin:.15e} {entry.hmax:.15e} {entry.hausd:.15e}\n"


def dump_local_parameters(entries: Iterable[LocalParameter], path: Path) -> None:
    """Write registered entries as they are (no mesh lookup); raises OSError"""
    entries = list(entries)
    with open(path, "w") as f:
        f.write(f"{PARAMETERS_KEYWORD}\n {len(entries)}\n")
        for entry in entries:
            f.write(format_record(entry))


def write_local_parameters(mesh: SurfaceMesh, config: JobConfig) -> bool:
    """
    Write <mesh base>.mmgs with one record per triangle reference of the mesh.

    Each record carries the local parameter already registered for that
    reference, or the job's current global hmin/hmax/hausd.

    Returns:
        False when the mesh has no triangle reference (no file is created),
        when the file cannot be opened, or when writing fails
    """
    path = local_parameter_path(config.mesh_in)
    refs = mesh.triangle_references()

    try:
        if not refs:
            raise NothingToWrite("No triangle reference to write local parameters for")

        records = []
        for ref in refs:
            entry = config.local_params.lookup(EntityType.TRIANGLE, ref)
            if entry is None:
                entry = LocalParameter(EntityType.TRIANGLE, ref,
                                       config.hmin, config.hmax, config.hausd)
            records.append(entry)

        # Formatted up front: an existing file is only touched once the content is complete
        try:
            content = f"{PARAMETERS_KEYWORD}\n {len(records)}\n" + "".join(
                format_record(entry) for entry in records)
        except (TypeError, ValueError) as e:
            raise WriteError(f"Unable to format local parameters: {e}", path=str(path))

        try:
            out = open(path, "w")
        except OSError as e:
            raise CannotOpenOutput(f"UNABLE TO OPEN {path}: {e}", path=str(path))

        logger.info(f"\n  %% {path} OPENED")
        try:
            with out:
                out.write(content)
        except OSError as e:
            path.unlink(missing_ok=True)
            raise WriteError(f"Unable to write local parameters: {e}", path=str(path))
    except (NothingToWrite, CannotOpenOutput, WriteError) as e:
        logger.error(f"\n  ** {e}")
        return False

    logger.info("  -- WRITING COMPLETED")
    return True
