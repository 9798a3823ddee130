"""
Utility functions for running the external remesher
"""

import logging
import shlex
import shutil
import subprocess

import psutil

logger = logging.getLogger(__name__)


def check_available_memory(max_memory_gb):
    """
    Raise if the machine has less free memory than the remesher may need

    Args:
        max_memory_gb: Memory the command is allowed to use, in GB
    """
    available_memory_gb = psutil.virtual_memory().available / (1024**3)
    if available_memory_gb < max_memory_gb:
        raise RuntimeError(f"Insufficient memory: need {max_memory_gb}GB, have {available_memory_gb:.1f}GB")
    return available_memory_gb


def find_executable(cmd):
    """Absolute path of the first word of a command, or None when not on PATH"""
    words = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
    if not words:
        return None
    return shutil.which(words[0])


def run_command(cmd, cwd=None, timeout=None, max_memory_gb=2):
    """
    Run an external command with a memory check

    Args:
        cmd: Command to run (list or string)
        cwd: Working directory
        timeout: Timeout in seconds, None or <= 0 to wait for completion
        max_memory_gb: Memory the command is allowed to use, in GB

    Returns:
        subprocess.CompletedProcess
    """
    check_available_memory(max_memory_gb)

    if isinstance(cmd, str):
        cmd = shlex.split(cmd)

    logger.debug(f"Running: {' '.join(str(c) for c in cmd)}")
    try:
        return subprocess.run(
            [str(c) for c in cmd],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout if timeout and timeout > 0 else None,
        )
    except subprocess.TimeoutExpired:
        raise RuntimeError(f"Command timed out after {timeout} seconds: {cmd}")
    except OSError as e:
        raise RuntimeError(f"Command failed: {e}")
