"""
Result statuses shared by every pipeline stage.
"""
from enum import Enum, IntEnum

from .constants import EXIT_CODES


class Status(IntEnum):
    """
    Ordered outcome of a stage: SUCCESS < LOW_FAILURE < STRONG_FAILURE.

    LOW_FAILURE means a usable mesh may still be saved, STRONG_FAILURE means
    nothing else (saving included) should be attempted.
    """
    SUCCESS = 0
    LOW_FAILURE = 1
    STRONG_FAILURE = 2

    @property
    def is_fatal(self) -> bool:
        return self is Status.STRONG_FAILURE

    @property
    def allows_save(self) -> bool:
        return self < Status.STRONG_FAILURE

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[int(self)]

    @classmethod
    def worst(cls, *statuses: "Status") -> "Status":
        """Most severe of the given statuses (SUCCESS when none are given)."""
        return max(statuses, default=cls.SUCCESS)


class LoadStatus(Enum):
    """Outcome of a codec load: file missing, unusable content, or loaded."""
    NOT_FOUND = "not_found"
    READ_ERROR = "read_error"
    OK = "ok"
