"""
Elapsed time measurement for job reporting.
"""
import time


class Chrono:
    """Start/stop stopwatch accumulating elapsed wall time across runs"""

    def __init__(self):
        self.elapsed = 0.0
        self._started_at = None

    @property
    def running(self) -> bool:
        return self._started_at is not None

    def start(self) -> "Chrono":
        if self._started_at is None:
            self._started_at = time.perf_counter()
        return self

    def stop(self) -> float:
        if self._started_at is not None:
            self.elapsed += time.perf_counter() - self._started_at
            self._started_at = None
        return self.elapsed

    def reset(self) -> None:
        self.elapsed = 0.0
        self._started_at = None

    def current(self) -> float:
        if self._started_at is None:
            return self.elapsed
        return self.elapsed + time.perf_counter() - self._started_at

    def format(self) -> str:
        return format_elapsed(self.current())

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False


def format_elapsed(seconds: float) -> str:
    """Human readable duration: '0.123s', '12.34s', '3m05s', '1h02m03s'"""
    if seconds < 60.0:
        return f"{seconds:.3f}s" if seconds < 1.0 else f"{seconds:.2f}s"
    minutes, secs = divmod(int(round(seconds)), 60)
    if minutes < 60:
        return f"{minutes}m{secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h{minutes:02d}m{secs:02d}s"
