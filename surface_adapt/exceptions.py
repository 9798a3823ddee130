"""
Exception hierarchy for surface mesh adaptation jobs.

Errors are raised inside a component (parameter file tokenizer, codecs,
scaling) and caught at that component's boundary, where they are logged and
turned into a boolean or a Status. Nothing here crosses pipeline stages.
"""


class MeshAdaptError(Exception):
    """
    Base exception for all adaptation job failures.

    Carries a short error code for programmatic handling and an optional
    details dictionary that ends up in the diagnostic message.
    """
    def __init__(self, message: str, error_code: str = None, details: dict = None):
        """
        Initialize adaptation error.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.error_code = error_code or "ADAPT_ERROR"
        self.details = details or {}
        self.message = message

    def __str__(self):
        if self.details:
            return f"{self.message} (Code: {self.error_code}, Details: {self.details})"
        return f"{self.message} (Code: {self.error_code})"


class FileNotFound(MeshAdaptError):
    """Raised when a mesh or solution input file does not exist."""
    def __init__(self, message: str, path: str = None, **kwargs):
        kwargs.setdefault("error_code", "FILE_NOT_FOUND")
        super().__init__(message, **kwargs)
        self.path = path
        if path:
            self.details["path"] = str(path)


class ReadError(MeshAdaptError):
    """
    Raised when an input file exists but cannot be used.

    Covers malformed content as well as solutions of the wrong type or
    with a point count that does not match the mesh.
    """
    def __init__(self, message: str, path: str = None, **kwargs):
        kwargs.setdefault("error_code", "READ_ERROR")
        super().__init__(message, **kwargs)
        self.path = path
        if path:
            self.details["path"] = str(path)


class MalformedParameterRecord(ReadError):
    """Raised when a local parameter file record cannot be parsed or registered."""
    def __init__(self, message: str, token: str = None, record_index: int = None, **kwargs):
        super().__init__(message, error_code="MALFORMED_PARAMETER_RECORD", **kwargs)
        self.token = token
        self.record_index = record_index
        if token is not None:
            self.details["token"] = token
        if record_index is not None:
            self.details["record"] = record_index


class CannotOpenOutput(MeshAdaptError):
    """Raised when an output file cannot be opened for writing."""
    def __init__(self, message: str, path: str = None, **kwargs):
        super().__init__(message, error_code="CANNOT_OPEN_OUTPUT", **kwargs)
        self.path = path
        if path:
            self.details["path"] = str(path)


class NothingToWrite(MeshAdaptError):
    """Raised when the local parameter writer finds no triangle reference."""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="NOTHING_TO_WRITE", **kwargs)


class ConfigurationConflict(MeshAdaptError):
    """
    Raised for mutually exclusive inputs or modes.

    Example: an explicit metric and an explicit level-set given together
    outside level-set mode.
    """
    def __init__(self, message: str, options: list = None, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_CONFLICT", **kwargs)
        self.options = options or []
        if options:
            self.details["options"] = options


class ScalingFailure(MeshAdaptError):
    """Raised when the mesh cannot be moved to or from normalized coordinates."""
    def __init__(self, message: str, extent: float = None, **kwargs):
        super().__init__(message, error_code="SCALING_FAILURE", **kwargs)
        self.extent = extent
        if extent is not None:
            self.details["extent"] = extent


class WriteError(MeshAdaptError):
    """Raised when writing an output file fails after it was opened."""
    def __init__(self, message: str, path: str = None, **kwargs):
        super().__init__(message, error_code="WRITE_ERROR", **kwargs)
        self.path = path
        if path:
            self.details["path"] = str(path)
