"""
Exception hierarchy for the depth volume pipeline.

Geometry stages never raise on empty or degenerate input; only missing
calibration and artifact I/O failures are surfaced as exceptions.
"""


class DepthVolumeError(Exception):
    """Base class for all pipeline errors."""
    pass


class MissingCalibrationError(DepthVolumeError):
    """Raised when back-projection is attempted without camera intrinsics."""

    def __init__(self, message: str = "Camera intrinsics are required for back-projection"):
        super().__init__(message)


class DepthArtifactIOError(DepthVolumeError, OSError):
    """Raised when an artifact (CSV, image, mesh, report) cannot be read or written."""

    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")
