"""Error taxonomy for capture runs."""


class FlythroughError(Exception):
    """Base exception for flythrough errors."""
    pass


class ValidationError(FlythroughError):
    """Raised before any work starts when run inputs are unacceptable."""
    pass


class DimensionMismatchError(ValidationError):
    """Raised when two view states do not have the same length."""
    pass


class DisplayBusyError(ValidationError):
    """Raised when the display is already leased by another run."""
    pass


class CaptureError(FlythroughError):
    """Raised when the display cannot produce a frame. Fatal for the run."""
    pass


class ExportError(FlythroughError):
    """Raised when frames cannot be written to the export target."""
    pass


class CaptureCancelled(FlythroughError):
    """Raised inside the worker when a cancel request is observed."""
    pass


__all__ = [
    "FlythroughError",
    "ValidationError",
    "DimensionMismatchError",
    "DisplayBusyError",
    "CaptureError",
    "ExportError",
    "CaptureCancelled",
]
