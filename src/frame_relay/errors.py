"""
Error Taxonomy
==============

Exceptions shared across frame-relay components.

Classes:
    - FatalError: ends the process with a non-zero exit status
    - OptionValueError: a rejected option value (fatal or ignored
      depending on where the value came from)
    - HelpRequested: the user asked for the option listing

Rules:
    - Recoverable problems are handled where they are detected and logged
    - Only FatalError subclasses propagate to main()
"""


class FrameRelayError(Exception):
    """Base class for all frame-relay errors."""
    pass


class FatalError(FrameRelayError):
    """Raised for conditions that must terminate the process."""

    exit_code: int = 1


class SinkWriteError(FatalError):
    """Writing to the local output sink failed."""
    pass


class LivenessTimeout(FatalError):
    """The producer stopped delivering data within the liveness window."""
    pass


class ControlDesyncError(FatalError):
    """A length-prefixed control packet declared an impossible size."""
    pass


class InvalidOptionError(FatalError):
    """An option name or value was rejected at startup."""
    pass


class HandoffOverflowError(FatalError):
    """The producer filled the handoff queue faster than it was drained."""
    pass


class CaptureError(FatalError):
    """The capture collaborator could not be configured or started."""
    pass


class HelpRequested(FrameRelayError):
    """The help option was given outside of a live client request."""

    exit_code: int = 1


class OptionValueError(FrameRelayError, ValueError):
    """An option value failed validation."""

    def __init__(self, name: str, value: str, reason: str) -> None:
        self.name = name
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value {value!r} for {name}: {reason}")
