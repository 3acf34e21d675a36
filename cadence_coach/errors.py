"""
Error types shared across the Cadence Coach collaborators.
The cadence core itself never raises; these describe failures at its edges.
"""


class CadenceCoachError(Exception):
    """Base class for all Cadence Coach errors."""


class SensorUnavailableError(CadenceCoachError):
    """The step sensor is missing or has stopped delivering data."""


class PersistenceWriteError(CadenceCoachError):
    """An activity log row could not be written."""

    def __init__(self, target: str, cause: Exception):
        super().__init__(f"Could not append to {target}: {cause}")
        self.target = target
        self.cause = cause
