"""Exception taxonomy for kilonova runs.

Configuration errors are fatal at startup. Non-physical states are recovered
locally by the engine's floor policy and escalate to
``SimulationDivergedError`` when a zone keeps failing. Boundary collisions
abort the run. Checkpoint I/O failures are reported to the operator.
"""

from __future__ import annotations

from collections.abc import Iterable


class KilonovaError(Exception):
    """Base class for all kilonova errors."""


class ConfigValidationError(KilonovaError, ValueError):
    """Bad, missing or unknown configuration keys or values."""


class NonPhysicalStateError(KilonovaError):
    """Primitive recovery produced (or started from) a non-physical state.

    Attributes:
        zones: Indices (relative to the array handed to the recovery routine)
            of the zones that failed.
    """

    def __init__(self, message: str, zones: Iterable[int] = ()) -> None:
        super().__init__(message)
        self.zones = [int(i) for i in zones]


class SimulationDivergedError(KilonovaError):
    """Flooring was needed in the same zone on too many consecutive steps."""


class BoundaryCollisionError(KilonovaError):
    """The inner boundary reached or passed the outer boundary."""


class CheckpointIOError(KilonovaError, OSError):
    """A checkpoint could not be written or read."""
