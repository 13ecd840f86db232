"""Core abstract base classes and shared data structures.

- ``StepResult``: what one call to ``SimulationEngine.step`` reports
- ``DiagnosticsBase``: ABC for diagnostics recorders
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class StepResult:
    """Result of a single simulation timestep.

    Attributes:
        time: Simulation time after this step [s].
        step: Iteration number after this step.
        dt: Timestep size used [s].
        inner_radius: Inner boundary after this step [cm].
        outer_radius: Outer boundary after this step [cm].
        max_wavespeed: Largest |characteristic speed| seen at any face [c].
        floored_zones: Number of zones that needed flooring this step.
        finished: True when final_time is reached or max_steps exceeded.
    """

    time: float = 0.0
    step: int = 0
    dt: float = 0.0
    inner_radius: float = 0.0
    outer_radius: float = 0.0
    max_wavespeed: float = 0.0
    floored_zones: int = 0
    finished: bool = False


class DiagnosticsBase(ABC):
    """Abstract base for diagnostics recorders."""

    @abstractmethod
    def record(
        self,
        state: dict[str, Any],
        time: float,
    ) -> None:
        """Record diagnostic quantities at the current timestep.

        Args:
            state: Simulation state dictionary.
            time: Current simulation time [s].
        """

    def finalize(self) -> None:
        """Clean up resources (close files, flush buffers)."""
