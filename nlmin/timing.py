"""Phase timers and counters accumulated over a solve."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List

SOLVER_PHASES = (
    "obj_fun",
    "grad",
    "assembly",
    "inverting",
    "line_search",
    "constraint_set_update",
)

LINE_SEARCH_PHASES = (
    "checking_for_nan_inf",
    "broad_phase_ccd",
    "ccd",
    "classical_line_search",
    "line_search_constraint_set_update",
)


@dataclass(frozen=True)
class Escalation:
    """One descent-strategy escalation inside an iteration."""

    iteration: int
    from_strategy: str
    to_strategy: str
    reason: str


@dataclass
class Metrics:
    """
    Mutable instrumentation aggregate owned by a solver.

    ``times`` holds cumulative seconds per phase. Phases are measured with
    :meth:`timer`, which records the elapsed time even if the measured block
    raises.
    """

    times: Dict[str, float] = field(
        default_factory=lambda: dict.fromkeys(
            ("total",) + SOLVER_PHASES + LINE_SEARCH_PHASES, 0.0
        )
    )
    line_search_iterations: int = 0
    escalation_log: List[Escalation] = field(default_factory=list)

    @property
    def escalations(self) -> int:
        return len(self.escalation_log)

    @contextmanager
    def timer(self, phase: str) -> Iterator[None]:
        """Accumulate wall-clock time spent in the block under ``phase``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.times[phase] = self.times.get(phase, 0.0) + (time.perf_counter() - start)

    def record_escalation(
        self, iteration: int, from_strategy: str, to_strategy: str, reason: str
    ) -> None:
        self.escalation_log.append(
            Escalation(iteration, from_strategy, to_strategy, reason)
        )

    def reset(self) -> None:
        for phase in self.times:
            self.times[phase] = 0.0
        self.line_search_iterations = 0
        self.escalation_log.clear()

    def averages(self, iterations: int) -> Dict[str, float]:
        """Per-iteration averages of every phase except ``total``."""
        per_iteration = float(iterations) if iterations else 1.0
        averages = {
            phase: seconds / per_iteration
            for phase, seconds in self.times.items()
            if phase != "total"
        }
        # The classical search time includes constraint updates made inside it.
        averages["classical_line_search"] = max(
            0.0,
            self.times["classical_line_search"] - self.times["line_search_constraint_set_update"],
        ) / per_iteration
        return averages

    def summary(self) -> str:
        return ", ".join(
            f"{phase} {self.times[phase]:.3g}s"
            for phase in SOLVER_PHASES + LINE_SEARCH_PHASES
        )


__all__ = ["Escalation", "LINE_SEARCH_PHASES", "Metrics", "SOLVER_PHASES"]
