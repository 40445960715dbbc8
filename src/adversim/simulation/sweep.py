"""Seed sweep: how often does a rule set catch the adversary?

Runs one unpatched exercise iteration per seed and summarises the verdicts.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np
from loguru import logger

from adversim.collaborators.contracts import PathPlanner
from adversim.config import Settings, settings as default_settings
from adversim.simulation.exercise import Exercise, IterationResult
from adversim.simulation.orchestrator import Verdict
from adversim.simulation.scenario import Scenario


@dataclass(frozen=True)
class SweepSummary:
    runs: int
    detected: int
    bypassed: int
    detection_rate: float
    mean_ticks_to_detection: float | None
    median_ticks_to_detection: float | None
    seeds: tuple[int, ...] = ()

    def to_dict(self) -> dict:
        return {
            "runs": self.runs,
            "detected": self.detected,
            "bypassed": self.bypassed,
            "detection_rate": self.detection_rate,
            "mean_ticks_to_detection": self.mean_ticks_to_detection,
            "median_ticks_to_detection": self.median_ticks_to_detection,
        }


def summarise(results: Iterable[IterationResult], seeds: Iterable[int] = ()) -> SweepSummary:
    results = list(results)
    detected_mask = np.array([r.verdict is Verdict.DETECTED for r in results], dtype=bool)
    bypassed_mask = np.array([r.verdict is Verdict.BYPASSED for r in results], dtype=bool)
    ticks = np.array([r.ticks for r in results], dtype=float)
    detected_ticks = ticks[detected_mask]

    runs = len(results)
    detected = int(np.count_nonzero(detected_mask))
    bypassed = int(np.count_nonzero(bypassed_mask))
    return SweepSummary(
        runs=runs,
        detected=detected,
        bypassed=bypassed,
        detection_rate=detected / runs if runs else 0.0,
        mean_ticks_to_detection=float(np.mean(detected_ticks)) if detected else None,
        median_ticks_to_detection=float(np.median(detected_ticks)) if detected else None,
        seeds=tuple(seeds),
    )


def sweep(
    scenario: Scenario,
    seeds: Iterable[int],
    planner: PathPlanner,
    config: Settings | None = None,
) -> SweepSummary:
    """Run ``scenario`` once per seed with no patching and summarise."""
    config = config or default_settings
    seeds = tuple(seeds)
    results = []
    for seed in seeds:
        exercise = Exercise(scenario, planner, config=config, seed=seed)
        results.append(exercise.run_iteration())
    summary = summarise(results, seeds)
    logger.info(f"Sweep of {summary.runs} seeds on {scenario.name}: "
                f"{summary.detected} detected, rate {summary.detection_rate:.2f}")
    return summary
