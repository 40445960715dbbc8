"""Data contracts for the external collaborators.

Three collaborators sit outside the tick loop:

  PathPlanner        (Red Team)  start/end POIs -> adversary path + strategy
  PatchGenerator     (Blue Team) bypassed plan + rules -> PatchSuggestion
  NarrativeGenerator             plan + patch -> post-incident text

Whatever a collaborator returns (or raises), the ``request_*`` helpers here
turn it into a usable value: paths are clamped to the exact POI endpoints,
empty paths become a direct two-point path, and failures become fixed
fallbacks.  The simulation can therefore always reach a verdict.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Protocol

from loguru import logger

from adversim.simulation.models import GpsMode, Weather
from adversim.simulation.rules import DetectionRule, high_confidence, rule_to_dict
from adversim.simulation.scenario import Sensor
from adversim.tactical.geo import Point

FALLBACK_STRATEGY = "Fallback: Direct path due to generation error."
FALLBACK_PATCH_EXPLANATION = (
    "Fallback rule generated because the patch generator failed. "
    "It raises sensitivity for all high-confidence detections."
)
FALLBACK_ANALYSIS = "AI analysis is currently unavailable due to an API error."


@dataclass(frozen=True)
class PlannedPath:
    """Red Team output: waypoints, GPS posture and a short rationale."""

    path: tuple[Point, ...]
    gps_mode: GpsMode = GpsMode.OFF
    strategy: str = ""

    def to_dict(self) -> dict:
        return {
            "path": [list(p) for p in self.path],
            "gps_mode": self.gps_mode.value,
            "strategy": self.strategy,
        }


@dataclass(frozen=True)
class PatchSuggestion:
    """Blue Team output: one new or replacement rule plus its rationale."""

    rule: DetectionRule
    explanation: str

    def to_dict(self) -> dict:
        return {"rule": rule_to_dict(self.rule), "explanation": self.explanation}


class PathPlanner(Protocol):
    def plan(
        self,
        start: str,
        end: str,
        points_of_interest: Mapping[str, Point],
        sensors: Sequence[Sensor],
        rules: Sequence[DetectionRule],
        weather: Weather,
        seed: int,
    ) -> PlannedPath: ...


class PatchGenerator(Protocol):
    def suggest(
        self,
        plan: PlannedPath,
        rules: Sequence[DetectionRule],
        seed: int,
    ) -> PatchSuggestion: ...


class NarrativeGenerator(Protocol):
    def analyse(self, plan: PlannedPath, patch: PatchSuggestion) -> str: ...


def fallback_patch() -> PatchSuggestion:
    return PatchSuggestion(
        rule=high_confidence("fallback_rule", 0.95),
        explanation=FALLBACK_PATCH_EXPLANATION,
    )


def clamp_path(plan: PlannedPath, start: Point, end: Point) -> PlannedPath:
    """Force the endpoints onto the POIs; substitute a direct path if empty."""
    if not plan.path:
        return replace(plan, path=(start, end))
    if len(plan.path) == 1:
        return replace(plan, path=(start, end))
    path = (start, *plan.path[1:-1], end)
    return replace(plan, path=path)


def request_path(
    planner: PathPlanner,
    start: str,
    end: str,
    points_of_interest: Mapping[str, Point],
    sensors: Sequence[Sensor],
    rules: Sequence[DetectionRule],
    weather: Weather,
    seed: int,
) -> PlannedPath:
    """Ask the planner for an adversary path, never failing."""
    start_pos = points_of_interest[start]
    end_pos = points_of_interest[end]
    try:
        plan = planner.plan(start, end, points_of_interest, sensors, rules, weather, seed)
    except Exception as e:
        logger.warning(f"Path planner failed ({e}); using direct path")
        return PlannedPath(path=(start_pos, end_pos), gps_mode=GpsMode.OFF,
                           strategy=FALLBACK_STRATEGY)
    return clamp_path(plan, start_pos, end_pos)


def request_patch(
    generator: PatchGenerator,
    plan: PlannedPath,
    rules: Sequence[DetectionRule],
    seed: int,
) -> PatchSuggestion:
    """Ask the patch generator for a rule, falling back to a fixed rule."""
    try:
        return generator.suggest(plan, rules, seed)
    except Exception as e:
        logger.warning(f"Patch generator failed ({e}); using fallback rule")
        return fallback_patch()


def request_analysis(
    analyst: NarrativeGenerator,
    plan: PlannedPath,
    patch: PatchSuggestion,
) -> str:
    """Ask for post-incident text.  Purely informational."""
    try:
        text = analyst.analyse(plan, patch)
    except Exception as e:
        logger.warning(f"Narrative generator failed ({e})")
        return FALLBACK_ANALYSIS
    return text if text and text.strip() else FALLBACK_ANALYSIS
