"""Tests for the seed sweep and its summary statistics."""

from __future__ import annotations

import pytest

from adversim.collaborators.red_team import StraightLinePlanner
from adversim.config import Settings
from adversim.simulation.exercise import IterationResult
from adversim.simulation.orchestrator import Verdict
from adversim.simulation.scenario import Scenario
from adversim.simulation.sweep import summarise, sweep

pytestmark = pytest.mark.unit


def make_scenario(min_confidence: float) -> Scenario:
    return Scenario.from_dict({
        "name": "Sweep Valley",
        "sensors": [{"id": "S01", "type": "camera", "pos": [34.025, 75.315],
                     "range": 50_000, "base_p": 1.0}],
        "rules": [{"id": "hc", "type": "high_confidence_sighting",
                   "params": {"min_confidence": min_confidence}}],
        "points_of_interest": {"Parking": [34.021, 75.320], "Meadow": [34.029, 75.310]},
    })


def result(verdict: Verdict | None, ticks: int) -> IterationResult:
    return IterationResult(iteration=1, verdict=verdict, rules_in_effect=(),
                           adversary_strategy="", ticks=ticks)


class TestSummarise:
    def test_statistics(self):
        summary = summarise([
            result(Verdict.DETECTED, 4),
            result(Verdict.DETECTED, 6),
            result(Verdict.DETECTED, 10),
            result(Verdict.BYPASSED, 12),
        ])
        assert summary.runs == 4
        assert summary.detected == 3
        assert summary.bypassed == 1
        assert summary.detection_rate == pytest.approx(0.75)
        assert summary.mean_ticks_to_detection == pytest.approx(20 / 3)
        assert summary.median_ticks_to_detection == pytest.approx(6.0)

    def test_no_detections(self):
        summary = summarise([result(Verdict.BYPASSED, 12)])
        assert summary.detection_rate == 0.0
        assert summary.mean_ticks_to_detection is None
        assert summary.median_ticks_to_detection is None

    def test_empty(self):
        summary = summarise([])
        assert summary.runs == 0
        assert summary.detection_rate == 0.0

    def test_unresolved_counts_as_neither(self):
        summary = summarise([result(None, 100)])
        assert summary.detected == 0
        assert summary.bypassed == 0


class TestSweep:
    SETTINGS = Settings(civilian_count=2, baseline_only=False, llm_enabled=False)

    def test_sensitive_rule_detects_every_seed(self):
        summary = sweep(make_scenario(0.1), range(1, 6), StraightLinePlanner(waypoints=20), self.SETTINGS)
        assert summary.runs == 5
        assert summary.detected == 5
        assert summary.detection_rate == 1.0
        assert summary.seeds == (1, 2, 3, 4, 5)
        assert 1 <= summary.mean_ticks_to_detection < 19

    def test_unfireable_rule_bypasses_every_seed(self):
        summary = sweep(make_scenario(0.9), [1, 2, 3], StraightLinePlanner(), self.SETTINGS)
        assert summary.bypassed == 3
        assert summary.detection_rate == 0.0

    def test_to_dict(self):
        summary = sweep(make_scenario(0.9), [1], StraightLinePlanner(), self.SETTINGS)
        assert summary.to_dict()["runs"] == 1
