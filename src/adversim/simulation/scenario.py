"""Scenario definitions: sensor layout, initial rules, points of interest.

Scenarios are data: they load from JSON and are validated here so the rest
of the simulation can trust them.

Usage:
    scenario = load_scenario("my_valley.json")
    scenarios = builtin_scenarios()          # shipped with the package
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from adversim.errors import RuleParseError, ScenarioError
from adversim.simulation.models import SensorType, Weather
from adversim.simulation.rules import DetectionRule, parse_rules, rule_to_dict
from adversim.tactical.geo import Point

SCENARIO_DIR = Path(__file__).resolve().parent.parent / "scenarios"
POI_FILE = SCENARIO_DIR / "points_of_interest.json"


class Sensor(BaseModel):
    """A fixed detector.  Immutable for the duration of a run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sensor_id: str = Field(alias="id")
    sensor_type: SensorType = Field(alias="type")
    pos: Point
    range_m: float = Field(alias="range", ge=0.0)
    base_p: float = Field(ge=0.0, le=1.0)
    weather_penalty: dict[Weather, float] = Field(default_factory=dict)

    def penalty_for(self, weather: Weather) -> float | None:
        return self.weather_penalty.get(weather)


class Scenario(BaseModel):
    """Complete scenario: sensors, starting rule set, POIs."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    sensors: list[Sensor]
    rules: list[DetectionRule] = Field(default_factory=list)
    points_of_interest: dict[str, Point] = Field(default_factory=dict)
    map_center: Point | None = None

    def poi(self, name: str) -> Point:
        try:
            return self.points_of_interest[name]
        except KeyError:
            raise ScenarioError(f"unknown point of interest: {name!r}") from None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "sensors": [s.model_dump(by_alias=True, mode="json") for s in self.sensors],
            "rules": [rule_to_dict(r) for r in self.rules],
            "points_of_interest": {k: list(v) for k, v in self.points_of_interest.items()},
            **({"map_center": list(self.map_center)} if self.map_center else {}),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scenario:
        """Build a scenario from its JSON form.

        Raises:
            ScenarioError: missing fields, bad sensor values or a malformed rule.
        """
        try:
            rules = parse_rules(data.get("rules", []))
            return cls.model_validate({**data, "rules": rules})
        except (RuleParseError, ValidationError) as e:
            raise ScenarioError(f"invalid scenario {data.get('name')!r}: {e}") from e


def load_points_of_interest(path: str | Path = POI_FILE) -> tuple[dict[str, Point], Point | None]:
    """Load the shared POI table.  Returns (points, map_center)."""
    with open(path) as f:
        data = json.load(f)
    points = {name: (float(p[0]), float(p[1])) for name, p in data["points"].items()}
    center = data.get("map_center")
    return points, (float(center[0]), float(center[1])) if center else None


def load_scenario(path: str | Path) -> Scenario:
    """Load a Scenario from a JSON file.

    Scenarios without their own ``points_of_interest`` get the shared table.

    Raises:
        FileNotFoundError: If path does not exist.
        json.JSONDecodeError: If file is not valid JSON.
        ScenarioError: If the content is not a valid scenario.
    """
    with open(path) as f:
        data = json.load(f)
    if not data.get("points_of_interest"):
        points, center = load_points_of_interest()
        data["points_of_interest"] = points
        data.setdefault("map_center", center)
    return Scenario.from_dict(data)


def builtin_scenarios() -> list[Scenario]:
    """Scenarios shipped with the package, in a stable order."""
    paths = sorted(p for p in SCENARIO_DIR.glob("*.json") if p != POI_FILE)
    return [load_scenario(p) for p in paths]


def find_scenario(name: str) -> Scenario:
    """Look up a built-in scenario by name (case-insensitive) or 1-based index."""
    scenarios = builtin_scenarios()
    if name.isdigit():
        index = int(name) - 1
        if 0 <= index < len(scenarios):
            return scenarios[index]
    for scenario in scenarios:
        if scenario.name.lower() == name.lower():
            return scenario
    raise ScenarioError(f"no built-in scenario named {name!r}")
