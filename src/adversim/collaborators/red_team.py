"""Red Team path planners.

OllamaPathPlanner asks a local model for a stealthy route.  It raises
CollaboratorError on anything it cannot use; ``request_path`` supplies the
fallback and endpoint clamp.

StraightLinePlanner is the offline planner: evenly spaced waypoints on the
straight line between the POIs, optionally jittered with a seeded PRNG so
different seeds give different (but reproducible) routes.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from adversim.collaborators.contracts import PlannedPath
from adversim.collaborators.ollama import OllamaClient, parse_json_response
from adversim.errors import CollaboratorError
from adversim.simulation.models import GpsMode, Weather
from adversim.simulation.prng import PRNG
from adversim.simulation.rules import DetectionRule, rule_to_dict
from adversim.simulation.scenario import Sensor
from adversim.tactical.geo import Point, interpolate

PLAN_PROMPT = """\
Plan a covert route for a red team operator moving from "{start}" to "{end}".

Environment:
- Forested foothills with open meadows; tourist foot traffic on the main trails.
- Weather: {weather}.{weather_note}
- Points of interest: {poi_names}
- Start coordinates [lat, lng]: {start_pos}
- End coordinates [lat, lng]: {end_pos}

Sensors (id, type, position, range in meters, weather penalties):
{sensors}

Detection rules currently active:
{rules}

Instructions:
1. Study the sensor coverage and rules and look for gaps. Civilian traffic can be used as cover.
2. Produce at least {min_waypoints} [lat, lng] waypoints starting exactly at the start coordinates
   and ending exactly at the end coordinates. Stay away from sensors where possible.
3. Choose gps_mode "on" or "off". Turn it off if the route leaves the usual trails.
4. Explain the reasoning in one or two sentences.

Respond in JSON format: {{"path": [[lat, lng], ...], "gps_mode": "on|off", "strategy": "..."}}
"""


class OllamaPathPlanner:
    """Path planner backed by an Ollama model."""

    MIN_WAYPOINTS = 5

    def __init__(self, client: OllamaClient, temperature: float = 0.8) -> None:
        self._client = client
        self._temperature = temperature

    def build_prompt(
        self,
        start: str,
        end: str,
        points_of_interest: Mapping[str, Point],
        sensors: Sequence[Sensor],
        rules: Sequence[DetectionRule],
        weather: Weather,
    ) -> str:
        sensor_rows = [
            {
                "id": s.sensor_id,
                "type": s.sensor_type.value,
                "pos": list(s.pos),
                "range": s.range_m,
                "weather_penalty": {w.value: p for w, p in s.weather_penalty.items()},
            }
            for s in sensors
        ]
        return PLAN_PROMPT.format(
            start=start,
            end=end,
            weather=weather.value,
            weather_note=" Fog reduces camera visibility." if weather is Weather.FOG else "",
            poi_names=", ".join(points_of_interest),
            start_pos=json.dumps(list(points_of_interest[start])),
            end_pos=json.dumps(list(points_of_interest[end])),
            sensors=json.dumps(sensor_rows, indent=2),
            rules=json.dumps([rule_to_dict(r) for r in rules], indent=2),
            min_waypoints=self.MIN_WAYPOINTS,
        )

    def plan(
        self,
        start: str,
        end: str,
        points_of_interest: Mapping[str, Point],
        sensors: Sequence[Sensor],
        rules: Sequence[DetectionRule],
        weather: Weather,
        seed: int,
    ) -> PlannedPath:
        prompt = self.build_prompt(start, end, points_of_interest, sensors, rules, weather)
        raw = self._client.chat(prompt, temperature=self._temperature, seed=seed, json_mode=True)
        return parse_plan(parse_json_response(raw))


def parse_plan(data: dict[str, Any]) -> PlannedPath:
    """Validate a planner reply.  An empty path is allowed (clamped later)."""
    raw_path = data.get("path") or []
    if not isinstance(raw_path, list):
        raise CollaboratorError("path must be a list of [lat, lng] pairs")

    path: list[Point] = []
    for waypoint in raw_path:
        if not isinstance(waypoint, (list, tuple)) or len(waypoint) < 2:
            raise CollaboratorError(f"bad waypoint {waypoint!r}")
        try:
            path.append((float(waypoint[0]), float(waypoint[1])))
        except (TypeError, ValueError) as e:
            raise CollaboratorError(f"bad waypoint {waypoint!r}") from e

    gps_raw = str(data.get("gps_mode", data.get("gpsMode", "off"))).lower()
    gps_mode = GpsMode.ON if gps_raw == GpsMode.ON.value else GpsMode.OFF
    strategy = str(data.get("strategy") or "")
    return PlannedPath(path=tuple(path), gps_mode=gps_mode, strategy=strategy)


class StraightLinePlanner:
    """Offline planner: interpolated waypoints between the two POIs."""

    def __init__(self, waypoints: int = 12, jitter_deg: float = 0.0) -> None:
        if waypoints < 2:
            raise ValueError("waypoints must be >= 2")
        self._waypoints = waypoints
        self._jitter = jitter_deg

    def plan(
        self,
        start: str,
        end: str,
        points_of_interest: Mapping[str, Point],
        sensors: Sequence[Sensor],
        rules: Sequence[DetectionRule],
        weather: Weather,
        seed: int,
    ) -> PlannedPath:
        a = points_of_interest[start]
        b = points_of_interest[end]
        prng = PRNG(seed)
        last = self._waypoints - 1
        path = []
        for i in range(self._waypoints):
            lat, lng = interpolate(a, b, i / last)
            if self._jitter and 0 < i < last:
                lat += (prng.next() * 2 - 1) * self._jitter
                lng += (prng.next() * 2 - 1) * self._jitter
            path.append((lat, lng))
        return PlannedPath(
            path=tuple(path),
            gps_mode=GpsMode.ON,
            strategy=f"Direct approach from {start} to {end} in {last} legs.",
        )
