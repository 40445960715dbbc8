"""Runtime data model: actors, sensor events, alerts.

These are the values that flow through a tick.  Definitions that come from
scenario files (sensors, rules) live in ``scenario`` and ``rules`` and are
validated with pydantic; everything here is a plain dataclass.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from adversim.tactical.geo import Point


class ActorType(str, Enum):
    ADVERSARY = "adversary"
    CIVILIAN = "civilian"


class GpsMode(str, Enum):
    ON = "on"
    OFF = "off"


class SensorType(str, Enum):
    CAMERA = "camera"
    ACOUSTIC = "acoustic"


class Weather(str, Enum):
    CLEAR = "clear"
    FOG = "fog"


class AlertLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Actor:
    """A simulated entity following a waypoint path.

    ``path_index`` is the waypoint last reached and ``pos`` always equals
    ``path[path_index]`` once the orchestrator has advanced the actor.
    Actors are immutable; each tick produces new instances.
    """

    actor_id: str
    actor_type: ActorType
    pos: Point
    path: tuple[Point, ...]
    path_index: int = 0
    speed: float = 0.0  # informational only
    gps_mode: GpsMode = GpsMode.ON

    @property
    def is_adversary(self) -> bool:
        return self.actor_type is ActorType.ADVERSARY

    @property
    def at_path_end(self) -> bool:
        return self.path_index >= len(self.path) - 1

    def advanced(self) -> Actor:
        """Return this actor moved one waypoint along its path."""
        if self.at_path_end:
            return self
        index = self.path_index + 1
        return replace(self, path_index=index, pos=self.path[index])

    def rerouted(self, destination: Point) -> Actor:
        """Return this actor with a fresh two-point path from its position."""
        return replace(self, path=(self.pos, destination), path_index=0)

    def snapshot(self) -> dict:
        return {
            "id": self.actor_id,
            "type": self.actor_type.value,
            "lat": self.pos[0],
            "lng": self.pos[1],
            "path_index": self.path_index,
            "path_length": len(self.path),
            "gps_mode": self.gps_mode.value,
        }


@dataclass(frozen=True)
class SensorEvent:
    """One detection: which sensor saw which actor, and how confidently.

    ``confidence`` is the computed detection probability, not the outcome
    of the draw.
    """

    timestamp: int  # simulation ms
    sensor_id: str
    actor_id: str
    actor_type: ActorType
    confidence: float
    actor_pos: Point

    @property
    def is_adversary(self) -> bool:
        return self.actor_type is ActorType.ADVERSARY

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "sensor_id": self.sensor_id,
            "actor_id": self.actor_id,
            "actor_type": self.actor_type.value,
            "confidence": self.confidence,
            "actor_pos": list(self.actor_pos),
        }


@dataclass(frozen=True)
class Alert:
    """Output of the rule engine.  A critical alert ends a run as DETECTED."""

    alert_id: str
    timestamp: int
    message: str
    level: AlertLevel
    related_events: tuple[SensorEvent, ...] = field(default_factory=tuple)

    @property
    def is_critical(self) -> bool:
        return self.level is AlertLevel.CRITICAL

    def to_dict(self) -> dict:
        return {
            "id": self.alert_id,
            "timestamp": self.timestamp,
            "message": self.message,
            "level": self.level.value,
            "related_events": [e.to_dict() for e in self.related_events],
        }
