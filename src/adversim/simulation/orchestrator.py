"""SimulationRun: the tick-driven state machine that resolves a verdict.

States::

    IDLE --begin()--> RUNNING --step()...--> DETECTED | BYPASSED
                         \\--cancel()--> CANCELLED

Each ``step()`` is one tick:
  1. Advance every actor one waypoint.  Civilians at the end of their path
     get a fresh two-point path to a random point of interest.
  2. Adversary at its last waypoint -> BYPASSED.
  3. Detection for every (actor, sensor) pair under the run's weather.
  4. Rule evaluation with the carried-forward DetectionState.
  5. Any critical alert -> DETECTED.

The run owns no timer.  Callers (tests, ``run_to_verdict``, the realtime
SimulationEngine) decide when to call ``step()``.  Time inside the run is a
simulation clock: ``start_ms + tick * tick_interval_ms``.

A tick computes everything into locals and commits at the very end, so a
cancellation arriving between ticks never sees a half-applied tick.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from adversim.errors import SimulationStateError
from adversim.simulation.detection import detect_all
from adversim.simulation.models import Actor, ActorType, Alert, SensorEvent, Weather
from adversim.simulation.prng import PRNG
from adversim.simulation.rule_engine import DetectionState, evaluate
from adversim.simulation.rules import DetectionRule
from adversim.simulation.scenario import Sensor
from adversim.tactical.geo import Point


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DETECTED = "detected"
    BYPASSED = "bypassed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (RunState.DETECTED, RunState.BYPASSED, RunState.CANCELLED)


class Verdict(str, Enum):
    DETECTED = "DETECTED"
    BYPASSED = "BYPASSED"


_VERDICTS = {
    RunState.DETECTED: Verdict.DETECTED,
    RunState.BYPASSED: Verdict.BYPASSED,
}


@dataclass(frozen=True)
class TickResult:
    """Immutable snapshot of one tick, for observers and tests."""

    tick: int
    timestamp: int
    state: RunState
    actors: tuple[Actor, ...]
    events: tuple[SensorEvent, ...] = ()
    alerts: tuple[Alert, ...] = ()

    @property
    def verdict(self) -> Verdict | None:
        return _VERDICTS.get(self.state)

    def to_dict(self) -> dict:
        return {
            "tick": self.tick,
            "timestamp": self.timestamp,
            "state": self.state.value,
            "actors": [a.snapshot() for a in self.actors],
            "events": [e.to_dict() for e in self.events],
            "alerts": [a.to_dict() for a in self.alerts],
            "verdict": self.verdict.value if self.verdict else None,
        }


@dataclass
class RunConfig:
    """Inputs fixed for the lifetime of one run."""

    sensors: Sequence[Sensor]
    rules: Sequence[DetectionRule]
    points_of_interest: Mapping[str, Point]
    weather: Weather = Weather.CLEAR
    tick_interval_ms: int = 1000
    start_ms: int = 0
    poi_order: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        # Freeze the rule set and POI enumeration order for the run
        self.rules = tuple(self.rules)
        self.sensors = tuple(self.sensors)
        if not self.poi_order:
            self.poi_order = tuple(self.points_of_interest)


class SimulationRun:
    """One scenario run from initial actors to a verdict."""

    def __init__(self, actors: Sequence[Actor], config: RunConfig, prng: PRNG) -> None:
        self._config = config
        self._prng = prng
        self._actors: tuple[Actor, ...] = tuple(actors)
        self._detection_state = DetectionState()
        self._state = RunState.IDLE
        self._tick = 0
        self._history: list[TickResult] = []

    # -- Read-only views ------------------------------------------------------

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def actors(self) -> tuple[Actor, ...]:
        return self._actors

    @property
    def config(self) -> RunConfig:
        return self._config

    @property
    def verdict(self) -> Verdict | None:
        return _VERDICTS.get(self._state)

    @property
    def history(self) -> list[TickResult]:
        return list(self._history)

    @property
    def alerts(self) -> list[Alert]:
        return [a for result in self._history for a in result.alerts]

    @property
    def events(self) -> list[SensorEvent]:
        return [e for result in self._history for e in result.events]

    # -- Transitions ----------------------------------------------------------

    def begin(self) -> None:
        if self._state is not RunState.IDLE:
            raise SimulationStateError(f"cannot begin a run in state {self._state.value}")
        self._state = RunState.RUNNING
        logger.debug(f"Run started with {len(self._actors)} actors, "
                     f"{len(self._config.sensors)} sensors, {len(self._config.rules)} rules")

    def cancel(self) -> None:
        """Stop the run.  No effect once a verdict has been reached."""
        if self._state.terminal:
            return
        self._state = RunState.CANCELLED
        self._detection_state = DetectionState()
        logger.info(f"Run cancelled at tick {self._tick}")

    def step(self) -> TickResult:
        """Execute one tick and return its snapshot."""
        if self._state is not RunState.RUNNING:
            raise SimulationStateError(f"cannot step a run in state {self._state.value}")

        tick = self._tick + 1
        now = self._config.start_ms + tick * self._config.tick_interval_ms

        actors = tuple(self._advance(actor) for actor in self._actors)

        adversary = next((a for a in actors if a.is_adversary), None)
        if adversary is None or adversary.at_path_end:
            return self._commit(tick, now, actors, RunState.BYPASSED, DetectionState())

        events = detect_all(actors, self._config.sensors, self._config.weather, self._prng, now)
        alerts: list[Alert] = []
        detection_state = self._detection_state
        if events:
            alerts, detection_state = evaluate(events, self._config.rules, detection_state, now)

        next_state = RunState.RUNNING
        if any(a.is_critical for a in alerts):
            next_state = RunState.DETECTED
            detection_state = DetectionState()
        return self._commit(tick, now, actors, next_state, detection_state, events, alerts)

    def run_to_verdict(self, max_ticks: int | None = None) -> RunState:
        """Step until a terminal state (or ``max_ticks`` ticks).  Returns the state."""
        if self._state is RunState.IDLE:
            self.begin()
        steps = 0
        while self._state is RunState.RUNNING:
            if max_ticks is not None and steps >= max_ticks:
                break
            self.step()
            steps += 1
        return self._state

    # -- Internals ------------------------------------------------------------

    def _advance(self, actor: Actor) -> Actor:
        if not actor.at_path_end:
            return actor.advanced()
        if actor.actor_type is ActorType.CIVILIAN:
            names = self._config.poi_order
            destination = self._config.points_of_interest[names[self._prng.choice_index(len(names))]]
            return actor.rerouted(destination)
        return actor

    def _commit(
        self,
        tick: int,
        now: int,
        actors: tuple[Actor, ...],
        state: RunState,
        detection_state: DetectionState,
        events: Sequence[SensorEvent] = (),
        alerts: Sequence[Alert] = (),
    ) -> TickResult:
        self._tick = tick
        self._actors = actors
        self._detection_state = detection_state
        self._state = state
        result = TickResult(
            tick=tick,
            timestamp=now,
            state=state,
            actors=actors,
            events=tuple(events),
            alerts=tuple(alerts),
        )
        self._history.append(result)
        for alert in alerts:
            logger.debug(f"[tick {tick}] {alert.level.value}: {alert.message}")
        if state.terminal:
            logger.info(f"Run resolved {state.value.upper()} after {tick} ticks")
        return result
