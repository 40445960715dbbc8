"""Sensor detection model: per (actor, sensor) probabilistic sighting.

Algorithm per pair:
  1. Range gate: beyond ``sensor.range`` nothing is possible (no draw)
  2. Start from ``sensor.base_p``
  3. Weather: multiply by the sensor's penalty for the active weather
  4. Falloff: multiply by ``1 - distance / range`` (zero at the boundary)
  5. Stealth: adversaries get a flat 0.8 multiplier
  6. One PRNG draw; ``r < prob`` emits a SensorEvent carrying ``prob``

Every in-range pair consumes exactly one draw, so the draw sequence depends
only on geometry and enumeration order, never on earlier outcomes.

Cost is O(actors x sensors) per tick, fine for tens of each.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from adversim.simulation.models import Actor, SensorEvent, Weather
from adversim.simulation.prng import PRNG
from adversim.simulation.scenario import Sensor
from adversim.tactical import geo

ADVERSARY_STEALTH_FACTOR = 0.8


def detection_probability(actor: Actor, sensor: Sensor, weather: Weather) -> float | None:
    """Probability that ``sensor`` detects ``actor`` this tick.

    Returns None when the actor is out of range.  Zero-range sensors yield
    0.0 instead of dividing by zero.
    """
    dist = geo.distance(actor.pos, sensor.pos)
    if dist > sensor.range_m:
        return None
    if sensor.range_m <= 0.0:
        return 0.0

    prob = sensor.base_p
    penalty = sensor.penalty_for(weather)
    if penalty is not None:
        prob *= penalty
    prob *= 1 - dist / sensor.range_m
    if actor.is_adversary:
        prob *= ADVERSARY_STEALTH_FACTOR
    return prob


def detect(
    actor: Actor,
    sensor: Sensor,
    weather: Weather,
    prng: PRNG,
    now: int = 0,
) -> SensorEvent | None:
    """Roll one detection for an (actor, sensor) pair."""
    prob = detection_probability(actor, sensor, weather)
    if prob is None:
        return None
    if prng.next() < prob:
        return SensorEvent(
            timestamp=now,
            sensor_id=sensor.sensor_id,
            actor_id=actor.actor_id,
            actor_type=actor.actor_type,
            confidence=prob,
            actor_pos=actor.pos,
        )
    return None


def detect_all(
    actors: Iterable[Actor],
    sensors: Sequence[Sensor],
    weather: Weather,
    prng: PRNG,
    now: int = 0,
) -> list[SensorEvent]:
    """Events for the full actor x sensor cross-product, actors outermost."""
    events: list[SensorEvent] = []
    for actor in actors:
        for sensor in sensors:
            event = detect(actor, sensor, weather, prng, now)
            if event is not None:
                events.append(event)
    return events
