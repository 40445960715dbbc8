"""Tests for the sensor detection model.

Covers:
- Range gate: out of range yields no event and consumes no draw
- Falloff: probability decreases monotonically with distance
- Weather penalty and adversary stealth multipliers
- Zero-range sensors
- The 0.8 * (1 - 75/150) = 0.4 example over 10 000 draws
- Draw accounting in detect_all
"""

from __future__ import annotations

import math

import pytest

from adversim.simulation.detection import (
    ADVERSARY_STEALTH_FACTOR,
    detect,
    detect_all,
    detection_probability,
)
from adversim.simulation.models import Actor, ActorType, SensorType, Weather
from adversim.simulation.prng import PRNG
from adversim.simulation.scenario import Sensor
from adversim.tactical.geo import EARTH_RADIUS_M

pytestmark = pytest.mark.unit


def north_of(origin: tuple[float, float], meters: float) -> tuple[float, float]:
    """Point ``meters`` due north of ``origin`` (exact under haversine)."""
    return (origin[0] + math.degrees(meters / EARTH_RADIUS_M), origin[1])


def make_sensor(range_m: float = 150.0, base_p: float = 0.8, penalty: dict | None = None,
                pos: tuple[float, float] = (0.0, 0.0), sensor_id: str = "S01") -> Sensor:
    return Sensor(id=sensor_id, type=SensorType.CAMERA, pos=pos, range=range_m,
                  base_p=base_p, weather_penalty=penalty or {})


def make_actor(pos: tuple[float, float], actor_type: ActorType = ActorType.CIVILIAN,
               actor_id: str = "civ-0") -> Actor:
    return Actor(actor_id=actor_id, actor_type=actor_type, pos=pos, path=(pos,))


class TestDetectionProbability:
    def test_worked_example(self):
        actor = make_actor(north_of((0.0, 0.0), 75))
        prob = detection_probability(actor, make_sensor(), Weather.CLEAR)
        assert prob == pytest.approx(0.4)

    def test_out_of_range_is_none(self):
        actor = make_actor(north_of((0.0, 0.0), 151))
        assert detection_probability(actor, make_sensor(), Weather.CLEAR) is None

    def test_zero_at_boundary(self):
        actor = make_actor(north_of((0.0, 0.0), 149.999))
        assert detection_probability(actor, make_sensor(), Weather.CLEAR) == pytest.approx(0.0, abs=1e-4)

    def test_falloff_monotonic(self):
        sensor = make_sensor()
        probs = [
            detection_probability(make_actor(north_of((0.0, 0.0), d)), sensor, Weather.CLEAR)
            for d in range(0, 150, 10)
        ]
        assert probs == sorted(probs, reverse=True)
        assert probs[0] == pytest.approx(0.8)

    def test_adversary_stealth(self):
        pos = north_of((0.0, 0.0), 75)
        civ = detection_probability(make_actor(pos), make_sensor(), Weather.CLEAR)
        adv = detection_probability(make_actor(pos, ActorType.ADVERSARY, "adv-1"),
                                    make_sensor(), Weather.CLEAR)
        assert adv == pytest.approx(civ * ADVERSARY_STEALTH_FACTOR)

    def test_weather_penalty_applies_only_to_its_weather(self):
        sensor = make_sensor(penalty={Weather.FOG: 0.5})
        actor = make_actor((0.0, 0.0))
        assert detection_probability(actor, sensor, Weather.FOG) == pytest.approx(0.4)
        assert detection_probability(actor, sensor, Weather.CLEAR) == pytest.approx(0.8)

    def test_zero_penalty_blinds_sensor(self):
        sensor = make_sensor(penalty={Weather.FOG: 0.0})
        assert detection_probability(make_actor((0.0, 0.0)), sensor, Weather.FOG) == 0.0

    def test_zero_range_sensor(self):
        sensor = make_sensor(range_m=0.0)
        assert detection_probability(make_actor((0.0, 0.0)), sensor, Weather.CLEAR) == 0.0

    def test_zero_base_p(self):
        sensor = make_sensor(base_p=0.0)
        assert detection_probability(make_actor((0.0, 0.0)), sensor, Weather.CLEAR) == 0.0


class TestDetect:
    def test_detection_rate_matches_probability(self):
        sensor = make_sensor()
        actor = make_actor(north_of((0.0, 0.0), 75))
        prng = PRNG(42)
        hits = sum(detect(actor, sensor, Weather.CLEAR, prng) is not None for _ in range(10_000))
        # 4 sigma for p=0.4, n=10000 is about 0.02
        assert hits / 10_000 == pytest.approx(0.4, abs=0.02)

    def test_event_carries_probability_not_draw(self):
        sensor = make_sensor(base_p=1.0)
        actor = make_actor((0.0, 0.0), ActorType.ADVERSARY, "adv-1")
        prng = PRNG(1)
        event = next(e for e in (detect(actor, sensor, Weather.CLEAR, prng, now=3000) for _ in range(200)) if e)
        assert event is not None
        assert event.confidence == pytest.approx(0.8)
        assert event.timestamp == 3000
        assert event.actor_id == "adv-1"
        assert event.actor_type is ActorType.ADVERSARY
        assert event.sensor_id == "S01"
        assert event.actor_pos == (0.0, 0.0)

    def test_out_of_range_consumes_no_draw(self):
        prng = PRNG(5)
        far = make_actor(north_of((0.0, 0.0), 500))
        assert detect(far, make_sensor(), Weather.CLEAR, prng) is None
        assert prng.state == PRNG(5).state

    def test_in_range_consumes_one_draw_even_at_zero_probability(self):
        prng = PRNG(5)
        detect(make_actor((0.0, 0.0)), make_sensor(range_m=0.0), Weather.CLEAR, prng)
        reference = PRNG(5)
        reference.next()
        assert prng.state == reference.state


class TestDetectAll:
    def test_actor_major_order(self):
        sensors = [make_sensor(base_p=1.0, sensor_id="S01"), make_sensor(base_p=1.0, sensor_id="S02")]
        actors = [make_actor((0.0, 0.0), actor_id="civ-0"), make_actor((0.0, 0.0), actor_id="civ-1")]
        events = detect_all(actors, sensors, Weather.CLEAR, PRNG(1))
        assert [(e.actor_id, e.sensor_id) for e in events] == [
            ("civ-0", "S01"), ("civ-0", "S02"), ("civ-1", "S01"), ("civ-1", "S02"),
        ]

    def test_deterministic(self):
        sensors = [make_sensor(sensor_id=f"S{i}", pos=north_of((0.0, 0.0), 20 * i)) for i in range(3)]
        actors = [make_actor(north_of((0.0, 0.0), 10 * i), actor_id=f"civ-{i}") for i in range(5)]
        first = detect_all(actors, sensors, Weather.CLEAR, PRNG(99), now=1000)
        second = detect_all(actors, sensors, Weather.CLEAR, PRNG(99), now=1000)
        assert first == second

    def test_no_sensors(self):
        assert detect_all([make_actor((0.0, 0.0))], [], Weather.CLEAR, PRNG(1)) == []
