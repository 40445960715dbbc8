"""Tests for SimulationRun, the tick-driven verdict state machine."""

from __future__ import annotations

import pytest

from adversim.errors import SimulationStateError
from adversim.simulation.models import Actor, ActorType, SensorType, Weather
from adversim.simulation.orchestrator import RunConfig, RunState, SimulationRun, Verdict
from adversim.simulation.prng import PRNG
from adversim.simulation.rules import high_confidence, persistent
from adversim.simulation.scenario import Sensor

pytestmark = pytest.mark.unit

SENSOR_POS = (34.025, 75.315)
POIS = {
    "Parking": (34.021, 75.320),
    "Meadow": (34.029, 75.310),
    "Bridge": (34.022, 75.313),
}


def make_sensor(**overrides) -> Sensor:
    data = dict(id="S01", type=SensorType.CAMERA, pos=SENSOR_POS, range=200.0, base_p=1.0)
    data.update(overrides)
    return Sensor(**data)


def make_adversary(path) -> Actor:
    path = tuple(path)
    return Actor(actor_id="adv-1", actor_type=ActorType.ADVERSARY, pos=path[0], path=path)


def make_civilian(n: int, start: str = "Parking", end: str = "Bridge") -> Actor:
    return Actor(actor_id=f"civ-{n}", actor_type=ActorType.CIVILIAN, pos=POIS[start],
                 path=(POIS[start], POIS[end]))


def make_run(actors, sensors=(), rules=(), seed=42, **config) -> SimulationRun:
    cfg = RunConfig(sensors=sensors, rules=rules, points_of_interest=POIS, **config)
    return SimulationRun(actors, cfg, PRNG(seed))


def loitering_run(seed: int = 42, **config) -> SimulationRun:
    """Adversary parked on a perfect sensor under a low threshold: detection is near certain."""
    return make_run(
        [make_adversary([SENSOR_POS] * 40)],
        sensors=[make_sensor()],
        rules=[high_confidence("hc", 0.5)],
        seed=seed,
        **config,
    )


class TestTransitions:
    def test_starts_idle(self):
        run = make_run([make_adversary([POIS["Parking"], POIS["Meadow"]])])
        assert run.state is RunState.IDLE
        assert run.verdict is None
        assert run.tick == 0

    def test_step_before_begin_raises(self):
        run = make_run([make_adversary([POIS["Parking"], POIS["Meadow"]])])
        with pytest.raises(SimulationStateError):
            run.step()

    def test_begin_twice_raises(self):
        run = make_run([make_adversary([POIS["Parking"], POIS["Meadow"]])])
        run.begin()
        with pytest.raises(SimulationStateError):
            run.begin()

    def test_cancel(self):
        run = make_run([make_adversary([POIS["Parking"]] * 10)])
        run.begin()
        run.step()
        run.cancel()
        assert run.state is RunState.CANCELLED
        assert run.verdict is None
        with pytest.raises(SimulationStateError):
            run.step()

    def test_cancel_after_verdict_is_noop(self):
        run = make_run([make_adversary([POIS["Parking"], POIS["Meadow"]])])
        run.run_to_verdict()
        run.cancel()
        assert run.state is RunState.BYPASSED

    def test_cancel_idle_run(self):
        run = make_run([make_adversary([POIS["Parking"], POIS["Meadow"]])])
        run.cancel()
        assert run.state is RunState.CANCELLED


class TestVerdicts:
    def test_bypass_when_path_exhausted(self):
        path = [POIS["Parking"], POIS["Bridge"], POIS["Meadow"]]
        run = make_run([make_adversary(path)])
        run.begin()
        first = run.step()
        assert first.state is RunState.RUNNING
        second = run.step()
        assert second.state is RunState.BYPASSED
        assert second.verdict is Verdict.BYPASSED
        assert run.tick == 2

    def test_bypass_tick_has_no_detection(self):
        run = make_run([make_adversary([SENSOR_POS, SENSOR_POS])], sensors=[make_sensor()],
                       rules=[high_confidence("hc", 0.0)])
        run.begin()
        result = run.step()
        assert result.verdict is Verdict.BYPASSED
        assert result.events == ()
        assert result.alerts == ()

    def test_missing_adversary_is_bypass(self):
        run = make_run([make_civilian(0)])
        run.begin()
        assert run.step().state is RunState.BYPASSED

    def test_detected_on_critical_alert(self):
        run = loitering_run()
        state = run.run_to_verdict()
        assert state is RunState.DETECTED
        assert run.verdict is Verdict.DETECTED
        last = run.history[-1]
        assert any(a.is_critical for a in last.alerts)

    def test_verdicts_exclusive_and_final(self):
        run = loitering_run()
        run.run_to_verdict()
        assert [r.verdict for r in run.history if r.verdict] == [Verdict.DETECTED]
        with pytest.raises(SimulationStateError):
            run.step()

    def test_unfireable_rules_bypass(self):
        # Adversary confidence tops out at 0.8, so a 0.85 threshold never fires
        run = make_run([make_adversary([SENSOR_POS] * 20)], sensors=[make_sensor()],
                       rules=[high_confidence("hc", 0.85)])
        assert run.run_to_verdict() is RunState.BYPASSED
        assert run.tick == 19

    def test_run_to_verdict_max_ticks(self):
        run = make_run([make_adversary([POIS["Parking"]] * 50)])
        assert run.run_to_verdict(max_ticks=5) is RunState.RUNNING
        assert run.tick == 5


class TestTick:
    def test_clock(self):
        run = make_run([make_adversary([POIS["Parking"]] * 5)], tick_interval_ms=250, start_ms=10_000)
        run.begin()
        assert run.step().timestamp == 10_250
        assert run.step().timestamp == 10_500

    def test_actors_advance_one_waypoint(self):
        path = [POIS["Parking"], POIS["Bridge"], POIS["Meadow"], POIS["Meadow"]]
        run = make_run([make_adversary(path)])
        run.begin()
        result = run.step()
        adversary = result.actors[0]
        assert adversary.path_index == 1
        assert adversary.pos == POIS["Bridge"]

    def test_civilian_reroutes_at_path_end(self):
        run = make_run([make_adversary([POIS["Parking"]] * 10), make_civilian(0)])
        run.begin()
        run.step()
        civilian = run.actors[1]
        assert civilian.at_path_end
        run.step()
        civilian = run.actors[1]
        assert civilian.path_index == 0
        assert civilian.path[0] == POIS["Bridge"]
        assert civilian.path[1] in POIS.values()
        assert len(civilian.path) == 2

    def test_reroute_consumes_one_draw(self):
        run = make_run([make_adversary([POIS["Parking"]] * 10), make_civilian(0)], seed=7)
        run.begin()
        run.step()
        run.step()
        reference = PRNG(7)
        reference.next()
        assert run._prng.state == reference.state

    def test_weather_reaches_detection(self):
        sensor = make_sensor(weather_penalty={Weather.FOG: 0.0})
        run = make_run([make_adversary([SENSOR_POS] * 30)], sensors=[sensor],
                       rules=[high_confidence("hc", 0.0)], weather=Weather.FOG)
        assert run.run_to_verdict() is RunState.BYPASSED
        assert run.events == []

    def test_snapshot_dict(self):
        run = loitering_run()
        run.begin()
        data = run.step().to_dict()
        assert data["tick"] == 1
        assert data["actors"][0]["id"] == "adv-1"
        assert data["state"] in ("running", "detected")

    def test_rolling_state_cleared_on_verdict(self):
        run = make_run([make_adversary([SENSOR_POS] * 40)], sensors=[make_sensor()],
                       rules=[persistent("ps", 60, 2)])
        assert run.run_to_verdict() is RunState.DETECTED
        assert run._detection_state.histories == {}


class TestDeterminism:
    def test_same_seed_same_history(self):
        def build():
            actors = [make_adversary([SENSOR_POS] * 15)] + [make_civilian(i) for i in range(4)]
            return make_run(actors, sensors=[make_sensor(base_p=0.6)],
                            rules=[high_confidence("hc", 0.45), persistent("ps", 5, 3)], seed=1234)

        a, b = build(), build()
        a.run_to_verdict()
        b.run_to_verdict()
        assert [r.to_dict() for r in a.history] == [r.to_dict() for r in b.history]
