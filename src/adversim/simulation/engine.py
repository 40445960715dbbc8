"""SimulationEngine: wall-clock scheduler for a SimulationRun.

Architecture
------------
SimulationRun is a pure step machine; this engine gives it a fixed cadence
for live observation.  One daemon thread per run:

  sim-tick: every ``tick_interval`` seconds, takes the engine lock, calls
  ``run.step()`` and publishes the TickResult on the EventBus as
  ``sim_tick`` (plus one ``sim_alert`` per alert).  When the run reaches a
  terminal state it publishes ``sim_verdict`` and the thread exits.

Ticks never overlap: the next wait only starts after the previous step has
returned.  ``stop()`` sets the stop event and then takes the same lock
before cancelling the run, so cancellation always lands between ticks and
the run's rolling state is never half-written.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from loguru import logger

from adversim.errors import SimulationStateError
from adversim.simulation.orchestrator import RunState, SimulationRun, TickResult, Verdict

if TYPE_CHECKING:
    from adversim.comms.event_bus import EventBus


class SimulationEngine:
    """Drives one SimulationRun at a fixed wall-clock rate."""

    def __init__(self, event_bus: EventBus | None = None, tick_interval: float = 1.0) -> None:
        self._event_bus = event_bus
        self._tick_interval = max(0.0, tick_interval)
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._done = threading.Event()
        self._thread: threading.Thread | None = None
        self._run: SimulationRun | None = None
        self._last_result: TickResult | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def run(self) -> SimulationRun | None:
        return self._run

    @property
    def last_result(self) -> TickResult | None:
        """Most recent tick snapshot (safe to read from any thread)."""
        with self._lock:
            return self._last_result

    def start(self, run: SimulationRun) -> None:
        """Begin ticking ``run`` on a background thread."""
        if self.running:
            raise SimulationStateError("engine is already driving a run")
        if run.state is RunState.IDLE:
            run.begin()
        self._run = run
        self._last_result = None
        self._stop.clear()
        self._done.clear()
        self._thread = threading.Thread(target=self._tick_loop, name="sim-tick", daemon=True)
        self._thread.start()
        logger.info(f"Simulation engine started ({self._tick_interval:.2f}s per tick)")

    def stop(self, timeout: float = 2.0) -> None:
        """Cancel the run (if still going) and join the tick thread."""
        self._stop.set()
        with self._lock:
            if self._run is not None and not self._run.state.terminal:
                self._run.cancel()
                self._publish("sim_verdict", {"state": RunState.CANCELLED.value, "verdict": None,
                                              "tick": self._run.tick})
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self._done.set()

    def wait(self, timeout: float | None = None) -> Verdict | None:
        """Block until the run ends.  Returns the verdict (None if cancelled or timed out)."""
        self._done.wait(timeout)
        return self._run.verdict if self._run is not None else None

    def _tick_loop(self) -> None:
        run = self._run
        assert run is not None
        try:
            while not self._stop.is_set():
                with self._lock:
                    if run.state is not RunState.RUNNING:
                        break
                    result = run.step()
                    self._last_result = result
                self._publish_tick(result)
                if result.state.terminal:
                    break
                if self._stop.wait(self._tick_interval):
                    break
        except Exception:
            logger.exception("Simulation tick failed; cancelling run")
            with self._lock:
                run.cancel()
        finally:
            self._done.set()

    def _publish_tick(self, result: TickResult) -> None:
        self._publish("sim_tick", result.to_dict())
        for alert in result.alerts:
            self._publish("sim_alert", alert.to_dict())
        if result.state.terminal:
            self._publish("sim_verdict", {
                "state": result.state.value,
                "verdict": result.verdict.value if result.verdict else None,
                "tick": result.tick,
            })

    def _publish(self, event_type: str, data: dict) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, data)
