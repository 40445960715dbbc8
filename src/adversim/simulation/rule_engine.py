"""Rule evaluation engine: turns a tick's sensor events into alerts.

The engine is a pure function of (events, rules, state, now).  Multi-tick
rules keep their history in a DetectionState value that the caller threads
from one tick to the next; the engine never mutates the state it is given
and the caller never looks inside it.

Rule semantics:
  high_confidence_sighting  any adversary event this tick above
                            min_confidence -> one critical alert
  persistent_sighting       adversary events inside the trailing window;
                            reaching min_detections fires and resets
  group_sighting            all events inside the window; an adversary
                            event with >= min_actors distinct actors within
                            radius_m fires, then a one-window cooldown
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from loguru import logger

from adversim.simulation.models import Alert, AlertLevel, SensorEvent
from adversim.simulation.rules import (
    DetectionRule,
    GroupSighting,
    HighConfidenceSighting,
    PersistentSighting,
)
from adversim.tactical import geo


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class DetectionState:
    """Rolling per-rule history and cooldowns, keyed by rule id."""

    histories: Mapping[str, tuple[SensorEvent, ...]] = field(
        default_factory=lambda: _frozen({})
    )
    cooldowns: Mapping[str, float] = field(default_factory=lambda: _frozen({}))

    def history(self, rule_id: str) -> tuple[SensorEvent, ...]:
        return self.histories.get(rule_id, ())

    def cooldown_until(self, rule_id: str) -> float | None:
        return self.cooldowns.get(rule_id)


@dataclass
class _Scratch:
    """Mutable working copy used while evaluating a single tick."""

    histories: dict[str, tuple[SensorEvent, ...]]
    cooldowns: dict[str, float]
    alerts: list[Alert] = field(default_factory=list)


def evaluate(
    events: Sequence[SensorEvent],
    rules: Sequence[DetectionRule],
    state: DetectionState,
    now: int,
) -> tuple[list[Alert], DetectionState]:
    """Evaluate ``rules`` against this tick's ``events``.

    Returns (alerts, new_state).  With no events the input state is
    returned unchanged.
    """
    if not events:
        return [], state

    scratch = _Scratch(histories=dict(state.histories), cooldowns=dict(state.cooldowns))
    adversary_events = [e for e in events if e.is_adversary]

    for rule in rules:
        if isinstance(rule, HighConfidenceSighting):
            _high_confidence(rule, adversary_events, scratch, now)
        elif isinstance(rule, PersistentSighting):
            _persistent(rule, adversary_events, scratch, now)
        elif isinstance(rule, GroupSighting):
            _group(rule, events, adversary_events, scratch, now)
        else:
            logger.debug(f"Rule engine skipping unsupported rule {rule!r}")

    new_state = replace(
        state,
        histories=_frozen(scratch.histories),
        cooldowns=_frozen(scratch.cooldowns),
    )
    return scratch.alerts, new_state


def _high_confidence(
    rule: HighConfidenceSighting,
    adversary_events: list[SensorEvent],
    scratch: _Scratch,
    now: int,
) -> None:
    for event in adversary_events:
        if event.confidence > rule.params.min_confidence:
            scratch.alerts.append(Alert(
                alert_id=f"alert-hc-{now}",
                timestamp=now,
                level=AlertLevel.CRITICAL,
                message=f"High confidence sighting of adversary by {event.sensor_id}.",
                related_events=(event,),
            ))
            return


def _persistent(
    rule: PersistentSighting,
    adversary_events: list[SensorEvent],
    scratch: _Scratch,
    now: int,
) -> None:
    history = [
        e for e in scratch.histories.get(rule.rule_id, ())
        if now - e.timestamp < rule.window_ms
    ]
    history.extend(adversary_events)

    if len(history) >= rule.params.min_detections:
        scratch.alerts.append(Alert(
            alert_id=f"alert-ps-{now}",
            timestamp=now,
            level=AlertLevel.CRITICAL,
            message="Persistent presence of adversary detected.",
            related_events=tuple(history),
        ))
        # History restarts after firing
        scratch.histories[rule.rule_id] = ()
    else:
        scratch.histories[rule.rule_id] = tuple(history)


def _group(
    rule: GroupSighting,
    events: Sequence[SensorEvent],
    adversary_events: list[SensorEvent],
    scratch: _Scratch,
    now: int,
) -> None:
    history = tuple(
        e for e in (*scratch.histories.get(rule.rule_id, ()), *events)
        if now - e.timestamp < rule.window_ms
    )
    scratch.histories[rule.rule_id] = history

    for adv_event in adversary_events:
        nearby = {adv_event.actor_id}
        for past in history:
            if geo.distance(adv_event.actor_pos, past.actor_pos) < rule.params.radius_m:
                nearby.add(past.actor_id)
        if len(nearby) < rule.params.min_actors:
            continue

        cooldown = scratch.cooldowns.get(rule.rule_id)
        if cooldown is not None and not now > cooldown:
            continue
        scratch.alerts.append(Alert(
            alert_id=f"alert-gs-{now}",
            timestamp=now,
            level=AlertLevel.CRITICAL,
            message=f"Suspicious group of {len(nearby)} actors detected near adversary.",
            related_events=(adv_event,),
        ))
        scratch.cooldowns[rule.rule_id] = now + rule.window_ms
