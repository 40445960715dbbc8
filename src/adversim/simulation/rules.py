"""Detection rules: a closed, typed union discriminated on ``type``.

Wire format (scenario JSON, collaborator output)::

    {"id": "persistent_sighting_v1",
     "type": "persistent_sighting",
     "params": {"time_window_s": 10, "min_detections": 3}}

Each rule type has its own params model with required fields, so a rule
that parses is guaranteed to carry everything the rule engine reads.
Unknown types are skipped rather than rejected, which keeps older builds
running against newer rule vocabularies.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Annotated, Any, Literal, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from adversim.errors import RuleParseError

HIGH_CONFIDENCE = "high_confidence_sighting"
PERSISTENT = "persistent_sighting"
GROUP = "group_sighting"

RULE_TYPES = (HIGH_CONFIDENCE, PERSISTENT, GROUP)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class HighConfidenceParams(_Frozen):
    min_confidence: float = Field(ge=0.0, le=1.0)


class PersistentParams(_Frozen):
    time_window_s: float = Field(gt=0.0)
    min_detections: int = Field(ge=1)


class GroupParams(_Frozen):
    radius_m: float = Field(gt=0.0)
    time_window_s: float = Field(gt=0.0)
    min_actors: int = Field(ge=1)


class HighConfidenceSighting(_Frozen):
    """Fire when any adversary event this tick exceeds ``min_confidence``."""

    rule_id: str = Field(alias="id")
    type: Literal["high_confidence_sighting"] = HIGH_CONFIDENCE
    params: HighConfidenceParams


class PersistentSighting(_Frozen):
    """Fire when ``min_detections`` adversary events land inside the window."""

    rule_id: str = Field(alias="id")
    type: Literal["persistent_sighting"] = PERSISTENT
    params: PersistentParams

    @property
    def window_ms(self) -> float:
        return self.params.time_window_s * 1000


class GroupSighting(_Frozen):
    """Fire when ``min_actors`` distinct actors cluster around the adversary."""

    rule_id: str = Field(alias="id")
    type: Literal["group_sighting"] = GROUP
    params: GroupParams

    @property
    def window_ms(self) -> float:
        return self.params.time_window_s * 1000


DetectionRule = Annotated[
    Union[HighConfidenceSighting, PersistentSighting, GroupSighting],
    Field(discriminator="type"),
]

_rule_adapter: TypeAdapter[DetectionRule] = TypeAdapter(DetectionRule)


def parse_rule(data: Mapping[str, Any]) -> DetectionRule | None:
    """Parse one rule from its wire form.

    Returns None for an unrecognised ``type``.

    Raises:
        RuleParseError: known type with missing or malformed params.
    """
    if not isinstance(data, Mapping):
        raise RuleParseError(f"rule must be an object, got {type(data).__name__}")
    rule_type = data.get("type")
    if rule_type not in RULE_TYPES:
        logger.debug(f"Skipping rule {data.get('id')!r} with unknown type {rule_type!r}")
        return None
    try:
        return _rule_adapter.validate_python(dict(data))
    except ValidationError as e:
        raise RuleParseError(f"invalid {rule_type} rule {data.get('id')!r}: {e}") from e


def parse_rules(items: Iterable[Mapping[str, Any]]) -> list[DetectionRule]:
    """Parse a rule list, dropping unknown types."""
    rules = []
    for item in items:
        rule = parse_rule(item)
        if rule is not None:
            rules.append(rule)
    return rules


def rule_to_dict(rule: DetectionRule) -> dict[str, Any]:
    return rule.model_dump(by_alias=True)


def high_confidence(rule_id: str, min_confidence: float) -> HighConfidenceSighting:
    return HighConfidenceSighting(
        id=rule_id, params=HighConfidenceParams(min_confidence=min_confidence)
    )


def persistent(rule_id: str, time_window_s: float, min_detections: int) -> PersistentSighting:
    return PersistentSighting(
        id=rule_id,
        params=PersistentParams(time_window_s=time_window_s, min_detections=min_detections),
    )


def group(rule_id: str, radius_m: float, time_window_s: float, min_actors: int) -> GroupSighting:
    return GroupSighting(
        id=rule_id,
        params=GroupParams(
            radius_m=radius_m, time_window_s=time_window_s, min_actors=min_actors
        ),
    )


def apply_patch(rules: Iterable[DetectionRule], patch_rule: DetectionRule) -> list[DetectionRule]:
    """Replace any rule sharing the patch's id and append the patch rule."""
    return [r for r in rules if r.rule_id != patch_rule.rule_id] + [patch_rule]
