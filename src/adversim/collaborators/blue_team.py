"""Blue Team patch generator backed by Ollama."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from adversim.collaborators.contracts import PatchSuggestion, PlannedPath
from adversim.collaborators.ollama import OllamaClient, parse_json_response
from adversim.errors import CollaboratorError, RuleParseError
from adversim.simulation.rules import DetectionRule, parse_rule, rule_to_dict

PATCH_PROMPT = """\
An adversary has just slipped past the detection rules below while moving among civilians.
Write ONE new detection rule that would have caught them.

Bypass details:
- Adversary strategy: "{strategy}"
- Adversary GPS mode: "{gps_mode}"
- First waypoints: {waypoints}

Rules that failed:
{rules}

Rule vocabulary (params must match the type):
- high_confidence_sighting: {{"min_confidence": number 0-1}}
- persistent_sighting: {{"time_window_s": number, "min_detections": integer}}
- group_sighting: {{"radius_m": number, "time_window_s": number, "min_actors": integer}}

Clustering around civilians is the most likely gap, so a group_sighting rule is usually the
best patch. Give the rule a descriptive id such as "group_sighting_meadow" (reuse an existing id
to replace that rule) and explain briefly how it counters the tactic.

Respond in JSON format: {{"rule": {{"id": "...", "type": "...", "params": {{...}}}}, "explanation": "..."}}
"""


class OllamaPatchGenerator:
    """Patch generator backed by an Ollama model."""

    def __init__(self, client: OllamaClient, temperature: float = 0.5) -> None:
        self._client = client
        self._temperature = temperature

    def build_prompt(self, plan: PlannedPath, rules: Sequence[DetectionRule]) -> str:
        return PATCH_PROMPT.format(
            strategy=plan.strategy,
            gps_mode=plan.gps_mode.value,
            waypoints=json.dumps([list(p) for p in plan.path[:5]]),
            rules=json.dumps([rule_to_dict(r) for r in rules], indent=2),
        )

    def suggest(
        self,
        plan: PlannedPath,
        rules: Sequence[DetectionRule],
        seed: int,
    ) -> PatchSuggestion:
        prompt = self.build_prompt(plan, rules)
        raw = self._client.chat(prompt, temperature=self._temperature, seed=seed, json_mode=True)
        return parse_patch(parse_json_response(raw))


def parse_patch(data: dict[str, Any]) -> PatchSuggestion:
    """Validate a patch reply into a PatchSuggestion.

    Raises:
        CollaboratorError: missing rule, unknown rule type or bad params.
    """
    rule_data = data.get("rule")
    if not isinstance(rule_data, dict):
        raise CollaboratorError("reply has no rule object")

    params = rule_data.get("params")
    if isinstance(params, dict):
        # Keys echoed back as null belong to other rule types
        rule_data = {**rule_data, "params": {k: v for k, v in params.items() if v is not None}}

    try:
        rule = parse_rule(rule_data)
    except RuleParseError as e:
        raise CollaboratorError(str(e)) from e
    if rule is None:
        raise CollaboratorError(f"unknown rule type {rule_data.get('type')!r}")

    return PatchSuggestion(rule=rule, explanation=str(data.get("explanation") or ""))
