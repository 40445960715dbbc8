"""Post-incident analyst: asks a model to explain a bypass and its patch.

The text is display-only.  Nothing in the simulation reads it.
"""

from __future__ import annotations

import json

from adversim.collaborators.contracts import PatchSuggestion, PlannedPath
from adversim.collaborators.ollama import OllamaClient

ANALYSIS_PROMPT = """\
Write a short post-incident debrief for the operations team. A breach was detected and a
detection rule was added automatically.

Incident:
- Adversary tactic that worked: "{strategy}"

Patch applied:
- Rule: "{rule_id}" ({rule_type})
- Parameters: {params}
- Rationale: "{explanation}"

Use exactly these three headings, each followed by two or three plain sentences:
Incident Summary:
Patch Analysis:
Threat Mitigation:

Plain text only. No markdown, no greeting.
"""


class OllamaAnalyst:
    """Narrative generator backed by an Ollama model."""

    def __init__(self, client: OllamaClient, temperature: float = 0.4) -> None:
        self._client = client
        self._temperature = temperature

    def build_prompt(self, plan: PlannedPath, patch: PatchSuggestion) -> str:
        return ANALYSIS_PROMPT.format(
            strategy=plan.strategy,
            rule_id=patch.rule.rule_id,
            rule_type=patch.rule.type,
            params=json.dumps(patch.rule.params.model_dump()),
            explanation=patch.explanation,
        )

    def analyse(self, plan: PlannedPath, patch: PatchSuggestion) -> str:
        return self._client.chat(self.build_prompt(plan, patch), temperature=self._temperature).strip()


class TemplateAnalyst:
    """Offline narrative: fills the three debrief headings from the data."""

    def analyse(self, plan: PlannedPath, patch: PatchSuggestion) -> str:
        params = ", ".join(f"{k}={v}" for k, v in patch.rule.params.model_dump().items())
        strategy = plan.strategy or "no stated strategy"
        return (
            f"Incident Summary:\nThe adversary reached the objective over {len(plan.path)} "
            f"waypoints ({strategy}).\n\n"
            f"Patch Analysis:\nRule {patch.rule.rule_id} ({patch.rule.type}) was added "
            f"with {params}.\n\n"
            f"Threat Mitigation:\n{patch.explanation or 'No rationale supplied.'}"
        )
