"""Thin Ollama chat client shared by the collaborator adapters.

Adapters build a prompt, call ``chat()`` and parse the reply with
``parse_json_response()``.  Transport and parse failures surface as
CollaboratorError; the contract helpers turn those into fallbacks.
"""

from __future__ import annotations

import json
import re
from typing import Any

import requests
from loguru import logger

from adversim.errors import CollaboratorError

SYSTEM_PROMPT = (
    "You support a detection-rule exercise for a perimeter security team. "
    "A red team plans stealthy routes through a monitored valley and a blue team "
    "writes machine-readable detection rules. When asked for JSON, respond with "
    "valid JSON only. No extra text."
)


class OllamaClient:
    """Minimal blocking client for Ollama's /api/chat endpoint."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "gemma3:4b",
        timeout: float = 30.0,
    ) -> None:
        self._host = host.rstrip("/")
        self.model = model
        self._timeout = timeout

    @property
    def host(self) -> str:
        return self._host

    def available(self) -> bool:
        """True if the Ollama API answers /api/tags."""
        try:
            resp = requests.get(f"{self._host}/api/tags", timeout=2)
        except requests.RequestException:
            return False
        return resp.status_code == 200

    def chat(
        self,
        prompt: str,
        temperature: float = 0.7,
        seed: int | None = None,
        json_mode: bool = False,
    ) -> str:
        """Send one user prompt and return the assistant's text."""
        options: dict[str, Any] = {"temperature": temperature}
        if seed is not None:
            options["seed"] = seed
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "options": options,
        }
        if json_mode:
            payload["format"] = "json"

        try:
            resp = requests.post(f"{self._host}/api/chat", json=payload, timeout=self._timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise CollaboratorError(f"Ollama request failed: {e}") from e

        content = data.get("message", {}).get("content", "")
        logger.debug(f"Ollama {self.model} replied with {len(content)} chars")
        return content


def parse_json_response(raw: str) -> dict[str, Any]:
    """Parse a JSON object from LLM text.

    Handles replies wrapped in markdown code fences or surrounded by prose.

    Raises:
        CollaboratorError: no JSON object could be recovered.
    """
    text = (raw or "").strip()

    md_match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
    if md_match:
        text = md_match.group(1).strip()

    for candidate in (text, _outermost_braces(text)):
        if not candidate:
            continue
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise CollaboratorError("response did not contain a JSON object")


def _outermost_braces(text: str) -> str | None:
    match = re.search(r"\{.*\}", text, re.DOTALL)
    return match.group() if match else None
