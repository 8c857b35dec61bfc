"""Shared agent plumbing: prompt, one completion call, JSON parse with a single re-ask."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from kachisuji.shared.llm_client import LLMClient, TokensCallback

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)

_REFORMAT_REQUEST = (
    "The reply above could not be parsed. Send it again as raw JSON only: "
    "one object matching the format in your instructions, without markdown "
    "fences or commentary."
)


class BaseAgent(ABC):
    """An LLM role (explorer, SWOT analyst, evolver) with a fixed output model.

    Subclasses provide ``name``, ``get_system_prompt()`` and
    ``parse_output()``; ``complete()`` does the calling and re-asking.
    """

    def __init__(self, client: LLMClient) -> None:
        self.client = client

    @property
    @abstractmethod
    def name(self) -> str:
        """Label used in logs and progress spinners."""

    @abstractmethod
    def get_system_prompt(self) -> str: ...

    @abstractmethod
    def parse_output(self, raw_text: str) -> BaseModel:
        """Turn the reply text into the agent's output model; raise ValueError if it can't."""

    async def complete(
        self,
        user_message: str,
        *,
        system: str | None = None,
        on_tokens: TokensCallback | None = None,
    ) -> BaseModel:
        """One completion; if the reply doesn't parse, quote it back once and ask for raw JSON.

        A second unparseable reply raises.
        """
        system = system or self.get_system_prompt()
        raw = await self.client.simple_completion(system=system, user_message=user_message, on_tokens=on_tokens)
        logger.debug("%s reply (%d chars): %s", self.name, len(raw), raw[:500])
        try:
            return self.parse_output(raw)
        except (ValueError, KeyError) as err:
            # ValidationError and JSONDecodeError are both ValueErrors
            logger.warning("%s reply did not parse (%s); asking for raw JSON", self.name, err)

        reask = f"{user_message}\n\nAssistant's previous response:\n{raw}\n\n{_REFORMAT_REQUEST}"
        raw = await self.client.simple_completion(system=system, user_message=reask, on_tokens=on_tokens)
        logger.debug("%s re-asked reply (%d chars): %s", self.name, len(raw), raw[:500])
        return self.parse_output(raw)


def extract_json(text: str) -> dict[str, Any]:
    """First JSON object in a reply, whether bare, fenced or surrounded by prose."""
    text = text.strip()
    candidates = []
    fenced = _FENCE_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    candidates.append(text)

    decoder = json.JSONDecoder()
    for candidate in candidates:
        start = candidate.find("{")
        if start < 0:
            continue
        try:
            obj, _ = decoder.raw_decode(candidate, start)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj

    raise ValueError(f"Could not extract JSON from model reply ({len(text)} chars): {text[:300]!r}")


def parse_model(model: type[BaseModel], raw_text: str) -> BaseModel:
    """``extract_json`` then ``model_validate``; both failures are ValueErrors."""
    return model.model_validate(extract_json(raw_text))
