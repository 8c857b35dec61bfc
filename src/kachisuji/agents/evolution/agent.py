"""Evolution agent — mutates, crosses over or refutes previously adopted strategies."""

from __future__ import annotations

import logging

from kachisuji.agents.base import BaseAgent, parse_model
from kachisuji.agents.evolution.prompts import USER_TEMPLATE, build_system_prompt
from kachisuji.schemas.evolution import EvolveMode, EvolveOutput, SourceStrategy
from kachisuji.schemas.finder import FinderSettings, get_finder_settings
from kachisuji.shared.llm_client import LLMClient, TokensCallback

logger = logging.getLogger(__name__)

_ORIGIN_LABELS = {"adopted": "採用済み", "top": "高スコア"}


def format_sources(sources: list[SourceStrategy]) -> str:
    blocks = []
    for i, s in enumerate(sources, 1):
        header = f"### {i}. {s.name}"
        if s.origin:
            header += f"（{_ORIGIN_LABELS.get(s.origin, s.origin)}）"
        lines = [header]
        if s.total_score is not None:
            lines.append(f"- スコア: {s.total_score:.2f}")
        if s.reason:
            lines.append(f"- 理由: {s.reason}")
        if s.how_to_obtain:
            lines.append(f"- アクション: {s.how_to_obtain}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


class EvolutionAgent(BaseAgent):
    """Prompt-only evolution; strategies of a type the mode does not allow are dropped."""

    def __init__(
        self,
        client: LLMClient,
        mode: EvolveMode = EvolveMode.ALL,
        finder: FinderSettings | None = None,
    ) -> None:
        super().__init__(client)
        self.mode = mode
        self.finder = finder or get_finder_settings(None)

    @property
    def name(self) -> str:
        return "Strategy Evolution"

    def get_system_prompt(self) -> str:
        return build_system_prompt(self.mode, self.finder)

    def parse_output(self, raw_text: str) -> EvolveOutput:
        return parse_model(EvolveOutput, raw_text)

    async def run(
        self,
        sources: list[SourceStrategy],
        *,
        rag_context: str = "",
        on_tokens: TokensCallback | None = None,
    ) -> EvolveOutput:
        user_message = USER_TEMPLATE.format(
            sources=format_sources(sources),
            rag_context=rag_context or "（なし）",
        )
        logger.info("Evolving %d source strategies (mode=%s)", len(sources), self.mode.value)
        output = await self.complete(user_message, on_tokens=on_tokens)

        allowed = self.mode.allowed_types()
        kept = [s for s in output.strategies if s.evolve_type in allowed]
        if len(kept) < len(output.strategies):
            logger.warning(
                "Dropped %d evolved strategies with a type outside mode %s",
                len(output.strategies) - len(kept), self.mode.value,
            )
        return EvolveOutput(strategies=kept, thinking_process=output.thinking_process)
