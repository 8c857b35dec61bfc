"""Strategy explorer agent — turns a question plus company data into scored strategies."""

from __future__ import annotations

import logging

from kachisuji.agents.base import BaseAgent, parse_model
from kachisuji.agents.strategy_explorer.prompts import USER_TEMPLATE, build_system_prompt
from kachisuji.schemas.finder import FinderSettings, get_finder_settings
from kachisuji.schemas.strategy import ExplorationOutput
from kachisuji.shared.llm_client import LLMClient, TokensCallback

logger = logging.getLogger(__name__)


class StrategyExplorerAgent(BaseAgent):
    """Single-shot JSON completion, no tools.

    The system prompt is built per finder so the model scores strategies
    on that finder's axes.
    """

    def __init__(self, client: LLMClient, finder: FinderSettings | None = None) -> None:
        super().__init__(client)
        self.finder = finder or get_finder_settings(None)

    @property
    def name(self) -> str:
        return "Strategy Explorer"

    def get_system_prompt(self) -> str:
        return build_system_prompt(self.finder)

    def parse_output(self, raw_text: str) -> ExplorationOutput:
        return parse_model(ExplorationOutput, raw_text)

    def build_user_message(
        self,
        question: str,
        *,
        context: str = "",
        services_text: str = "",
        assets_text: str = "",
        constraints_text: str = "",
        rag_context: str = "",
    ) -> str:
        return USER_TEMPLATE.format(
            question=question,
            context=context or "なし",
            services=services_text or "未登録",
            assets=assets_text or "未登録",
            constraints=constraints_text or "なし",
            rag_context=rag_context or "取得できませんでした",
            result_label=self.finder.result_label,
        )

    async def run(
        self,
        question: str,
        *,
        context: str = "",
        services_text: str = "",
        assets_text: str = "",
        constraints_text: str = "",
        rag_context: str = "",
        on_tokens: TokensCallback | None = None,
    ) -> ExplorationOutput:
        user_message = self.build_user_message(
            question,
            context=context,
            services_text=services_text,
            assets_text=assets_text,
            constraints_text=constraints_text,
            rag_context=rag_context,
        )
        logger.info(
            "Exploring (%s): %s [rag context %d chars]",
            self.finder.id, question[:80], len(rag_context),
        )
        output = await self.complete(user_message, on_tokens=on_tokens)
        logger.info("Explorer returned %d strategies", len(output.strategies))
        return output
