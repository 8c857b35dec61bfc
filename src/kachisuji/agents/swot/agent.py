"""SWOT agent — strengths / weaknesses / opportunities / threats from company and market data."""

from __future__ import annotations

import logging

from kachisuji.agents.base import BaseAgent, parse_model
from kachisuji.agents.swot.prompts import SYSTEM_PROMPT, USER_TEMPLATE
from kachisuji.errors import ValidationFailed
from kachisuji.schemas.swot import ExternalData, SwotRequest, SwotResult
from kachisuji.shared.llm_client import TokensCallback

logger = logging.getLogger(__name__)

# Per topic: how many search results to include and how much of each
_MAX_RESULTS_PER_TOPIC = 3
_MAX_RESULT_CHARS = 200


def format_external_data(external_data: dict[str, ExternalData]) -> str:
    """Render search answers as 【topic】 blocks for the prompt."""
    blocks = []
    for key, data in external_data.items():
        lines = [
            f"- {r.title}: {r.content[:_MAX_RESULT_CHARS]}"
            for r in data.results[:_MAX_RESULTS_PER_TOPIC]
        ]
        blocks.append(f"【{key}】\n{data.answer}\n" + "\n".join(lines))
    return "\n\n".join(blocks)


class SwotAgent(BaseAgent):

    @property
    def name(self) -> str:
        return "SWOT Analyst"

    def get_system_prompt(self) -> str:
        return SYSTEM_PROMPT

    def parse_output(self, raw_text: str) -> SwotResult:
        return parse_model(SwotResult, raw_text)

    def build_user_message(self, request: SwotRequest, rag_context: str = "") -> str:
        return USER_TEMPLATE.format(
            industry=request.industry,
            company_context=request.company_context or "（記載なし）",
            core_info=request.core_info or "（別資料参照）",
            external_context=format_external_data(request.external_data) or "（取得なし）",
            rag_context=rag_context or "（なし）",
        )

    async def run(
        self,
        request: SwotRequest,
        *,
        rag_context: str = "",
        on_tokens: TokensCallback | None = None,
    ) -> SwotResult:
        if not request.industry.strip():
            raise ValidationFailed("業界情報が必要です")
        logger.info("Running SWOT analysis for industry %r", request.industry)
        return await self.complete(
            self.build_user_message(request, rag_context), on_tokens=on_tokens,
        )
