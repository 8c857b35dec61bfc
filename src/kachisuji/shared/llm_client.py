"""Async OpenAI / Azure OpenAI wrapper used by every agent.

Chat completions go through ``simple_completion``; embeddings through
``embed``. Both share the same rate-limit aware retry loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import random
import re
from typing import Any, Callable

from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncAzureOpenAI,
    AsyncOpenAI,
    RateLimitError,
)

logger = logging.getLogger(__name__)

MODEL = "gpt-4o"
EMBEDDING_MODEL = "text-embedding-3-small"
MAX_TOKENS = 16_384
AZURE_API_VERSION = "2024-08-01-preview"

# Retry settings for rate-limit (429) and connection errors
_MAX_RETRIES = 8
_BASE_DELAY = 5  # seconds

TokensCallback = Callable[[int, int], None]
"""Called with (input_tokens, output_tokens) when a completion finishes."""


def _parse_retry_after(exc: RateLimitError) -> float | None:
    """Suggested retry delay in seconds from the header or error text."""
    try:
        headers = exc.response.headers  # type: ignore[union-attr]
        if retry_after := headers.get("retry-after"):
            return float(retry_after)
    except (AttributeError, TypeError, ValueError):
        pass

    m = re.search(r"try again in (\d+(?:\.\d+)?)\s*(ms|s)\b", str(exc), re.IGNORECASE)
    if m:
        value = float(m.group(1))
        return value / 1000 if m.group(2).lower() == "ms" else value

    return None


def azure_configured() -> bool:
    return bool(os.environ.get("AZURE_OPENAI_API_KEY") and os.environ.get("AZURE_OPENAI_ENDPOINT"))


class LLMClient:
    """Thin async wrapper around the OpenAI SDK.

    When ``azure`` is None the backend is picked from the environment:
    Azure OpenAI if ``AZURE_OPENAI_API_KEY`` and ``AZURE_OPENAI_ENDPOINT``
    are set, otherwise the public OpenAI API. On Azure the chat model is
    the ``AZURE_OPENAI_DEPLOYMENT`` and embeddings need
    ``AZURE_OPENAI_EMBEDDING_DEPLOYMENT``.
    """

    def __init__(self, api_key: str | None = None, *, azure: bool | None = None) -> None:
        if azure is None:
            azure = azure_configured()
        self.azure = azure

        if azure:
            self._client = AsyncAzureOpenAI(
                api_key=api_key or os.environ.get("AZURE_OPENAI_API_KEY"),
                azure_endpoint=os.environ.get("AZURE_OPENAI_ENDPOINT", ""),
                api_version=os.environ.get("AZURE_OPENAI_API_VERSION", AZURE_API_VERSION),
            )
            self.model = os.environ.get("AZURE_OPENAI_DEPLOYMENT", MODEL)
            self.embedding_model = os.environ.get("AZURE_OPENAI_EMBEDDING_DEPLOYMENT") or None
        else:
            self._client = AsyncOpenAI(api_key=api_key)
            self.model = MODEL
            self.embedding_model = EMBEDDING_MODEL

    @property
    def embeddings_available(self) -> bool:
        return bool(self.embedding_model)

    async def _call_with_retry(self, create: Callable[..., Any], **kwargs: Any) -> Any:
        """Call ``create(**kwargs)`` with exponential backoff on 429 / network errors.

        Waits at least as long as the server's suggested retry-after time and
        adds ±25% jitter. Requests that exceed the token limit fail at once.
        """
        for attempt in range(_MAX_RETRIES):
            try:
                return await create(**kwargs)
            except RateLimitError as exc:
                msg = str(exc).lower()
                if "request too large" in msg or "context_length_exceeded" in msg:
                    logger.error("Request exceeds token limit (not retryable): %s", exc)
                    raise
                if attempt == _MAX_RETRIES - 1:
                    raise

                backoff = _BASE_DELAY * (2 ** attempt)
                suggested = _parse_retry_after(exc)
                base_delay = max(suggested or 0.0, backoff)
                jitter = random.uniform(-0.25 * base_delay, 0.25 * base_delay)
                delay = max(1.0, base_delay + jitter)

                logger.warning(
                    "Rate limited (429), retrying in %.1fs (attempt %d/%d, "
                    "suggested=%.1fs, backoff=%ds): %s",
                    delay, attempt + 1, _MAX_RETRIES, suggested or 0.0, backoff, exc,
                )
                await asyncio.sleep(delay)
            except (APIConnectionError, APITimeoutError) as exc:
                if attempt == _MAX_RETRIES - 1:
                    raise
                # capped at ~40 s
                backoff = _BASE_DELAY * (2 ** min(attempt, 3))
                jitter = random.uniform(-0.25 * backoff, 0.25 * backoff)
                delay = max(2.0, backoff + jitter)
                logger.warning(
                    "Connection error, retrying in %.1fs (attempt %d/%d): %s",
                    delay, attempt + 1, _MAX_RETRIES, exc,
                )
                await asyncio.sleep(delay)

    async def simple_completion(
        self,
        *,
        system: str,
        user_message: str,
        json_mode: bool = True,
        on_tokens: TokensCallback | None = None,
    ) -> str:
        """Single request/response.

        When ``json_mode`` is True (default), the API guarantees the
        response is valid JSON.
        """
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user_message},
            ],
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self._call_with_retry(self._client.chat.completions.create, **kwargs)
        usage = getattr(response, "usage", None)
        if on_tokens and usage:
            on_tokens(getattr(usage, "prompt_tokens", 0), getattr(usage, "completion_tokens", 0))
        return response.choices[0].message.content or ""

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts, preserving input order."""
        if not self.embeddings_available:
            raise RuntimeError("No embedding model configured")
        response = await self._call_with_retry(
            self._client.embeddings.create, model=self.embedding_model, input=texts,
        )
        data = sorted(response.data, key=lambda d: d.index)
        return [list(d.embedding) for d in data]


# ======================================================================
# Dry-run client, no API calls
# ======================================================================

_DRY_RUN_JSON: dict[str, str] = {
    "explorer": json.dumps({
        "strategies": [
            {
                "name": "既存顧客向け保守サービスのサブスクリプション化",
                "reason": "既存の保守契約基盤を活かし、安定収益を早期に確保できる",
                "howToObtain": "主要顧客10社で試行し、半年で料金体系を確定する",
                "metrics": "契約社数、月次経常収益",
                "confidence": "high",
                "tags": ["既存事業強化", "ストック型"],
                "scores": {
                    "revenuePotential": 4, "timeToRevenue": 5, "competitiveAdvantage": 4,
                    "executionFeasibility": 5, "hqContribution": 4, "mergerSynergy": 3,
                },
            },
            {
                "name": "業界特化型データ分析プラットフォーム",
                "reason": "蓄積データと業界知見を組み合わせた差別化が可能",
                "howToObtain": "データ基盤を整備し、パートナー企業と共同開発する",
                "metrics": "導入社数、ARPU",
                "confidence": "medium",
                "tags": ["新規事業", "DX"],
                "scores": {
                    "revenuePotential": 5, "timeToRevenue": 2, "competitiveAdvantage": 4,
                    "executionFeasibility": 3, "hqContribution": 3, "mergerSynergy": 4,
                },
            },
        ],
        "thinkingProcess": "既存アセットの活用度と収益化までの期間を軸に候補を比較した。",
        "followUpQuestions": ["価格設定の前提は？", "優先すべき顧客セグメントは？"],
    }, ensure_ascii=False),
    "swot": json.dumps({
        "swot": {
            "strengths": [{"text": "長年の顧客基盤", "source": "社内情報"}],
            "weaknesses": [{"text": "デジタル人材の不足", "source": "社内情報"}],
            "opportunities": [{"text": "業界全体のDX需要の高まり", "source": "業界動向"}],
            "threats": [{"text": "異業種からの新規参入", "source": "業界動向"}],
        },
        "summary": "顧客基盤を活かしたDX支援が有望だが、人材確保が課題。",
    }, ensure_ascii=False),
    "evolution": json.dumps({
        "strategies": [
            {
                "name": "保守サブスクリプション×データ分析の統合パッケージ",
                "reason": "安定収益と高付加価値サービスを組み合わせて単価を引き上げる",
                "howToObtain": "既存サブスク顧客に分析オプションを段階提供する",
                "metrics": "オプション付帯率",
                "sourceStrategies": ["既存顧客向け保守サービスのサブスクリプション化", "業界特化型データ分析プラットフォーム"],
                "evolveType": "crossover",
                "improvement": "単独施策より顧客単価と継続率が向上する",
                "scores": {
                    "revenuePotential": 5, "timeToRevenue": 4, "competitiveAdvantage": 4,
                    "executionFeasibility": 4, "hqContribution": 4, "mergerSynergy": 4,
                },
            },
        ],
        "thinkingProcess": "採用済み戦略の強みを組み合わせ、弱点を補完する案を検討した。",
    }, ensure_ascii=False),
}


class DryRunClient:
    """Drop-in replacement for LLMClient that makes zero API calls."""

    azure = False
    model = "dry-run"
    embedding_model = None

    @property
    def embeddings_available(self) -> bool:
        return False

    async def simple_completion(
        self,
        *,
        system: str,
        user_message: str,
        json_mode: bool = True,
        on_tokens: TokensCallback | None = None,
    ) -> str:
        key = self._detect_agent(system)
        logger.info("[dry-run] %s completion (%d chars of input)", key, len(user_message))
        return _DRY_RUN_JSON.get(key, "{}")

    async def embed(self, texts: list[str]) -> list[list[float]]:
        raise RuntimeError("No embedding model configured")

    @staticmethod
    def _detect_agent(system: str) -> str:
        """Guess the agent from its system prompt.

        Explorer prompts vary with the finder, so they are the fallback.
        """
        if "戦略進化" in system:
            return "evolution"
        if "SWOT" in system:
            return "swot"
        return "explorer"
