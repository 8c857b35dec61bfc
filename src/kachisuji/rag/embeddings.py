"""Embedding generation, vector encoding and similarity scoring.

Vectors are stored as base64 of little-endian float32. When no embedding
model is configured, retrieval falls back to ``keyword_similarity``.
"""

from __future__ import annotations

import base64
import logging
import math
import re
import struct

from kachisuji.shared.llm_client import LLMClient

logger = logging.getLogger(__name__)

EMBEDDING_DIMENSIONS = 1536
BATCH_SIZE = 16

_KANJI_RUN = re.compile(r"[一-鿿]{2,}")
_KATAKANA_RUN = re.compile(r"[゠-ヿ]{2,}")
_ALNUM_RUN = re.compile(r"[a-zA-Z0-9]{2,}")


def float32_to_base64(vec: list[float]) -> str:
    return base64.b64encode(struct.pack(f"<{len(vec)}f", *vec)).decode("ascii")


def base64_to_float32(b64: str) -> list[float]:
    raw = base64.b64decode(b64)
    return list(struct.unpack(f"<{len(raw) // 4}f", raw[: len(raw) - len(raw) % 4]))


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    denominator = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if denominator == 0:
        return 0.0
    return dot / denominator


def tokenize_keywords(text: str) -> list[str]:
    """Unique runs of 2+ kanji, 2+ katakana and 2+ ASCII alphanumerics.

    Japanese has no word boundaries, so character-class runs stand in for words.
    """
    tokens = _KANJI_RUN.findall(text) + _KATAKANA_RUN.findall(text) + _ALNUM_RUN.findall(text)
    return list(dict.fromkeys(tokens))


def keyword_similarity(query: str, text: str) -> float:
    """Fraction of the query's tokens that occur verbatim in ``text``."""
    tokens = tokenize_keywords(query)
    if not tokens:
        return 0.0
    return sum(1 for t in tokens if t in text) / len(tokens)


async def generate_embeddings(client: LLMClient, texts: list[str]) -> list[list[float] | None]:
    """Embed ``texts`` in batches of 16.

    A failed batch is retried one text at a time; a text that still fails
    gets ``None``. Returns all ``None`` when the client has no embedding model.
    """
    if not client.embeddings_available:
        logger.info("Embedding model not configured, skipping %d texts", len(texts))
        return [None] * len(texts)

    results: list[list[float] | None] = [None] * len(texts)
    for start in range(0, len(texts), BATCH_SIZE):
        batch = [t.strip() or " " for t in texts[start:start + BATCH_SIZE]]
        try:
            vectors = await client.embed(batch)
            for j, vec in enumerate(vectors):
                results[start + j] = vec
        except Exception as exc:
            logger.error("Embedding batch %d-%d failed: %s", start, start + len(batch), exc)
            for j, text in enumerate(batch):
                try:
                    results[start + j] = (await client.embed([text]))[0]
                except Exception as single_exc:
                    logger.error("Embedding %d failed: %s", start + j, single_exc)

    done = sum(1 for r in results if r is not None)
    logger.info("Generated %d/%d embeddings", done, len(texts))
    return results


async def generate_single_embedding(client: LLMClient, text: str) -> list[float] | None:
    return (await generate_embeddings(client, [text]))[0]
