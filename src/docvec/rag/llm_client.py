"""Embedding client and LiteLLM provider adapters.

All embedding calls route through ``EmbeddingClient``, which splits input into
batches and holds a RateLimiter token for exactly one provider call at a time.
Provider errors propagate unchanged; retrying is the caller's decision
(see docvec.rag.retry).
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import Any

import litellm

from docvec.exceptions import EmbeddingProviderError
from docvec.rag.rate_limiter import RateLimiter

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 300
DEFAULT_CALL_TIMEOUT_S = 60.0


@dataclass
class EmbeddingSettings:
    """Per-call embedding parameters (docvec.yaml: embedding:)."""

    model: str = "openai/BAAI/bge-large-zh-v1.5"
    batch_size: int = DEFAULT_BATCH_SIZE
    encoding_format: str = "float"
    api_base: str | None = None
    api_key: str | None = None
    dimensions: int | None = None


EmbeddingProvider = Callable[[list[str], EmbeddingSettings], Awaitable[list[list[float]]]]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "jina_ai": "JINA_AI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "ollama": None,  # Local, no key required
    "infinity": None,
}


def model_provider(model: str) -> str:
    """Return the LiteLLM provider prefix of *model* ('openai' if none)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def api_key_env(model: str) -> str | None:
    """Return the env var holding the API key for *model*, or None if no key is needed."""
    return _PROVIDER_ENV.get(model_provider(model))


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model_provider(model)
    env_var = api_key_env(model)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def provider_error(exc: Exception, what: str) -> EmbeddingProviderError:
    """Translate a LiteLLM/vendor exception into EmbeddingProviderError."""
    status = getattr(exc, "status_code", None)
    status_code = status if isinstance(status, int) else None
    return EmbeddingProviderError(f"{what} failed: {exc}", status_code=status_code)


def _field(item: Any, name: str) -> Any:
    return item[name] if isinstance(item, dict) else getattr(item, name)


async def litellm_embedding_provider(
    texts: list[str], settings: EmbeddingSettings
) -> list[list[float]]:
    """Call ``litellm.aembedding()`` once for *texts*.

    Response items are reordered by their ``index`` field so vector *i*
    always belongs to input *i*.

    Raises:
        EmbeddingProviderError: On any provider failure (with the HTTP status
            when one is available) or when the response length is wrong.
    """
    kwargs: dict[str, Any] = {
        "model": settings.model,
        "input": texts,
        "encoding_format": settings.encoding_format,
    }
    if settings.api_base:
        kwargs["api_base"] = settings.api_base
    if settings.api_key:
        kwargs["api_key"] = settings.api_key
    if settings.dimensions:
        kwargs["dimensions"] = settings.dimensions

    try:
        response = await litellm.aembedding(**kwargs)
    except Exception as exc:
        raise provider_error(exc, f"Embedding request to {settings.model}") from exc

    items = list(response.data)
    if len(items) != len(texts):
        raise EmbeddingProviderError(
            f"Embedding response has {len(items)} vectors for {len(texts)} inputs."
        )
    items.sort(key=lambda item: _field(item, "index"))
    return [list(_field(item, "embedding")) for item in items]


class EmbeddingClient:
    """Batching, rate-limited embedding client.

    Args:
        limiter: Shared RateLimiter; one token is held per provider call.
        provider: Coroutine performing one provider call for one batch.
        settings: Default settings when a call does not pass its own.
        call_timeout_s: Bound on each acquire + call + release cycle.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        provider: EmbeddingProvider = litellm_embedding_provider,
        settings: EmbeddingSettings | None = None,
        call_timeout_s: float = DEFAULT_CALL_TIMEOUT_S,
    ) -> None:
        self._limiter = limiter
        self._provider = provider
        self.settings = settings or EmbeddingSettings()
        self.call_timeout_s = call_timeout_s

    def iter_batches(
        self, texts: list[str], batch_size: int | None = None
    ) -> Iterator[list[str]]:
        """Yield consecutive slices of *texts* of at most *batch_size* items."""
        size = batch_size or self.settings.batch_size
        if size < 1:
            raise ValueError("batch_size must be >= 1")
        for start in range(0, len(texts), size):
            yield texts[start : start + size]

    async def embed_batch(
        self, batch: list[str], settings: EmbeddingSettings | None = None
    ) -> list[list[float]]:
        """Embed one batch under a single rate token.

        Raises:
            EmbeddingProviderError: On provider failure, timeout, or a
                response whose length differs from the batch.
        """
        settings = settings or self.settings

        async def _cycle() -> list[list[float]]:
            async with self._limiter.slot():
                return await self._provider(batch, settings)

        try:
            vectors = await asyncio.wait_for(_cycle(), timeout=self.call_timeout_s)
        except asyncio.TimeoutError as exc:
            raise EmbeddingProviderError(
                f"Embedding call timed out after {self.call_timeout_s:g}s "
                f"({len(batch)} texts)."
            ) from exc

        if len(vectors) != len(batch):
            raise EmbeddingProviderError(
                f"Provider returned {len(vectors)} vectors for {len(batch)} texts."
            )
        return vectors

    async def embed(
        self, texts: list[str], settings: EmbeddingSettings | None = None
    ) -> list[list[float]]:
        """Embed *texts*; output has the same length and order as the input."""
        settings = settings or self.settings
        vectors: list[list[float]] = []
        for batch in self.iter_batches(texts, settings.batch_size):
            vectors.extend(await self.embed_batch(batch, settings))
        logger.debug("Embedded %d texts with %s", len(texts), settings.model)
        return vectors

    async def embed_query(
        self, text: str, settings: EmbeddingSettings | None = None
    ) -> list[float]:
        """Embed a single query string."""
        return (await self.embed_batch([text], settings))[0]
