"""Embedding service for generating vector embeddings.

Supports both OpenAI and Azure OpenAI. Embeddings are an optional enhancement
to search: every failure here is absorbable by the caller as "semantic signal
unavailable" and never becomes an error shown to the end user.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import openai
import structlog
from openai import AsyncAzureOpenAI, AsyncOpenAI

from academichub.config import Settings, get_settings
from academichub.search.exceptions import EmbeddingErrorKind, EmbeddingGenerationFailedError
from academichub.search.text import normalize_text

logger = structlog.get_logger()

Embedding = list[float]


@dataclass(frozen=True)
class EmbeddingOutcome:
    """Result of an embedding request that never raises.

    Exactly one of ``embedding`` and ``error`` is set.
    """

    embedding: tuple[float, ...] | None = None
    error: EmbeddingErrorKind | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.embedding is not None


class EmbeddingService:
    """Service for generating vector embeddings.

    Provider selection:
    - If AZURE_OPENAI_ENDPOINT is configured, uses Azure OpenAI
    - Otherwise, uses OpenAI directly (requires OPENAI_API_KEY)

    Availability is decided once, when the service is constructed, and does
    not change afterwards. The instance holds no mutable state and is shared
    by all in-flight queries.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: Any | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the embedding service.

        Args:
            settings: Settings to read provider credentials and retry policy from.
            client: Pre-built client exposing ``embeddings.create``; skips
                credential lookup when given.
            sleep: Coroutine used for backoff delays.
        """
        self.settings = settings or get_settings()
        self._sleep = sleep
        self.use_azure = bool(self.settings.azure_openai_endpoint)
        self._client = client if client is not None else self._create_client()

    def _create_client(self) -> AsyncOpenAI | AsyncAzureOpenAI | None:
        provider = "azure_openai" if self.use_azure else "openai"
        try:
            if self.use_azure:
                azure_key = self.settings.azure_openai_api_key.get_secret_value()
                if not azure_key:
                    logger.warning(
                        "embedding_provider_not_configured",
                        provider=provider,
                        hint="Set AZURE_OPENAI_API_KEY to enable semantic search",
                    )
                    return None
                client = AsyncAzureOpenAI(
                    azure_endpoint=self.settings.azure_openai_endpoint,
                    api_key=azure_key,
                    api_version=self.settings.azure_openai_api_version,
                )
            else:
                api_key = self.settings.openai_api_key.get_secret_value()
                if not api_key:
                    logger.warning(
                        "embedding_provider_not_configured",
                        provider=provider,
                        hint="Set OPENAI_API_KEY to enable semantic search",
                    )
                    return None
                client = AsyncOpenAI(api_key=api_key)
        except openai.OpenAIError as e:
            logger.error("embedding_client_init_failed", provider=provider, error=str(e))
            return None

        logger.info("embedding_service_initialized", provider=provider)
        return client

    def is_available(self) -> bool:
        """True iff a provider client was configured at construction."""
        return self._client is not None

    @property
    def model_name(self) -> str:
        """Get the model/deployment name for embedding generation."""
        if self.use_azure:
            return self.settings.azure_embedding_deployment
        return self.settings.embedding_model

    @property
    def provider(self) -> str:
        return "azure_openai" if self.use_azure else "openai"

    async def _create_embeddings(self, input: str | list[str]) -> Any:
        # Azure OpenAI doesn't support the dimensions parameter for all models
        if self.use_azure:
            return await self._client.embeddings.create(
                model=self.model_name,
                input=input,
            )
        return await self._client.embeddings.create(
            model=self.model_name,
            input=input,
            dimensions=self.settings.embedding_dimensions,
        )

    async def _backoff(self, attempt: int) -> None:
        if attempt < self.settings.embedding_max_retries:
            await self._sleep(self.settings.embedding_retry_base_delay_seconds * attempt)

    async def generate_embedding(self, text: str | None) -> Embedding | None:
        """Generate an embedding vector for the given text.

        Args:
            text: The text to embed. Normalized and truncated before sending.

        Returns:
            The embedding, or None if the text is empty or no provider is
            configured.

        Raises:
            EmbeddingGenerationFailedError: If every attempt failed.
        """
        clean_text = normalize_text(text, self.settings.embedding_max_text_length)
        if not clean_text:
            logger.warning("embedding_skipped_empty_text")
            return None

        if not self.is_available():
            logger.warning("embedding_skipped_provider_unavailable")
            return None

        max_attempts = self.settings.embedding_max_retries
        last_error: Exception | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                response = await self._create_embeddings(clean_text)
                logger.debug("embedding_generated", text_length=len(clean_text), attempt=attempt)
                return list(response.data[0].embedding)
            except Exception as e:
                last_error = e
                logger.warning(
                    "embedding_attempt_failed",
                    error=str(e),
                    attempt=attempt,
                    max_attempts=max_attempts,
                    provider=self.provider,
                )
                await self._backoff(attempt)

        logger.error(
            "embedding_generation_failed",
            error=str(last_error),
            text_length=len(clean_text),
            provider=self.provider,
        )
        raise EmbeddingGenerationFailedError(attempts=max_attempts, last_error=str(last_error))

    async def try_generate_embedding(self, text: str | None) -> EmbeddingOutcome:
        """Like ``generate_embedding`` but reports failures as an outcome."""
        if not self.is_available():
            return EmbeddingOutcome(error=EmbeddingErrorKind.NOT_CONFIGURED)

        try:
            embedding = await self.generate_embedding(text)
        except EmbeddingGenerationFailedError as e:
            return EmbeddingOutcome(error=EmbeddingErrorKind.GENERATION_FAILED, detail=e.message)

        if embedding is None:
            return EmbeddingOutcome(error=EmbeddingErrorKind.EMPTY_TEXT)
        return EmbeddingOutcome(embedding=tuple(embedding))

    async def generate_embeddings_batch(self, texts: list[str | None]) -> list[Embedding | None]:
        """Generate embeddings for many texts, one result per input, same order.

        Texts are sent in chunks of ``embedding_batch_size`` with a pause
        between chunks to stay under provider rate limits. A chunk that keeps
        failing yields None for each of its items; other chunks are unaffected.
        """
        if not texts:
            return []

        if not self.is_available():
            logger.warning("batch_embedding_skipped_provider_unavailable", batch_size=len(texts))
            return [None] * len(texts)

        max_length = self.settings.embedding_max_text_length
        cleaned = [normalize_text(text, max_length) for text in texts]
        chunk_size = self.settings.embedding_batch_size

        results: list[Embedding | None] = []
        for start in range(0, len(cleaned), chunk_size):
            chunk = cleaned[start:start + chunk_size]
            results.extend(await self._embed_chunk(chunk, start))

            if start + chunk_size < len(cleaned):
                await self._sleep(self.settings.embedding_batch_delay_seconds)

        logger.info(
            "batch_embeddings_generated",
            succeeded=sum(1 for r in results if r is not None),
            total=len(texts),
        )
        return results

    async def _embed_chunk(self, chunk: list[str], start_index: int) -> list[Embedding | None]:
        """Embed one chunk, retrying the whole chunk on failure."""
        positions = [i for i, text in enumerate(chunk) if text]
        if not positions:
            return [None] * len(chunk)

        inputs = [chunk[i] for i in positions]
        max_attempts = self.settings.embedding_max_retries
        last_error: Exception | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                response = await self._create_embeddings(inputs)
                # Sort by index to ensure correct order
                ordered = sorted(response.data, key=lambda item: item.index)
                if len(ordered) != len(inputs):
                    raise ValueError(
                        f"Provider returned {len(ordered)} embeddings for {len(inputs)} inputs"
                    )

                results: list[Embedding | None] = [None] * len(chunk)
                for position, item in zip(positions, ordered):
                    results[position] = list(item.embedding)
                return results
            except Exception as e:
                last_error = e
                logger.warning(
                    "batch_embedding_attempt_failed",
                    error=str(e),
                    batch_size=len(inputs),
                    start_index=start_index,
                    attempt=attempt,
                )
                await self._backoff(attempt)

        logger.error(
            "batch_embedding_chunk_failed",
            error=str(last_error),
            batch_size=len(inputs),
            start_index=start_index,
        )
        return [None] * len(chunk)


@lru_cache
def get_embedding_service() -> EmbeddingService:
    """Process-wide embedding service; availability is fixed at first use."""
    return EmbeddingService()
