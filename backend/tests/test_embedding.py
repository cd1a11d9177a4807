"""Tests for the embedding service: retry, outcomes and batch chunking."""

import pytest

from academichub.search.exceptions import EmbeddingErrorKind, EmbeddingGenerationFailedError
from academichub.services.embedding import EmbeddingService

from tests.conftest import fake_client, make_settings, unit_vector


def make_service(settings=None, sleeps=None, **client_kwargs) -> EmbeddingService:
    return EmbeddingService(
        settings=settings or make_settings(),
        client=fake_client(**client_kwargs),
        sleep=sleeps,
    )


class TestAvailability:
    def test_unavailable_without_credentials(self, unavailable_embeddings):
        assert not unavailable_embeddings.is_available()

    def test_available_with_openai_key(self):
        service = EmbeddingService(settings=make_settings(openai_api_key="sk-test"))
        assert service.is_available()
        assert service.provider == "openai"

    def test_azure_selected_when_endpoint_set(self):
        settings = make_settings(
            azure_openai_endpoint="https://example.openai.azure.com",
            azure_openai_api_key="azure-key",
            azure_embedding_deployment="embeddings-prod",
        )
        service = EmbeddingService(settings=settings)
        assert service.is_available()
        assert service.provider == "azure_openai"
        assert service.model_name == "embeddings-prod"

    def test_azure_endpoint_without_key_is_unavailable(self):
        settings = make_settings(azure_openai_endpoint="https://example.openai.azure.com")
        assert not EmbeddingService(settings=settings).is_available()


class TestGenerateEmbedding:
    @pytest.mark.asyncio
    async def test_returns_vector_and_sends_dimensions(self, sleeps):
        service = make_service(sleeps=sleeps, vectors={"neural nets": unit_vector(3)})
        embedding = await service.generate_embedding("  neural   nets ")

        assert embedding == unit_vector(3)
        call = service._client.embeddings.calls[0]
        assert call["input"] == "neural nets"
        assert call["dimensions"] == 1536
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_azure_omits_dimensions(self, sleeps):
        settings = make_settings(
            azure_openai_endpoint="https://example.openai.azure.com",
            azure_openai_api_key="azure-key",
        )
        service = make_service(settings=settings, sleeps=sleeps)
        await service.generate_embedding("query")
        assert service._client.embeddings.calls[0]["dimensions"] is None

    @pytest.mark.asyncio
    async def test_empty_text_makes_no_call(self, sleeps):
        service = make_service(sleeps=sleeps)
        assert await service.generate_embedding("   ") is None
        assert service._client.embeddings.calls == []

    @pytest.mark.asyncio
    async def test_long_text_truncated(self, sleeps):
        service = make_service(sleeps=sleeps)
        await service.generate_embedding("x" * 20000)
        assert len(service._client.embeddings.calls[0]["input"]) == 8000

    @pytest.mark.asyncio
    async def test_retries_with_linear_backoff(self, sleeps):
        service = make_service(sleeps=sleeps, fail_times=2)
        embedding = await service.generate_embedding("query")

        assert embedding is not None
        assert len(service._client.embeddings.calls) == 3
        assert sleeps.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise(self, sleeps):
        service = make_service(sleeps=sleeps, fail_times=10)
        with pytest.raises(EmbeddingGenerationFailedError) as exc_info:
            await service.generate_embedding("query")

        assert exc_info.value.attempts == 3
        assert len(service._client.embeddings.calls) == 3
        assert sleeps.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_unavailable_returns_none(self, unavailable_embeddings):
        assert await unavailable_embeddings.generate_embedding("query") is None

    @pytest.mark.asyncio
    async def test_non_sdk_errors_count_toward_retries(self, sleeps):
        service = make_service(sleeps=sleeps, empty=True)
        with pytest.raises(EmbeddingGenerationFailedError):
            await service.generate_embedding("query")

        assert len(service._client.embeddings.calls) == 3
        assert sleeps.delays == [1.0, 2.0]


class TestTryGenerateEmbedding:
    @pytest.mark.asyncio
    async def test_success(self, sleeps):
        outcome = await make_service(sleeps=sleeps).try_generate_embedding("query")
        assert outcome.ok
        assert outcome.error is None
        assert isinstance(outcome.embedding, tuple)

    @pytest.mark.asyncio
    async def test_not_configured(self, unavailable_embeddings):
        outcome = await unavailable_embeddings.try_generate_embedding("query")
        assert not outcome.ok
        assert outcome.error is EmbeddingErrorKind.NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_empty_text(self, sleeps):
        outcome = await make_service(sleeps=sleeps).try_generate_embedding("")
        assert outcome.error is EmbeddingErrorKind.EMPTY_TEXT

    @pytest.mark.asyncio
    async def test_generation_failed(self, sleeps):
        outcome = await make_service(sleeps=sleeps, fail_times=10).try_generate_embedding("q")
        assert outcome.error is EmbeddingErrorKind.GENERATION_FAILED
        assert "3 attempts" in outcome.detail


class TestBatch:
    @pytest.mark.asyncio
    async def test_preserves_order(self, sleeps):
        texts = ["alpha", "beta", "gamma"]
        vectors = {text: unit_vector(i) for i, text in enumerate(texts)}
        service = make_service(sleeps=sleeps, vectors=vectors)

        results = await service.generate_embeddings_batch(texts)

        assert results == [unit_vector(0), unit_vector(1), unit_vector(2)]

    @pytest.mark.asyncio
    async def test_empty_texts_yield_none_in_place(self, sleeps):
        service = make_service(sleeps=sleeps)
        results = await service.generate_embeddings_batch(["alpha", "  ", None, "delta"])

        assert results[1] is None and results[2] is None
        assert results[0] is not None and results[3] is not None
        assert service._client.embeddings.calls[0]["input"] == ["alpha", "delta"]

    @pytest.mark.asyncio
    async def test_failing_chunk_does_not_affect_others(self, sleeps):
        texts = [f"text-{i}" for i in range(250)]
        service = make_service(sleeps=sleeps, fail_when=lambda inputs: "text-150" in inputs)

        results = await service.generate_embeddings_batch(texts)

        assert len(results) == 250
        assert all(r is not None for r in results[:100])
        assert all(r is None for r in results[100:200])
        assert all(r is not None for r in results[200:])
        # pause after chunk 1, two retries of chunk 2, pause after chunk 2
        assert sleeps.delays == [0.5, 1.0, 2.0, 0.5]

    @pytest.mark.asyncio
    async def test_unavailable_returns_all_none(self, unavailable_embeddings):
        results = await unavailable_embeddings.generate_embeddings_batch(["a", "b"])
        assert results == [None, None]

    @pytest.mark.asyncio
    async def test_no_texts(self, sleeps):
        assert await make_service(sleeps=sleeps).generate_embeddings_batch([]) == []

    @pytest.mark.asyncio
    async def test_short_response_fails_the_chunk(self, sleeps):
        service = make_service(sleeps=sleeps, empty=True)
        results = await service.generate_embeddings_batch(["alpha", "beta"])

        assert results == [None, None]
        assert len(service._client.embeddings.calls) == 3
