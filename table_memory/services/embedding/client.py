"""Client for OpenAI compatible embedding APIs."""

import asyncio
import json
import math
import re
from typing import Any, List, Optional

from loguru import logger
from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from table_memory.services.embedding.config import (
    EmbeddingConfig,
    EmbeddingConfigUpdate,
    merge_config,
)
from table_memory.services.embedding.transport import AiohttpTransport, HttpTransport
from table_memory.services.errors import (
    ApiError,
    ConfigError,
    FormatError,
    InvalidArgumentError,
    NetworkError,
)
from table_memory.settings import settings

_CJK_RE = re.compile(r"[\u4e00-\u9fff]")
_LATIN_WORD_RE = re.compile(r"[A-Za-z]+")


class CostEstimate(BaseModel):
    """Advisory cost of embedding a set of texts."""

    total_texts: int
    total_tokens: int
    estimated_cost: float
    currency: str = "USD"


class EmbeddingClient:
    """Turns text into embedding vectors through a remote API."""

    PROBE_TEXT = "测试连接"
    # Pause between consecutive chunk requests, respects provider rate limits
    BATCH_PAUSE_SECONDS = 0.1

    def __init__(
        self,
        config: Optional[EmbeddingConfig] = None,
        transport: Optional[HttpTransport] = None,
        cost_per_million_tokens: float = settings.embedding_cost_per_million_tokens,
    ):
        """
        Initialize the embedding client.

        :param config: API connection and batching parameters
        :param transport: HTTP transport, an aiohttp based one is created if omitted
        :param cost_per_million_tokens: advisory price used by estimate_cost
        """
        self._config = config or EmbeddingConfig()
        self.transport = transport or AiohttpTransport(timeout=settings.embedding_timeout)
        self.cost_per_million_tokens = cost_per_million_tokens
        logger.debug(f"Initialized EmbeddingClient with model: {self._config.model}")

    def get_config(self) -> EmbeddingConfig:
        """Snapshot of the current configuration."""
        return self._config.model_copy()

    def update_config(self, update: EmbeddingConfigUpdate) -> EmbeddingConfig:
        """
        Merge a partial update into the configuration.

        :param update: fields to override
        :returns: the new configuration
        """
        self._config = merge_config(self._config, update)
        logger.info(f"Embedding config updated, model: {self._config.model}")
        return self.get_config()

    def validate_config(self) -> None:
        """
        Check that a request could be attempted at all.

        :raises ConfigError: if the API key, URL or model is missing
        """
        if not self._config.api_key:
            raise ConfigError("Embedding API key is not configured")
        if not self._config.api_url:
            raise ConfigError("Embedding API URL is not configured")
        if not self._config.model:
            raise ConfigError("Embedding model is not configured")

    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        :param text: non-empty text
        :returns: embedding vector
        """
        if not isinstance(text, str) or not text:
            raise InvalidArgumentError("Text to embed must be a non-empty string")

        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed many texts, chunked to the configured batch size.

        Chunks are requested one after another and the results keep the
        input order.

        :param texts: non-empty list of texts
        :returns: one vector per input text
        """
        if not isinstance(texts, (list, tuple)) or len(texts) == 0:
            raise InvalidArgumentError("Texts to embed must be a non-empty list")

        self.validate_config()

        batch_size = self._config.max_batch_size
        results: List[List[float]] = []
        for start in range(0, len(texts), batch_size):
            chunk = list(texts[start : start + batch_size])
            results.extend(await self._embed_chunk(chunk))

            if start + batch_size < len(texts):
                await asyncio.sleep(self.BATCH_PAUSE_SECONDS)

        return results

    async def _embed_chunk(self, texts: List[str]) -> List[List[float]]:
        """Request one chunk, retrying transport and HTTP failures."""
        config = self._config
        retrying = AsyncRetrying(
            stop=stop_after_attempt(config.retry_times),
            wait=wait_incrementing(start=config.retry_delay, increment=config.retry_delay),
            retry=retry_if_exception_type((NetworkError, ApiError)),
            before_sleep=self._log_retry,
            reraise=True,
        )

        vectors: List[List[float]] = []
        try:
            async for attempt in retrying:
                with attempt:
                    vectors = await self._request(texts)
        except (NetworkError, ApiError) as e:
            raise ApiError(
                f"Embedding request failed after {config.retry_times} attempts: {e}",
                status=getattr(e, "status", None),
                body=getattr(e, "body", None),
                cause=e,
            ) from e

        return vectors

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.bind(attempt=retry_state.attempt_number, retry_wait=wait).warning(
            f"Embedding API request failed "
            f"(attempt {retry_state.attempt_number}/{self._config.retry_times}), "
            f"retrying in {wait:.2f}s: {error}"
        )

    async def _request(self, texts: List[str]) -> List[List[float]]:
        """Issue a single embeddings request, no retries."""
        config = self._config
        headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": config.model,
            "input": texts,
            "encoding_format": "float",
        }

        response = await self.transport.post_json(config.embeddings_url, payload, headers)
        if not 200 <= response.status < 300:
            raise ApiError(
                f"Embedding API returned {response.status}: {response.text[:200]}",
                status=response.status,
                body=response.text,
            )

        return self._parse_embeddings(response.text, expected=len(texts))

    @staticmethod
    def _parse_embeddings(text: str, expected: int) -> List[List[float]]:
        try:
            body: Any = json.loads(text)
        except ValueError as e:
            raise FormatError(f"Embedding API returned invalid JSON: {e}") from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise FormatError("Embedding API response is missing the 'data' array")

        if len(data) != expected:
            raise FormatError(
                f"Embedding API returned {len(data)} embeddings for {expected} inputs"
            )

        vectors = []
        for item in data:
            embedding = item.get("embedding") if isinstance(item, dict) else None
            if not isinstance(embedding, list):
                raise FormatError("Embedding API response item has no 'embedding' list")
            vectors.append([float(value) for value in embedding])

        return vectors

    async def test_connection(self) -> bool:
        """
        Embed a short test text.

        :returns: True if the API answered with an embedding
        """
        try:
            await self.embed(self.PROBE_TEXT)
            logger.info("Embedding API connection succeeded")
            return True
        except Exception as e:
            logger.error(f"Embedding API connection failed: {e}")
            return False

    def estimate_tokens(self, text: str) -> int:
        """
        Rough token count for cost display.

        CJK ideographs count as one token, latin words as 1.3 tokens and
        every other character as half a token.

        :param text: text to estimate
        :returns: estimated token count, rounded up
        """
        cjk_count = len(_CJK_RE.findall(text))
        latin_words = _LATIN_WORD_RE.findall(text)
        latin_chars = sum(len(word) for word in latin_words)
        other_count = len(text) - cjk_count - latin_chars

        total = cjk_count + len(latin_words) * 1.3 + other_count * 0.5
        # Rounding first keeps float noise like 13.000000000000002 from adding a token
        return math.ceil(round(total, 6))

    def estimate_cost(self, texts: List[str]) -> CostEstimate:
        """
        Advisory cost of embedding ``texts``.

        :param texts: texts that would be embedded
        :returns: token and cost estimate
        """
        total_tokens = sum(self.estimate_tokens(text) for text in texts)
        return CostEstimate(
            total_texts=len(texts),
            total_tokens=total_tokens,
            estimated_cost=total_tokens / 1_000_000 * self.cost_per_million_tokens,
        )

    async def close(self) -> None:
        """Release the HTTP transport."""
        await self.transport.close()
