"""OpenAI embeddings service."""

import numpy as np
from openai import AsyncOpenAI, OpenAIError

from .config import config
from .errors import EmbeddingError

logger = config.get_logger(__name__)


class EmbeddingService:
    """Handles OpenAI embeddings generation."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        batch_size: int | None = None,
    ) -> None:
        """Initialize the EmbeddingService with OpenAI API key and model.

        Args:
            api_key: OpenAI API key. If None,
                reads from OPENAI_API_KEY environment variable.
            model: Embedding model name. If None, uses config.EMBEDDING_MODEL.
            timeout: Per-request timeout in seconds. If None, uses
                config.EMBEDDING_TIMEOUT.
            batch_size: Texts sent per request by ``embed_batch``. If None,
                uses config.EMBEDDING_BATCH_SIZE.
        """
        api_key = api_key or config.get_openai_api_key()
        default_headers = config.get_api_headers()
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
            timeout=timeout if timeout is not None else config.EMBEDDING_TIMEOUT,
        )
        self.model = model or config.EMBEDDING_MODEL
        self.batch_size = batch_size or config.EMBEDDING_BATCH_SIZE

    async def embed(self, text: str) -> np.ndarray:
        """Get embedding for a single text.

        Args:
            text: The input text to generate an embedding for.

        Returns:
            np.ndarray: The embedding vector for the input text.

        Raises:
            EmbeddingError: If the API call fails.
        """
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text,
            )
        except OpenAIError as exc:
            logger.exception("Error generating embedding")
            msg = f"Embedding request failed: {exc}"
            raise EmbeddingError(msg) from exc
        return np.asarray(response.data[0].embedding, dtype=np.float32)

    async def embed_batch(
        self,
        texts: list[str],
        batch_size: int | None = None,
    ) -> list[np.ndarray]:
        """Get embeddings for multiple texts in batches.

        Args:
            texts: List of input texts to generate embeddings for.
            batch_size: Number of texts to process in each batch.

        Returns:
            list[np.ndarray]: One vector per input text, in input order.

        Raises:
            EmbeddingError: If any batch fails or returns the wrong count.
        """
        batch_size = batch_size or self.batch_size
        embeddings: list[np.ndarray] = []

        for i in range(0, len(texts), batch_size):
            batch_texts = texts[i : i + batch_size]
            try:
                response = await self.client.embeddings.create(
                    model=self.model,
                    input=batch_texts,
                )
            except OpenAIError as exc:
                logger.exception("Error generating batch embeddings")
                msg = f"Batch embedding request failed: {exc}"
                raise EmbeddingError(msg) from exc

            if len(response.data) != len(batch_texts):
                msg = (
                    f"Embedding batch returned {len(response.data)} vectors "
                    f"for {len(batch_texts)} texts"
                )
                raise EmbeddingError(msg)
            embeddings.extend(
                np.asarray(data.embedding, dtype=np.float32) for data in response.data
            )
            logger.info("Generated embeddings for batch %d", i // batch_size + 1)

        return embeddings
