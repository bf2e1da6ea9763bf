"""
Embedding providers.

Both providers expose ``async embed(model, text) -> List[float]`` and fail
with a subclass of EmbeddingProviderError. Input length is checked before
any call so an oversized chunk fails fast with an actionable message.
"""
import asyncio
from typing import List

import aiohttp

from .config import (
    EMBED_MAX_INPUT_TOKENS,
    EMBED_PROVIDER,
    EMBED_TIMEOUT_SECONDS,
    OLLAMA_URL,
)
from .errors import (
    EmbeddingProviderError,
    InputTooLongError,
    ModelNotLoadedError,
    ProviderUnreachableError,
)
from .logging_config import logger
from .tokens import count_words, tokens_for_words


def check_input_length(model: str, text: str, max_input_tokens: int) -> None:
    """Raise InputTooLongError when the token estimate exceeds the model context."""
    word_count = count_words(text)
    estimated_tokens = tokens_for_words(word_count)
    if estimated_tokens > max_input_tokens:
        logger.warning(
            "Embedding input too long",
            model=model,
            estimated_tokens=estimated_tokens,
            words=word_count,
            limit=max_input_tokens,
        )
        raise InputTooLongError(
            f"Input text is too long: approximately {estimated_tokens} tokens ({word_count} words). "
            f"Model '{model}' has a maximum context length of {max_input_tokens} tokens. "
            "Please reduce MAX_TOKENS_PER_CHUNK.",
            {"model": model, "estimated_tokens": estimated_tokens, "limit": max_input_tokens},
        )


class OllamaEmbeddingProvider:
    """Embeddings from an Ollama server (``POST /api/embeddings``)."""

    def __init__(
        self,
        base_url: str = OLLAMA_URL,
        max_input_tokens: int = EMBED_MAX_INPUT_TOKENS,
        timeout_seconds: float = EMBED_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.max_input_tokens = max_input_tokens
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def embed(self, model: str, text: str) -> List[float]:
        check_input_length(model, text, self.max_input_tokens)

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    f"{self.base_url}/api/embeddings",
                    json={"model": model, "prompt": text},
                ) as resp:
                    status = resp.status
                    data = await resp.json(content_type=None)
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise ProviderUnreachableError(
                f"Failed to connect to Ollama at {self.base_url}. "
                f"Make sure Ollama is running and the model '{model}' is loaded. Error: {e}",
                {"base_url": self.base_url, "model": model},
            ) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise EmbeddingProviderError(
                f"Invalid response from Ollama for model '{model}': {e}",
                {"model": model},
            ) from e

        error = data.get("error") if isinstance(data, dict) else None
        if error or status >= 400:
            message = str(error or f"HTTP {status}")
            if status == 404 or "not found" in message.lower():
                raise ModelNotLoadedError(
                    f"Embedding model '{model}' is not available in Ollama: {message}",
                    {"model": model, "status": status},
                )
            raise EmbeddingProviderError(
                f"Ollama API error: {message}",
                {"model": model, "status": status},
            )

        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not embedding:
            logger.error("Ollama returned no embedding", model=model)
            raise ModelNotLoadedError(
                "Ollama returned no embedding. The model might not be loaded "
                "or Ollama is not running properly.",
                {"model": model},
            )
        return [float(v) for v in embedding]


class SentenceTransformerEmbeddingProvider:
    """Local sentence-transformers model, loaded on first use."""

    def __init__(self, max_input_tokens: int = EMBED_MAX_INPUT_TOKENS):
        self.max_input_tokens = max_input_tokens
        self._models = {}

    def preload_model(self, model: str):
        """Load the embedding model ahead of the first request."""
        if model not in self._models:
            try:
                from sentence_transformers import SentenceTransformer

                logger.info("Loading embedding model", model=model)
                loaded = SentenceTransformer(
                    model,
                    tokenizer_kwargs={"clean_up_tokenization_spaces": False},
                )
                # Warm up with a test embedding
                loaded.encode(["test"], normalize_embeddings=True, show_progress_bar=False)
            except Exception as e:
                raise ModelNotLoadedError(
                    f"Failed to load embedding model '{model}': {e}", {"model": model}
                ) from e
            self._models[model] = loaded
            logger.info("Embedding model loaded", model=model)
        return self._models[model]

    async def embed(self, model: str, text: str) -> List[float]:
        check_input_length(model, text, self.max_input_tokens)
        st_model = await asyncio.to_thread(self.preload_model, model)
        try:
            vecs = await asyncio.to_thread(
                st_model.encode, [text], normalize_embeddings=True, show_progress_bar=False
            )
        except Exception as e:
            raise EmbeddingProviderError(f"Embedding failed for model '{model}': {e}", {"model": model}) from e
        return [float(v) for v in vecs[0]]


def get_embedding_provider(name: str = EMBED_PROVIDER):
    """Build the provider selected by EMBED_PROVIDER."""
    key = name.strip().lower()
    if key == "ollama":
        return OllamaEmbeddingProvider()
    if key in ("sentence-transformers", "sentence_transformers", "local"):
        return SentenceTransformerEmbeddingProvider()
    raise ValueError(f"Unknown embedding provider: {name!r}. Use 'ollama' or 'sentence-transformers'.")
