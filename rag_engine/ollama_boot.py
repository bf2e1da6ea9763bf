"""
Makes sure the Ollama embedding model is available at startup.
"""
import time
import asyncio
import aiohttp

from .config import EMBED_MODEL, OLLAMA_URL
from .logging_config import logger


async def _ollama_up(base_url: str = OLLAMA_URL, timeout_sec: int = 60) -> bool:
    """Wait until Ollama /api/tags is reachable (up to timeout_sec)."""
    deadline = time.time() + timeout_sec
    async with aiohttp.ClientSession() as session:
        while time.time() < deadline:
            try:
                async with session.get(f"{base_url}/api/tags", timeout=aiohttp.ClientTimeout(total=3)) as r:
                    if r.ok:
                        return True
            except (aiohttp.ClientError, asyncio.TimeoutError):
                pass
            await asyncio.sleep(1.0)
    return False


async def _has_model(name: str, base_url: str = OLLAMA_URL) -> bool:
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(f"{base_url}/api/tags", timeout=aiohttp.ClientTimeout(total=5)) as r:
                r.raise_for_status()
                data = await r.json()
                tags = data.get("models", [])
                return any((m.get("name") or "").startswith(name) for m in tags)
    except (aiohttp.ClientError, asyncio.TimeoutError):
        return False


async def _pull_model(name: str, base_url: str = OLLAMA_URL):
    """
    Ask Ollama to pull the model. Non-streaming: blocks until Ollama reports
    success for the pull request itself.
    """
    async with aiohttp.ClientSession() as session:
        async with session.post(
            f"{base_url}/api/pull",
            json={"name": name, "stream": False},
            timeout=aiohttp.ClientTimeout(total=600),  # 10 min
        ) as r:
            r.raise_for_status()


async def ensure_embedding_model(model: str = EMBED_MODEL, base_url: str = OLLAMA_URL, wait_sec: int = 90) -> bool:
    """
    Pull the embedding model if Ollama does not have it yet.

    Never raises: the API still starts when Ollama is down, and ingestion
    then reports ProviderUnreachableError per request.

    Returns:
        True if the model is available
    """
    if not await _ollama_up(base_url, timeout_sec=wait_sec):
        logger.warning("Ollama not reachable; skipping embedding model pull", base_url=base_url)
        return False

    if await _has_model(model, base_url):
        logger.info("Embedding model present", model=model)
        return True

    logger.info("Pulling missing embedding model", model=model)
    try:
        await _pull_model(model, base_url)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error("Failed to pull embedding model", model=model, error=str(e))
        return False

    logger.info("Embedding model pulled", model=model)
    return True
