"""LLM client creation factory.

This module provides a centralized way to create async LLM clients (Anthropic,
OpenAI) to ensure consistent configuration of API keys, base URLs, and timeouts.
"""

import os
from typing import Any, Optional

from anthropic import AsyncAnthropic
from loguru import logger
from openai import AsyncOpenAI

from lorekeeper.errors import ProviderError


def _mask(key: Optional[str]) -> str:
    return f"{key[:4]}...{key[-4:]}" if key and len(key) > 8 else "None"


def create_anthropic_client(
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
    max_retries: int = 2,
    **kwargs: Any,
) -> AsyncAnthropic:
    """Create and configure an async Anthropic client.

    Args:
        api_key: The API key. If None, uses ANTHROPIC_API_KEY.
        base_url: Optional base URL override.
        timeout: Request timeout in seconds.
        max_retries: Number of retries.
        **kwargs: Additional arguments to pass to the AsyncAnthropic constructor.

    Raises:
        ProviderError: If no API key is configured.
    """
    final_api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
    if not final_api_key:
        raise ProviderError("ANTHROPIC_API_KEY is not configured")

    logger.debug(
        f"Creating Anthropic client: base_url={base_url}, "
        f"api_key={_mask(final_api_key)}, timeout={timeout}"
    )

    client_kwargs: dict[str, Any] = {"api_key": final_api_key, "max_retries": max_retries}
    if base_url:
        client_kwargs["base_url"] = base_url
    if timeout is not None:
        client_kwargs["timeout"] = timeout
    return AsyncAnthropic(**client_kwargs, **kwargs)


def create_openai_client(
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
    max_retries: int = 2,
    **kwargs: Any,
) -> AsyncOpenAI:
    """Create and configure an async OpenAI client.

    Args:
        api_key: The API key. If None, tries env var or defaults.
        base_url: The base URL. If None, tries env var.
        timeout: Request timeout in seconds.
        max_retries: Number of retries.
        **kwargs: Additional arguments to pass to the AsyncOpenAI constructor.

    Returns:
        Configured AsyncOpenAI client.
    """
    final_api_key = api_key or os.getenv("OPENAI_API_KEY")
    final_base_url = base_url or os.getenv("OPENAI_BASE_URL")

    logger.debug(
        f"Creating OpenAI client: base_url={final_base_url}, "
        f"api_key={_mask(final_api_key)}, timeout={timeout}"
    )

    return AsyncOpenAI(
        api_key=final_api_key,
        base_url=final_base_url,
        timeout=timeout,
        max_retries=max_retries,
        **kwargs,
    )
