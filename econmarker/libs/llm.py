"""LLM utilities for creating and configuring AI agents."""


import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from openai import AsyncOpenAI
from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from econmarker.errors import ConfigurationError
from econmarker.libs.config_loader import ConfigType, get_config

LOG = logging.getLogger(__name__)

# Fix up logging level for httpx to WARNING to reduce noise
logging.getLogger("httpx").setLevel(logging.WARNING)

DEFAULT_MODEL = "gpt-4.1"


def resolve_api_key(configs: ConfigType) -> str:
    """
    Find the OpenAI API key, preferring the environment over config files.

    Raises:
        ConfigurationError: If no key is available
    """
    api_key = os.environ.get("OPENAI_API_KEY") or get_config("openai.api_key", configs, default=None)
    if not api_key:
        raise ConfigurationError("OpenAI API key not found (set OPENAI_API_KEY or openai.api_key)")
    return api_key


def create_model(configs: ConfigType, model: Optional[str] = None) -> "OpenAIModelFactory":
    """
    Create the factory for the OpenAI chat model used by the marking pipeline.

    The key is resolved here so a missing credential fails at startup, not
    on the first request.

    Args:
        configs: Configuration dictionary (required)
        model: Model name (overrides config value)

    Returns:
        OpenAIModelFactory that opens a model per call

    Raises:
        ConfigurationError: If the OpenAI API key is missing
    """
    api_key = resolve_api_key(configs)
    model_name = model or get_config("openai.model", configs, default=DEFAULT_MODEL)
    LOG.debug("Creating OpenAI chat model factory for %s", model_name)
    return OpenAIModelFactory(
        api_key=api_key,
        model_name=model_name,
        organization=get_config("openai.organization", configs, default=None),
        base_url=get_config("openai.base_url", configs, default=None),
    )


class OpenAIModelFactory:
    """
    Opens an OpenAIChatModel backed by a fresh client.

    An httpx connection pool belongs to the event loop that first used it,
    and each sync call runs in its own ``asyncio.run`` loop, so the client
    is created inside the running loop and closed when the call finishes.
    """

    def __init__(self, api_key: str, model_name: str,
                 organization: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = api_key
        self.model_name = model_name
        self.organization = organization
        self.base_url = base_url

    @asynccontextmanager
    async def open(self) -> AsyncIterator[OpenAIChatModel]:
        # No SDK-level retries; the caller decides whether to retry a request
        client = AsyncOpenAI(api_key=self.api_key, organization=self.organization,
                             base_url=self.base_url, max_retries=0)
        async with client:
            yield OpenAIChatModel(self.model_name, provider=OpenAIProvider(openai_client=client))


def create_agent(model: Model | str,
                 system_prompt: Optional[str] = None,
                 settings_dict: Optional[Dict[str, Any]] = None) -> Agent:
    """
    Create a pydantic-ai Agent that returns plain text.

    Args:
        model: Model instance (or pydantic-ai model name)
        system_prompt: System prompt for the agent (optional)
        settings_dict: Pydantic AI model settings (temperature, max_tokens, ...)

    Returns:
        Configured Agent
    """
    model_settings = ModelSettings(**settings_dict) if settings_dict else None
    if system_prompt:
        return Agent(
            model=model,
            model_settings=model_settings,
            system_prompt=system_prompt,
            output_type=str,
            retries=0,
        )
    return Agent(
        model=model,
        model_settings=model_settings,
        output_type=str,
        retries=0,
    )
