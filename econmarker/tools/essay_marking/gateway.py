"""Completion gateway: one call to the hosted language model per request."""

import asyncio
import logging
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, AsyncContextManager, Dict, Union

from pydantic_ai.models import Model

from econmarker.errors import GatewayError
from econmarker.libs.config_loader import ConfigType, get_config
from econmarker.libs.llm import OpenAIModelFactory, create_agent

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionOptions:
    """Decoding parameters for one completion call."""
    temperature: float
    max_output_tokens: int
    json_mode: bool = True
    timeout: float = 120.0

    def to_settings(self) -> Dict[str, Any]:
        """Translate to pydantic-ai model settings."""
        settings: Dict[str, Any] = {
            "temperature": self.temperature,
            "max_tokens": self.max_output_tokens,
            "timeout": self.timeout,
        }
        if self.json_mode:
            settings["extra_body"] = {"response_format": {"type": "json_object"}}
        return settings

    @classmethod
    def from_config(cls, section: str, configs: ConfigType, fallback: "CompletionOptions") -> "CompletionOptions":
        """Read ``<section>.*`` overrides from config, defaulting to ``fallback``."""
        return cls(
            temperature=float(get_config(f"{section}.temperature", configs, default=fallback.temperature)),
            max_output_tokens=int(get_config(f"{section}.max_output_tokens", configs,
                                             default=fallback.max_output_tokens)),
            json_mode=bool(get_config(f"{section}.json_mode", configs, default=fallback.json_mode)),
            timeout=float(get_config(f"{section}.timeout", configs, default=fallback.timeout)),
        )


# Low temperature keeps the large marking schema consistent
MARKING_OPTIONS = CompletionOptions(temperature=0.15, max_output_tokens=8000, json_mode=True, timeout=120.0)
REWRITE_OPTIONS = CompletionOptions(temperature=0.3, max_output_tokens=500, json_mode=True, timeout=60.0)


class CompletionGateway:
    """Send a system/user message pair to the model and return its raw text."""

    def __init__(self, model: Union[Model, str, OpenAIModelFactory]):
        """
        Args:
            model: pydantic-ai model (or model name) that serves completions,
                or a factory that opens one per call
        """
        self.model = model

    def _open_model(self) -> AsyncContextManager[Union[Model, str]]:
        if isinstance(self.model, OpenAIModelFactory):
            return self.model.open()
        return nullcontext(self.model)

    async def complete_async(self, system_message: str, user_message: str,
                             options: CompletionOptions) -> str:
        """
        Run one completion.

        Returns:
            The completion text, unmodified

        Raises:
            GatewayError: If the call fails, times out, or returns no text
        """
        try:
            async with self._open_model() as model:
                agent = create_agent(
                    model=model,
                    system_prompt=system_message,
                    settings_dict=options.to_settings(),
                )
                result = await asyncio.wait_for(agent.run(user_message), timeout=options.timeout)
        except asyncio.TimeoutError as e:
            LOG.error("Completion timed out after %ss", options.timeout)
            raise GatewayError(f"Completion timed out after {options.timeout}s") from e
        except Exception as e:  # pylint: disable=broad-except
            LOG.error("Completion call failed: %s: %s", type(e).__name__, e)
            raise GatewayError(f"Completion call failed: {type(e).__name__}: {e}") from e

        text = result.output
        if not isinstance(text, str) or not text.strip():
            LOG.error("Completion returned no content")
            raise GatewayError("No response from model")

        LOG.debug("Completion returned %d characters", len(text))
        return text

    def complete(self, system_message: str, user_message: str, options: CompletionOptions) -> str:
        """Synchronous wrapper for complete_async."""
        return asyncio.run(self.complete_async(system_message, user_message, options))
