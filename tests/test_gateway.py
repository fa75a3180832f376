"""Tests for the completion gateway, using pydantic-ai's FunctionModel as the service."""

import asyncio

import pytest
from pydantic_ai.messages import ModelResponse, SystemPromptPart, TextPart, UserPromptPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from econmarker.errors import GatewayError
from econmarker.tools.essay_marking.gateway import (
    MARKING_OPTIONS,
    REWRITE_OPTIONS,
    CompletionGateway,
    CompletionOptions,
)


def _parts(messages, part_type):
    return [part.content for message in messages for part in getattr(message, "parts", [])
            if isinstance(part, part_type)]


class Recorder:
    """FunctionModel callback that records what it was sent."""

    def __init__(self, reply: str):
        self.reply = reply
        self.system = None
        self.user = None
        self.settings = None

    def __call__(self, messages, info: AgentInfo) -> ModelResponse:
        self.system = _parts(messages, SystemPromptPart)
        self.user = _parts(messages, UserPromptPart)
        self.settings = info.model_settings
        return ModelResponse(parts=[TextPart(self.reply)])


class TestCompletionOptions:

    def test_marking_defaults(self):
        assert MARKING_OPTIONS.temperature == 0.15
        assert MARKING_OPTIONS.max_output_tokens == 8000
        assert MARKING_OPTIONS.json_mode

    def test_rewrite_defaults(self):
        assert REWRITE_OPTIONS.temperature == 0.3
        assert REWRITE_OPTIONS.max_output_tokens == 500

    def test_to_settings(self):
        settings = CompletionOptions(temperature=0.2, max_output_tokens=100, timeout=5).to_settings()
        assert settings["temperature"] == 0.2
        assert settings["max_tokens"] == 100
        assert settings["timeout"] == 5
        assert settings["extra_body"] == {"response_format": {"type": "json_object"}}

    def test_to_settings_without_json_mode(self):
        settings = CompletionOptions(temperature=0.2, max_output_tokens=100, json_mode=False).to_settings()
        assert "extra_body" not in settings

    def test_from_config(self, sample_config):
        options = CompletionOptions.from_config("marking", sample_config, MARKING_OPTIONS)
        assert options.temperature == 0.1
        assert options.max_output_tokens == 6000
        assert options.timeout == 90
        assert options.json_mode is True

    def test_from_config_missing_section(self):
        assert CompletionOptions.from_config("rewrite", {}, REWRITE_OPTIONS) == REWRITE_OPTIONS


class TestCompletionGateway:

    @pytest.mark.asyncio
    async def test_returns_raw_text(self):
        recorder = Recorder('```json\n{"overallMark": 10}\n```')
        gateway = CompletionGateway(FunctionModel(recorder))

        text = await gateway.complete_async("You are an examiner.", "Mark this.", MARKING_OPTIONS)

        assert text == '```json\n{"overallMark": 10}\n```'
        assert recorder.system == ["You are an examiner."]
        assert recorder.user == ["Mark this."]

    @pytest.mark.asyncio
    async def test_decoding_parameters_passed(self):
        recorder = Recorder('{"ok": true}')
        gateway = CompletionGateway(FunctionModel(recorder))

        await gateway.complete_async("system", "user", REWRITE_OPTIONS)

        assert recorder.settings["temperature"] == 0.3
        assert recorder.settings["max_tokens"] == 500

    @pytest.mark.asyncio
    async def test_service_error_becomes_gateway_error(self):
        def failing(messages, info):
            raise ConnectionError("upstream unavailable")

        gateway = CompletionGateway(FunctionModel(failing))
        with pytest.raises(GatewayError, match="upstream unavailable"):
            await gateway.complete_async("system", "user", MARKING_OPTIONS)

    @pytest.mark.asyncio
    async def test_blank_completion_is_gateway_error(self):
        gateway = CompletionGateway(FunctionModel(Recorder("   \n")))
        with pytest.raises(GatewayError):
            await gateway.complete_async("system", "user", MARKING_OPTIONS)

    @pytest.mark.asyncio
    async def test_timeout_is_gateway_error(self):
        async def slow(messages, info):
            await asyncio.sleep(5)
            return ModelResponse(parts=[TextPart("{}")])

        options = CompletionOptions(temperature=0.1, max_output_tokens=10, timeout=0.05)
        gateway = CompletionGateway(FunctionModel(slow))
        with pytest.raises(GatewayError, match="timed out"):
            await gateway.complete_async("system", "user", options)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        started = asyncio.Event()

        async def slow(messages, info):
            started.set()
            await asyncio.sleep(5)
            return ModelResponse(parts=[TextPart("{}")])

        gateway = CompletionGateway(FunctionModel(slow))
        task = asyncio.create_task(gateway.complete_async("system", "user", MARKING_OPTIONS))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    def test_sync_wrapper(self):
        gateway = CompletionGateway(FunctionModel(Recorder('{"a": 1}')))
        assert gateway.complete("system", "user", MARKING_OPTIONS) == '{"a": 1}'
