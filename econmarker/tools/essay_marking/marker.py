"""Top-level entry points: mark an essay, rewrite a sentence."""

import asyncio
import logging
from typing import Any, Optional

from pydantic import ValidationError

from econmarker.errors import RequestValidationError
from econmarker.libs.config_loader import ConfigType
from econmarker.libs.llm import create_model
from .extractor import extract_marking_result, extract_sentence_rewrite
from .gateway import MARKING_OPTIONS, REWRITE_OPTIONS, CompletionGateway, CompletionOptions
from .models import MarkingRequest, MarkingResult, RewriteRequest, SentenceRewrite
from .prompts import build_marking_prompt, build_rewrite_prompt

LOG = logging.getLogger(__name__)


def _validation_message(error: ValidationError) -> str:
    """First validation problem, phrased for the end user."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "request"
    if first.get("type") == "missing":
        return f"{field} is required"
    message = first.get("msg", "invalid value")
    return message.removeprefix("Value error, ")


class EssayMarker:
    """Mark essays (and rewrite sentences) through a completion gateway."""

    def __init__(self, gateway: CompletionGateway,
                 marking_options: CompletionOptions = MARKING_OPTIONS,
                 rewrite_options: CompletionOptions = REWRITE_OPTIONS):
        """
        Args:
            gateway: Gateway used for every completion call
            marking_options: Decoding parameters for marking calls
            rewrite_options: Decoding parameters for rewrite calls
        """
        self.gateway = gateway
        self.marking_options = marking_options
        self.rewrite_options = rewrite_options

    async def mark_essay_async(self, question: Any, marks: Any, essay: Any,
                               extract_text: Optional[str] = None) -> MarkingResult:
        """
        Mark one essay.

        Args:
            question: Essay question
            marks: Total marks for the question
            essay: Candidate essay
            extract_text: Optional extract / case study text

        Returns:
            Normalized MarkingResult

        Raises:
            RequestValidationError: If question, marks or essay is missing or invalid
            GatewayError: If the completion call fails or returns nothing
            ParseError: If the completion cannot be turned into a result
        """
        try:
            request = MarkingRequest(question=question, marks=marks, essay=essay, extract_text=extract_text)
        except ValidationError as e:
            raise RequestValidationError(_validation_message(e)) from e

        LOG.info("Marking essay: %d characters, %d marks, extract=%s",
                 len(request.essay), request.marks, bool(request.extract_text))

        prompt = build_marking_prompt(request.question, request.marks, request.essay, request.extract_text)
        raw_text = await self.gateway.complete_async(prompt.system_message, prompt.user_message,
                                                     self.marking_options)
        result = extract_marking_result(raw_text, request)

        LOG.info("Marking complete: %g/%d (%.1f%%), %d warnings", result.overall_mark, result.total_marks,
                 result.percentage, len(result.validation_warnings))
        return result

    def mark_essay(self, question: Any, marks: Any, essay: Any,
                   extract_text: Optional[str] = None) -> MarkingResult:
        """Synchronous wrapper for mark_essay_async."""
        return asyncio.run(self.mark_essay_async(question, marks, essay, extract_text))

    async def rewrite_sentence_async(self, sentence: Any, question: Any,
                                     context: Optional[str] = None,
                                     role: Optional[str] = None,
                                     marks: Any = None) -> SentenceRewrite:
        """
        Rewrite one weak sentence so it would score higher.

        Raises:
            RequestValidationError: If sentence or question is missing
            GatewayError: If the completion call fails or returns nothing
            ParseError: If the completion has no usable rewrite
        """
        try:
            request = RewriteRequest(sentence=sentence, question=question, context=context,
                                     role=role, marks=marks)
        except ValidationError as e:
            raise RequestValidationError(_validation_message(e)) from e

        LOG.info("Rewriting %s sentence (%d characters)", request.role, len(request.sentence))
        prompt = build_rewrite_prompt(request.sentence, request.question, request.context,
                                      request.role, request.marks)
        raw_text = await self.gateway.complete_async(prompt.system_message, prompt.user_message,
                                                     self.rewrite_options)
        return extract_sentence_rewrite(raw_text, request)

    def rewrite_sentence(self, sentence: Any, question: Any,
                         context: Optional[str] = None,
                         role: Optional[str] = None,
                         marks: Any = None) -> SentenceRewrite:
        """Synchronous wrapper for rewrite_sentence_async."""
        return asyncio.run(self.rewrite_sentence_async(sentence, question, context, role, marks))


def create_essay_marker(configs: ConfigType, model: Optional[str] = None) -> EssayMarker:
    """
    Wire config -> OpenAI model -> gateway -> marker.

    Args:
        configs: Configuration dictionary (required)
        model: Model name (overrides config value)

    Raises:
        ConfigurationError: If no OpenAI API key is configured
    """
    gateway = CompletionGateway(create_model(configs, model=model))
    return EssayMarker(
        gateway,
        marking_options=CompletionOptions.from_config("marking", configs, MARKING_OPTIONS),
        rewrite_options=CompletionOptions.from_config("rewrite", configs, REWRITE_OPTIONS),
    )
