"""Recover structured marking results from raw model output.

The model is an untrusted producer: its text may be wrapped in code fences
or prose, its echoed totals may be wrong, and optional collections may be
missing. Everything here re-derives or re-validates what it can and only
fails (with ParseError) when no usable JSON object can be found.
"""

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from econmarker.errors import ParseError
from .models import (
    AnalysisChain,
    AoBreakdown,
    ExtractApplication,
    ExtractDataPoint,
    HighlightSpan,
    MarkingRequest,
    MarkingResult,
    ParagraphMeta,
    RewriteRequest,
    SentenceHighlight,
    SentenceRewrite,
)

LOG = logging.getLogger(__name__)

PREVIEW_CHARS = 500
AO_NAMES = ("knowledge", "application", "analysis", "evaluation")
IMPROVEMENT_TYPES = ("analysis", "application", "evaluation", "clarity")

CODE_FENCE = re.compile(r"```(?:json|JSON)?[ \t]*\n?")
OUTERMOST_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

# Collections that must always be present (possibly empty) on a result
LIST_FIELDS: Dict[str, Optional[Type[BaseModel]]] = {
    "strengths": None,
    "improvements": None,
    "sentenceHighlights": SentenceHighlight,
    "analysisChains": AnalysisChain,
    "paragraphs": ParagraphMeta,
    "sentenceRewrites": SentenceRewrite,
}


def preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    """Shorten ``text`` for logs and error messages."""
    return text if len(text) <= limit else text[:limit] + "..."


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers (```json ... ```)."""
    return CODE_FENCE.sub("", text).strip()


def find_balanced_object(text: str) -> Optional[str]:
    """
    Return the JSON object starting at the first '{' by brace-depth counting.

    Braces inside JSON string literals are ignored. Returns None if there is
    no '{' or the object never closes.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def extract_json_text(raw_text: str) -> str:
    """
    Isolate the JSON object in raw model output.

    Tries brace-depth scanning on the text with code fences stripped, then on
    the original text, then a greedy match of the outermost {...} span.

    Raises:
        ParseError: If no JSON object can be located
    """
    if not isinstance(raw_text, str) or "{" not in raw_text:
        raise ParseError("No JSON object found in model output", raw_preview=preview(str(raw_text)))

    cleaned = strip_code_fences(raw_text)
    for candidate in (cleaned, raw_text):
        found = find_balanced_object(candidate)
        if found:
            return found

    match = OUTERMOST_OBJECT.search(cleaned)
    if match:
        LOG.debug("Brace scan failed, falling back to outermost {...} match")
        return match.group()

    raise ParseError("No complete JSON object found in model output", raw_preview=preview(raw_text))


def parse_json_object(raw_text: str) -> Dict[str, Any]:
    """
    Extract and decode the JSON object in raw model output.

    Raises:
        ParseError: If no object is found or it does not decode to a dict
    """
    json_text = extract_json_text(raw_text)
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        LOG.error("Invalid JSON in model output: %s; preview: %s", e, preview(raw_text))
        raise ParseError(f"Invalid JSON in model output: {e}", raw_preview=preview(raw_text)) from e
    if not isinstance(data, dict):
        raise ParseError("Model output is not a JSON object", raw_preview=preview(raw_text))
    return data


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, str)):
        try:
            return math.isfinite(float(value))
        except (ValueError, OverflowError):
            # OverflowError: integers too large for a float
            return False
    return False


def _check_shape(data: Dict[str, Any], raw_text: str) -> None:
    """Reject payloads that decode but lack the scores everything else depends on."""
    problems = []
    if not _is_number(data.get("overallMark")):
        problems.append("overallMark must be a number")

    breakdown = data.get("aoBreakdown")
    if not isinstance(breakdown, dict):
        problems.append("aoBreakdown must be an object")
    else:
        for name in AO_NAMES:
            ao = breakdown.get(name)
            if not isinstance(ao, dict):
                problems.append(f"aoBreakdown.{name} is missing")
            elif not (_is_number(ao.get("score")) and _is_number(ao.get("total"))):
                problems.append(f"aoBreakdown.{name} needs numeric score and total")

    if problems:
        LOG.error("Model output failed schema check: %s", "; ".join(problems))
        raise ParseError("Model output does not match the marking schema: " + "; ".join(problems),
                         raw_preview=preview(raw_text))


def _validate_items(items: Any, model: Optional[Type[BaseModel]], field: str,
                    warnings: List[str]) -> List[Any]:
    """Validate each element of a collection, dropping the ones that don't fit."""
    if items is None:
        return []
    if not isinstance(items, list):
        warnings.append(f"{field} was not a list and was ignored")
        return []

    kept = []
    for i, item in enumerate(items):
        if model is None:
            if isinstance(item, str) and item.strip():
                kept.append(item)
            elif item is not None:
                warnings.append(f"{field}[{i}] is not text and was dropped")
            continue
        try:
            kept.append(model.model_validate(item))
        except ValidationError as e:
            warnings.append(f"{field}[{i}] is malformed and was dropped ({e.error_count()} errors)")
    return kept


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def compute_percentage(overall_mark: float, total_marks: int) -> float:
    """overall/total as a percentage, rounded half-up to one decimal place."""
    return math.floor(overall_mark / total_marks * 1000 + 0.5) / 10


def _soft_checks(result: MarkingResult, essay: str) -> List[str]:
    """Inconsistencies worth flagging that must not block the result."""
    warnings = []
    for name in AO_NAMES:
        ao = getattr(result.ao_breakdown, name)
        if ao.score > ao.total:
            warnings.append(f"{name} score {ao.score:g} exceeds its total {ao.total:g}")
        if ao.score < 0:
            warnings.append(f"{name} score {ao.score:g} is negative")

    if not 0 <= result.overall_mark <= result.total_marks:
        warnings.append(f"overallMark {result.overall_mark:g} is outside 0-{result.total_marks}")

    for i, highlight in enumerate(result.sentence_highlights):
        text = highlight.text.strip()
        if not text:
            warnings.append(f"sentenceHighlights[{i}] has no text")
        elif text not in essay:
            warnings.append(f"sentenceHighlights[{i}] text not found in essay")
    return warnings


def extract_marking_result(raw_text: str, request: MarkingRequest) -> MarkingResult:
    """
    Parse, normalize and validate a marking completion.

    Args:
        raw_text: Raw completion text
        request: The request that produced it

    Returns:
        MarkingResult with totalMarks/percentage re-derived and every
        collection present

    Raises:
        ParseError: If no well-formed marking object can be recovered
    """
    data = parse_json_object(raw_text)
    _check_shape(data, raw_text)

    warnings: List[str] = []
    fields: Dict[str, Any] = {
        "overallMark": float(data["overallMark"]),
        # Never trust the echoed allocation
        "totalMarks": request.marks,
        "level": _text(data.get("level")),
        "gradeEstimate": _text(data.get("gradeEstimate")),
        "overallFeedback": _text(data.get("overallFeedback")),
        "nextSteps": _text(data.get("nextSteps")),
    }
    try:
        fields["aoBreakdown"] = AoBreakdown.model_validate(data["aoBreakdown"])
    except ValidationError as e:
        raise ParseError(f"Invalid aoBreakdown: {e}", raw_preview=preview(raw_text)) from e

    for field, model in LIST_FIELDS.items():
        fields[field] = _validate_items(data.get(field), model, field, warnings)

    if request.extract_text:
        fields["extractDataPoints"] = _validate_items(
            data.get("extractDataPoints"), ExtractDataPoint, "extractDataPoints", warnings)
        application = data.get("extractApplication")
        if application is not None:
            try:
                fields["extractApplication"] = ExtractApplication.model_validate(application)
            except ValidationError:
                warnings.append("extractApplication is malformed and was dropped")
    elif data.get("extractDataPoints") or data.get("extractApplication"):
        LOG.debug("Dropping extract fields returned for a request without an extract")

    chain_ids = [chain.id for chain in fields["analysisChains"]]
    if len(chain_ids) != len(set(chain_ids)):
        warnings.append("analysisChains contains duplicate ids")

    try:
        fields["percentage"] = compute_percentage(fields["overallMark"], request.marks)
    except OverflowError as e:
        raise ParseError(f"overallMark {fields['overallMark']:g} is out of range",
                         raw_preview=preview(raw_text)) from e
    try:
        result = MarkingResult.model_validate(fields)
    except ValidationError as e:
        raise ParseError(f"Marking output could not be assembled: {e}", raw_preview=preview(raw_text)) from e

    warnings.extend(_soft_checks(result, request.essay))
    if warnings:
        for warning in warnings:
            LOG.warning("Marking output: %s", warning)
        result.validation_warnings = warnings

    return result


def extract_sentence_rewrite(raw_text: str, request: RewriteRequest) -> SentenceRewrite:
    """
    Parse a rewrite completion into a SentenceRewrite.

    The original sentence always comes from the request, not the model.

    Raises:
        ParseError: If no rewrite object with rewrittenText can be recovered
    """
    data = parse_json_object(raw_text)

    improvement = data.get("improvementType")
    if not isinstance(improvement, str) or improvement.strip().lower() not in IMPROVEMENT_TYPES:
        LOG.warning("Unknown improvementType %r, using 'clarity'", improvement)
        improvement = "clarity"

    try:
        return SentenceRewrite.model_validate({
            "originalText": request.sentence,
            "rewrittenText": _text(data.get("rewrittenText")).strip(),
            "improvementType": improvement,
            "explanation": _text(data.get("explanation")),
            "impactOnMark": data.get("impactOnMark") or "",
        })
    except ValidationError as e:
        LOG.error("Rewrite output unusable: %s; preview: %s", e, preview(raw_text))
        raise ParseError(f"Rewrite output missing rewrittenText: {e}", raw_preview=preview(raw_text)) from e


def locate_highlights(essay: str, highlights: List[SentenceHighlight]) -> List[HighlightSpan]:
    """
    Find where each highlight sits in the essay.

    Highlights whose text does not appear verbatim (the model paraphrased)
    are skipped so they can simply be rendered without a span.
    """
    spans = []
    for highlight in highlights:
        text = highlight.text.strip()
        if not text:
            continue
        start = essay.find(text)
        if start == -1:
            LOG.debug("Highlight not found in essay: %s", preview(text, 80))
            continue
        spans.append(HighlightSpan(start, start + len(text), highlight))
    return sorted(spans, key=lambda span: span.start)
