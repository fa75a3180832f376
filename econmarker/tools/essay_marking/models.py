"""Pydantic models for essay marking requests and results."""

import json
from typing import Any, Dict, List, Literal, NamedTuple, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Quality = Literal["strong", "adequate", "weak"]
HighlightRole = Literal["analysis", "application", "knowledge", "evaluation", "setup", "misconception"]
ParagraphFunction = Literal["Knowledge", "Application", "Analysis", "Evaluation", "Setup", "Mixed"]
DataPointCategory = Literal["statistic", "context", "stakeholder", "policy", "other"]
Relevance = Literal["high", "medium", "low"]
ImprovementType = Literal["analysis", "application", "evaluation", "clarity"]


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Requests ---

def _required_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} is required")
    return value.strip()


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("must be text")
    return value.strip() or None


def _positive_marks(value: Any) -> int:
    """Accept ints, integral floats and numeric strings; reject everything else."""
    if isinstance(value, bool) or value is None:
        raise ValueError("marks must be a positive whole number")
    if isinstance(value, str):
        value = value.strip()
        try:
            value = float(value)
        except ValueError:
            raise ValueError("marks must be a positive whole number") from None
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("marks must be a positive whole number")
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise ValueError("marks must be a positive whole number")
    return value


class MarkingRequest(CamelModel):
    """A student's essay submitted for marking."""
    question: str = Field(description="Essay question")
    marks: int = Field(description="Total marks available for the question")
    essay: str = Field(description="Candidate essay text")
    extract_text: Optional[str] = Field(default=None, description="Optional extract / case study text")

    @field_validator("question", mode="before")
    @classmethod
    def check_question(cls, value: Any) -> str:
        return _required_text(value, "question")

    @field_validator("essay", mode="before")
    @classmethod
    def check_essay(cls, value: Any) -> str:
        return _required_text(value, "essay")

    @field_validator("marks", mode="before")
    @classmethod
    def check_marks(cls, value: Any) -> int:
        return _positive_marks(value)

    @field_validator("extract_text", mode="before")
    @classmethod
    def check_extract(cls, value: Any) -> Optional[str]:
        return _optional_text(value)


class RewriteRequest(CamelModel):
    """A single weak sentence to be rewritten."""
    sentence: str = Field(description="Sentence to improve")
    question: str = Field(description="Essay question the sentence answers")
    context: Optional[str] = Field(default=None, description="Surrounding essay text")
    role: str = Field(default="analysis", description="Role the sentence plays in the essay")
    marks: int = Field(default=25, description="Total marks for the question")

    @field_validator("sentence", mode="before")
    @classmethod
    def check_sentence(cls, value: Any) -> str:
        return _required_text(value, "sentence")

    @field_validator("question", mode="before")
    @classmethod
    def check_question(cls, value: Any) -> str:
        return _required_text(value, "question")

    @field_validator("context", mode="before")
    @classmethod
    def check_context(cls, value: Any) -> Optional[str]:
        return _optional_text(value)

    @field_validator("role", mode="before")
    @classmethod
    def check_role(cls, value: Any) -> str:
        return _optional_text(value) or "analysis"

    @field_validator("marks", mode="before")
    @classmethod
    def check_marks(cls, value: Any) -> int:
        return 25 if value is None else _positive_marks(value)


# --- Result components ---

class AoScore(CamelModel):
    """Score for one assessment objective."""
    score: float = Field(description="Marks awarded")
    total: float = Field(description="Marks available")
    feedback: str = Field(default="", description="Examiner feedback for this objective")

    @field_validator("feedback", mode="before")
    @classmethod
    def blank_if_missing(cls, value: Any) -> Any:
        return "" if value is None else value


class AoBreakdown(CamelModel):
    knowledge: AoScore
    application: AoScore
    analysis: AoScore
    evaluation: AoScore


class SentenceHighlight(CamelModel):
    """A sentence picked out of the essay with examiner feedback."""
    text: str = Field(description="Sentence text, ideally verbatim from the essay")
    role: HighlightRole = Field(validation_alias=AliasChoices("role", "ao"))
    quality: Quality
    feedback: str = ""
    chain_id: Optional[int] = None
    paragraph_index: Optional[int] = None
    sentence_index: Optional[int] = None

    normalize_enums = field_validator("role", "quality", mode="before")(_lower)


class AnalysisChain(CamelModel):
    """A chain of linked reasoning steps found in the essay."""
    id: int
    chain: List[str] = Field(min_length=1)
    quality: Quality
    feedback: str = ""
    application_integrated: Optional[bool] = None
    paragraph_index: Optional[int] = None

    normalize_enums = field_validator("quality", mode="before")(_lower)

    @field_validator("chain", mode="before")
    @classmethod
    def flatten_steps(cls, value: Any) -> Any:
        # Steps sometimes arrive as {"step": ..., "type": ...}
        if isinstance(value, str):
            return [value]
        if isinstance(value, list):
            return [item.get("step", "") if isinstance(item, dict) else item for item in value]
        return value


class ParagraphMeta(CamelModel):
    """What one paragraph of the essay does."""
    index: int
    function: ParagraphFunction
    summary: str = ""
    chains_found: List[int] = Field(default_factory=list)
    application_used: List[str] = Field(default_factory=list)
    missing_application: List[str] = Field(default_factory=list)
    raw_text: Optional[str] = None

    @field_validator("function", mode="before")
    @classmethod
    def capitalize(cls, value: Any) -> Any:
        return value.strip().capitalize() if isinstance(value, str) else value

    @field_validator("chains_found", mode="after")
    @classmethod
    def dedupe(cls, value: List[int]) -> List[int]:
        return list(dict.fromkeys(value))


class ExtractReference(CamelModel):
    text: str
    paragraph_index: Optional[int] = None
    sentence_index: Optional[int] = None


class ExtractApplication(CamelModel):
    """How the essay used (or ignored) the supplied extract."""
    used: List[ExtractReference] = Field(default_factory=list)
    unused_but_relevant: List[ExtractReference] = Field(default_factory=list)

    @field_validator("used", "unused_but_relevant", mode="before")
    @classmethod
    def wrap_strings(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"text": item} if isinstance(item, str) else item for item in value]
        return value


class StudentUsage(CamelModel):
    used: bool
    usage_quality: Optional[Quality] = None
    sentence_ids: Optional[List[str]] = None
    potential_impact: Optional[str] = None

    normalize_enums = field_validator("usage_quality", mode="before")(_lower)

    @field_validator("sentence_ids", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) for item in value]
        return value


class ExtractDataPoint(CamelModel):
    """A piece of data from the extract and whether the student used it."""
    id: str
    text: str
    category: DataPointCategory
    relevance: Relevance
    student_usage: StudentUsage

    normalize_enums = field_validator("category", "relevance", mode="before")(_lower)

    @field_validator("id", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class SentenceRewrite(CamelModel):
    """An improved version of a weak sentence."""
    original_text: str = ""
    rewritten_text: str = Field(min_length=1)
    improvement_type: ImprovementType = "clarity"
    explanation: str = ""
    impact_on_mark: str = ""

    normalize_enums = field_validator("improvement_type", mode="before")(_lower)

    @field_validator("impact_on_mark", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> Any:
        # "+1" sometimes comes back as the number 1
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return f"+{value:g}" if value > 0 else f"{value:g}"
        return value


class MarkingResult(CamelModel):
    """Complete marking result for one essay."""
    overall_mark: float = Field(description="Marks awarded overall")
    total_marks: int = Field(description="Marks available (always the requested allocation)")
    percentage: float = Field(default=0.0, description="overall_mark / total_marks, one decimal place")
    level: str = ""
    grade_estimate: str = ""
    ao_breakdown: AoBreakdown
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    overall_feedback: str = ""
    next_steps: str = ""
    sentence_highlights: List[SentenceHighlight] = Field(default_factory=list)
    analysis_chains: List[AnalysisChain] = Field(default_factory=list)
    paragraphs: List[ParagraphMeta] = Field(default_factory=list)
    extract_application: Optional[ExtractApplication] = None
    extract_data_points: Optional[List[ExtractDataPoint]] = None
    sentence_rewrites: List[SentenceRewrite] = Field(default_factory=list)
    validation_warnings: List[str] = Field(
        default_factory=list,
        description="Inconsistencies found in the model output that did not block the result"
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a camelCase, JSON-ready dictionary."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_feedback_record(self) -> Dict[str, Any]:
        """Flatten to the row stored alongside each essay."""
        ao = self.ao_breakdown
        return {
            'ao1_score': ao.knowledge.score,
            'ao2_score': ao.application.score,
            'ao3_score': ao.analysis.score,
            'ao4_score': ao.evaluation.score,
            'total_score': self.overall_mark,
            'grade_prediction': self.grade_estimate,
            'overall_feedback': json.dumps(self.to_dict()),
        }


class HighlightSpan(NamedTuple):
    """Location of a highlight inside the essay text."""
    start: int
    end: int
    highlight: SentenceHighlight
