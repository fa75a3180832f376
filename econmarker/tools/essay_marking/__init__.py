"""Essay marking tool: prompt an LLM to mark economics essays and validate its answer."""

from .gateway import CompletionGateway, CompletionOptions, MARKING_OPTIONS, REWRITE_OPTIONS
from .mark_scheme import MarkScheme, resolve_scheme
from .marker import EssayMarker, create_essay_marker
from .models import MarkingRequest, MarkingResult, RewriteRequest, SentenceRewrite

__all__ = [
    'CompletionGateway',
    'CompletionOptions',
    'EssayMarker',
    'MARKING_OPTIONS',
    'MarkScheme',
    'MarkingRequest',
    'MarkingResult',
    'REWRITE_OPTIONS',
    'RewriteRequest',
    'SentenceRewrite',
    'create_essay_marker',
    'resolve_scheme',
]
