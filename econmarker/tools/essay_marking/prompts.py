"""Prompt templates for essay marking and sentence rewriting.

The language model executes these instructions, so every marking rule that
matters (workflow order, level bands, which sentences to highlight) is spelled
out in the prompt text itself. Both builders are pure functions of their
inputs.
"""

import json
from typing import Any, Dict, List, NamedTuple, Optional

from .mark_scheme import Band, MarkScheme, resolve_scheme


class PromptPair(NamedTuple):
    """System persona plus user instruction for one completion call."""
    system_message: str
    user_message: str


MARKING_SYSTEM_MESSAGE = (
    "You are a fair but rigorous Edexcel A-Level Economics examiner. You read each "
    "paragraph as a complete unit before judging its sentences, you reward good work, "
    "and you give specific, constructive feedback. Follow the workflow exactly and "
    "return ONLY a single valid JSON object."
)

REWRITE_SYSTEM_MESSAGE = (
    "You are an expert economics teacher helping students improve their writing. "
    "Return only valid JSON."
)

HIGHLIGHT_RULE = (
    "Highlight ONLY sentences that contain a chain element, an application example, "
    "a missed application opportunity, a misconception, or genuine improvement potential. "
    "NEVER highlight pure signposting or setup sentences that are contextually fine once "
    "the full paragraph is read."
)

MIN_HIGHLIGHTS = 10
MAX_HIGHLIGHTS = 15
MIN_CHAIN_LINKS = 3
STRONG_CHAIN_LINKS = 5

LEVEL_DESCRIPTORS = {
    4: [
        "Detailed, accurate knowledge",
        "Strong, specific application to the question and context",
        f"Sustained analysis with {STRONG_CHAIN_LINKS}+ link chains",
        "Evaluation with supported, justified judgements",
    ],
    3: [
        "Good knowledge, mostly accurate",
        "Adequate application (may be somewhat generic)",
        f"Clear analysis with {MIN_CHAIN_LINKS}-{STRONG_CHAIN_LINKS - 1} link chains",
        "Some evaluation that may lack full depth",
    ],
    2: [
        "Limited knowledge with some gaps",
        "Weak application, mostly generic",
        "Basic analysis with 1-2 link chains",
        "Minimal evaluation",
    ],
    1: [
        "Fragmented or incorrect knowledge",
        "No real application",
        "No chains of reasoning",
        "No evaluation",
    ],
}


def _format_bands(bands: List[Band], with_descriptors: bool = False) -> str:
    lines = []
    for band in bands:
        lines.append(f"- {band.describe()}")
        if with_descriptors:
            lines.extend(f"    * {d}" for d in LEVEL_DESCRIPTORS[band.level])
    return "\n".join(lines)


def _workflow(scheme: MarkScheme, has_extract: bool) -> str:
    steps = [
        "Read the ENTIRE essay before judging anything.",
        "Split the essay into paragraphs (paragraph indexes start at 0).",
        "Classify each paragraph's main function as Knowledge, Application, Analysis, "
        "Evaluation, Setup or Mixed, and summarise it in one sentence. Record the "
        "application used and any missed application opportunities.",
        f"Extract the reasoning chains: a chain needs at least {MIN_CHAIN_LINKS} linked steps "
        f"to count as adequate and {STRONG_CHAIN_LINKS}+ to count as strong; 1-2 links is weak. "
        "Report the 2-4 most important chains with unique ids and note whether "
        "application is integrated into each chain.",
    ]
    if scheme.requires_evaluation:
        steps.append(
            "Score Knowledge, Application and Analysis against the KAA bands and "
            "Evaluation against the evaluation bands, then place the whole essay in a "
            "level using the overall bands."
        )
    else:
        steps.append(
            "Score Knowledge, Application and Analysis against the KAA bands, then place "
            "the whole essay in a level using the overall bands. This question carries no "
            "evaluation marks: set the evaluation score and total to 0."
        )
    steps.append(
        f"Select {MIN_HIGHLIGHTS}-{MAX_HIGHLIGHTS} sentences to highlight, copying each one "
        "EXACTLY as written in the essay, following the highlighting rule below."
    )
    if has_extract:
        steps.append(
            "Track the extract: list its key data points in extractDataPoints, record for "
            "each whether and how well the student used it, and fill extractApplication "
            "with the extract material used and the relevant material left unused."
        )
    steps.append(
        "For up to 3 weak sentences, write an improved version in sentenceRewrites."
    )
    steps.append(
        "Write strengths, improvements, overallFeedback (start positive, then constructive "
        "criticism, end with encouragement) and concrete nextSteps."
    )
    return "\n".join(f"{i}) {step}" for i, step in enumerate(steps, start=1))


def _marking_schema(scheme: MarkScheme, has_extract: bool) -> Dict[str, Any]:
    totals = scheme.ao_totals()
    schema: Dict[str, Any] = {
        "overallMark": f"<number 0-{scheme.total_marks}>",
        "totalMarks": scheme.total_marks,
        "percentage": "<number, one decimal place>",
        "level": "Level <1-4>",
        "gradeEstimate": "Grade <A*-E or U>",
        "aoBreakdown": {
            name: {
                "score": f"<number 0-{total}>",
                "total": total,
                "feedback": f"Specific feedback on {name}",
            }
            for name, total in totals.items()
        },
        "strengths": ["Specific strength with an example from the essay"],
        "improvements": ["Specific improvement explaining HOW to fix it"],
        "overallFeedback": "Balanced 2-3 paragraph summary",
        "nextSteps": "Concrete actions: (1) ... (2) ... (3) ...",
        "paragraphs": [
            {
                "index": 0,
                "function": "Knowledge|Application|Analysis|Evaluation|Setup|Mixed",
                "summary": "One-sentence summary of the paragraph",
                "chainsFound": [1],
                "applicationUsed": ["Example or data the paragraph uses"],
                "missingApplication": ["Context that could have been used"],
            }
        ],
        "analysisChains": [
            {
                "id": 1,
                "chain": ["Interest rates fall", "Borrowing becomes cheaper", "Firms invest more",
                          "AD increases", "Real GDP rises"],
                "quality": "strong|adequate|weak",
                "feedback": "Why the chain is strong or where it breaks",
                "applicationIntegrated": True,
            }
        ],
        "sentenceHighlights": [
            {
                "text": "EXACT sentence copied from the essay",
                "role": "analysis|application|knowledge|evaluation|setup|misconception",
                "quality": "strong|adequate|weak",
                "feedback": "Specific feedback on this sentence",
                "chainId": 1,
                "paragraphIndex": 0,
                "sentenceIndex": 0,
            }
        ],
        "sentenceRewrites": [
            {
                "originalText": "EXACT weak sentence from the essay",
                "rewrittenText": "Improved sentence(s)",
                "improvementType": "analysis|application|evaluation|clarity",
                "explanation": "Why the rewrite scores higher",
                "impactOnMark": "+1|+2|clarity",
            }
        ],
    }
    if has_extract:
        schema["extractApplication"] = {
            "used": [{"text": "Extract material the student used", "paragraphIndex": 0, "sentenceIndex": 0}],
            "unusedButRelevant": [{"text": "Relevant extract material the student ignored"}],
        }
        schema["extractDataPoints"] = [
            {
                "id": "dp1",
                "text": "Data point quoted from the extract",
                "category": "statistic|context|stakeholder|policy|other",
                "relevance": "high|medium|low",
                "studentUsage": {
                    "used": True,
                    "usageQuality": "strong|adequate|weak",
                    "sentenceIds": ["p0s2"],
                    "potentialImpact": "How using it would have improved the answer",
                },
            }
        ]
    return schema


def build_marking_prompt(question: str,
                         marks: int,
                         essay: str,
                         extract_text: Optional[str] = None) -> PromptPair:
    """
    Build the marking prompt for one essay.

    Args:
        question: Essay question
        marks: Total marks for the question
        essay: Candidate essay
        extract_text: Optional extract / case study supplied with the question

    Returns:
        PromptPair with the examiner persona and the full marking instruction
    """
    scheme = resolve_scheme(marks)
    extract_text = extract_text.strip() if extract_text else None
    has_extract = bool(extract_text)

    sections = [
        "You are marking an Edexcel A-Level Economics essay as a fair but rigorous examiner. "
        "Mark to Edexcel standards but be FAIR: recognise good work while identifying areas "
        "for improvement. Most essays sit in Levels 2-3.",
        f"QUESTION:\n{question.strip()}",
    ]
    if has_extract:
        sections.append(f"EXTRACT:\n{extract_text}")

    scheme_lines = [
        "MARK SCHEME:",
        f"- Total marks: {scheme.total_marks}",
        f"- KAA (Knowledge, Application, Analysis) marks: {scheme.kaa_marks}",
        f"- Evaluation marks: {scheme.evaluation_marks}",
        f"- Expected structure: {scheme.structure_hint}",
    ]
    if not scheme.requires_evaluation:
        scheme_lines.append("- No evaluation is expected for this question; do not penalise its absence.")
    sections.append("\n".join(scheme_lines))

    sections.append("=== WORKFLOW (follow in order) ===\n" + _workflow(scheme, has_extract))

    sections.append(
        "CONTEXT RULES:\n"
        "- Read the whole paragraph before judging individual sentences; judge paragraphs as units.\n"
        "- Introductory and signpost sentences are fine when they lead to real content.\n"
        "- Knowledge: correct definitions and concepts earn marks; naming a term is not enough.\n"
        "- Application: data or context from the question or extract is strong, relevant "
        "real-world examples are good, generic textbook examples are adequate.\n"
        "- Analysis: count the links in each chain ('because', 'therefore', 'this leads to').\n"
        "- Diagrams described in [square brackets] earn credit when they support the argument."
        + ("\n- Evaluation needs a judgement with reasoning; 'However' alone is not evaluation. "
           "Strong evaluation weighs up using criteria such as time, magnitude and context."
           if scheme.requires_evaluation else "")
    )

    band_sections = [
        "LEVEL BANDS (overall):\n" + _format_bands(scheme.bands(), with_descriptors=True),
        "KAA bands:\n" + _format_bands(scheme.kaa_bands()),
    ]
    if scheme.requires_evaluation:
        band_sections.append("Evaluation bands:\n" + _format_bands(scheme.evaluation_bands()))
    sections.append("\n\n".join(band_sections))

    sections.append(
        f"HIGHLIGHTING RULE ({MIN_HIGHLIGHTS}-{MAX_HIGHLIGHTS} sentences):\n{HIGHLIGHT_RULE}"
    )

    sections.append(
        "=== REQUIRED OUTPUT ===\n"
        "Return ONLY this JSON object (no markdown, no code fences, no commentary). "
        "Replace every <placeholder> and pick one value wherever options are separated by '|':\n"
        + json.dumps(_marking_schema(scheme, has_extract), indent=2)
    )

    sections.append(f"STUDENT ESSAY:\n{essay.strip()}")

    return PromptPair(MARKING_SYSTEM_MESSAGE, "\n\n".join(sections))


def build_rewrite_prompt(sentence: str,
                         question: str,
                         context: Optional[str] = None,
                         role: Optional[str] = None,
                         marks: Optional[int] = None) -> PromptPair:
    """Build the prompt that rewrites one weak sentence."""
    schema = {
        "rewrittenText": "The improved sentence(s)",
        "improvementType": "analysis|application|evaluation|clarity",
        "explanation": "Brief explanation of why this is better (1-2 sentences)",
        "impactOnMark": "+1|+2|clarity",
    }
    lines = [
        "You are an expert Edexcel A-Level Economics examiner helping a student improve their essay.",
        "",
        f"QUESTION: {question.strip()}",
    ]
    if context:
        lines.append(f"CONTEXT: {context.strip()}")
    lines.extend([
        f"MARKS: {marks or 25}",
        "",
        "WEAK SENTENCE TO IMPROVE:",
        f'"{sentence.strip()}"',
        "",
        f"SENTENCE ROLE: {role or 'analysis'}",
        "",
        "Rewrite this sentence so it would score higher marks. The rewrite should:",
        "1. Keep the core economic concept",
        "2. Add more developed reasoning (extra chain links if it is analysis)",
        "3. Use precise economic terminology",
        "4. Be longer and more detailed where needed (2-3 sentences at most)",
        "5. Show deeper understanding",
        "",
        "Return ONLY a JSON object with this structure:",
        json.dumps(schema, indent=2),
    ])
    return PromptPair(REWRITE_SYSTEM_MESSAGE, "\n".join(lines))
