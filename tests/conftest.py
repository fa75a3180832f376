"""Shared fixtures for essay marking tests."""

import copy
import json
from typing import List, Optional

import pytest

from econmarker.errors import GatewayError


SAMPLE_QUESTION = "Evaluate the likely impact of a cut in interest rates on UK economic growth."

SAMPLE_ESSAY = """Interest rates are set by the Bank of England's Monetary Policy Committee.

A cut in interest rates lowers the cost of borrowing. Firms therefore find more investment projects profitable, so investment rises. Because investment is a component of aggregate demand, AD shifts right and real GDP increases. Higher output means firms need more workers, so unemployment falls.

Lower rates also reduce mortgage payments for households on variable rates. This raises disposable income, so consumption increases and AD rises further.

However, the impact depends on confidence. In 2009 rates fell to 0.5% yet investment stayed weak because firms expected low demand. The size of the effect also depends on how much of the cut banks pass on to borrowers.

Overall, a rate cut is likely to boost growth in the short run, but its effect is smaller when confidence is low."""


def make_payload(overall_mark=18, total_marks=25, **overrides):
    """A well-formed 25-mark marking payload as the model would return it."""
    payload = {
        "overallMark": overall_mark,
        "totalMarks": total_marks,
        "percentage": 99.9,
        "level": "Level 3",
        "gradeEstimate": "Grade B",
        "aoBreakdown": {
            "knowledge": {"score": 4, "total": 5, "feedback": "Accurate definitions"},
            "application": {"score": 2, "total": 3, "feedback": "Uses the 2009 example"},
            "analysis": {"score": 6, "total": 7, "feedback": "Clear multi-link chains"},
            "evaluation": {"score": 6, "total": 10, "feedback": "Judgement needs more support"},
        },
        "strengths": ["Developed chain from interest rates to employment"],
        "improvements": ["Weigh up the size of each effect"],
        "overallFeedback": "A solid answer with good analysis.",
        "nextSteps": "(1) Add a diagram (2) Quantify effects (3) Prioritise factors",
        "sentenceHighlights": [
            {
                "text": "A cut in interest rates lowers the cost of borrowing.",
                "role": "analysis",
                "quality": "strong",
                "feedback": "Starts a clear chain",
                "chainId": 1,
                "paragraphIndex": 1,
                "sentenceIndex": 0,
            },
            {
                "text": "In 2009 rates fell to 0.5% yet investment stayed weak because firms expected low demand.",
                "role": "application",
                "quality": "strong",
                "feedback": "Good use of real-world context",
            },
        ],
        "analysisChains": [
            {
                "id": 1,
                "chain": ["Rates cut", "Borrowing cheaper", "Investment rises", "AD rises", "Real GDP rises"],
                "quality": "strong",
                "feedback": "Five clear links",
                "applicationIntegrated": False,
            }
        ],
        "paragraphs": [
            {
                "index": 0,
                "function": "Setup",
                "summary": "Introduces the MPC",
                "chainsFound": [],
                "applicationUsed": [],
                "missingApplication": ["Current Bank Rate"],
            },
            {
                "index": 1,
                "function": "Analysis",
                "summary": "Investment channel",
                "chainsFound": [1],
                "applicationUsed": [],
                "missingApplication": [],
            },
        ],
        "sentenceRewrites": [
            {
                "originalText": "Lower rates also reduce mortgage payments for households on variable rates.",
                "rewrittenText": "Lower rates cut mortgage payments for the many UK households on "
                                 "variable-rate deals, raising their disposable income.",
                "improvementType": "application",
                "explanation": "Adds UK context",
                "impactOnMark": "+1",
            }
        ],
    }
    payload.update(overrides)
    return payload


class StubGateway:
    """Gateway stand-in that replays canned completions and records calls."""

    def __init__(self, responses: Optional[List] = None):
        self.responses = list(responses or [])
        self.calls = []

    async def complete_async(self, system_message, user_message, options):
        self.calls.append({
            "system_message": system_message,
            "user_message": user_message,
            "options": options,
        })
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if not response or not response.strip():
            raise GatewayError("No response from model")
        return response


@pytest.fixture
def sample_essay():
    return SAMPLE_ESSAY


@pytest.fixture
def sample_question():
    return SAMPLE_QUESTION


@pytest.fixture
def payload():
    return copy.deepcopy(make_payload())


@pytest.fixture
def payload_text(payload):
    return json.dumps(payload)


@pytest.fixture
def sample_config():
    """Configuration with a dummy key, as loaded from YAML."""
    return {
        'openai': {
            'api_key': 'test-key',
            'model': 'gpt-4.1'
        },
        'marking': {
            'temperature': 0.1,
            'max_output_tokens': 6000,
            'timeout': 90,
        },
    }


@pytest.fixture
def payload_factory():
    """Build payload variants: payload_factory(overall_mark=..., **field_overrides)."""
    return make_payload


@pytest.fixture
def stub_gateway():
    """StubGateway class; call with the list of completions to replay."""
    return StubGateway
