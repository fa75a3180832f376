"""Mark schemes: how a question's marks split between KAA and evaluation."""

import math
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Tuple

# Lower-bound fractions for Levels 4, 3 and 2; Level 1 takes what is left
LEVEL_FRACTIONS: Tuple[Tuple[int, str, float], ...] = (
    (4, "Excellent", 0.75),
    (3, "Good", 0.5),
    (2, "Basic", 0.25),
    (1, "Poor", 0.0),
)


class Band(NamedTuple):
    """A level and the inclusive mark range that earns it."""
    level: int
    label: str
    low: int
    high: int

    def describe(self) -> str:
        marks = str(self.low) if self.low == self.high else f"{self.low}-{self.high}"
        return f"Level {self.level} ({self.label}): {marks} marks"


def band_ranges(marks: int) -> List[Band]:
    """
    Split ``marks`` into Level 4..1 ranges.

    Level k starts at ``floor(fraction_k * marks) + 1`` and ends one below
    the next level up (Level 4 ends at ``marks``). Level 1 starts at 1.
    Bands that would be empty for very small allocations are left out.
    """
    if marks <= 0:
        return []
    bands = []
    high = marks
    for level, label, fraction in LEVEL_FRACTIONS:
        low = math.floor(fraction * marks) + 1
        if low <= high:
            bands.append(Band(level, label, low, high))
            high = low - 1
    return bands


@dataclass(frozen=True)
class MarkScheme:
    """Mark split and expected essay structure for one allocation."""
    total_marks: int
    kaa_marks: int
    evaluation_marks: int
    structure_hint: str

    @property
    def requires_evaluation(self) -> bool:
        return self.evaluation_marks > 0

    def ao_totals(self) -> Dict[str, int]:
        """Per-objective mark ceilings; they always add up to the scheme total."""
        # floor(35%) knowledge and floor(25%) application; analysis takes the rest
        knowledge = self.kaa_marks * 35 // 100
        application = self.kaa_marks * 25 // 100
        return {
            "knowledge": knowledge,
            "application": application,
            "analysis": self.kaa_marks - knowledge - application,
            "evaluation": self.evaluation_marks,
        }

    def bands(self) -> List[Band]:
        return band_ranges(self.total_marks)

    def kaa_bands(self) -> List[Band]:
        return band_ranges(self.kaa_marks)

    def evaluation_bands(self) -> List[Band]:
        return band_ranges(self.evaluation_marks)


# Hand-tuned splits for the common allocations: marks -> (kaa, evaluation, structure)
PRESET_SCHEMES: Dict[int, Tuple[int, int, str]] = {
    25: (15, 10, "6 paragraphs: intro, 2 knowledge-application-analysis blocks with 5+ link chains, "
                 "2 evaluation blocks, conclusion"),
    20: (14, 6, "5 paragraphs: intro, 2 knowledge-application-analysis blocks, 2 evaluation blocks, conclusion"),
    15: (9, 6, "4 paragraphs: brief intro, 2 knowledge-application-analysis blocks, 2 evaluation blocks"),
    10: (6, 4, "3-4 paragraphs: 2 knowledge-application-analysis blocks, 2 short evaluation points"),
    8: (6, 2, "3 paragraphs: 2 knowledge-application-analysis blocks, 1 evaluation point"),
    5: (5, 0, "1-2 paragraphs: knowledge-application-analysis only, no evaluation needed"),
}

FALLBACK_STRUCTURE = ("Standard structure: intro, knowledge-application-analysis paragraphs "
                      "with linked chains, evaluation paragraphs, conclusion")


def resolve_scheme(marks: int) -> MarkScheme:
    """
    Map a total mark allocation to its mark scheme.

    Preset allocations use the table above; anything else gets 60% KAA
    (rounded up) and 40% evaluation (rounded down).

    Raises:
        ValueError: If marks is not a positive integer
    """
    if isinstance(marks, bool) or not isinstance(marks, int) or marks <= 0:
        raise ValueError(f"marks must be a positive integer, got {marks!r}")

    if marks in PRESET_SCHEMES:
        kaa, evaluation, structure = PRESET_SCHEMES[marks]
        return MarkScheme(marks, kaa, evaluation, structure)

    return MarkScheme(
        total_marks=marks,
        # ceil(0.6 * marks) and floor(0.4 * marks) in exact integer arithmetic
        kaa_marks=-(-marks * 6 // 10),
        evaluation_marks=marks * 4 // 10,
        structure_hint=FALLBACK_STRUCTURE,
    )
