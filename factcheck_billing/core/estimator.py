"""
Pre-flight usage estimation.

Conservative heuristics for the units an analysis will consume, used to
reject a request up front when the balance cannot cover it. The
authoritative charge is computed afterwards from real usage.

Empirical rates:
- Video frames: ~2,500 units/minute; audio: ~1,920 units/minute (32/second)
- Speech: ~150 words/minute at ~1.3 units/word
- Text: ~4 characters/unit, read at ~1,000 characters/minute
- Prompt overhead: ~3,000 units
- Output: base + per-minute, lower for transcript-only analysis
"""

import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, Optional, Union

from .modes import AnalysisMode, coerce_mode
from .pricing import CostCalculator, CostComputation

SECONDS_PER_MINUTE = 60

VIDEO_UNITS_PER_MINUTE = 2500
AUDIO_UNITS_PER_MINUTE = 1920
INPUT_UNITS_PER_SECOND = Fraction(VIDEO_UNITS_PER_MINUTE + AUDIO_UNITS_PER_MINUTE, SECONDS_PER_MINUTE)
PROMPT_OVERHEAD_UNITS = 3000

WORDS_PER_MINUTE = 150
UNITS_PER_WORD = Fraction(13, 10)

CHARACTERS_PER_UNIT = 4
CHARACTERS_PER_READING_MINUTE = 1000

# Output = base + per_minute * content minutes
OUTPUT_BASE_UNITS = {
    AnalysisMode.STANDARD: 5000,
    AnalysisMode.DEEP: 8000,
}
OUTPUT_UNITS_PER_MINUTE = {
    AnalysisMode.STANDARD: 100,
    AnalysisMode.DEEP: 150,
}

# Transcript-only analysis reports on less material
TRANSCRIPT_OUTPUT_BASE_UNITS = {
    AnalysisMode.STANDARD: 4000,
    AnalysisMode.DEEP: 6400,
}
TRANSCRIPT_OUTPUT_UNITS_PER_MINUTE = {
    AnalysisMode.STANDARD: 50,
    AnalysisMode.DEEP: 75,
}

Number = Union[int, float, Fraction]


@dataclass(frozen=True)
class TokenEstimate:
    """Estimated usage for an analysis that has not run yet."""
    estimated_input_units: int
    estimated_output_units: int

    @property
    def total_units(self) -> int:
        """Total estimated units (input + output)."""
        return self.estimated_input_units + self.estimated_output_units


@dataclass(frozen=True)
class CostQuote:
    """Estimated usage priced through the cost calculator."""
    mode: AnalysisMode
    estimate: TokenEstimate
    computation: CostComputation

    @property
    def points(self) -> int:
        """Estimated points charge."""
        return self.computation.final_points


def _non_negative(value: Optional[Number]) -> Fraction:
    """Exact value of an input, clamped to zero when negative or unusable."""
    if value is None:
        return Fraction(0)
    try:
        amount = Fraction(str(value))
    except ValueError:
        # nan and infinities
        return Fraction(0)
    return max(amount, Fraction(0))


class TokenEstimator:
    """Deterministic usage estimator.

    Invalid inputs (negative lengths) clamp to zero instead of raising,
    since this is a best-effort pre-check only. Arithmetic is exact and
    every estimate is rounded up.
    """

    def __init__(self, calculator: Optional[CostCalculator] = None):
        self.calculator = calculator

    def estimate(
        self,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD,
        duration_seconds: Optional[Number] = None,
        character_length: Optional[int] = None
    ) -> TokenEstimate:
        """Estimate usage for a video (by duration) or text (by length).

        A character length selects the text estimate; otherwise the
        content is treated as video, with a missing duration as zero.
        """
        if character_length is not None:
            return self.estimate_text(character_length, mode)
        return self.estimate_video(duration_seconds, mode)

    def estimate_video(
        self,
        duration_seconds: Optional[Number],
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD
    ) -> TokenEstimate:
        """Full video analysis: frames + audio + prompt."""
        seconds = _non_negative(duration_seconds)
        input_units = seconds * INPUT_UNITS_PER_SECOND + PROMPT_OVERHEAD_UNITS
        return self._build(input_units, seconds / SECONDS_PER_MINUTE, mode)

    def estimate_transcript(
        self,
        duration_seconds: Optional[Number],
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD
    ) -> TokenEstimate:
        """Transcript-only analysis of spoken content."""
        minutes = _non_negative(duration_seconds) / SECONDS_PER_MINUTE
        input_units = minutes * WORDS_PER_MINUTE * UNITS_PER_WORD + PROMPT_OVERHEAD_UNITS
        return self._build(
            input_units, minutes, mode,
            TRANSCRIPT_OUTPUT_BASE_UNITS, TRANSCRIPT_OUTPUT_UNITS_PER_MINUTE
        )

    def estimate_text(
        self,
        character_length: Optional[int],
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD
    ) -> TokenEstimate:
        """Article or post text."""
        characters = _non_negative(character_length)
        input_units = math.ceil(characters / CHARACTERS_PER_UNIT) + PROMPT_OVERHEAD_UNITS
        return self._build(Fraction(input_units), characters / CHARACTERS_PER_READING_MINUTE, mode)

    def _build(
        self,
        input_units: Fraction,
        minutes: Fraction,
        mode,
        base_units: Dict[AnalysisMode, int] = OUTPUT_BASE_UNITS,
        units_per_minute: Dict[AnalysisMode, int] = OUTPUT_UNITS_PER_MINUTE
    ) -> TokenEstimate:
        mode = coerce_mode(mode)
        output_units = base_units[mode] + units_per_minute[mode] * minutes
        return TokenEstimate(
            estimated_input_units=math.ceil(input_units),
            estimated_output_units=math.ceil(output_units)
        )

    def quote(
        self,
        estimate: TokenEstimate,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD,
        is_batch: bool = False,
        model_id: Optional[str] = None
    ) -> CostQuote:
        """Price an estimate with the same rules as the final charge."""
        mode = coerce_mode(mode)
        calculator = self.calculator or CostCalculator()
        computation = calculator.compute_breakdown(
            estimate.estimated_input_units,
            estimate.estimated_output_units,
            mode,
            is_batch,
            model_id
        )
        return CostQuote(mode=mode, estimate=estimate, computation=computation)

    def quote_all_modes(
        self,
        duration_seconds: Optional[Number] = None,
        character_length: Optional[int] = None,
        is_batch: bool = False,
        model_id: Optional[str] = None
    ) -> Dict[AnalysisMode, CostQuote]:
        """Quotes for every mode, for presenting a mode choice."""
        return {
            mode: self.quote(
                self.estimate(mode, duration_seconds, character_length),
                mode,
                is_batch,
                model_id
            )
            for mode in AnalysisMode
        }
