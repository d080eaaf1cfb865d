"""
Unit tests for pre-flight usage estimation.
"""

import pytest

from factcheck_billing.config.loader import default_pricing_config
from factcheck_billing.core.estimator import CostQuote, TokenEstimate, TokenEstimator
from factcheck_billing.core.modes import AnalysisMode
from factcheck_billing.core.pricing import CostCalculator


class TestTokenEstimate:
    """Test TokenEstimate dataclass."""

    def test_total_units(self):
        """Verify total_units sums input and output."""
        estimate = TokenEstimate(estimated_input_units=1000, estimated_output_units=500)
        assert estimate.total_units == 1500


class TestVideoEstimate:
    """Test video duration estimates."""

    def setup_method(self):
        """Set up an estimator."""
        self.estimator = TokenEstimator()

    def test_ten_minute_video_standard(self):
        """Verify frames + audio + overhead for a 10 minute video."""
        estimate = self.estimator.estimate_video(600, "standard")
        # Input: 10 min * (2500 + 1920) + 3000 = 47,200
        # Output: 5000 + 100 * 10 = 6,000
        assert estimate == TokenEstimate(47_200, 6_000)

    def test_ten_minute_video_deep(self):
        """Verify deep mode only raises the output estimate."""
        estimate = self.estimator.estimate_video(600, AnalysisMode.DEEP)
        # Output: 8000 + 150 * 10 = 9,500
        assert estimate == TokenEstimate(47_200, 9_500)

    def test_fractional_minutes(self):
        """Verify partial minutes scale linearly."""
        estimate = self.estimator.estimate_video(90, "standard")
        # Input: 1.5 * 4420 + 3000 = 9,630; output: 5000 + 150 = 5,150
        assert estimate == TokenEstimate(9_630, 5_150)

    def test_rounding_is_exact_and_up(self):
        """Verify exact results are not pushed up and fractions round up."""
        deep = self.estimator.estimate_video(40, "deep")
        # Output: 8000 + 150 * 2/3 = 8,100 exactly
        assert deep.estimated_output_units == 8_100
        # Input: 40 * 4420 / 60 = 2946.67 -> 5946.67 -> 5,947
        assert deep.estimated_input_units == 5_947

        standard = self.estimator.estimate_video(40, "standard")
        # Output: 5000 + 66.67 -> 5,067
        assert standard.estimated_output_units == 5_067

    def test_zero_duration_is_overhead_only(self):
        """Verify empty content still carries prompt overhead and base output."""
        assert self.estimator.estimate_video(0, "standard") == TokenEstimate(3_000, 5_000)

    def test_negative_duration_clamps_to_zero(self):
        """Verify invalid durations clamp instead of raising."""
        assert self.estimator.estimate_video(-120, "standard") == TokenEstimate(3_000, 5_000)

    def test_missing_duration_clamps_to_zero(self):
        """Verify a missing duration is treated as zero."""
        assert self.estimator.estimate_video(None, "deep") == TokenEstimate(3_000, 8_000)

    def test_nan_duration_clamps_to_zero(self):
        """Verify unusable numbers clamp to zero."""
        assert self.estimator.estimate_video(float("nan"), "standard") == TokenEstimate(3_000, 5_000)

    def test_deep_output_exceeds_standard(self):
        """Verify deep base and per-minute rate both exceed standard."""
        for seconds in (0, 30, 600, 3600):
            deep = self.estimator.estimate_video(seconds, "deep")
            standard = self.estimator.estimate_video(seconds, "standard")
            assert deep.estimated_output_units > standard.estimated_output_units
            assert deep.estimated_input_units == standard.estimated_input_units

    def test_estimation_is_pure(self):
        """Verify identical inputs give identical outputs."""
        first = self.estimator.estimate_video(754.5, "deep")
        second = TokenEstimator().estimate_video(754.5, "deep")
        assert first == second

    def test_unknown_mode_raises(self):
        """Verify unknown modes are rejected."""
        with pytest.raises(ValueError, match="Unknown analysis mode"):
            self.estimator.estimate_video(60, "quick")


class TestTranscriptAndTextEstimate:
    """Test transcript and text estimates."""

    def setup_method(self):
        """Set up an estimator."""
        self.estimator = TokenEstimator()

    def test_transcript_estimate(self):
        """Verify speech rate drives the transcript input."""
        estimate = self.estimator.estimate_transcript(600, "standard")
        # Input: 10 min * 150 words * 1.3 + 3000 = 4,950
        # Output: 4000 + 50 * 10 = 4,500
        assert estimate == TokenEstimate(4_950, 4_500)

    def test_transcript_output_below_video(self):
        """Verify transcripts quote less output than the full video."""
        for mode in ("standard", "deep"):
            transcript = self.estimator.estimate_transcript(600, mode)
            video = self.estimator.estimate_video(600, mode)
            assert transcript.estimated_output_units < video.estimated_output_units

    def test_transcript_deep_output(self):
        """Verify deep transcripts keep a higher output estimate."""
        deep = self.estimator.estimate_transcript(600, "deep")
        # Output: 6400 + 75 * 10 = 7,150
        assert deep == TokenEstimate(4_950, 7_150)
        for seconds in (0, 90, 3600):
            assert self.estimator.estimate_transcript(seconds, "deep").estimated_output_units > \
                self.estimator.estimate_transcript(seconds, "standard").estimated_output_units

    def test_text_estimate(self):
        """Verify characters drive the text input."""
        estimate = self.estimator.estimate_text(5_000, "standard")
        # Input: 5000 / 4 + 3000 = 4,250; output: 5000 + 100 * 5 reading minutes
        assert estimate == TokenEstimate(4_250, 5_500)

    def test_text_estimate_rounds_up(self):
        """Verify partial units round up."""
        estimate = self.estimator.estimate_text(5_001, "deep")
        assert estimate.estimated_input_units == 4_251

    def test_negative_length_clamps(self):
        """Verify negative lengths clamp to zero."""
        assert self.estimator.estimate_text(-10, "standard") == TokenEstimate(3_000, 5_000)

    def test_estimate_dispatch(self):
        """Verify a character length selects the text estimate."""
        assert self.estimator.estimate("deep", character_length=5_000) == \
            self.estimator.estimate_text(5_000, "deep")
        assert self.estimator.estimate("deep", duration_seconds=600) == \
            self.estimator.estimate_video(600, "deep")
        assert self.estimator.estimate("standard") == TokenEstimate(3_000, 5_000)


class TestQuotes:
    """Test pricing estimates through the calculator."""

    def setup_method(self):
        """Set up an estimator with the default pricing."""
        self.estimator = TokenEstimator(CostCalculator(default_pricing_config()))

    def test_quote_standard(self):
        """Verify an estimate is priced like a final charge."""
        estimate = self.estimator.estimate_video(600, "standard")
        quote = self.estimator.quote(estimate, "standard")
        # $0.0356 -> €0.03382 -> 3.382 points -> x2 = 6.764 -> 7
        assert isinstance(quote, CostQuote)
        assert quote.points == 7
        assert quote.mode == AnalysisMode.STANDARD
        assert quote.estimate == estimate

    def test_quote_deep(self):
        """Verify deep quotes apply the deep multiplier."""
        estimate = self.estimator.estimate_video(600, "deep")
        # $0.0426 -> €0.04047 -> 4.047 points -> x3 = 12.141 -> 13
        assert self.estimator.quote(estimate, "deep").points == 13

    def test_quote_short_content_hits_floor(self):
        """Verify short content is quoted at the floor."""
        estimate = self.estimator.estimate_text(100, "deep")
        assert self.estimator.quote(estimate, "deep").points == 10

    def test_quote_all_modes(self):
        """Verify quotes for every mode are produced and ordered."""
        quotes = self.estimator.quote_all_modes(duration_seconds=600)
        assert set(quotes) == set(AnalysisMode)
        assert quotes[AnalysisMode.STANDARD].points == 7
        assert quotes[AnalysisMode.DEEP].points == 13

    def test_quote_without_calculator_uses_process_config(self):
        """Verify a bare estimator quotes with the process-wide configuration."""
        estimate = TokenEstimator().estimate_video(600, "standard")
        assert TokenEstimator().quote(estimate, "standard").points == 7
