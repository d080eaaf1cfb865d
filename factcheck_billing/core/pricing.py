"""
Points pricing for usage-billed analyses.

Converts vendor-reported usage into an integer points charge. Rounding
always favors the platform and a per-mode floor applies.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_CEILING
from typing import Optional, Union

from factcheck_billing.config.loader import PricingConfig, get_pricing_config
from .modes import AnalysisMode, coerce_mode
from .token_counter import UsageRecord

logger = logging.getLogger(__name__)

_MILLION = Decimal("1000000")


@dataclass(frozen=True)
class CostComputation:
    """Derived cost of a single analysis.

    Invariant: final_points == max(floor(mode), ceil(base_points * multiplier(mode)))
    """
    model_id: str  # Model whose prices were applied
    mode: AnalysisMode
    is_batch: bool
    raw_currency_cost: Decimal  # Reference currency (USD)
    local_currency_cost: Decimal  # Local currency (EUR)
    base_points: Decimal  # Before profit multiplier
    final_points: int


class CostCalculator:
    """Computes points charges from usage counts.

    Pure and stateless apart from the immutable configuration, so one
    instance can be shared by any number of concurrent callers.
    """

    def __init__(self, config: Optional[PricingConfig] = None):
        self.config = config if config is not None else get_pricing_config()

    def compute_cost(
        self,
        prompt_units: int,
        candidate_units: int,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD,
        is_batch: bool = False,
        model_id: Optional[str] = None
    ) -> int:
        """Calculate the points charge for an analysis.

        Args:
            prompt_units: Input units reported by the generation call
            candidate_units: Output units reported by the generation call
            mode: Analysis mode ("standard" or "deep")
            is_batch: Whether the discounted batch path was used
            model_id: Model identifier; unknown ids use default pricing

        Returns:
            Non-negative integer points, rounded UP and never below the mode floor

        Raises:
            InvalidUsageError: If a count is negative or not an integer
            ValueError: If mode is unknown
        """
        return self.compute_breakdown(
            prompt_units, candidate_units, mode, is_batch, model_id
        ).final_points

    def compute_breakdown(
        self,
        prompt_units: int,
        candidate_units: int,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD,
        is_batch: bool = False,
        model_id: Optional[str] = None
    ) -> CostComputation:
        """Same as compute_cost but returns every intermediate amount."""
        usage = UsageRecord(prompt_units=prompt_units, candidate_units=candidate_units)
        return self.compute_for_usage(usage, mode, is_batch, model_id)

    def compute_for_usage(
        self,
        usage: UsageRecord,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD,
        is_batch: bool = False,
        model_id: Optional[str] = None
    ) -> CostComputation:
        """Compute the full cost breakdown for a validated usage record."""
        mode = coerce_mode(mode)
        config = self.config
        pricing = config.get_model_pricing(model_id)

        # Discount applies to each term before summing
        batch_multiplier = config.batch_discount if is_batch else Decimal("1")

        # (units / 1M) * price_per_million
        input_cost = (Decimal(usage.prompt_units) / _MILLION) * pricing.input_per_million * batch_multiplier
        output_cost = (Decimal(usage.candidate_units) / _MILLION) * pricing.output_per_million * batch_multiplier
        raw_cost = input_cost + output_cost

        local_cost = raw_cost * config.exchange_rate
        base_points = local_cost * config.points_per_currency_unit

        # Round UP, then apply the floor
        marked_up = base_points * config.profit_multiplier(mode)
        final_points = int(marked_up.to_integral_value(rounding=ROUND_CEILING))
        final_points = max(final_points, config.point_floor(mode))

        computation = CostComputation(
            model_id=pricing.model_id,
            mode=mode,
            is_batch=is_batch,
            raw_currency_cost=raw_cost,
            local_currency_cost=local_cost,
            base_points=base_points,
            final_points=final_points
        )
        logger.debug("Computed cost %s for usage %s", computation, usage)
        return computation


def compute_cost(
    prompt_units: int,
    candidate_units: int,
    mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD,
    is_batch: bool = False,
    model_id: Optional[str] = None
) -> int:
    """Calculate a points charge with the process-wide pricing configuration."""
    return CostCalculator().compute_cost(prompt_units, candidate_units, mode, is_batch, model_id)


def log_billing(label: str, usage: UsageRecord, computation: CostComputation) -> None:
    """Emit the one-line billing record for a settled charge."""
    logger.info(
        "[Billing] %s: prompt=%d candidate=%d model=%s cost_usd=%.4f cost_local=%.4f "
        "points=%d mode=%s batch=%s",
        label,
        usage.prompt_units,
        usage.candidate_units,
        computation.model_id,
        computation.raw_currency_cost,
        computation.local_currency_cost,
        computation.final_points,
        computation.mode.value,
        computation.is_batch
    )
