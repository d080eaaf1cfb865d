"""
Analysis billing flow.

Pre-flight affordability check, post-flight charge, and settlement
against the points ledger:

1. preflight - reject up front when the cached balance cannot cover
   the fixed price, the quoted estimate, or the mode floor
2. charge_for_usage - fixed price, or the cost calculator on real usage
3. settle - deduct the charge atomically; the ledger has the final say
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from factcheck_billing.config.loader import PricingConfig, get_pricing_config
from factcheck_billing.storage.repository import PointsLedger, get_ledger
from .catalog import PricingCatalog
from .errors import InsufficientPointsError
from .estimator import TokenEstimate, TokenEstimator
from .modes import AnalysisMode, ServiceKind, coerce_mode
from .pricing import CostCalculator, CostComputation, log_billing
from .token_counter import UsageRecord

logger = logging.getLogger(__name__)

ServiceKindLike = Union[ServiceKind, str]


@dataclass(frozen=True)
class ChargeResult:
    """Outcome of a settled charge."""
    points: int
    new_balance: int
    computation: Optional[CostComputation] = None  # None for fixed-price services


class Biller:
    """Prices analyses and settles them against a points ledger."""

    def __init__(
        self,
        config: Optional[PricingConfig] = None,
        ledger: Optional[PointsLedger] = None
    ):
        self.config = config if config is not None else get_pricing_config()
        self.calculator = CostCalculator(self.config)
        self.estimator = TokenEstimator(self.calculator)
        self.catalog = PricingCatalog(self.config)
        self._ledger = ledger

    @property
    def ledger(self) -> PointsLedger:
        if self._ledger is None:
            self._ledger = get_ledger()
        return self._ledger

    def open_account(self, user_id: str) -> bool:
        """Open an account with the configured welcome bonus.

        Returns:
            True if the account was created, False if it already existed
        """
        return self.ledger.open_account(user_id, welcome_bonus=self.config.welcome_bonus_points)

    def credit_tier_purchase(self, user_id: str, variant_id: str, order_id: str) -> bool:
        """Credit the points of a purchased tier, once per order.

        Args:
            user_id: Account identifier
            variant_id: Payment processor variant that was sold
            order_id: Payment processor order id

        Returns:
            True if credited, False if the order was already processed

        Raises:
            NotFoundError: If the variant or the account is unknown
        """
        tier = self.catalog.tier_for_variant(variant_id)
        return self.ledger.credit_purchase(
            user_id,
            tier.total_points,
            order_id,
            description=f"{tier.name} tier purchase"
        )

    def required_points(
        self,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD,
        service_kind: Optional[ServiceKindLike] = None,
        estimate: Optional[TokenEstimate] = None,
        is_batch: bool = False,
        model_id: Optional[str] = None
    ) -> int:
        """Minimum points a request needs before it is run.

        Fixed-price services need their price. Usage-billed analyses need
        the quoted estimate when one is given, otherwise the mode floor.
        """
        if service_kind is not None:
            return self.catalog.fixed_price(service_kind)
        if estimate is not None:
            return self.estimator.quote(estimate, mode, is_batch, model_id).points
        return self.config.point_floor(mode)

    def preflight(
        self,
        balance: int,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD,
        service_kind: Optional[ServiceKindLike] = None,
        estimate: Optional[TokenEstimate] = None,
        is_batch: bool = False,
        model_id: Optional[str] = None
    ) -> int:
        """Check a balance can cover a request.

        Returns:
            The required points

        Raises:
            InsufficientPointsError: If balance is below the requirement
        """
        required = self.required_points(mode, service_kind, estimate, is_batch, model_id)
        if balance < required:
            raise InsufficientPointsError(required=required, balance=balance)
        return required

    def charge_for_usage(
        self,
        usage: UsageRecord,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD,
        service_kind: Optional[ServiceKindLike] = None,
        is_batch: bool = False,
        model_id: Optional[str] = None
    ) -> int:
        """Points to charge for a completed analysis."""
        points, _ = self._price(usage, mode, service_kind, is_batch, model_id)
        return points

    def settle(
        self,
        user_id: str,
        usage: UsageRecord,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD,
        service_kind: Optional[ServiceKindLike] = None,
        is_batch: bool = False,
        model_id: Optional[str] = None,
        description: str = ""
    ) -> ChargeResult:
        """Charge a completed analysis to a user's balance.

        Raises:
            InsufficientPointsError: If the balance no longer covers the charge
            NotFoundError: If the account or service kind is unknown
        """
        mode = coerce_mode(mode)
        points, computation = self._price(usage, mode, service_kind, is_batch, model_id)

        if computation is not None:
            log_billing("usage", usage, computation)
            label = f"{mode.value} analysis"
        else:
            kind = service_kind.value if isinstance(service_kind, ServiceKind) else str(service_kind)
            logger.info("[Billing] fixed: service=%s points=%d", kind, points)
            label = f"{kind} analysis"

        new_balance = self.ledger.deduct(user_id, points, description or label)
        return ChargeResult(points=points, new_balance=new_balance, computation=computation)

    def _price(
        self,
        usage: UsageRecord,
        mode: Union[AnalysisMode, str],
        service_kind: Optional[ServiceKindLike],
        is_batch: bool,
        model_id: Optional[str]
    ) -> Tuple[int, Optional[CostComputation]]:
        if service_kind is not None:
            return self.catalog.fixed_price(service_kind), None
        computation = self.calculator.compute_for_usage(usage, mode, is_batch, model_id)
        return computation.final_points, computation
