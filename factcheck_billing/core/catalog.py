"""
Fixed prices and purchasable point tiers.

Read-only lookups for pricing that does not depend on usage.
"""

from typing import Dict, Optional, Tuple, Union

from factcheck_billing.config.loader import PricingConfig, PricingTier, get_pricing_config
from .errors import NotFoundError
from .modes import ServiceKind


class PricingCatalog:
    """Lookup table for fixed-price services and point tiers.

    Unknown service kinds, tier ids and variant ids raise NotFoundError;
    the catalog never substitutes a default price.
    """

    def __init__(self, config: Optional[PricingConfig] = None):
        self.config = config if config is not None else get_pricing_config()

    def fixed_price(self, kind: Union[ServiceKind, str]) -> int:
        """Get the points price of a fixed-price service.

        Args:
            kind: ServiceKind or its string value, e.g. "link-article"

        Returns:
            Points cost, independent of content length

        Raises:
            NotFoundError: If the service kind is not recognized
        """
        if not isinstance(kind, ServiceKind):
            try:
                kind = ServiceKind(kind)
            except ValueError:
                raise NotFoundError(f"Unknown service kind: {kind!r}")
        try:
            return self.config.fixed_prices[kind]
        except KeyError:
            raise NotFoundError(f"No fixed price for service kind: {kind.value}")

    def fixed_prices(self) -> Dict[ServiceKind, int]:
        """All fixed prices, in service kind order."""
        return {kind: self.config.fixed_prices[kind] for kind in ServiceKind}

    def compare_price(self, first_points: int, second_points: int) -> int:
        """Price of comparing two analyses: both charges plus the compare surcharge."""
        return first_points + second_points + self.fixed_price(ServiceKind.COMPARE_MODE_SURCHARGE)

    def tiers(self) -> Tuple[PricingTier, ...]:
        """Purchasable tiers in display order."""
        return self.config.tiers

    def featured_tiers(self) -> Tuple[PricingTier, ...]:
        return tuple(tier for tier in self.config.tiers if tier.featured)

    def featured_tier(self) -> Optional[PricingTier]:
        """First featured tier, or None when no tier is featured."""
        featured = self.featured_tiers()
        return featured[0] if featured else None

    def get_tier(self, tier_id: str) -> PricingTier:
        """Get a tier by id.

        Raises:
            NotFoundError: If no tier has this id
        """
        for tier in self.config.tiers:
            if tier.tier_id == tier_id:
                return tier
        raise NotFoundError(f"Unknown tier: {tier_id}")

    def tier_for_variant(self, variant_id: str) -> PricingTier:
        """Get the tier sold under a payment processor variant.

        Raises:
            NotFoundError: If no tier uses this variant
        """
        for tier in self.config.tiers:
            if tier.variant_id == str(variant_id):
                return tier
        raise NotFoundError(f"Unknown product variant: {variant_id}")
