"""
Pricing configuration management and loading.

Single source of pricing constants shared by the estimation path and the
authoritative billing path.
"""

import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml

from factcheck_billing.core.modes import AnalysisMode, ServiceKind, coerce_mode

logger = logging.getLogger(__name__)

# Environment variable naming a YAML file that replaces the built-in defaults
CONFIG_ENV_VAR = "FACTCHECK_PRICING_CONFIG"


@dataclass(frozen=True)
class PricingModel:
    """Per-unit pricing for a generative model in the reference currency (USD)."""
    model_id: str
    input_per_million: Decimal  # Price per 1M prompt units
    output_per_million: Decimal  # Price per 1M candidate units

    def __post_init__(self):
        """Validate prices are non-negative."""
        if self.input_per_million < 0:
            raise ValueError(f"input_per_million for {self.model_id} must be >= 0")
        if self.output_per_million < 0:
            raise ValueError(f"output_per_million for {self.model_id} must be >= 0")


@dataclass(frozen=True)
class PricingTier:
    """Purchasable bundle of points."""
    tier_id: str
    name: str
    price: Decimal  # In local currency
    base_points: int
    bonus_points: int
    total_points: int
    featured: bool
    variant_id: str  # Payment processor product variant

    def __post_init__(self):
        """Validate tier amounts are consistent."""
        if self.price <= 0:
            raise ValueError(f"price for tier {self.tier_id} must be > 0")
        if self.base_points <= 0:
            raise ValueError(f"base_points for tier {self.tier_id} must be > 0")
        if self.bonus_points < 0:
            raise ValueError(f"bonus_points for tier {self.tier_id} must be >= 0")
        if self.total_points != self.base_points + self.bonus_points:
            raise ValueError(
                f"total_points for tier {self.tier_id} must equal "
                f"base_points + bonus_points ({self.base_points + self.bonus_points})"
            )


@dataclass(frozen=True)
class PricingConfig:
    """Complete pricing configuration, immutable per release."""
    exchange_rate: Decimal  # Reference currency -> local currency
    points_per_currency_unit: Decimal
    batch_discount: Decimal
    profit_multipliers: Dict[AnalysisMode, Decimal]
    point_floors: Dict[AnalysisMode, int]
    default_model: str
    models: Dict[str, PricingModel]
    fixed_prices: Dict[ServiceKind, int]
    tiers: Tuple[PricingTier, ...]
    welcome_bonus_points: int

    def __post_init__(self):
        """Validate cross-field invariants."""
        if self.exchange_rate <= 0:
            raise ValueError("exchange_rate must be > 0")
        if self.points_per_currency_unit <= 0:
            raise ValueError("points_per_currency_unit must be > 0")
        if not Decimal("0") < self.batch_discount <= Decimal("1"):
            raise ValueError("batch_discount must be in (0, 1]")

        for name, table in (("profit_multipliers", self.profit_multipliers),
                            ("point_floors", self.point_floors)):
            missing = set(AnalysisMode) - set(table)
            if missing:
                raise ValueError(f"Missing modes in {name}: {sorted(m.value for m in missing)}")

        standard_multiplier = self.profit_multipliers[AnalysisMode.STANDARD]
        deep_multiplier = self.profit_multipliers[AnalysisMode.DEEP]
        if standard_multiplier <= 0:
            raise ValueError("profit_multipliers.standard must be > 0")
        if deep_multiplier <= standard_multiplier:
            raise ValueError("profit_multipliers.deep must be greater than profit_multipliers.standard")

        standard_floor = self.point_floors[AnalysisMode.STANDARD]
        deep_floor = self.point_floors[AnalysisMode.DEEP]
        if standard_floor < 0:
            raise ValueError("point_floors.standard must be >= 0")
        if deep_floor <= standard_floor:
            raise ValueError("point_floors.deep must be greater than point_floors.standard")

        if not self.models:
            raise ValueError("At least one model must be priced")
        for model_id, pricing in self.models.items():
            if pricing.model_id != model_id:
                raise ValueError(f"Model key {model_id!r} does not match pricing for {pricing.model_id!r}")
        if self.default_model not in self.models:
            raise ValueError(f"default_model {self.default_model!r} has no pricing")

        missing_kinds = set(ServiceKind) - set(self.fixed_prices)
        if missing_kinds:
            raise ValueError(f"Missing fixed prices: {sorted(k.value for k in missing_kinds)}")
        for kind, points in self.fixed_prices.items():
            if points < 0:
                raise ValueError(f"Fixed price for {kind.value} must be >= 0")

        tier_ids = [tier.tier_id for tier in self.tiers]
        if len(tier_ids) != len(set(tier_ids)):
            raise ValueError(f"Duplicate tier ids: {tier_ids}")

        if self.welcome_bonus_points < 0:
            raise ValueError("welcome_bonus_points must be >= 0")

        # Display hint only; the catalog tolerates zero or several
        featured = [tier.tier_id for tier in self.tiers if tier.featured]
        if self.tiers and len(featured) != 1:
            logger.warning("Expected exactly one featured tier, found %d: %s", len(featured), featured)

    def get_model_pricing(self, model_id: Optional[str] = None) -> PricingModel:
        """Get pricing for a model, using the default model's if not priced.

        Unrecognized models never block billing. The substitution can
        under- or over-charge, so it is logged as a warning.
        """
        if model_id is None:
            return self.models[self.default_model]
        pricing = self.models.get(model_id)
        if pricing is None:
            logger.warning(
                "No pricing for model %r; billing at default model %r pricing",
                model_id, self.default_model
            )
            return self.models[self.default_model]
        return pricing

    def profit_multiplier(self, mode) -> Decimal:
        """Profit multiplier for an analysis mode."""
        return self.profit_multipliers[coerce_mode(mode)]

    def point_floor(self, mode) -> int:
        """Minimum points charged for an analysis mode."""
        return self.point_floors[coerce_mode(mode)]


def default_pricing_config() -> PricingConfig:
    """Built-in pricing for the current release."""
    return PricingConfig(
        exchange_rate=Decimal("0.95"),
        points_per_currency_unit=Decimal("100"),
        batch_discount=Decimal("0.5"),
        profit_multipliers={
            AnalysisMode.STANDARD: Decimal("2.0"),
            AnalysisMode.DEEP: Decimal("3.0"),
        },
        point_floors={
            AnalysisMode.STANDARD: 5,
            AnalysisMode.DEEP: 10,
        },
        default_model="gemini-2.5-flash",
        models={
            "gemini-2.5-flash": PricingModel(
                model_id="gemini-2.5-flash",
                input_per_million=Decimal("0.50"),
                output_per_million=Decimal("2.00")
            ),
            "gemini-2.5-pro": PricingModel(
                model_id="gemini-2.5-pro",
                input_per_million=Decimal("1.25"),
                output_per_million=Decimal("5.00")
            ),
        },
        fixed_prices={
            ServiceKind.LINK_ARTICLE: 12,
            ServiceKind.SOCIAL_POST: 12,
            ServiceKind.COMMENT_ANALYSIS: 15,
            ServiceKind.SOCIAL_FULL_AUDIT: 20,
            ServiceKind.COMPARE_MODE_SURCHARGE: 5,
        },
        tiers=(
            PricingTier("starter", "Starter", Decimal("5"), 500, 0, 500, False, "1302428"),
            PricingTier("standard", "Standard", Decimal("15"), 1500, 200, 1700, True, "1302435"),
            PricingTier("professional", "Professional", Decimal("44"), 4500, 1000, 5500, False, "1302443"),
            PricingTier("enterprise", "Enterprise", Decimal("99"), 10000, 2500, 12500, False, "1302446"),
        ),
        welcome_bonus_points=100,
    )


_ALLOWED_TOP_KEYS = {
    'exchange_rate', 'points_per_currency_unit', 'batch_discount',
    'profit_multipliers', 'point_floors', 'default_model', 'models',
    'fixed_prices', 'tiers', 'welcome_bonus_points'
}


def load_pricing_config(path: str) -> PricingConfig:
    """Load and validate pricing configuration from a YAML file.

    Every section is optional; omitted sections keep the built-in
    defaults. Unknown keys are rejected so that a typo never silently
    bills at the wrong rate.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated PricingConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Pricing config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    unknown_keys = set(raw_config.keys()) - _ALLOWED_TOP_KEYS
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    defaults = default_pricing_config()

    def section(key: str, parser: Callable[[Any, str], Any], default: Any) -> Any:
        if key not in raw_config:
            return default
        return parser(raw_config[key], key)

    fixed_prices = dict(defaults.fixed_prices)
    fixed_prices.update(section('fixed_prices', _parse_fixed_prices, {}))

    return PricingConfig(
        exchange_rate=section('exchange_rate', _parse_decimal, defaults.exchange_rate),
        points_per_currency_unit=section(
            'points_per_currency_unit', _parse_decimal, defaults.points_per_currency_unit
        ),
        batch_discount=section('batch_discount', _parse_decimal, defaults.batch_discount),
        profit_multipliers=section(
            'profit_multipliers',
            lambda data, p: _parse_mode_table(data, p, _parse_decimal),
            defaults.profit_multipliers
        ),
        point_floors=section(
            'point_floors',
            lambda data, p: _parse_mode_table(data, p, _parse_int),
            defaults.point_floors
        ),
        default_model=section('default_model', _parse_str, defaults.default_model),
        models=section('models', _parse_models, defaults.models),
        fixed_prices=fixed_prices,
        tiers=section('tiers', _parse_tiers, defaults.tiers),
        welcome_bonus_points=section('welcome_bonus_points', _parse_int, defaults.welcome_bonus_points),
    )


def _parse_decimal(value: Any, path: str) -> Decimal:
    """Parse a number into a Decimal without float noise."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"'{path}' must be a number")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"'{path}' must be a number, got {value!r}")
    # YAML .nan and .inf parse as floats
    if not result.is_finite():
        raise ValueError(f"'{path}' must be a finite number")
    return result


def _parse_int(value: Any, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{path}' must be an integer")
    return value


def _parse_str(value: Any, path: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{path}' must be a non-empty string")
    return value


def _require_dict(data: Any, path: str) -> Dict:
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")
    return data


def _parse_mode_table(data: Any, path: str, parse_value: Callable[[Any, str], Any]) -> Dict[AnalysisMode, Any]:
    """Parse a {standard: x, deep: y} table."""
    _require_dict(data, path)

    valid_modes = {mode.value for mode in AnalysisMode}
    unknown_keys = set(data.keys()) - valid_modes
    if unknown_keys:
        raise ValueError(f"Unknown modes in {path}: {unknown_keys}")

    table = {}
    for mode in AnalysisMode:
        if mode.value not in data:
            raise ValueError(f"Missing required '{mode.value}' in {path}")
        table[mode] = parse_value(data[mode.value], f"{path}.{mode.value}")
    return table


def _parse_models(data: Any, path: str) -> Dict[str, PricingModel]:
    """Parse the per-model price table."""
    _require_dict(data, path)
    if not data:
        raise ValueError(f"'{path}' must price at least one model")

    allowed_keys = {'input_per_million', 'output_per_million'}
    models = {}
    for model_id, model_data in data.items():
        model_path = f"{path}.{model_id}"
        _require_dict(model_data, model_path)

        unknown_keys = set(model_data.keys()) - allowed_keys
        if unknown_keys:
            raise ValueError(f"Unknown keys in {model_path}: {unknown_keys}")
        for key in sorted(allowed_keys):
            if key not in model_data:
                raise ValueError(f"Missing required '{key}' in {model_path}")

        models[str(model_id)] = PricingModel(
            model_id=str(model_id),
            input_per_million=_parse_decimal(model_data['input_per_million'], f"{model_path}.input_per_million"),
            output_per_million=_parse_decimal(model_data['output_per_million'], f"{model_path}.output_per_million")
        )
    return models


def _parse_fixed_prices(data: Any, path: str) -> Dict[ServiceKind, int]:
    """Parse fixed prices; listed kinds override the defaults individually."""
    _require_dict(data, path)

    prices = {}
    for key, value in data.items():
        try:
            kind = ServiceKind(key)
        except ValueError:
            valid_kinds = [kind.value for kind in ServiceKind]
            raise ValueError(f"Unknown service kind '{key}' in {path}; must be one of: {valid_kinds}")
        prices[kind] = _parse_int(value, f"{path}.{key}")
    return prices


def _parse_tiers(data: Any, path: str) -> Tuple[PricingTier, ...]:
    """Parse the ordered tier list."""
    if not isinstance(data, list):
        raise ValueError(f"'{path}' must be a list")

    allowed_keys = {
        'id', 'name', 'price', 'base_points', 'bonus_points',
        'total_points', 'featured', 'variant_id'
    }
    required_keys = ['id', 'name', 'price', 'base_points', 'variant_id']

    tiers: List[PricingTier] = []
    for index, tier_data in enumerate(data):
        tier_path = f"{path}[{index}]"
        _require_dict(tier_data, tier_path)

        unknown_keys = set(tier_data.keys()) - allowed_keys
        if unknown_keys:
            raise ValueError(f"Unknown keys in {tier_path}: {unknown_keys}")
        for key in required_keys:
            if key not in tier_data:
                raise ValueError(f"Missing required '{key}' in {tier_path}")

        base_points = _parse_int(tier_data['base_points'], f"{tier_path}.base_points")
        bonus_points = _parse_int(tier_data.get('bonus_points', 0), f"{tier_path}.bonus_points")
        total_points = _parse_int(
            tier_data.get('total_points', base_points + bonus_points),
            f"{tier_path}.total_points"
        )

        featured = tier_data.get('featured', False)
        if not isinstance(featured, bool):
            raise ValueError(f"'{tier_path}.featured' must be a boolean")

        tiers.append(PricingTier(
            tier_id=_parse_str(tier_data['id'], f"{tier_path}.id"),
            name=_parse_str(tier_data['name'], f"{tier_path}.name"),
            price=_parse_decimal(tier_data['price'], f"{tier_path}.price"),
            base_points=base_points,
            bonus_points=bonus_points,
            total_points=total_points,
            featured=featured,
            # YAML reads unquoted variant ids as integers
            variant_id=str(tier_data['variant_id'])
        ))
    return tuple(tiers)


# Process-wide configuration, loaded once
_pricing_config: Optional[PricingConfig] = None


def get_pricing_config() -> PricingConfig:
    """Get the process-wide pricing configuration.

    Loads the file named by FACTCHECK_PRICING_CONFIG on first use, or the
    built-in defaults when the variable is unset.
    """
    global _pricing_config
    if _pricing_config is None:
        path = os.getenv(CONFIG_ENV_VAR)
        if path:
            logger.info("Loading pricing configuration from %s", path)
            _pricing_config = load_pricing_config(path)
        else:
            _pricing_config = default_pricing_config()
    return _pricing_config


def reset_pricing_config() -> None:
    """Forget the cached configuration so the next access reloads it."""
    global _pricing_config
    _pricing_config = None
