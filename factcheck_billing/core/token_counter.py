"""
Usage records reported by the generation call.

Holds the raw prompt/candidate counts consumed by the cost calculator.
"""

from dataclasses import dataclass

from .errors import InvalidUsageError


def _validate_units(name: str, value) -> None:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidUsageError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidUsageError(f"{name} must be >= 0, got {value}")


@dataclass(frozen=True)
class UsageRecord:
    """Usage counts for one analysis request.

    Ephemeral: produced once per request and consumed immediately by the
    cost calculator. Only the derived points charge is persisted.
    """
    prompt_units: int
    candidate_units: int

    def __post_init__(self):
        """Validate counts are non-negative integers."""
        _validate_units("prompt_units", self.prompt_units)
        _validate_units("candidate_units", self.candidate_units)

    @property
    def total_units(self) -> int:
        """Total units used (prompt + candidate)."""
        return self.prompt_units + self.candidate_units
