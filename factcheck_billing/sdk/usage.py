"""
Usage extraction and billing for generation responses.

Reads usage metadata from a completed generation call and settles the
charge. The call itself is always made by the caller.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from ..core.billing import Biller, ChargeResult
from ..core.estimator import TokenEstimate
from ..core.modes import AnalysisMode, ServiceKind, coerce_mode
from ..core.token_counter import UsageRecord

logger = logging.getLogger(__name__)


def _field(obj: Any, *names: str) -> Any:
    """First present field among names, from a mapping or an object."""
    if obj is None:
        return None
    for name in names:
        if isinstance(obj, Mapping):
            value = obj.get(name)
        else:
            value = getattr(obj, name, None)
        if value is not None:
            return value
    return None


def usage_from_response(response: Any) -> UsageRecord:
    """Extract usage counts from a generation response.

    Supports google-genai responses (usage_metadata.prompt_token_count /
    candidates_token_count), REST payloads (usageMetadata.promptTokenCount /
    candidatesTokenCount) and OpenAI-style usage (prompt_tokens /
    completion_tokens). Missing counts bill as zero.

    Raises:
        InvalidUsageError: If a reported count is negative or not an integer
    """
    metadata = _field(response, "usage_metadata", "usageMetadata")
    if metadata is not None:
        prompt_units = _field(metadata, "prompt_token_count", "promptTokenCount")
        candidate_units = _field(metadata, "candidates_token_count", "candidatesTokenCount")
    else:
        usage = _field(response, "usage")
        if usage is None:
            logger.warning("Response has no usage metadata; billing as zero usage")
            return UsageRecord(prompt_units=0, candidate_units=0)
        prompt_units = _field(usage, "prompt_tokens")
        candidate_units = _field(usage, "completion_tokens")

    return UsageRecord(
        prompt_units=prompt_units or 0,
        candidate_units=candidate_units or 0
    )


class BilledAnalysis:
    """Bills one user's analysis requests.

    Checks affordability before the call and settles the charge from the
    response afterwards. All failures are loud so no charge is silently lost.
    """

    def __init__(
        self,
        user_id: str,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDARD,
        biller: Optional[Biller] = None,
        service_kind: Optional[Union[ServiceKind, str]] = None,
        is_batch: bool = False,
        model_id: Optional[str] = None
    ):
        """Initialize a billed analysis.

        Args:
            user_id: Account to charge (required)
            mode: Analysis mode
            biller: Biller to use (defaults to one on the process-wide config)
            service_kind: Fixed-price service, or None for usage billing
            is_batch: Whether the batch path is used
            model_id: Model to price; defaults to the response's model version

        Raises:
            ValueError: If user_id is missing/empty or mode is unknown
        """
        if not user_id or not user_id.strip():
            raise ValueError("user_id is required and cannot be empty")

        self.user_id = user_id
        self.mode = coerce_mode(mode)
        self.biller = biller or Biller()
        self.service_kind = service_kind
        self.is_batch = is_batch
        self.model_id = model_id

    def preflight(self, balance: int, estimate: Optional[TokenEstimate] = None) -> int:
        """Check the balance before making the call.

        Raises:
            InsufficientPointsError: If balance is below the requirement
        """
        return self.biller.preflight(
            balance,
            mode=self.mode,
            service_kind=self.service_kind,
            estimate=estimate,
            is_batch=self.is_batch,
            model_id=self.model_id
        )

    def settle(self, response: Any, description: str = "") -> ChargeResult:
        """Charge the user for a completed response.

        Args:
            response: Generation response carrying usage metadata
            description: Ledger description

        Returns:
            ChargeResult with points deducted and the new balance

        Raises:
            InvalidUsageError: If the response reports invalid usage
            InsufficientPointsError: If the balance no longer covers the charge
            Database errors: Propagated without modification
        """
        usage = usage_from_response(response)
        model_id = self.model_id or _field(response, "model_version", "modelVersion")

        return self.biller.settle(
            self.user_id,
            usage,
            mode=self.mode,
            service_kind=self.service_kind,
            is_batch=self.is_batch,
            model_id=model_id,
            description=description
        )
