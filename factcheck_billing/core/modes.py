"""
Analysis modes and billable service kinds.
"""

from enum import Enum
from typing import Union


class AnalysisMode(Enum):
    """Depth of an analysis; selects cost multiplier and floor."""
    STANDARD = "standard"
    DEEP = "deep"


class ServiceKind(Enum):
    """Services billed at a fixed points price."""
    LINK_ARTICLE = "link-article"
    SOCIAL_POST = "social-post"
    COMMENT_ANALYSIS = "comment-analysis"
    SOCIAL_FULL_AUDIT = "social-full-audit"
    COMPARE_MODE_SURCHARGE = "compare-mode-surcharge"


def coerce_mode(mode: Union[AnalysisMode, str]) -> AnalysisMode:
    """Accept an AnalysisMode or its string value.

    Raises:
        ValueError: If the string is not a known mode
    """
    if isinstance(mode, AnalysisMode):
        return mode
    try:
        return AnalysisMode(str(mode).lower())
    except ValueError:
        valid_modes = [m.value for m in AnalysisMode]
        raise ValueError(f"Unknown analysis mode: {mode!r} (expected one of {valid_modes})")
