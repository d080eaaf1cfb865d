"""
SDK for FactCheck billing.

Bills generative-AI responses against the points ledger.
"""

from .usage import BilledAnalysis, usage_from_response

__all__ = ["BilledAnalysis", "usage_from_response"]
