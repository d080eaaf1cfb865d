"""
FactCheck points billing.

Pre-flight usage estimation, points pricing for analyses, and the
fixed-price and tier catalog.
"""

__version__ = "0.1.0"
