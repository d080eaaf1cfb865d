"""
Core modules for FactCheck billing.

This package contains usage estimation, points pricing, the fixed-price
catalog, and the billing flow that ties them to the ledger.
"""
