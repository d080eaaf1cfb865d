"""
Pricing configuration.
"""
