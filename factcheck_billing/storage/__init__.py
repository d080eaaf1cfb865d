"""
Points ledger storage.
"""
