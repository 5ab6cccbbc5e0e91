"""
Utility functions for the Ledger.

This package contains:
- datetime_utils: timezone-aware timestamps
- decimal_utils: monetary amount conversion and column precision
"""
