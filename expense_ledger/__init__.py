"""
Expense Ledger - Source Package

Storage and aggregation core for a personal expense tracker.

DESIGN PRINCIPLES:
1. An expense and its items are written as one atomic unit
2. The expense total is derived, never entered
3. Fail early, fail visibly
4. Summaries are always recomputed from stored data
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Ledger Team"
