"""
Expense Tracker - Source Package

A personal finance tracker: record income and expenses, see totals and
category breakdowns, export to CSV, and ask for spending insights.

DESIGN PRINCIPLES:
1. The store is the single source of truth
2. Aggregates are rebuilt from a full listing, never patched
3. Fail early, fail visibly
4. Every mutation must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
