"""
Verdant View - Source Package

A personal expense tracker whose entire state lives in one local
database file: expenses, categories, reminders and the budget setting.

DESIGN PRINCIPLES:
1. The local store is the single source of truth
2. Default data is always present after initialization
3. AI suggestions are untrusted input until validated
4. A reminder milestone notifies at most once, ever
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Verdant View Team"
