"""Conditional effect reconciliation engine for a tabletop RPG virtual tabletop."""

__version__ = "1.2.0"
