"""
Quote Tool Package

A dynamic quote-form pricing engine for merchant-authored product schemas.
Resolves derived fields, checks visibility and required choices, and composes
a price breakdown from base, unit, step and multiplier pricing rules.
"""

__version__ = "1.0.0"
