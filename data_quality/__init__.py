"""
Data Quality Module

This module validates hourly plant readings against their parameter
settings: unparseable values, out-of-range readings and counter feeders
that run backwards.
"""

__version__ = "1.0.0"
