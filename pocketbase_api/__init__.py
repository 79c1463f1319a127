"""
PocketBase API Module

This module wraps the PocketBase collection REST API (list, full list,
create, update, delete) with authentication and retry handling.
"""

__version__ = "1.0.0"
