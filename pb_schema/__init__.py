"""
PocketBase Schema Module

Bootstraps the collections used by the operational sync on a fresh
PocketBase server.
"""

__version__ = "1.0.0"
