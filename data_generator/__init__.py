"""
Data Generator Module

Synthetic parameter settings and hourly plant readings for development
and testing against a local PocketBase server.
"""

__version__ = "1.0.0"
