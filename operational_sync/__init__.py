"""
Operational Sync Module

This module recomputes daily and shift aggregates ("footer data") from
hourly plant readings, derives material usage rollups from counter-feeder
aggregates, and upserts both into the backend collections.
"""

__version__ = "1.0.0"
