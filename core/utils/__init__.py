"""
Core Utilities Package

Modules:
    - time: Timestamp conversion and normalization utilities
"""

from core.utils.time import current_utc_timestamp, to_epoch_millis

__all__ = ["current_utc_timestamp", "to_epoch_millis"]
