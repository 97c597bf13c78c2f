"""
Core Utilities.

Shared utility functions used across the application.
All modules should import utilities from this module.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-naive datetime.

    All datetime values stored in the database are timezone-naive
    and assumed to be UTC. This ensures consistent behavior across
    PostgreSQL and SQLite.

    Returns:
        Current UTC time with tzinfo stripped
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_now_aware() -> datetime:
    """
    Return current UTC time as a timezone-aware datetime.

    Used for values that leave the process (event timestamps), so the
    wire format carries an explicit UTC offset.
    """
    return datetime.now(timezone.utc)
