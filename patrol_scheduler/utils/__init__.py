"""
Utility modules for the Patrol Scheduler
"""
from .timezone import get_zone, to_naive_utc, utc_to_local, utcnow

__all__ = ['get_zone', 'to_naive_utc', 'utc_to_local', 'utcnow']
