"""
BizzyTrack Core Time — Public API
==================================
"""

from core.time.clock import Clock, FixedClock, SystemClock

__all__ = ["Clock", "FixedClock", "SystemClock"]
