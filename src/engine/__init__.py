"""
HotSwap Engine Package.

The watch, debounce, rebuild and swap control loop.
Requires Python 3.11+.
"""

from engine.restarter import Restarter

__all__ = ["Restarter"]
