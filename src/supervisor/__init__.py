"""
HotSwap Supervisor Package.

Requires Python 3.11+.
"""

from supervisor.process_supervisor import ChildState, ProcessSupervisor

__all__ = ["ChildState", "ProcessSupervisor"]
