"""
HotSwap Command Line Package.

Requires Python 3.11+.
"""
