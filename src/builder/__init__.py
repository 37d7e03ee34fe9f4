"""
HotSwap Builder Package.

Toolchain invocation for the watched source tree.
Requires Python 3.11+.
"""

from builder.compiler import BuildResult, Compiler

__all__ = ["BuildResult", "Compiler"]
