"""bundle-rewriter.

A build utility that rewrites a bundled JavaScript CLI so it can be compiled
into a single self-contained executable, with its native helper binaries and
layout engine embedded.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
