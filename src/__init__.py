"""guidelint: guideline-driven compliance analysis for short text snippets."""

from guidelint.version import __version__

__all__ = ["__version__"]
