"""VibeReader command line entry points."""

from vibereader import __version__

__all__ = ["__version__"]
