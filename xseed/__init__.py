"""xseed - cross-seed torrents already held in a download client."""

from .__version__ import __version__

__all__ = ["__version__"]
