"""Family tree graph engine with invitation linking and cross-tree merging."""

__version__ = "0.1.0"
