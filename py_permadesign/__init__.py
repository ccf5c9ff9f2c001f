"""Terrain analysis and constrained placement for permaculture site design."""

__version__ = "0.1.0"
