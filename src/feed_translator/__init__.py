"""Fetch RSS/Atom feeds, translate their entries and republish them."""

__version__ = "1.0.0"
