"""Geotagged photo tiles on an interactive map."""

__version__ = "1.0.0"
