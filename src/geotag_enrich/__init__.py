"""Geotag enrichment: address, highway km marker and nearby landmarks."""

__version__ = "0.1.0"
