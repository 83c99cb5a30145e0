"""Argument checking helpers for MCP tools."""

from pydantic import ValidationError

from ..models import Coordinate


def require_coordinate(lat: float | None, lon: float | None) -> Coordinate:
    """Raise ValueError with a descriptive message unless lat/lon form a valid coordinate.

    Usage in a tool:
        try:
            coord = require_coordinate(lat, lon)
        except ValueError as e:
            return f"Error: {e}"
    """
    if lat is None or lon is None:
        raise ValueError("Provide both lat and lon in decimal degrees.")
    try:
        return Coordinate(lat=lat, lon=lon)
    except ValidationError:
        raise ValueError(
            f"Invalid coordinate ({lat}, {lon}): latitude must be within -90..90 "
            "and longitude within -180..180."
        ) from None
