"""
GPS point helpers.
Points are stored as WKT text in lon/lat order: POINT(<lon> <lat>).
"""
import math
import re
from typing import Optional, Dict

_WKT_POINT = re.compile(r"POINT\s*\(\s*([^\s)]+)\s+([^\s)]+)\s*\)", re.IGNORECASE)


def create_wkt_point(latitude: Optional[float], longitude: Optional[float]) -> Optional[str]:
    """Build a WKT point; None unless both coordinates are present."""
    if latitude is None or longitude is None:
        return None
    return f"POINT({longitude} {latitude})"


def parse_wkt_point(wkt: Optional[str]) -> Optional[Dict[str, float]]:
    """
    Parse a WKT point back into coordinates.

    Returns:
        {"latitude": ..., "longitude": ...} or None when unparseable
    """
    if not wkt or not isinstance(wkt, str):
        return None
    match = _WKT_POINT.search(wkt)
    if not match:
        return None
    try:
        longitude = float(match.group(1))
        latitude = float(match.group(2))
    except ValueError:
        return None
    if math.isnan(longitude) or math.isnan(latitude):
        return None
    return {"latitude": latitude, "longitude": longitude}
