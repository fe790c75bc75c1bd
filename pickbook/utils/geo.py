# pickbook/utils/geo.py
"""
Geometry helpers for area discovery and directions.

decode_polyline() reads the standard encoded polyline format (precision 5) as
returned in Directions ``steps[].polyline.points``.
"""

import math
from typing import Iterable, Optional
from urllib.parse import urlencode

EARTH_RADIUS_M = 6_371_000


def decode_polyline(encoded: str, precision: int = 5) -> list[tuple[float, float]]:
    """
    "_p~iF~ps|U_ulLnnqC_mqNvxq`@" → [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]

    Raises:
        ValueError: truncated input
    """
    factor = 10 ** precision
    points = []
    index = lat = lng = 0
    length = len(encoded)

    while index < length:
        deltas = []
        for _ in range(2):
            shift = result = 0
            while True:
                if index >= length:
                    raise ValueError("Truncated polyline")
                b = ord(encoded[index]) - 63
                index += 1
                result |= (b & 0x1F) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)

        lat += deltas[0]
        lng += deltas[1]
        points.append((round(lat / factor, precision), round(lng / factor, precision)))

    return points


def haversine_m(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Great-circle distance between two (lat, lng) points in metres."""
    lat1, lng1 = map(math.radians, a)
    lat2, lng2 = map(math.radians, b)
    h = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def path_length_m(points: Iterable[tuple[float, float]]) -> float:
    total = 0.0
    prev: Optional[tuple[float, float]] = None
    for p in points:
        if prev is not None:
            total += haversine_m(prev, p)
        prev = p
    return total


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{int(round(meters))} m"
    return f"{meters / 1000:.1f} km"


def directions_url(origin: Optional[tuple[float, float]], destination: tuple[float, float]) -> str:
    """Google Maps directions link (works without origin: Maps uses the device location)."""
    params = {"api": 1, "destination": f"{destination[0]},{destination[1]}"}
    if origin:
        params["origin"] = f"{origin[0]},{origin[1]}"
    return f"https://www.google.com/maps/dir/?{urlencode(params)}"
