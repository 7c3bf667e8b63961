"""
Geometry kernel.

Great-circle distance, bounding boxes, planar polygon area and
point-in-polygon membership for small regions expressed in degrees.

Area uses an equirectangular approximation: the shoelace formula in
degree space, scaled by fixed km-per-degree factors at a reference
latitude. Good enough for a city-sized region, not geodesically exact.
"""

import math
from typing import Sequence

import numpy as np

from .exceptions import EmptyInputError
from .models import BBox, GeoPoint

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0
MIN_AREA_KM2 = 0.01

# Northern bound of the default (Portland) region
DEFAULT_REFERENCE_LAT = 45.65


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine distance between two points in kilometres."""
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat))
        * math.cos(math.radians(b.lat))
        * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push h a hair above 1 for antipodal points
    h = min(max(h, 0.0), 1.0)
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distances_km(origin: GeoPoint, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """
    Vectorised haversine from one origin to many points.

    Args:
        origin: Point to measure from
        lats: Latitudes in degrees
        lons: Longitudes in degrees

    Returns:
        Array of distances in kilometres, same shape as ``lats``
    """
    lat1 = math.radians(origin.lat)
    lat2 = np.radians(lats)
    d_lat = lat2 - lat1
    d_lon = np.radians(lons) - math.radians(origin.lon)

    h = np.sin(d_lat / 2) ** 2 + math.cos(lat1) * np.cos(lat2) * np.sin(d_lon / 2) ** 2
    # Rounding can push h a hair above 1 for antipodal points
    h = np.clip(h, 0.0, 1.0)
    return EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))


def bounding_box(points: Sequence[GeoPoint]) -> BBox:
    """Componentwise min/max of ``points``."""
    if len(points) == 0:
        raise EmptyInputError("Cannot compute a bounding box of zero points")

    lats = [p.lat for p in points]
    lons = [p.lon for p in points]
    return BBox(
        min_lat=min(lats), max_lat=max(lats), min_lon=min(lons), max_lon=max(lons)
    )


def km_per_degree_lon(reference_lat: float) -> float:
    return KM_PER_DEGREE_LAT * math.cos(math.radians(reference_lat))


def polygon_area_km2(
    ring: Sequence[GeoPoint],
    reference_lat: float = DEFAULT_REFERENCE_LAT,
    min_area: float = MIN_AREA_KM2,
) -> float:
    """
    Approximate polygon area in square kilometres.

    The ring may be open or closed; a closing duplicate contributes nothing
    to the shoelace sum. Orientation does not matter.

    Args:
        ring: Polygon vertices
        reference_lat: Latitude used to scale longitude degrees to km
            (the region's northern bound)
        min_area: Floor returned for degenerate or tiny rings so callers
            can divide by the result

    Returns:
        Area in km², never below ``min_area``
    """
    n = len(ring)
    if n < 3:
        return min_area

    twice_area = 0.0
    for i in range(n):
        j = (i + 1) % n
        twice_area += ring[i].lon * ring[j].lat
        twice_area -= ring[j].lon * ring[i].lat

    area_sq_degrees = abs(twice_area / 2)
    area = area_sq_degrees * KM_PER_DEGREE_LAT * km_per_degree_lon(reference_lat)
    return max(area, min_area)


def point_in_polygon(point: GeoPoint, ring: Sequence[GeoPoint]) -> bool:
    """Ray-casting parity test.

    The ring wraps last→first implicitly. Points exactly on an edge get
    whatever the parity test yields.
    """
    n = len(ring)
    if n == 0:
        return False

    inside = False
    j = n - 1
    for i in range(n):
        yi, xi = ring[i].lat, ring[i].lon
        yj, xj = ring[j].lat, ring[j].lon
        if (yi > point.lat) != (yj > point.lat):
            x_cross = (xj - xi) * (point.lat - yi) / (yj - yi) + xi
            if point.lon < x_cross:
                inside = not inside
        j = i
    return inside
