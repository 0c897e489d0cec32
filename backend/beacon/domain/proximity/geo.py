"""Distance and placement helpers for proximity features."""

from __future__ import annotations

import dataclasses
import math
import zlib
from typing import Sequence

from beacon.domain.identity.models import Coordinates, UserProfile

EARTH_RADIUS_M = 6_371_000
# Offsets are expressed in degrees: 0.003-0.005 deg is roughly 300-500 m
SCATTER_MIN_RADIUS_DEG = 0.003
SCATTER_RADIUS_SPAN_DEG = 0.002


def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance between two points in meters."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # Rounding can push a past 1 for antipodal points; NaN passes through untouched
    if a > 1.0:
        a = 1.0
    elif a < 0.0:
        a = 0.0
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_distance(meters: float) -> str:
    """Human readable distance: whole meters below 1 km, then kilometers."""

    if math.isnan(meters):
        return "Unknown"
    if meters < 1000:
        return f"{math.floor(meters + 0.5)} m"
    km = meters / 1000
    if km < 10:
        return f"{km:.1f} km"
    return f"{km:.0f} km"


def seeded_random(seed: float) -> float:
    """Deterministic value in [0, 1) for a seed.

    This is a stand-in for real GPS fixes in demos, not a quality PRNG.
    """

    x = math.sin(seed) * 10000
    return x - math.floor(x)


def stable_offsets(seed: float) -> tuple[float, float]:
    """Return a (lat, lon) offset in degrees that is fixed for a given seed."""

    base = seed or 1
    angle = seeded_random(base * 1.37) * 2 * math.pi
    radius = SCATTER_MIN_RADIUS_DEG + seeded_random(base * 3.11) * SCATTER_RADIUS_SPAN_DEG
    return math.sin(angle) * radius, math.cos(angle) * radius


def scatter_seed(profile: UserProfile) -> float:
    if isinstance(profile.id, int) and profile.id > 0:
        return float(profile.id)
    # crc32 rather than hash(): str hashes are salted per process
    fallback = profile.email or profile.display_name or ""
    return float(zlib.crc32(fallback.encode("utf-8")) % 100_000 + 1)


def scatter_around(users: Sequence[UserProfile], center_lat: float, center_lon: float) -> list[UserProfile]:
    """Place users at reproducible points a few hundred meters around a center.

    Inputs are left untouched; each result is a copy with ``coords`` replaced.
    """

    positioned: list[UserProfile] = []
    for user in users:
        lat_offset, lon_offset = stable_offsets(scatter_seed(user))
        positioned.append(
            dataclasses.replace(
                user,
                coords=Coordinates(latitude=center_lat + lat_offset, longitude=center_lon + lon_offset),
            )
        )
    return positioned
