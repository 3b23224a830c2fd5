"""School coordinates for the check-in geofence.

The academic service owns school records; a tenant's school is looked up at
``GET {base_url}/api/v1/schools/tenant/{tenant_id}``. Any lookup failure yields
``None`` and the caller skips the distance check.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

from ..core.constants import DEFAULT_SCHOOL_RADIUS_METERS

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000.0


@dataclass(frozen=True)
class SchoolLocation:
    latitude: float
    longitude: float
    radius_meters: float = DEFAULT_SCHOOL_RADIUS_METERS


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle (haversine) distance."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class SchoolLocationClient(Protocol):
    def get_location(self, tenant_id: str) -> Optional[SchoolLocation]:
        raise NotImplementedError


class HttpSchoolLocationClient(SchoolLocationClient):
    def __init__(self, base_url: str, *, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout)
        self._session = session or requests.Session()

    def get_location(self, tenant_id: str) -> Optional[SchoolLocation]:
        url = f"{self._base_url}/api/v1/schools/tenant/{tenant_id}"
        try:
            response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("school lookup failed tenant=%s: %s", tenant_id, e)
            return None

        data = body.get("data") if isinstance(body, dict) and body.get("success") else None
        if not isinstance(data, dict):
            logger.warning("school lookup returned no data tenant=%s", tenant_id)
            return None
        try:
            return SchoolLocation(
                latitude=float(data["latitude"]),
                longitude=float(data["longitude"]),
                radius_meters=float(data.get("radius") or DEFAULT_SCHOOL_RADIUS_METERS),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("school lookup returned no coordinates tenant=%s", tenant_id)
            return None
