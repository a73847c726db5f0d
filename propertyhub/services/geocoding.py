"""
Nominatim (OpenStreetMap) forward geocoding for property addresses.
No API key required, just a descriptive user agent string.
"""

import logging
from typing import Optional

import httpx

from ..config import NOMINATIM_BASE_URL, NOMINATIM_USER_AGENT

logger = logging.getLogger(__name__)


async def geocode_address(street: str, city: str, state: str, zip_code: str) -> Optional[tuple[float, float]]:
    """
    Resolve an address to (latitude, longitude).

    Returns None when the address is not found or the lookup fails; callers
    treat coordinates as optional.
    """
    query = ", ".join(part for part in (street, city, state, zip_code) if part)
    params = {"q": query, "format": "json", "limit": "1"}
    headers = {"User-Agent": NOMINATIM_USER_AGENT}

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(f"{NOMINATIM_BASE_URL}/search", params=params, headers=headers)
            response.raise_for_status()
            results = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"⚠️ Geocoding failed for '{query}': {e}")
        return None

    if not results:
        logger.info(f"📍 No geocoding result for '{query}'")
        return None

    try:
        lat = float(results[0]["lat"])
        lng = float(results[0]["lon"])
    except (KeyError, TypeError, ValueError):
        logger.warning(f"⚠️ Unexpected geocoding payload for '{query}': {results[0]}")
        return None

    logger.info(f"📍 Geocoded '{query}' -> ({lat}, {lng})")
    return lat, lng
