"""
Address geocoding (Google Maps Geocoding API)

Optional: without GOOGLE_MAPS_API_KEY the client falls back to free-text address entry.
"""

import logging
from typing import Optional

import httpx

from ..cache import cache
from ..config import GOOGLE_MAPS_API_KEY
from ..loaders import LazyResource

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
CACHE_SECONDS = 86400

api_key_loader: LazyResource[str] = LazyResource("Google Maps geocoding", lambda: GOOGLE_MAPS_API_KEY or None)


def _component(components: list[dict], kind: str) -> Optional[str]:
    for component in components:
        if kind in component.get("types", []):
            return component.get("long_name")
    return None


async def geocode_address(address: str) -> dict:
    """
    Resolve an address to coordinates and structured fields

    Returns:
        {"configured": False} without an API key, {"configured": True, "found": False}
        when Google has no match, else the structured address
    """
    api_key = api_key_loader.get()
    if not api_key:
        return {"configured": False}

    address = (address or "").strip()
    if len(address) < 3:
        return {"configured": True, "found": False}

    cache_key = f"geo:google:{address.lower()}"
    cached = cache.get(cache_key)
    if cached:
        return cached

    async with httpx.AsyncClient(timeout=10.0) as client:
        response = await client.get(
            GEOCODE_URL, params={"address": address, "key": api_key, "region": "fr", "language": "fr"}
        )

    if response.status_code >= 400:
        logger.warning(f"⚠️ Geocoding error {response.status_code}: {response.text[:200]}")
        raise Exception("Geocoding provider error")

    data = response.json()
    results = data.get("results") or []
    if data.get("status") != "OK" or not results:
        return {"configured": True, "found": False}

    first = results[0]
    components = first.get("address_components", [])
    location = first.get("geometry", {}).get("location", {})
    street_number = _component(components, "street_number")
    route = _component(components, "route")

    result = {
        "configured": True,
        "found": True,
        "formatted_address": first.get("formatted_address"),
        "address_line": " ".join(part for part in [street_number, route] if part) or None,
        "postal_code": _component(components, "postal_code"),
        "city": _component(components, "locality"),
        "latitude": location.get("lat"),
        "longitude": location.get("lng"),
    }
    cache.set(cache_key, result, ttl=CACHE_SECONDS)
    return result
