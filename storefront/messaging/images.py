from typing import Optional

import httpx

from storefront.config.settings import config_settings
from storefront.messaging.constants import IMAGE_TIMEOUT_SECONDS, logger


async def fetch_category_image(query: str) -> Optional[str]:
    """First matching photo url from the image search service, or None."""
    if not config_settings.UNSPLASH_ACCESS_KEY:
        return None

    url = f"{config_settings.UNSPLASH_API_URL}/search/photos"
    params = {"query": query, "per_page": 1, "orientation": "landscape"}
    headers = {"Authorization": f"Client-ID {config_settings.UNSPLASH_ACCESS_KEY}"}
    try:
        async with httpx.AsyncClient(timeout=IMAGE_TIMEOUT_SECONDS) as client:
            resp = await client.get(url, params=params, headers=headers)
            resp.raise_for_status()
            data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("image.fetch.failed", extra={"query": query, "error": str(exc)})
        return None

    results = data.get("results") or []
    if not results:
        return None
    return (results[0].get("urls") or {}).get("regular")
