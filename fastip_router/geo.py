import asyncio
import logging
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)

async def lookup_region(url: str, timeout: float = 10.0,
                        session: Optional[aiohttp.ClientSession] = None) -> dict:
    """Public IP and location of this host, or {} if the lookup fails."""
    owned = session is None
    session = session or aiohttp.ClientSession()
    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
            response.raise_for_status()
            data = await response.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.warning("Region lookup via %s failed: %r", url, e)
        return {}
    finally:
        if owned:
            await session.close()

    if not isinstance(data, dict) or data.get("status", "success") != "success":
        logger.warning("Region lookup via %s returned no location", url)
        return {}
    return {
        "ip": data.get("query"),
        "country": data.get("country"),
        "region": data.get("regionName"),
        "city": data.get("city"),
        "isp": data.get("isp"),
    }
