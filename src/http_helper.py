# HTTP Helper for description document fetches
# Session configuration for plain-HTTP connections to SAT>IP servers on the local network

import aiohttp
import logging

logger = logging.getLogger(__name__)

def create_description_session(timeout_seconds: float = 5) -> aiohttp.ClientSession:
    """
    Create aiohttp session for fetching device description documents
    One session is shared by all fetches of a discovery run and closed with it
    """
    connector = aiohttp.TCPConnector(
        limit_per_host=2,           # Servers are small embedded devices
        ssl=False,                  # Description documents are served over HTTP
        force_close=True,           # One request per device, no keep-alive
        enable_cleanup_closed=True
    )

    logger.debug(f"Creating description session (timeout={timeout_seconds}s)")
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )
