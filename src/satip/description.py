"""
Fetching and parsing of SAT>IP device description documents
"""

import asyncio
import logging
import xml.etree.ElementTree as ET
from typing import Optional

import aiohttp
from yarl import URL

from .errors import DiscoveryError, ErrorType
from .models import DescriptionStatus, DiscoveryResponse, SatIpServer

logger = logging.getLogger(__name__)


async def fetch_description(session: aiohttp.ClientSession, url: URL,
                            max_bytes: int = 256 * 1024) -> bytes:
    """
    GET the description document at ``url`` and return its body.
    Not retried: the server may have left the network since it replied.
    """
    logger.debug(f"Fetching description document {url}")
    try:
        async with session.get(url) as response:
            if response.status != 200:
                raise DiscoveryError(ErrorType.DESCRIPTION_FETCH_FAILED,
                                     f"HTTP {response.status} for {url}")
            body = bytearray()
            async for chunk in response.content.iter_any():
                body.extend(chunk)
                if len(body) > max_bytes:
                    raise DiscoveryError(ErrorType.DESCRIPTION_FETCH_FAILED,
                                         f"Description document {url} exceeds {max_bytes} bytes")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise DiscoveryError(ErrorType.DESCRIPTION_FETCH_FAILED,
                             f"Could not fetch description document {url}") from e

    logger.debug(f"Fetched {len(body)} bytes from {url}")
    return bytes(body)


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit('}', 1)[-1]


def _find_device(root: ET.Element) -> Optional[ET.Element]:
    for element in root.iter():
        if _local_name(element.tag) == 'device':
            return element
    return None


def _child_text(device: ET.Element, name: str) -> Optional[str]:
    for child in device:
        if _local_name(child.tag) == name:
            text = (child.text or "").strip()
            return text or None
    return None


def parse_description(document: bytes, response: DiscoveryResponse) -> SatIpServer:
    """
    Extract device metadata from a UPnP description document.
    Never raises; an unparseable document yields a record with every
    field absent and ``description_status`` MALFORMED.
    """
    try:
        root = ET.fromstring(document)
    except (ET.ParseError, LookupError, ValueError) as e:
        # LookupError: expat rejects an unknown encoding in the XML declaration
        logger.warning(f"Malformed description document at {response.location}: {e}")
        return SatIpServer(
            manufacturer=None,
            model_name=None,
            discovery_response=response,
            description_status=DescriptionStatus.MALFORMED,
        )

    device = _find_device(root)
    if device is None:
        logger.debug(f"No device element in description document at {response.location}")
        return SatIpServer(manufacturer=None, model_name=None, discovery_response=response)

    return SatIpServer(
        manufacturer=_child_text(device, 'manufacturer'),
        model_name=_child_text(device, 'modelName'),
        discovery_response=response,
        friendly_name=_child_text(device, 'friendlyName'),
        capabilities=_child_text(device, 'X_SATIPCAP'),
    )
