"""
SSDP wire format for SAT>IP discovery
Builds the M-SEARCH request and parses the header-only replies
"""

import logging
import re
from typing import Optional

from multidict import CIMultiDict
from yarl import URL

from .addressing import Endpoint
from .errors import DiscoveryError, ErrorType
from .models import DiscoveryResponse

logger = logging.getLogger(__name__)

SATIP_SERVICE_TYPE = "urn:ses-com:device:SatIPServer:1"
SSDP_DISCOVER = '"ssdp:discover"'
SSDP_MX = 2

_STATUS_LINE = re.compile(r'^HTTP/\d+\.\d+\s+(\d{3})(?:\s+.*)?$')


def build_search_request(target: Endpoint, user_agent: str) -> bytes:
    """Render the M-SEARCH request for SAT>IP servers"""
    logger.debug(f"Generating discovery request for target '{target}' using user agent '{user_agent}'")
    lines = [
        "M-SEARCH * HTTP/1.1",
        f"HOST: {target}",
        f"MAN: {SSDP_DISCOVER}",
        f"MX: {SSDP_MX}",
        f"ST: {SATIP_SERVICE_TYPE}",
        f"USER-AGENT: {user_agent}",
    ]
    request = ("\r\n".join(lines) + "\r\n\r\n").encode('ascii')
    logger.debug(f"Generated request:\n{request.decode('ascii')}")
    return request


def _split_header_block(payload: bytes) -> bytes:
    """Return everything before the blank line ending the header block"""
    for terminator in (b"\r\n\r\n", b"\n\n"):
        end = payload.find(terminator)
        if end >= 0:
            return payload[:end]
    raise DiscoveryError(ErrorType.INCOMPLETE_RESPONSE,
                         f"Header block is not terminated ({len(payload)} bytes received)")


def _parse_location(value: str) -> URL:
    try:
        location = URL(value)
    except (TypeError, ValueError) as e:
        raise DiscoveryError(ErrorType.MALFORMED_RESPONSE,
                             f"Unparseable LOCATION '{value}'") from e
    if not location.is_absolute() or location.scheme not in ('http', 'https') or not location.host:
        raise DiscoveryError(ErrorType.MALFORMED_RESPONSE,
                             f"LOCATION '{value}' is not an absolute http URL")
    if _has_whitespace(location.host) or _has_whitespace(location.raw_host or ""):
        raise DiscoveryError(ErrorType.MALFORMED_RESPONSE,
                             f"LOCATION '{value}' has an invalid host")
    return location


def _has_whitespace(text: str) -> bool:
    return any(ch.isspace() for ch in text)


def _parse_device_id(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        logger.debug(f"Ignoring non-numeric DEVICEID.SES.COM '{value}'")
        return None


def parse_discovery_response(payload: bytes) -> DiscoveryResponse:
    """
    Parse an M-SEARCH reply (status line + headers, no body).
    Raises DiscoveryError with INCOMPLETE_RESPONSE, MALFORMED_RESPONSE or
    MISSING_REQUIRED_FIELD; all of them concern this reply only.
    """
    block = _split_header_block(payload)
    try:
        text = block.decode('utf-8')
    except UnicodeDecodeError as e:
        raise DiscoveryError(ErrorType.MALFORMED_RESPONSE, "Reply is not valid UTF-8") from e

    lines = text.replace("\r\n", "\n").split("\n")
    status = _STATUS_LINE.match(lines[0].strip())
    if not status:
        raise DiscoveryError(ErrorType.MALFORMED_RESPONSE,
                             f"Invalid status line '{lines[0][:80]}'")
    if not status.group(1).startswith('2'):
        raise DiscoveryError(ErrorType.MALFORMED_RESPONSE,
                             f"Unexpected status {status.group(1)}")

    headers: CIMultiDict = CIMultiDict()
    for line in lines[1:]:
        if not line.strip():
            continue
        name, sep, value = line.partition(':')
        if not sep or not name.strip():
            raise DiscoveryError(ErrorType.MALFORMED_RESPONSE,
                                 f"Invalid header line '{line[:80]}'")
        headers.add(name.strip(), value.strip())

    location = headers.get('LOCATION')
    if not location:
        raise DiscoveryError(ErrorType.MISSING_REQUIRED_FIELD,
                             "Reply has no LOCATION header")

    return DiscoveryResponse(
        usn=headers.get('USN', ''),
        location=_parse_location(location),
        search_target=headers.get('ST'),
        server=headers.get('SERVER'),
        device_id=_parse_device_id(headers.get('DEVICEID.SES.COM')),
    )
