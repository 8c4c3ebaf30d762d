"""
Parsing of textual ``host:port`` endpoints into socket addresses
"""

import ipaddress
import logging
import socket
from typing import NamedTuple, Tuple, Union

from .errors import DiscoveryError, ErrorType

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class Endpoint(NamedTuple):
    """Numeric IP address plus UDP/TCP port"""
    host: IPAddress
    port: int

    @property
    def family(self) -> int:
        return socket.AF_INET6 if self.host.version == 6 else socket.AF_INET

    def as_tuple(self) -> Tuple[str, int]:
        return (str(self.host), self.port)

    def __str__(self) -> str:
        if self.host.version == 6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


def _invalid(text: str, reason: str) -> DiscoveryError:
    return DiscoveryError(ErrorType.INVALID_ADDRESS_FORMAT,
                          f"Could not parse address '{text}': {reason}")


def parse_endpoint(text: str) -> Endpoint:
    """
    Parse ``a.b.c.d:port`` or ``[v6]:port`` without any DNS lookup.
    Raises DiscoveryError(INVALID_ADDRESS_FORMAT) on anything else.
    """
    logger.debug(f"Parsing address '{text}'")
    if not isinstance(text, str) or not text:
        raise _invalid(str(text), "empty address")

    if text.startswith('['):
        host_part, sep, port_part = text[1:].partition(']:')
        if not sep:
            raise _invalid(text, "expected [host]:port")
    else:
        host_part, sep, port_part = text.rpartition(':')
        if not sep or ':' in host_part:
            raise _invalid(text, "expected host:port")

    try:
        host = ipaddress.ip_address(host_part)
    except ValueError as e:
        raise _invalid(text, "host is not a numeric IP address") from e

    if not (port_part.isascii() and port_part.isdigit()):
        raise _invalid(text, "port is not a number")
    port = int(port_part)
    if port > 65535:
        raise _invalid(text, "port out of range")

    return Endpoint(host, port)
