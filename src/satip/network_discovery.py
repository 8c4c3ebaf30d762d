"""
UDP transport for SSDP multicast discovery
"""

import asyncio
import errno
import ipaddress
import logging
import socket
from typing import AsyncIterator, Optional, Tuple

from .addressing import Endpoint, parse_endpoint
from .errors import DiscoveryError, ErrorType
from .models import DiscoveryConfig, RawDiscoveryResponse

logger = logging.getLogger(__name__)

RECEIVE_BUFFER_SIZE = 65536


def _endpoint_from_sockaddr(addr: Tuple) -> Endpoint:
    return Endpoint(ipaddress.ip_address(addr[0]), addr[1])


class UdpTransport:
    """Owns one bound, non-blocking UDP socket"""

    def __init__(self, sock: socket.socket, local: Endpoint):
        self._sock: Optional[socket.socket] = sock
        self.local = local

    @classmethod
    def bind(cls, endpoint: Endpoint, multicast_ttl: int = 2) -> "UdpTransport":
        """Bind a UDP socket to ``endpoint``; failures are not retried"""
        logger.debug(f"Binding to socket '{endpoint}'")
        sock = None
        try:
            sock = socket.socket(endpoint.family, socket.SOCK_DGRAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if endpoint.family == socket.AF_INET6:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_HOPS, multicast_ttl)
            else:
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, multicast_ttl)
            sock.setblocking(False)
            sock.bind(endpoint.as_tuple())
        except OSError as e:
            if sock is not None:
                sock.close()
            raise DiscoveryError(ErrorType.COULD_NOT_BIND_SOCKET,
                                 f"Unable to bind UDP socket to {endpoint}") from e

        return cls(sock, _endpoint_from_sockaddr(sock.getsockname()))

    @property
    def closed(self) -> bool:
        return self._sock is None

    def _socket(self) -> socket.socket:
        if self._sock is None:
            raise OSError(errno.EBADF, "Transport is closed")
        return self._sock

    async def send(self, target: Endpoint, payload: bytes) -> None:
        """Send one datagram; a failure aborts the run"""
        logger.debug(f"Sending {len(payload)} bytes to '{target}'")
        loop = asyncio.get_running_loop()
        try:
            await loop.sock_sendto(self._socket(), payload, target.as_tuple())
        except OSError as e:
            raise DiscoveryError(ErrorType.SEND_FAILED,
                                 f"Error sending discovery request to {target}") from e

    async def receive_within(self, duration: float) -> AsyncIterator[RawDiscoveryResponse]:
        """
        Yield inbound datagrams until ``duration`` seconds have elapsed.
        The deadline ending the sequence is not an error; a socket fault
        raises DiscoveryError(RECEIVE_FAILED).
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration
        logger.debug(f"Waiting {duration:.1f}s for discovery messages on {self.local}")

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return
            try:
                data, addr = await asyncio.wait_for(
                    loop.sock_recvfrom(self._socket(), RECEIVE_BUFFER_SIZE), remaining)
            except asyncio.TimeoutError:
                return
            except OSError as e:
                raise DiscoveryError(ErrorType.RECEIVE_FAILED,
                                     "Error receiving discovery response") from e

            sender = _endpoint_from_sockaddr(addr)
            logger.debug(f"Received {len(data)} bytes discovery message from {sender}")
            yield RawDiscoveryResponse(payload=data, size=len(data), sender=sender)

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None


class DiscoveryContext:
    """
    Resources for one discovery run: the bound socket and the resolved
    multicast target. The socket is released when the context exits.
    """

    def __init__(self, config: DiscoveryConfig):
        self.config = config
        self.discovery_address = parse_endpoint(config.discovery_address)
        self.bind_address = parse_endpoint(config.bind_address)
        self.transport: Optional[UdpTransport] = None

    def open(self) -> UdpTransport:
        self.transport = UdpTransport.bind(self.bind_address, self.config.multicast_ttl)
        return self.transport

    def close(self) -> None:
        if self.transport is not None:
            self.transport.close()

    async def __aenter__(self) -> "DiscoveryContext":
        self.open()
        return self

    async def __aexit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        local = self.transport.local if self.transport else None
        return (f"DiscoveryContext(bind={self.bind_address}, local={local}, "
                f"target={self.discovery_address})")
