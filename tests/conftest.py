"""
Shared fixtures: simulated SSDP responders and a description document server
"""

import asyncio
import functools
import socket
from typing import List, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

SATIP_DESCRIPTION = b"""<?xml version="1.0"?>
<root xmlns="urn:schemas-upnp-org:device-1-0" configId="0">
  <specVersion><major>1</major><minor>1</minor></specVersion>
  <device>
    <deviceType>urn:ses-com:device:SatIPServer:1</deviceType>
    <friendlyName>Living Room Tuner</friendlyName>
    <manufacturer>ACME</manufacturer>
    <modelName>Tuner9000</modelName>
    <UDN>uuid:abc</UDN>
    <satip:X_SATIPCAP xmlns:satip="urn:ses-com:satip">DVBS2-2</satip:X_SATIPCAP>
  </device>
</root>
"""

OTHER_DESCRIPTION = b"""<?xml version="1.0"?>
<root xmlns="urn:schemas-upnp-org:device-1-0">
  <device>
    <manufacturer>Globex</manufacturer>
    <modelName>Sat4</modelName>
  </device>
</root>
"""


def make_reply(location: str, usn: str = "uuid:abc::urn:ses-com:device:SatIPServer:1") -> bytes:
    return (
        "HTTP/1.1 200 OK\r\n"
        "CACHE-CONTROL: max-age=1800\r\n"
        "EXT:\r\n"
        f"LOCATION: {location}\r\n"
        "SERVER: Linux/1.0 UPnP/1.1 ACME/1.0\r\n"
        "ST: urn:ses-com:device:SatIPServer:1\r\n"
        f"USN: {usn}\r\n"
        "BOOTID.UPNP.ORG: 1\r\n"
        "DEVICEID.SES.COM: 1\r\n"
        "\r\n"
    ).encode('ascii')


def free_udp_port() -> int:
    return _free_port(socket.SOCK_DGRAM)


def free_tcp_port() -> int:
    return _free_port(socket.SOCK_STREAM)


def _free_port(kind: int) -> int:
    sock = socket.socket(socket.AF_INET, kind)
    try:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]
    finally:
        sock.close()


class _Member(asyncio.DatagramProtocol):
    """One simulated server; answers from its own socket"""

    def __init__(self, reply: Optional[bytes]):
        self.reply = reply
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport):
        self.transport = transport

    def answer(self, addr) -> None:
        if self.reply is not None:
            self.transport.sendto(self.reply, addr)


class _Group(_Member):
    """Stands in for the multicast group: relays each request to every member"""

    def __init__(self):
        super().__init__(None)
        self.members: List[_Member] = []
        self.requests: List[bytes] = []

    def datagram_received(self, data, addr):
        self.requests.append(data)
        for member in self.members:
            member.answer(addr)


class SimulatedNetwork:
    def __init__(self, group: _Group):
        self.group = group

    @property
    def address(self) -> str:
        host, port = self.group.transport.get_extra_info('sockname')[:2]
        return f"{host}:{port}"

    @property
    def requests(self) -> List[bytes]:
        return self.group.requests


@pytest_asyncio.fixture
async def ssdp_network():
    """
    Factory creating a fake multicast group on 127.0.0.1.
    Each given reply is sent by a separate responder socket; None stays silent.
    """
    transports = []
    loop = asyncio.get_running_loop()

    async def start(*replies: Optional[bytes]) -> SimulatedNetwork:
        group_transport, group = await loop.create_datagram_endpoint(
            _Group, local_addr=('127.0.0.1', 0))
        transports.append(group_transport)
        for reply in replies:
            member_transport, member = await loop.create_datagram_endpoint(
                functools.partial(_Member, reply), local_addr=('127.0.0.1', 0))
            transports.append(member_transport)
            group.members.append(member)
        return SimulatedNetwork(group)

    yield start

    for transport in transports:
        transport.close()


DOCUMENTS = web.AppKey("documents", dict)


async def _serve(request: web.Request) -> web.Response:
    documents = request.app[DOCUMENTS]
    body = documents.get(request.path)
    if body is None:
        raise web.HTTPNotFound()
    return web.Response(body=body, content_type='text/xml')


@pytest_asyncio.fixture
async def description_server():
    """aiohttp server publishing description documents by path"""
    app = web.Application()
    app[DOCUMENTS] = {
        '/desc.xml': SATIP_DESCRIPTION,
        '/other.xml': OTHER_DESCRIPTION,
        '/broken.xml': b"<root><device><manufacturer>ACME",
        '/big.xml': b"<root>" + b"x" * 4096 + b"</root>",
    }
    app.router.add_get('/{name}', _serve)

    server = TestServer(app, host='127.0.0.1')
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def udp_port() -> int:
    return free_udp_port()
