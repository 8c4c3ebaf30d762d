import asyncio
import socket

import pytest

from satip.addressing import parse_endpoint
from satip.errors import DiscoveryError, ErrorType
from satip.models import DiscoveryConfig
from satip.network_discovery import DiscoveryContext, UdpTransport


async def _collect(transport, duration):
    return [raw async for raw in transport.receive_within(duration)]


def test_bind_reports_actual_port():
    transport = UdpTransport.bind(parse_endpoint("127.0.0.1:0"))
    try:
        assert transport.local.port != 0
        assert str(transport.local.host) == "127.0.0.1"
    finally:
        transport.close()
    assert transport.closed


def test_bind_conflict_is_reported(udp_port):
    holder = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    holder.bind(('127.0.0.1', udp_port))
    try:
        with pytest.raises(DiscoveryError) as exc:
            UdpTransport.bind(parse_endpoint(f"127.0.0.1:{udp_port}"))
    finally:
        holder.close()
    assert exc.value.error_type == ErrorType.COULD_NOT_BIND_SOCKET
    assert isinstance(exc.value.__cause__, OSError)
    assert exc.value.is_fatal


@pytest.mark.asyncio
async def test_send_and_receive_within_deadline():
    receiver = UdpTransport.bind(parse_endpoint("127.0.0.1:0"))
    sender = UdpTransport.bind(parse_endpoint("127.0.0.1:0"))
    try:
        await sender.send(receiver.local, b"first")
        await sender.send(receiver.local, b"second")
        received = await _collect(receiver, 0.3)
    finally:
        receiver.close()
        sender.close()

    assert [raw.payload for raw in received] == [b"first", b"second"]
    assert received[0].size == 5
    assert received[0].sender == sender.local


@pytest.mark.asyncio
async def test_elapsed_deadline_is_an_empty_sequence():
    transport = UdpTransport.bind(parse_endpoint("127.0.0.1:0"))
    loop = asyncio.get_running_loop()
    try:
        started = loop.time()
        received = await _collect(transport, 0.2)
        elapsed = loop.time() - started
    finally:
        transport.close()
    assert received == []
    assert elapsed >= 0.15


@pytest.mark.asyncio
async def test_receive_on_closed_transport_fails():
    transport = UdpTransport.bind(parse_endpoint("127.0.0.1:0"))
    transport.close()
    with pytest.raises(DiscoveryError) as exc:
        await _collect(transport, 0.1)
    assert exc.value.error_type == ErrorType.RECEIVE_FAILED


@pytest.mark.asyncio
async def test_send_on_closed_transport_fails():
    transport = UdpTransport.bind(parse_endpoint("127.0.0.1:0"))
    transport.close()
    with pytest.raises(DiscoveryError) as exc:
        await transport.send(parse_endpoint("127.0.0.1:9"), b"x")
    assert exc.value.error_type == ErrorType.SEND_FAILED


@pytest.mark.asyncio
async def test_context_releases_socket(udp_port):
    config = DiscoveryConfig(bind_address=f"127.0.0.1:{udp_port}")
    async with DiscoveryContext(config) as context:
        assert context.transport.local.port == udp_port
        assert str(context.discovery_address) == "239.255.255.250:1900"
    assert context.transport.closed


def test_context_rejects_bad_addresses():
    with pytest.raises(DiscoveryError) as exc:
        DiscoveryContext(DiscoveryConfig(discovery_address="ssdp.local:1900"))
    assert exc.value.error_type == ErrorType.INVALID_ADDRESS_FORMAT
