"""
SAT>IP server discovery manager
Sends one M-SEARCH, collects replies until the deadline and resolves
each reply's description document
"""

import asyncio
import logging
import time
from contextlib import aclosing
from typing import Dict, List, Optional

import aiohttp

from http_helper import create_description_session

from .addressing import Endpoint
from .description import fetch_description, parse_description
from .errors import DiscoveryError
from .models import (DiscoveryConfig, DiscoveryResponse, DiscoveryResult,
                     DiscoveryState, RawDiscoveryResponse, SatIpServer)
from .network_discovery import DiscoveryContext
from .ssdp import build_search_request, parse_discovery_response

module_logger = logging.getLogger(__name__)


class SatIpDiscovery:
    """Runs one SAT>IP discovery; create a new instance per run"""

    def __init__(self, config: DiscoveryConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or module_logger
        self.state = DiscoveryState.IDLE
        self.result = DiscoveryResult()
        self._fetch_tasks: List[asyncio.Task] = []
        self._seen_locations: Dict[str, DiscoveryResponse] = {}

    def _transition(self, state: DiscoveryState) -> None:
        self.logger.debug(f"Discovery state {self.state.value} -> {state.value}")
        self.state = state

    async def run(self) -> DiscoveryResult:
        """
        Execute the discovery run
        Raises DiscoveryError on setup, send or receive faults; everything
        concerning a single reply or device is logged and skipped
        """
        if self.state != DiscoveryState.IDLE:
            raise RuntimeError("SatIpDiscovery instances can only run once")

        self.logger.info("[SEARCH] Going to discover available SAT>IP servers")
        start_time = time.time()

        try:
            async with DiscoveryContext(self.config) as context:
                self._transition(DiscoveryState.BOUND)
                self.logger.debug(f"Using discovery context: {context!r}")

                request = build_search_request(context.discovery_address, self.config.user_agent)
                await context.transport.send(context.discovery_address, request)
                self._transition(DiscoveryState.REQUEST_SENT)

                async with create_description_session(self.config.request_timeout) as session:
                    try:
                        await self._collect(context, session)
                    except BaseException:
                        await self._cancel_fetches()
                        raise
                    devices = await self._gather_fetches()
        except DiscoveryError as e:
            self._transition(DiscoveryState.FAILED)
            self.logger.error(f"SAT>IP discovery failed: {e}")
            raise

        self.result.devices = devices
        self.result.duration_seconds = time.time() - start_time
        self._transition(DiscoveryState.COMPLETED)

        if devices:
            self.logger.info(f"[PASS] Discovery complete: {len(devices)} SAT>IP servers found "
                             f"in {self.result.duration_seconds:.1f}s")
        else:
            self.logger.info("SAT>IP server discovery finished but found no servers")
        return self.result

    async def _collect(self, context: DiscoveryContext, session: aiohttp.ClientSession) -> None:
        """Parse replies as they arrive and start a description fetch for each"""
        self._transition(DiscoveryState.COLLECTING)
        replies = context.transport.receive_within(self.config.discovery_wait_time)

        async with aclosing(replies):
            async for raw in replies:
                self.result.replies_received += 1
                response = self._handle_reply(raw)
                if response is not None:
                    self._fetch_tasks.append(
                        asyncio.create_task(self._resolve_server(session, response)))

                if self.result.replies_received >= self.config.max_replies:
                    self.logger.info(f"Reached {self.config.max_replies} replies, "
                                     "stopping collection early")
                    break

    def _handle_reply(self, raw: RawDiscoveryResponse) -> Optional[DiscoveryResponse]:
        """Parse one reply; returns None when it is discarded"""
        try:
            response = parse_discovery_response(raw.payload)
        except DiscoveryError as e:
            self.result.replies_discarded += 1
            self.logger.warning(f"Discarding reply from {raw.sender}: {e}")
            return None

        if self.config.prefer_source_addr:
            try:
                response = self._prefer_source(response, raw.sender)
            except ValueError as e:
                self.result.replies_discarded += 1
                self.logger.warning(f"Discarding reply from {raw.sender}: cannot use sender "
                                    f"address in {response.location}: {e}")
                return None

        key = str(response.location)
        if key in self._seen_locations:
            self.logger.debug(f"Duplicate reply for {key} from {raw.sender}")
            return None
        self._seen_locations[key] = response

        self.logger.info(f"[OK] SAT>IP server replied from {raw.sender}: "
                         f"usn='{response.usn}' location={response.location}")
        return response

    def _prefer_source(self, response: DiscoveryResponse, sender: Endpoint) -> DiscoveryResponse:
        host = str(sender.host)
        if response.location.host != host:
            self.logger.debug(f"Replacing advertised host {response.location.host} with {host}")
        return response.with_host(host)

    async def _resolve_server(self, session: aiohttp.ClientSession,
                              response: DiscoveryResponse) -> Optional[SatIpServer]:
        try:
            document = await fetch_description(session, response.location,
                                               self.config.max_description_bytes)
        except DiscoveryError as e:
            self.result.fetch_failures += 1
            self.logger.warning(f"Skipping server {response.usn or response.location}: {e}")
            return None

        server = parse_description(document, response)
        self.logger.info(f"[OK] Resolved SAT>IP server: {server}")
        return server

    async def _cancel_fetches(self) -> None:
        for task in self._fetch_tasks:
            task.cancel()
        await asyncio.gather(*self._fetch_tasks, return_exceptions=True)

    async def _gather_fetches(self) -> List[SatIpServer]:
        """Wait for every description fetch, keeping the order replies arrived in"""
        results = await asyncio.gather(*self._fetch_tasks, return_exceptions=True)

        devices = []
        for result in results:
            if isinstance(result, SatIpServer):
                devices.append(result)
            elif isinstance(result, BaseException):
                self.result.fetch_failures += 1
                self.logger.error(f"Unexpected error resolving server: {result!r}")
        return devices


async def discover_satip_servers(config: DiscoveryConfig,
                                 logger: Optional[logging.Logger] = None) -> List[SatIpServer]:
    """Discover SAT>IP servers; an empty list means none replied in time"""
    result = await SatIpDiscovery(config, logger).run()
    return result.devices
