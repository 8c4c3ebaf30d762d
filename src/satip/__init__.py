"""
SAT>IP server discovery over SSDP multicast
"""

from .addressing import Endpoint, parse_endpoint
from .description import fetch_description, parse_description
from .errors import DiscoveryError, ErrorType
from .manager import SatIpDiscovery, discover_satip_servers
from .models import (DescriptionStatus, DiscoveryConfig, DiscoveryResponse,
                     DiscoveryResult, DiscoveryState, RawDiscoveryResponse,
                     SatIpServer)
from .network_discovery import DiscoveryContext, UdpTransport
from .ssdp import SATIP_SERVICE_TYPE, build_search_request, parse_discovery_response

__all__ = [
    'DescriptionStatus', 'DiscoveryConfig', 'DiscoveryContext', 'DiscoveryError',
    'DiscoveryResponse', 'DiscoveryResult', 'DiscoveryState', 'Endpoint', 'ErrorType',
    'RawDiscoveryResponse', 'SATIP_SERVICE_TYPE', 'SatIpDiscovery', 'SatIpServer',
    'UdpTransport', 'build_search_request', 'discover_satip_servers',
    'fetch_description', 'parse_description', 'parse_discovery_response',
    'parse_endpoint',
]
