"""
Discovery data structures and models
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from yarl import URL

from .addressing import Endpoint

DEFAULT_BIND_ADDRESS = "0.0.0.0:0"
DEFAULT_DISCOVERY_ADDRESS = "239.255.255.250:1900"
DEFAULT_USER_AGENT = "Linux/1.0 UPnP/1.1 satip-discovery/0.1"


@dataclass(frozen=True)
class DiscoveryConfig:
    """Settings for one discovery run, supplied by the caller"""
    bind_address: str = DEFAULT_BIND_ADDRESS
    discovery_address: str = DEFAULT_DISCOVERY_ADDRESS
    discovery_wait_time: float = 3.0
    user_agent: str = DEFAULT_USER_AGENT
    prefer_source_addr: bool = False
    request_timeout: float = 5.0
    max_replies: int = 64
    multicast_ttl: int = 2
    max_description_bytes: int = 256 * 1024

    @classmethod
    def from_dict(cls, section: Dict[str, Any]) -> "DiscoveryConfig":
        """Build from the ``discovery`` config section, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in section.items() if k in known})


class DiscoveryState(Enum):
    """Lifecycle of a single discovery run"""
    IDLE = "idle"
    BOUND = "bound"
    REQUEST_SENT = "request_sent"
    COLLECTING = "collecting"
    COMPLETED = "completed"
    FAILED = "failed"


class DescriptionStatus(Enum):
    """Outcome of parsing a description document"""
    PARSED = "parsed"
    MALFORMED = "malformed"


@dataclass
class RawDiscoveryResponse:
    """One received datagram"""
    payload: bytes
    size: int
    sender: Endpoint


@dataclass(frozen=True)
class DiscoveryResponse:
    """Parsed M-SEARCH reply"""
    usn: str
    location: URL
    search_target: Optional[str] = None
    server: Optional[str] = None
    device_id: Optional[int] = None

    def with_host(self, host: str) -> "DiscoveryResponse":
        """Copy with the location host replaced, keeping scheme, port, path and query"""
        return replace(self, location=self.location.with_host(host))


@dataclass(frozen=True)
class SatIpServer:
    """Represents a discovered SAT>IP server"""
    manufacturer: Optional[str]
    model_name: Optional[str]
    discovery_response: DiscoveryResponse
    friendly_name: Optional[str] = None
    capabilities: Optional[str] = None
    description_status: DescriptionStatus = DescriptionStatus.PARSED

    def __str__(self) -> str:
        name = self.friendly_name or self.model_name or "unknown model"
        vendor = f" by {self.manufacturer}" if self.manufacturer else ""
        return f"{name}{vendor} at {self.discovery_response.location}"


@dataclass
class DiscoveryResult:
    """Results from a discovery run"""
    devices: List[SatIpServer] = field(default_factory=list)
    duration_seconds: float = 0.0
    replies_received: int = 0
    replies_discarded: int = 0
    fetch_failures: int = 0
