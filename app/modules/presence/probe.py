"""Router reachability probe.

A recipient's router answering any HTTP request means the power is on. A
connection error or timeout means it is off.
"""

import ipaddress
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from infrastructure.logging import get_module_logger
from modules.presence.models import PowerState

logger = get_module_logger()

_PORT_SUFFIX = re.compile(r"^(.+):(\d+)$")
_NUMERIC_HOST = re.compile(r"^\d+(\.\d+)*$")
_DOMAIN = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?)+$"
)


@dataclass(frozen=True)
class ProbeAddress:
    """Validated probe target."""

    host: str
    port: Optional[int] = None

    def url(self, default_port: int = 80) -> str:
        return f"http://{self.host}:{self.port or default_port}"


def parse_probe_address(value: str) -> ProbeAddress:
    """Parse ``host`` or ``host:port`` as entered by a recipient.

    Accepts IPv4 addresses and domain names (dynamic DNS hosts included).

    Raises:
        ValueError: If the address is empty, contains spaces, has a port
            outside 1-65535, is an incomplete IPv4 address or is neither an
            IPv4 address nor a domain name.
    """
    text = (value or "").strip()
    if not text:
        raise ValueError("Address cannot be empty")
    if " " in text:
        raise ValueError("Address cannot contain spaces")

    host, port = text, None
    match = _PORT_SUFFIX.match(text)
    if match:
        host, port = match.group(1), int(match.group(2))
        if not 1 <= port <= 65535:
            raise ValueError("Port must be between 1 and 65535")

    if _NUMERIC_HOST.match(host):
        try:
            ipaddress.IPv4Address(host)
        except ValueError as e:
            raise ValueError(f"Invalid IPv4 address: {host}") from e
        return ProbeAddress(host=host, port=port)

    if _DOMAIN.match(host):
        return ProbeAddress(host=host, port=port)

    raise ValueError(f"Not an IPv4 address or domain name: {host}")


class ReachabilityProbe:
    """HTTP HEAD reachability check.

    Args:
        timeout_seconds: Per-probe timeout
        default_port: Port used when the target has none
        client: Optional preconfigured httpx.AsyncClient
    """

    def __init__(
        self,
        timeout_seconds: float = 5.0,
        default_port: int = 80,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.default_port = default_port
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def check(self, host: str, port: Optional[int] = None) -> PowerState:
        """Probe ``host:port`` once.

        Returns:
            PowerState.ON if anything answered, PowerState.OFF otherwise.
        """
        url = ProbeAddress(host=host, port=port).url(self.default_port)
        try:
            response = await self._client.head(url, timeout=self.timeout_seconds)
        except httpx.HTTPError as e:
            logger.debug("probe_unreachable", url=url, error=type(e).__name__)
            return PowerState.OFF

        logger.debug("probe_reachable", url=url, status_code=response.status_code)
        return PowerState.ON
