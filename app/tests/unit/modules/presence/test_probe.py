"""Unit tests for probe address parsing and the reachability probe."""

import httpx
import pytest

from modules.presence.models import PowerState
from modules.presence.probe import ProbeAddress, ReachabilityProbe, parse_probe_address


@pytest.mark.unit
class TestParseProbeAddress:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("93.170.10.5", ProbeAddress("93.170.10.5")),
            ("93.170.10.5:8080", ProbeAddress("93.170.10.5", 8080)),
            ("home.ddns.net", ProbeAddress("home.ddns.net")),
            ("  home.ddns.net:81  ", ProbeAddress("home.ddns.net", 81)),
        ],
    )
    def test_valid_addresses(self, value, expected):
        assert parse_probe_address(value) == expected

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "   ",
            "93.170 .10.5",
            "93.170.10.5:0",
            "93.170.10.5:70000",
            "93.170.10",
            "256.1.1.1",
            "localhost",
            "-bad.example.com",
            "http://router.example.com",
        ],
    )
    def test_invalid_addresses(self, value):
        with pytest.raises(ValueError):
            parse_probe_address(value)

    def test_url_uses_default_port(self):
        assert ProbeAddress("10.0.0.1").url(8080) == "http://10.0.0.1:8080"
        assert ProbeAddress("10.0.0.1", 81).url(8080) == "http://10.0.0.1:81"


@pytest.mark.unit
class TestReachabilityProbe:
    @pytest.mark.asyncio
    async def test_any_response_means_power_on(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(500)

        probe = ReachabilityProbe(
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )

        assert await probe.check("10.0.0.1") == PowerState.ON
        assert requests[0].method == "HEAD"
        assert requests[0].url.host == "10.0.0.1"
        assert requests[0].url.port in (None, 80)

    @pytest.mark.asyncio
    async def test_connection_error_means_power_off(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        probe = ReachabilityProbe(
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )

        assert await probe.check("10.0.0.1", 8080) == PowerState.OFF

    @pytest.mark.asyncio
    async def test_timeout_means_power_off(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        probe = ReachabilityProbe(
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )

        assert await probe.check("10.0.0.1") == PowerState.OFF
