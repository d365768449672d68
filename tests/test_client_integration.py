import pytest
import pytest_asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch
from aiohttp import web

from fastip_router.client import FastIpClient
from fastip_router.latency import measure_throughput
from fastip_router.models import Candidate, ValidityThreshold
from fastip_router.sources import StaticSource

BLOB = b"\0" * (128 * 1024)


@pytest_asyncio.fixture
async def blob_server():
    """HTTP server on 127.0.0.1 that serves a fixed blob; yields its port."""
    async def blob(request):
        return web.Response(body=BLOB)

    app = web.Application()
    app.router.add_get("/blob", blob)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = runner.addresses[0][1]
    yield port
    await runner.cleanup()


class TestLoopbackIntegration:
    """End-to-end runs against loopback servers."""

    pytestmark = pytest.mark.integration

    @pytest.mark.asyncio
    async def test_download_goes_to_pinned_address(self, blob_server):
        url = f"http://fastip.test:{blob_server}/blob"

        kbps = await measure_throughput(url, "127.0.0.1", max_bytes=64 * 1024, timeout=5)
        assert kbps is not None and kbps > 0

        # Same hostname pinned to an address with no listener
        assert await measure_throughput(url, "127.0.0.2", timeout=2) is None

    @pytest.mark.asyncio
    async def test_full_run_pins_fastest_address(self, blob_server, fast_settings, tmp_path):
        domain = "fastip.test"
        settings = fast_settings(
            blob_server,
            domains=(domain,),
            probe_throughput=True,
            download_urls={domain: f"http://{domain}:{blob_server}/blob"},
            threshold=ValidityThreshold(max_latency_ms=500.0, min_throughput_kbps=1.0),
        )
        source = StaticSource({domain: (
            Candidate("127.0.0.2", "static", "nowhere"),
            Candidate("127.0.0.1", "static", "loopback"),
        )})
        invalidator = MagicMock()
        invalidator.invalidate.return_value = True
        client = FastIpClient(settings=settings, source=source, invalidator=invalidator)

        hosts = tmp_path / "hosts"
        hosts.write_text("# test hosts\n127.0.0.1 localhost\n", encoding="utf-8")

        with patch("fastip_router.client.lookup_region", new=AsyncMock(return_value={"city": "Loopback"})):
            summary = await client.run(hosts_path=hosts, report_dir=tmp_path / "results")

            outcome = summary.outcomes[domain]
            assert outcome.address == "127.0.0.1"
            assert outcome.metrics.throughput_kbps > 1.0
            assert hosts.read_text(encoding="utf-8").endswith("127.0.0.1 fastip.test\n")
            assert invalidator.invalidate.call_count == 1

            report = json.loads(summary.report_path.read_text(encoding="utf-8"))
            assert report["domains"][domain]["region"] == "loopback"
            assert report["region"] == {"city": "Loopback"}

            # Converged: nothing to write, nothing to flush
            first = hosts.read_bytes()
            summary = await client.run(hosts_path=hosts, report_dir=tmp_path / "results")

        assert not summary.hosts_change.changed
        assert hosts.read_bytes() == first
        assert invalidator.invalidate.call_count == 1
