import pytest
import pytest_asyncio
import asyncio
import os
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fastip_router.config import Settings
from fastip_router.models import Candidate, ValidityThreshold

# Environment variables for testing
os.environ.setdefault("FASTIP_LOG_LEVEL", "DEBUG")

@pytest_asyncio.fixture
async def tcp_port():
    """Port of a loopback TCP server bound to 127.0.0.1 only."""
    async def handle(reader, writer):
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    yield port
    server.close()
    await server.wait_closed()

@pytest.fixture
def fast_settings():
    """Settings with short timeouts and no throughput probe."""
    def make(port: int = 443, **overrides) -> Settings:
        values = dict(
            port=port,
            connect_timeout=0.5,
            run_timeout=5.0,
            probe_throughput=False,
            threshold=ValidityThreshold(max_latency_ms=500.0, min_throughput_kbps=None),
        )
        values.update(overrides)
        return Settings(**values)
    return make

@pytest.fixture
def loopback_candidates():
    # Only 127.0.0.1 has a listener; the rest of 127/8 refuses the connection.
    return [
        Candidate("127.0.0.2", "static", "a"),
        Candidate("127.0.0.1", "static", "b"),
        Candidate("127.0.0.3", "static", "c"),
    ]

@pytest.fixture
def hosts_file(tmp_path):
    path = tmp_path / "hosts"
    path.write_text(
        "# local hosts\n"
        "127.0.0.1 localhost\n"
        "\n"
        "140.82.112.3 github.com\n"
        "not-a-valid-line\n",
        encoding="utf-8",
    )
    return path
