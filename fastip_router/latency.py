import asyncio
import ipaddress
import logging
import socket
import time
from urllib.parse import urlparse

import aiohttp
from aiohttp.abc import AbstractResolver

logger = logging.getLogger(__name__)

USER_AGENT = "fastip-router/0.1"

async def _tcp_ping_once(host: str, port: int, timeout: float) -> float | None:
    start = time.perf_counter()
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (OSError, asyncio.TimeoutError) as e:
        logger.debug("connect %s:%s failed: %r", host, port, e)
        return None
    elapsed = (time.perf_counter() - start) * 1000.0
    writer.close()
    try:
        await writer.wait_closed()
    except OSError as e:
        logger.debug("close %s:%s: %r", host, port, e)
    return elapsed

async def tcp_ping(host: str, port: int = 443, count: int = 1, timeout: float = 2.0) -> dict:
    """TCP connect latency to host:port, averaged over the successful samples."""
    samples = []
    for _ in range(count):
        samples.append(await _tcp_ping_once(host, port, timeout))

    valid_samples = [x for x in samples if x is not None]
    avg = sum(valid_samples) / len(valid_samples) if valid_samples else None

    return {"avg_ms": avg, "samples_ms": samples}


class PinnedResolver(AbstractResolver):
    """Resolves one hostname to a fixed address and refuses everything else.

    Used as the resolver of a per-request connector, so the TLS handshake
    still uses the hostname for SNI and certificate checks.
    """

    def __init__(self, hostname: str, address: str):
        self.hostname = hostname
        self.address = address
        ip = ipaddress.ip_address(address)
        self.family = socket.AF_INET6 if ip.version == 6 else socket.AF_INET

    async def resolve(self, host: str, port: int = 0, family: int = socket.AF_INET):
        if host != self.hostname:
            raise OSError(f"{host} is not pinned (only {self.hostname} -> {self.address})")
        return [
            {
                "hostname": host,
                "host": self.address,
                "port": port,
                "family": self.family,
                "proto": 0,
                "flags": socket.AI_NUMERICHOST,
            }
        ]

    async def close(self) -> None:
        pass


async def measure_throughput(
    url: str,
    address: str,
    max_bytes: int = 256 * 1024,
    timeout: float = 10.0,
) -> float | None:
    """Download up to ``max_bytes`` of ``url`` from ``address`` and return KB/s.

    Returns None when the transfer fails or times out.
    """
    hostname = urlparse(url).hostname
    connector = aiohttp.TCPConnector(
        resolver=PinnedResolver(hostname, address),
        use_dns_cache=False,
        force_close=True,
    )
    received = 0
    try:
        async with aiohttp.ClientSession(connector=connector) as session:
            start = time.perf_counter()
            async with session.get(
                url,
                allow_redirects=False,
                headers={"User-Agent": USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                async for chunk in response.content.iter_chunked(16 * 1024):
                    received += len(chunk)
                    if received >= max_bytes:
                        break
            elapsed = time.perf_counter() - start
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
        logger.debug("download %s via %s failed: %r", url, address, e)
        return None

    if elapsed <= 0:
        return None
    return received / 1024.0 / elapsed
