#!/usr/bin/env python3
"""
Probe the GitHub domains from the static table only and print what would be
pinned, without touching the hosts file.
"""

import anyio
from fastip_router.client import FastIpClient
from fastip_router.config import Settings
from fastip_router.sources import build_source

async def main():
    settings = Settings.from_env()
    client = FastIpClient(settings=settings, source=build_source(settings, "static"))

    print("=== Static candidates, probed from here ===")
    outcomes = await client.optimize()
    mapping = client.resolve_mapping(outcomes)

    for domain, outcome in outcomes.items():
        if outcome.chosen is not None:
            metrics = outcome.metrics
            tput = "n/a" if metrics.throughput_kbps is None else f"{metrics.throughput_kbps:.0f} KB/s"
            print(f"{domain:30} {outcome.address:16} {metrics.latency_ms:6.1f} ms  {tput}")
        elif domain in mapping:
            print(f"{domain:30} {mapping[domain]:16} (static fallback)")
        else:
            print(f"{domain:30} no override")

if __name__ == "__main__":
    anyio.run(main)
