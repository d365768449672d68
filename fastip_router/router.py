import asyncio
import logging
from typing import Sequence

from .config import Settings
from .latency import measure_throughput, tcp_ping
from .models import Candidate, ProbeResult, SelectionOutcome, ValidityThreshold

logger = logging.getLogger(__name__)

async def probe_candidate(candidate: Candidate, domain: str, settings: Settings) -> ProbeResult:
    metrics = await tcp_ping(
        candidate.address,
        port=settings.port,
        count=settings.ping_count,
        timeout=settings.connect_timeout,
    )
    latency = metrics["avg_ms"]
    if latency is None or not settings.probe_throughput:
        return ProbeResult(candidate, latency)

    throughput = await measure_throughput(
        settings.download_url_for(domain),
        candidate.address,
        max_bytes=settings.download_max_bytes,
        timeout=settings.download_timeout,
    )
    return ProbeResult(candidate, latency, throughput)

async def probe_all(
    candidates: Sequence[Candidate], domain: str, settings: Settings
) -> list[ProbeResult]:
    """Probe every candidate concurrently; one result per candidate, in input order.

    Probes still running when ``settings.run_timeout`` expires are cancelled
    and reported as unreachable.
    """
    if not candidates:
        return []

    tasks = [asyncio.create_task(probe_candidate(c, domain, settings)) for c in candidates]
    done, pending = await asyncio.wait(tasks, timeout=settings.run_timeout)
    for task in pending:
        task.cancel()
    if pending:
        logger.warning(
            "%s: %d probe(s) still running after %.0fs, marking unreachable",
            domain, len(pending), settings.run_timeout,
        )
        await asyncio.gather(*pending, return_exceptions=True)

    results = []
    for candidate, task in zip(candidates, tasks):
        if task in pending:
            results.append(ProbeResult(candidate, None))
        elif task.exception() is not None:
            logger.error("%s: probe of %s failed: %r", domain, candidate.address, task.exception())
            results.append(ProbeResult(candidate, None))
        else:
            results.append(task.result())
    return results

def select_best(results: Sequence[ProbeResult], threshold: ValidityThreshold) -> SelectionOutcome:
    # Group reachable results by address, keeping first-seen order for tie-breaks.
    groups: dict[str, list[ProbeResult]] = {}
    for result in results:
        if result.latency_ms is None or result.latency_ms >= threshold.max_latency_ms:
            continue
        groups.setdefault(result.candidate.address, []).append(result)

    valid = []
    for probes in groups.values():
        latency = sum(p.latency_ms for p in probes) / len(probes)
        measured = [p.throughput_kbps for p in probes if p.throughput_kbps is not None]
        throughput = sum(p.throughput_kbps or 0.0 for p in probes) / len(probes) if measured else None
        if threshold.accepts(latency, throughput):
            valid.append(ProbeResult(probes[0].candidate, latency, throughput))

    if not valid:
        return SelectionOutcome()

    # min() keeps the first of equal keys, so ties resolve to input order.
    best = min(valid, key=lambda r: r.latency_ms)
    return SelectionOutcome(chosen=best.candidate, metrics=best)
