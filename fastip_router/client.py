import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .config import Settings
from .dns_cache import CacheInvalidator, select_invalidator
from .errors import SelectionEmpty, SourceUnavailable
from .geo import lookup_region
from .hosts import HostsChange, default_hosts_path, update_hosts
from .models import SelectionOutcome
from .report import write_report
from .router import probe_all, select_best
from .sources import CandidateSource, build_source

logger = logging.getLogger(__name__)

@dataclass
class RunSummary:
    outcomes: dict[str, SelectionOutcome]
    mapping: dict[str, str]
    hosts_change: HostsChange = field(default_factory=HostsChange)
    report_path: Optional[Path] = None
    flushed: bool = False


class FastIpClient:
    def __init__(
        self,
        settings: Settings | None = None,
        source: CandidateSource | None = None,
        invalidator: CacheInvalidator | None = None,
    ):
        self.settings = settings or Settings()
        self.source = source or build_source(self.settings)
        self.invalidator = invalidator or select_invalidator()

    async def _probe(self, domain: str):
        candidates = await self.source.list_candidates(domain)
        results = await probe_all(candidates, domain, self.settings)
        return results, select_best(results, self.settings.threshold)

    async def best_for(self, domain: str) -> SelectionOutcome:
        """Probe the candidates of ``domain`` and return the best one, if any.

        Raises:
            SourceUnavailable: If the candidate source had no data for the domain
        """
        results, outcome = await self._probe(domain)
        reachable = sum(1 for r in results if r.reachable)
        if outcome.chosen is None:
            logger.warning("%s: no valid candidate (%d probed, %d reachable)",
                           domain, len(results), reachable)
        else:
            logger.info("%s: best %s (%.1f ms) of %d probed",
                        domain, outcome.address, outcome.metrics.latency_ms, len(results))
        return outcome

    async def best_address(self, domain: str) -> str:
        outcome = await self.best_for(domain)
        if outcome.chosen is None:
            raise SelectionEmpty(domain)
        return outcome.chosen.address

    async def list_probes(self, domain: str) -> list[dict]:
        """Get probe metrics for every candidate of a domain."""
        results, outcome = await self._probe(domain)

        probes_info = []
        for result in results:
            probes_info.append({
                "address": result.candidate.address,
                "source": result.candidate.source,
                "region": result.candidate.region,
                "latency_ms": result.latency_ms,
                "throughput_kbps": result.throughput_kbps,
                "fastest": result.candidate.address == outcome.address,
            })

        return probes_info

    async def optimize(self, domains: Optional[Iterable[str]] = None) -> dict[str, SelectionOutcome]:
        domains = list(domains or self.settings.domains)

        async def one(domain: str) -> SelectionOutcome:
            try:
                return await self.best_for(domain)
            except SourceUnavailable as e:
                logger.error("%s: skipped, %s", domain, e)
                return SelectionOutcome()

        outcomes = await asyncio.gather(*(one(d) for d in domains))
        return dict(zip(domains, outcomes))

    def resolve_mapping(self, outcomes: dict[str, SelectionOutcome]) -> dict[str, str]:
        """Domain -> address to pin, applying the fallback policy to empty outcomes."""
        mapping = {}
        for domain, outcome in outcomes.items():
            if outcome.chosen is not None:
                mapping[domain] = outcome.chosen.address
                continue
            static = self.settings.static_table.get(domain, ())
            if self.settings.fallback_policy == "static" and static:
                mapping[domain] = static[0].address
                logger.info("%s: falling back to static address %s", domain, static[0].address)
            else:
                logger.info("%s: no override", domain)
        return mapping

    async def run(
        self,
        hosts_path=None,
        report_dir=None,
        dry_run: bool = False,
        flush: bool = True,
    ) -> RunSummary:
        """Optimize all domains, then write the report, hosts file and flush DNS.

        Raises:
            SinkWriteFailure: If the hosts file could not be read or written
        """
        outcomes = await self.optimize()
        mapping = self.resolve_mapping(outcomes)
        summary = RunSummary(outcomes=outcomes, mapping=mapping)

        region = await lookup_region(self.settings.geo_url, timeout=self.settings.source_timeout)
        summary.report_path = write_report(
            report_dir or self.settings.report_dir, outcomes, region, mapping=mapping
        )

        if not mapping:
            logger.warning("Nothing to pin, hosts file left alone")
            return summary

        path = hosts_path or self.settings.hosts_path or default_hosts_path()
        summary.hosts_change = update_hosts(path, mapping, dry_run=dry_run)

        if flush and not dry_run and summary.hosts_change.changed:
            summary.flushed = await asyncio.to_thread(self.invalidator.invalidate)
        return summary
