import asyncio
import ipaddress
import json
import logging
from abc import ABC, abstractmethod
from typing import Mapping, Optional, Sequence

import aiohttp

from .config import Settings
from .errors import SourceUnavailable
from .models import Candidate

logger = logging.getLogger(__name__)

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)

def _is_ip(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


class CandidateSource(ABC):
    name = "source"

    @abstractmethod
    async def list_candidates(self, domain: str) -> list[Candidate]:
        """Return candidates for ``domain`` or raise SourceUnavailable."""


class StaticSource(CandidateSource):
    name = "static"

    def __init__(self, table: Mapping[str, Sequence[Candidate]]):
        self.table = table

    async def list_candidates(self, domain: str) -> list[Candidate]:
        return list(self.table.get(domain, ()))


class _HttpSource(CandidateSource):
    def __init__(self, url: str, timeout: float, session: Optional[aiohttp.ClientSession] = None):
        self.url = url
        self.timeout = timeout
        self.session = session

    async def _fetch_json(self, domain: str, method: str, **kwargs) -> dict:
        """One bounded request, decoded as JSON regardless of content type."""
        session = self.session or aiohttp.ClientSession()
        try:
            async with session.request(
                method, self.url, timeout=aiohttp.ClientTimeout(total=self.timeout), **kwargs
            ) as response:
                response.raise_for_status()
                body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceUnavailable(domain, self.name, f"request failed: {e!r}") from e
        finally:
            if self.session is None:
                await session.close()

        try:
            data = json.loads(body)
        except ValueError as e:
            raise SourceUnavailable(domain, self.name, f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SourceUnavailable(domain, self.name, "unexpected response shape")
        return data


class PingServiceSource(_HttpSource):
    """Candidates seen by a third-party multi-node ping service.

    Only nodes located in one of ``home_cities`` are kept, so the addresses
    reflect what resolvers near home hand out.
    """

    name = "ping-service"

    def __init__(self, url: str, home_cities: Sequence[str], timeout: float = 20.0,
                 session: Optional[aiohttp.ClientSession] = None):
        super().__init__(url, timeout, session)
        self.home_cities = tuple(home_cities)

    async def list_candidates(self, domain: str) -> list[Candidate]:
        data = await self._fetch_json(
            domain,
            "POST",
            data={"host": domain, "number": "2"},
            headers={"User-Agent": BROWSER_UA, "Referer": self.url},
        )
        body = data.get("data")
        nodes = body.get("node_list") if isinstance(body, dict) else None
        if not isinstance(nodes, list):
            raise SourceUnavailable(domain, self.name, "unexpected response shape: no node_list")

        candidates = []
        for node in nodes:
            if not isinstance(node, dict):
                continue
            try:
                timed_out = float(node.get("timeout") or 0) > 0
            except (TypeError, ValueError):
                logger.debug("%s: skipping node with timeout %r", domain, node.get("timeout"))
                continue
            if timed_out:
                continue
            name = str(node.get("node_name", ""))
            if not any(city in name for city in self.home_cities):
                continue
            if not _is_ip(node.get("ip")):
                logger.debug("%s: skipping node %s with invalid ip %r", domain, name, node.get("ip"))
                continue
            candidates.append(Candidate(address=node["ip"], source=self.name, region=name))

        logger.debug("%s: %d of %d ping nodes kept", domain, len(candidates), len(nodes))
        return candidates


class DohSource(_HttpSource):
    """A records from a DNS-over-HTTPS JSON endpoint."""

    name = "doh"

    async def list_candidates(self, domain: str) -> list[Candidate]:
        data = await self._fetch_json(
            domain,
            "GET",
            params={"name": domain, "type": "A"},
            headers={"accept": "application/dns-json"},
        )
        if data.get("Status") != 0:
            raise SourceUnavailable(domain, self.name, f"DNS status {data.get('Status')}")

        answers = data.get("Answer") or []
        if not isinstance(answers, list):
            raise SourceUnavailable(domain, self.name, "unexpected response shape: Answer is not a list")

        candidates = []
        for answer in answers:
            if isinstance(answer, dict) and answer.get("type") == 1 and _is_ip(answer.get("data")):
                candidates.append(Candidate(address=answer["data"], source=self.name))
        return candidates


class FallbackSource(CandidateSource):
    """Merge remote sources; use the static table when they give nothing."""

    name = "auto"

    def __init__(self, remotes: Sequence[CandidateSource], fallback: CandidateSource):
        self.remotes = list(remotes)
        self.fallback = fallback

    async def list_candidates(self, domain: str) -> list[Candidate]:
        merged: dict[str, Candidate] = {}
        for remote in self.remotes:
            try:
                found = await remote.list_candidates(domain)
            except SourceUnavailable as e:
                logger.warning("%s", e)
                continue
            for candidate in found:
                merged.setdefault(candidate.address, candidate)

        if merged:
            return list(merged.values())

        logger.info("%s: no remote candidates, using %s table", domain, self.fallback.name)
        return await self.fallback.list_candidates(domain)


SOURCE_MODES = ("auto", "static", "doh", "ping")

def build_source(settings: Settings, mode: str = "auto") -> CandidateSource:
    static = StaticSource(settings.static_table)
    if mode == "static":
        return static
    ping = PingServiceSource(settings.ping_service_url, settings.home_cities, settings.source_timeout)
    doh = DohSource(settings.doh_url, settings.source_timeout)
    if mode == "ping":
        return FallbackSource([ping], static)
    if mode == "doh":
        return FallbackSource([doh], static)
    if mode == "auto":
        return FallbackSource([ping, doh], static)
    raise ValueError(f"Unknown source mode: {mode}")
