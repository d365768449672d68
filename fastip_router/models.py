from dataclasses import dataclass
from typing import Optional

@dataclass(frozen=True)
class Candidate:
    address: str              # IPv4/IPv6 literal
    source: str               # "static", "doh", "ping-service"
    region: Optional[str] = None  # node or city label the source reported

@dataclass(frozen=True)
class ProbeResult:
    candidate: Candidate
    latency_ms: Optional[float]       # None = unreachable
    throughput_kbps: Optional[float] = None  # None = not measured or failed

    @property
    def reachable(self) -> bool:
        return self.latency_ms is not None

@dataclass(frozen=True)
class ValidityThreshold:
    max_latency_ms: float = 500.0
    min_throughput_kbps: Optional[float] = 100.0  # None disables the throughput gate

    def accepts(self, latency_ms: float, throughput_kbps: Optional[float]) -> bool:
        if latency_ms >= self.max_latency_ms:
            return False
        if self.min_throughput_kbps is None:
            return True
        return (throughput_kbps or 0.0) > self.min_throughput_kbps

@dataclass(frozen=True)
class SelectionOutcome:
    chosen: Optional[Candidate] = None
    metrics: Optional[ProbeResult] = None

    @property
    def address(self) -> Optional[str]:
        return self.chosen.address if self.chosen else None
