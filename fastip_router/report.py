import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Optional

from .models import SelectionOutcome

logger = logging.getLogger(__name__)

REPORT_FILE = "report.json"
BEST_FILE = "best_cdn.txt"

def report_entry(domain: str, outcome: SelectionOutcome, pinned: Optional[str] = None) -> dict:
    # Without a chosen candidate the pinned fallback address is recorded, or the
    # domain name itself when nothing was pinned, i.e. "no override".
    if outcome.chosen is None:
        return {"address": pinned or domain, "fallback": True, "latency_ms": None,
                "throughput_kbps": None, "source": None, "region": None}
    metrics = outcome.metrics
    return {
        "address": outcome.chosen.address,
        "fallback": False,
        "latency_ms": round(metrics.latency_ms, 2) if metrics and metrics.latency_ms is not None else None,
        "throughput_kbps": round(metrics.throughput_kbps, 2)
        if metrics and metrics.throughput_kbps is not None else None,
        "source": outcome.chosen.source,
        "region": outcome.chosen.region,
    }

def write_report(
    directory,
    outcomes: Mapping[str, SelectionOutcome],
    region: Optional[dict] = None,
    now: Optional[datetime] = None,
    mapping: Optional[Mapping[str, str]] = None,
) -> Path:
    """Write report.json and best_cdn.txt under ``directory``; returns the report path.

    ``mapping`` holds the addresses actually pinned, including fallbacks.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    now = now or datetime.now(timezone.utc)

    mapping = mapping or {}
    domains = {
        domain: report_entry(domain, outcome, mapping.get(domain))
        for domain, outcome in outcomes.items()
    }
    report = {
        "timestamp": now.isoformat(),
        "region": region or {},
        "domains": domains,
    }
    path = directory / REPORT_FILE
    path.write_text(json.dumps(report, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")

    if domains:
        primary = next(iter(domains.values()))
        (directory / BEST_FILE).write_text(primary["address"] + "\n", encoding="utf-8")

    logger.info("Report written to %s", path)
    return path
