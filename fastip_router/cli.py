import typer
import asyncio
import logging
import os
import sys
from dataclasses import replace
from .client import FastIpClient
from .config import Settings
from .dns_cache import select_invalidator
from .errors import FastIpError, SelectionEmpty
from .sources import build_source

app = typer.Typer(help="Pin GitHub domains to their fastest address")

def configure_logging(level: str | None = None):
    level = (level or os.environ.get("FASTIP_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

def _client(source: str, settings: Settings | None = None) -> FastIpClient:
    settings = settings or Settings.from_env()
    try:
        candidate_source = build_source(settings, source)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--source")
    return FastIpClient(settings=settings, source=candidate_source)

def _fmt(value, unit: str) -> str:
    return "n/a" if value is None else f"{value:.1f} {unit}"

def list_candidates(
    domain: str = typer.Argument(..., help="Domain to probe, e.g. github.com"),
    source: str = typer.Option("auto", help="auto|static|doh|ping"),
):
    """Show latency and throughput of every candidate and highlight the fastest."""
    async def run():
        client = _client(source)
        probes = await client.list_probes(domain)

        # Sort by latency
        probes.sort(key=lambda x: (x["latency_ms"] is None, x["latency_ms"] or 999999))

        for probe in probes:
            mark = "★" if probe["fastest"] else " "
            print(f"{mark} {probe['address']:39}  lat={_fmt(probe['latency_ms'], 'ms'):10}  "
                  f"tput={_fmt(probe['throughput_kbps'], 'KB/s'):12}  {probe['source']}"
                  f"{'  ' + probe['region'] if probe['region'] else ''}")

    configure_logging()
    asyncio.run(run())

def best(
    domain: str = typer.Argument(..., help="Domain to probe"),
    source: str = typer.Option("auto", help="auto|static|doh|ping"),
):
    """Print the best address for a domain."""
    async def run():
        client = _client(source)
        try:
            print(await client.best_address(domain))
        except SelectionEmpty as e:
            print(f"{e}; keep normal resolution", file=sys.stderr)
            raise typer.Exit(code=1)

    configure_logging()
    asyncio.run(run())

def optimize(
    hosts_file: str = typer.Option(None, help="Hosts file to update (default: platform hosts file)"),
    report_dir: str = typer.Option(None, help="Directory for report.json and best_cdn.txt"),
    source: str = typer.Option("auto", help="auto|static|doh|ping"),
    dry_run: bool = typer.Option(False, help="Probe and report, but don't write the hosts file"),
    flush: bool = typer.Option(True, help="Flush the OS DNS cache after updating"),
    max_latency: float = typer.Option(None, help="Latency ceiling in ms"),
    min_throughput: float = typer.Option(None, help="Throughput floor in KB/s"),
    throughput: bool = typer.Option(True, help="Measure download throughput"),
    log_level: str = typer.Option(None, help="DEBUG|INFO|WARNING|ERROR"),
):
    """Probe all domains, pin the winners in the hosts file and flush DNS."""
    configure_logging(log_level)
    settings = Settings.from_env()
    if max_latency is not None:
        settings = settings.with_threshold(max_latency_ms=max_latency)
    if min_throughput is not None:
        settings = settings.with_threshold(min_throughput_kbps=min_throughput)
    if not throughput:
        settings = replace(settings, probe_throughput=False).with_threshold(min_throughput_kbps=None)

    async def run():
        client = _client(source, settings)
        summary = await client.run(
            hosts_path=hosts_file, report_dir=report_dir, dry_run=dry_run, flush=flush
        )
        for domain, outcome in summary.outcomes.items():
            if outcome.chosen is not None:
                print(f"✅ {domain:30} {outcome.address:16} {_fmt(outcome.metrics.latency_ms, 'ms')}")
            elif domain in summary.mapping:
                print(f"⚠️  {domain:30} {summary.mapping[domain]:16} (fallback)")
            else:
                print(f"❌ {domain:30} no candidate, left alone")
        change = summary.hosts_change
        print(f"hosts: {len(change.updated)} updated, {len(change.added)} added, "
              f"{len(change.unchanged)} unchanged{' (dry run)' if dry_run else ''}")

    try:
        asyncio.run(run())
    except FastIpError as e:
        print(f"❌ {e}", file=sys.stderr)
        raise typer.Exit(code=1)

def flush_dns():
    """Flush the OS DNS cache."""
    configure_logging()
    if not select_invalidator().invalidate():
        raise typer.Exit(code=1)

app.command()(list_candidates)
app.command()(best)
app.command()(optimize)
app.command()(flush_dns)

if __name__ == "__main__":
    app()
