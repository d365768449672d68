import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from .models import Candidate, ValidityThreshold
from .regions import (
    DEFAULT_DOMAINS,
    DOH_URL,
    DOWNLOAD_URLS,
    GEO_URL,
    HOME_CITIES,
    PING_SERVICE_URL,
    STATIC_TABLE,
)

FALLBACK_POLICIES = ("static", "skip")

@dataclass(frozen=True)
class Settings:
    domains: tuple[str, ...] = DEFAULT_DOMAINS
    port: int = 443
    connect_timeout: float = 2.0
    ping_count: int = 1
    run_timeout: float = 60.0
    source_timeout: float = 20.0

    probe_throughput: bool = True
    download_urls: Mapping[str, str] = field(default_factory=lambda: dict(DOWNLOAD_URLS))
    download_max_bytes: int = 256 * 1024
    download_timeout: float = 10.0

    threshold: ValidityThreshold = ValidityThreshold()

    ping_service_url: str = PING_SERVICE_URL
    doh_url: str = DOH_URL
    geo_url: str = GEO_URL
    home_cities: tuple[str, ...] = HOME_CITIES
    static_table: Mapping[str, tuple[Candidate, ...]] = field(
        default_factory=lambda: dict(STATIC_TABLE)
    )

    fallback_policy: str = "static"
    report_dir: str = "results"
    hosts_path: Optional[str] = None  # None = platform default

    def __post_init__(self):
        if self.fallback_policy not in FALLBACK_POLICIES:
            raise ValueError(f"Unknown fallback policy: {self.fallback_policy}")

    def download_url_for(self, domain: str) -> str:
        return self.download_urls.get(domain, f"https://{domain}/")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``FASTIP_*`` environment variables over the defaults."""
        env = os.environ if environ is None else environ
        overrides: dict = {}

        if env.get("FASTIP_DOMAINS"):
            overrides["domains"] = tuple(
                d.strip() for d in env["FASTIP_DOMAINS"].split(",") if d.strip()
            )
        for key, name, cast in (
            ("FASTIP_PORT", "port", int),
            ("FASTIP_CONNECT_TIMEOUT", "connect_timeout", float),
            ("FASTIP_PING_COUNT", "ping_count", int),
            ("FASTIP_RUN_TIMEOUT", "run_timeout", float),
            ("FASTIP_SOURCE_TIMEOUT", "source_timeout", float),
            ("FASTIP_DOWNLOAD_MAX_BYTES", "download_max_bytes", int),
            ("FASTIP_DOWNLOAD_TIMEOUT", "download_timeout", float),
            ("FASTIP_FALLBACK_POLICY", "fallback_policy", str),
            ("FASTIP_REPORT_DIR", "report_dir", str),
            ("FASTIP_HOSTS_FILE", "hosts_path", str),
        ):
            if env.get(key):
                try:
                    overrides[name] = cast(env[key])
                except ValueError:
                    raise ValueError(f"Invalid value for {key}: {env[key]!r}") from None

        if env.get("FASTIP_HOME_CITIES"):
            overrides["home_cities"] = tuple(
                c.strip() for c in env["FASTIP_HOME_CITIES"].split(",") if c.strip()
            )
        if env.get("FASTIP_PROBE_THROUGHPUT"):
            overrides["probe_throughput"] = env["FASTIP_PROBE_THROUGHPUT"].lower() not in (
                "0", "false", "no", "off",
            )

        settings = cls(**overrides)
        if env.get("FASTIP_MAX_LATENCY_MS") or env.get("FASTIP_MIN_THROUGHPUT_KBPS"):
            settings = settings.with_threshold(
                max_latency_ms=float(env.get("FASTIP_MAX_LATENCY_MS") or settings.threshold.max_latency_ms),
                min_throughput_kbps=float(env["FASTIP_MIN_THROUGHPUT_KBPS"])
                if env.get("FASTIP_MIN_THROUGHPUT_KBPS")
                else settings.threshold.min_throughput_kbps,
            )
        return settings

    def with_threshold(self, **changes) -> "Settings":
        return replace(self, threshold=replace(self.threshold, **changes))
