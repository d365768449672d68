from .models import Candidate

# Domains pinned in the hosts file; the first one is the primary domain for reports.
DEFAULT_DOMAINS: tuple[str, ...] = (
    "github.com",
    "raw.githubusercontent.com",
    "github.global.ssl.fastly.net",
    "assets-cdn.github.com",
)

# Ping-service nodes are kept only if their name mentions one of these cities.
HOME_CITIES: tuple[str, ...] = ("北京", "上海", "广州", "深圳", "成都")

def _static(region: str, *addresses: str) -> list[Candidate]:
    return [Candidate(address=a, source="static", region=region) for a in addresses]

# Well-known edge addresses, used when no remote source answers.
STATIC_TABLE: dict[str, tuple[Candidate, ...]] = {
    "github.com": tuple(
        _static("ap-southeast", "20.205.243.166")
        + _static("ap-northeast", "20.27.177.113")
        + _static("us-east", "140.82.112.3", "140.82.113.3", "140.82.114.4")
    ),
    "raw.githubusercontent.com": tuple(
        _static("fastly", "185.199.108.133", "185.199.109.133",
                "185.199.110.133", "185.199.111.133")
    ),
    "github.global.ssl.fastly.net": tuple(
        _static("fastly", "151.101.1.194", "151.101.65.194",
                "151.101.129.194", "151.101.193.194")
    ),
    "assets-cdn.github.com": tuple(
        _static("fastly", "185.199.108.153", "185.199.109.153",
                "185.199.110.153", "185.199.111.153")
    ),
}

# Small resources fetched for the throughput probe; other domains use https://<domain>/.
DOWNLOAD_URLS: dict[str, str] = {
    "github.com": "https://github.com/favicon.ico",
    "raw.githubusercontent.com": "https://raw.githubusercontent.com/github/gitignore/main/README.md",
    "assets-cdn.github.com": "https://assets-cdn.github.com/favicon.ico",
}

PING_SERVICE_URL = "https://www.itdog.cn/tc/ping/"
DOH_URL = "https://dns.google/resolve"
GEO_URL = "http://ip-api.com/json/?fields=status,query,country,regionName,city,isp"
