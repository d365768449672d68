import logging
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .errors import SinkWriteFailure

logger = logging.getLogger(__name__)

HOSTS_PATHS = {
    "windows": r"C:\Windows\System32\drivers\etc\hosts",
    "linux": "/etc/hosts",
    "darwin": "/etc/hosts",
}

@dataclass
class HostsChange:
    updated: dict[str, str] = field(default_factory=dict)
    unchanged: dict[str, str] = field(default_factory=dict)
    added: dict[str, str] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.updated or self.added)

def default_hosts_path(system: Optional[str] = None) -> Path:
    system = (system or platform.system()).lower()
    try:
        return Path(HOSTS_PATHS[system])
    except KeyError:
        raise SinkWriteFailure("<hosts>", f"unsupported platform: {system}") from None

def _entry(line: str) -> Optional[list[str]]:
    """Split a hosts line into [address, hostname, ...]; None for comments and junk."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    fields = stripped.split("#", 1)[0].split()
    if len(fields) < 2:
        return None
    return fields

def parse_hosts(text: str) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for line in text.splitlines():
        fields = _entry(line)
        if fields is None:
            continue
        for hostname in fields[1:]:
            mapping.setdefault(hostname, fields[0])
    return mapping

def read_hosts(path) -> dict[str, str]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise SinkWriteFailure(path, f"read failed: {e}") from e
    return parse_hosts(text)

def render_hosts(text: str, mapping: Mapping[str, str]) -> tuple[str, HostsChange]:
    """Return the hosts content with ``mapping`` applied, plus what changed."""
    change = HostsChange()
    seen: set[str] = set()
    lines = []

    for line in text.splitlines():
        fields = _entry(line)
        target = None
        if fields is not None:
            target = next((h for h in fields[1:] if h in mapping and h not in seen), None)
        if target is None:
            lines.append(line)
            continue

        address = mapping[target]
        # Mapped names that need another address move to their own line.
        names = [h for h in fields[1:]
                 if h not in mapping or h in seen or mapping[h] == address]
        seen.update(h for h in names if mapping.get(h) == address)
        if fields[0] == address and names == fields[1:]:
            lines.append(line)
            change.unchanged[target] = address
            logger.info("unchanged: %s already -> %s", target, address)
        elif fields[0] == address:
            lines.append(" ".join([address] + names))
            change.unchanged[target] = address
            logger.info("unchanged: %s already -> %s, split off %s",
                        target, address, " ".join(h for h in fields[1:] if h not in names))
        else:
            lines.append(" ".join([address] + names))
            change.updated[target] = address
            logger.info("updated: %s %s -> %s", target, fields[0], address)

    for domain, address in mapping.items():
        if domain not in seen:
            lines.append(f"{address} {domain}")
            seen.add(domain)
            change.added[domain] = address
            logger.info("added: %s -> %s", domain, address)

    return ("\n".join(lines) + "\n" if lines else ""), change

def update_hosts(path, mapping: Mapping[str, str], dry_run: bool = False) -> HostsChange:
    """Apply ``mapping`` to the hosts file at ``path``.

    The new content is assembled completely before a single write, and the
    file is left untouched when nothing differs.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        text = ""
    except OSError as e:
        raise SinkWriteFailure(path, f"read failed: {e}") from e

    new_text, change = render_hosts(text, mapping)
    if dry_run or new_text == text:
        return change

    try:
        path.write_text(new_text, encoding="utf-8")
    except OSError as e:
        raise SinkWriteFailure(path, f"write failed: {e}") from e
    logger.info("wrote %s (%d updated, %d added)", path, len(change.updated), len(change.added))
    return change
