import logging
import platform
import shutil
import subprocess
from abc import ABC, abstractmethod
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


class CacheInvalidator(ABC):
    """Flushes the OS resolver cache after the hosts file changed."""

    @abstractmethod
    def command(self) -> Optional[Sequence[str]]:
        """The command to run, or None when there is nothing to do."""

    def invalidate(self) -> bool:
        cmd = self.command()
        if cmd is None:
            logger.warning("Don't know how to flush the DNS cache here; flush it manually")
            return False
        try:
            subprocess.run(cmd, check=True, capture_output=True, timeout=30)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("DNS cache flush failed (%s): %s; may need admin rights", " ".join(cmd), e)
            return False
        logger.info("DNS cache flushed")
        return True


class WindowsInvalidator(CacheInvalidator):
    def command(self):
        return ["ipconfig", "/flushdns"]


class MacInvalidator(CacheInvalidator):
    def command(self):
        return ["killall", "-HUP", "mDNSResponder"]


class LinuxInvalidator(CacheInvalidator):
    def command(self):
        if shutil.which("resolvectl"):
            return ["resolvectl", "flush-caches"]
        return ["systemd-resolve", "--flush-caches"]


class NullInvalidator(CacheInvalidator):
    def command(self):
        return None


_INVALIDATORS = {
    "windows": WindowsInvalidator,
    "darwin": MacInvalidator,
    "linux": LinuxInvalidator,
}

def select_invalidator(system: Optional[str] = None) -> CacheInvalidator:
    system = (system or platform.system()).lower()
    return _INVALIDATORS.get(system, NullInvalidator)()
