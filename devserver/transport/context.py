"""Context object shared by every connection handler."""

from dataclasses import dataclass

from devserver.bootstrap.config import ServerConfig
from devserver.lifecycle.watchdog import IdleWatchdog


@dataclass
class ServerContext:
    """Read-only configuration plus the process-wide idle watchdog."""

    config: ServerConfig
    watchdog: IdleWatchdog
