"""Idle watchdog that stops the server after a period without requests."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from devserver.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("devserver.lifecycle"), {}
)

IDLE_EXIT_CODE = 2


class IdleWatchdog:
    """Self-resetting deadline owned by the server context.

    The watchdog is either armed, with exactly one pending deadline, or
    fired. Firing is terminal: later resets are ignored.
    """

    def __init__(
        self,
        idle_timeout_ms: int,
        on_expire: Optional[Callable[[], None]] = None,
    ) -> None:
        self._timeout_seconds = idle_timeout_ms / 1000
        self._on_expire = on_expire
        self._handle: Optional[asyncio.TimerHandle] = None
        self._fired = asyncio.Event()

    @property
    def timeout_seconds(self) -> float:
        """Idle interval in seconds."""
        return self._timeout_seconds

    @property
    def deadline(self) -> Optional[float]:
        """Loop time at which the pending deadline expires."""
        if self._handle is None:
            return None
        return self._handle.when()

    def is_armed(self) -> bool:
        """Check if a deadline is pending."""
        return self._handle is not None and not self._fired.is_set()

    def has_fired(self) -> bool:
        """Check if the idle deadline expired."""
        return self._fired.is_set()

    def reset(self) -> None:
        """Cancel the pending deadline and schedule a new one."""
        if self._fired.is_set():
            return
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._timeout_seconds, self._expire)

    def cancel(self) -> None:
        """Drop the pending deadline without firing."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def wait_fired(self) -> None:
        """Block until the idle deadline expires."""
        await self._fired.wait()

    def _expire(self) -> None:
        self._handle = None
        self._fired.set()
        LIFECYCLE_LOGGER.warning(
            "Automatically stopping idle server at %s",
            datetime.now().isoformat(timespec="seconds"),
            extra={
                "event": "idle_timeout",
                "idle_timeout_ms": int(self._timeout_seconds * 1000),
            },
        )
        if self._on_expire is not None:
            self._on_expire()
