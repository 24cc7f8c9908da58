"""Cancelable status polling for capabilities without change notification."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Callable, Dict, Optional, Tuple

from .config import PollingConfig
from .contracts import PermissionStatus, PermissionType
from .errors import ConfigurationError, SessionStateError
from .resolver import StatusResolver

logger = logging.getLogger(__name__)

OnFinished = Callable[[PermissionType, bool], None]


class _Watch:
    """One scheduled polling loop and its cancellation token."""

    def __init__(
        self, permission_type: PermissionType, interval: float, max_attempts: int
    ) -> None:
        self.permission_type = permission_type
        self.interval = interval
        self.max_attempts = max_attempts
        self.attempts = 0
        self.cancelled = threading.Event()
        self.task: Optional[asyncio.Task[None]] = None
        self.future: Optional[concurrent.futures.Future] = None


class PollingWatcher:
    """Polls a capability on the owner event loop until granted or exhausted.

    Each watch is an asyncio task that awaits between ticks, so the calling
    thread is never blocked. ``on_finished(type, granted)`` is called once
    when a watch ends on its own; a stopped watch never calls it.
    """

    def __init__(
        self,
        resolver: StatusResolver,
        on_finished: OnFinished,
        config: Optional[PollingConfig] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._resolver = resolver
        self._on_finished = on_finished
        self._config = config or PollingConfig()
        self._loop = loop
        self._lock = threading.Lock()
        self._watches: Dict[PermissionType, _Watch] = {}

    @property
    def active(self) -> Tuple[PermissionType, ...]:
        with self._lock:
            return tuple(self._watches)

    def is_active(self, permission_type: PermissionType) -> bool:
        with self._lock:
            return permission_type in self._watches

    def start(
        self,
        permission_type: PermissionType,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> bool:
        """Schedule polling for ``permission_type``.

        Returns ``False`` when a watch for the type is already running.
        """

        interval = self._config.interval if interval is None else interval
        max_attempts = self._config.max_attempts if max_attempts is None else max_attempts
        if interval <= 0 or max_attempts < 1:
            raise ConfigurationError(
                f"Invalid polling policy: interval={interval}, max_attempts={max_attempts}"
            )

        loop = self._owner_loop()
        with self._lock:
            if permission_type in self._watches:
                logger.debug(f"Already polling {permission_type.value}")
                return False
            watch = _Watch(permission_type, interval, max_attempts)
            self._watches[permission_type] = watch

        if _running_loop() is loop:
            watch.task = loop.create_task(
                self._run(watch), name=f"permscope.poll.{permission_type.value}"
            )
        else:
            watch.future = asyncio.run_coroutine_threadsafe(self._run(watch), loop)
        logger.debug(
            f"Polling {permission_type.value} every {interval}s "
            f"for up to {max_attempts} attempts"
        )
        return True

    def stop(self, permission_type: PermissionType) -> bool:
        """Cancel the watch for ``permission_type`` if one is running."""
        with self._lock:
            watch = self._watches.pop(permission_type, None)
        if watch is None:
            return False
        self._cancel(watch)
        return True

    def stop_all(self) -> None:
        with self._lock:
            watches = list(self._watches.values())
            self._watches.clear()
        for watch in watches:
            self._cancel(watch)

    def ensure_ready(self) -> asyncio.AbstractEventLoop:
        """Return the loop watches will run on.

        Raises ``SessionStateError`` when there is none, so callers can find
        out before prompting the user.
        """
        return self._owner_loop()

    def _owner_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = _running_loop()
        if self._loop is None or self._loop.is_closed():
            raise SessionStateError("Polling requires a running asyncio event loop")
        return self._loop

    def _cancel(self, watch: _Watch) -> None:
        watch.cancelled.set()
        if watch.future is not None:
            watch.future.cancel()
        task = watch.task
        if task is not None and not task.done():
            if _running_loop() is self._loop:
                task.cancel()
            else:
                try:
                    self._loop.call_soon_threadsafe(task.cancel)
                except RuntimeError:
                    # Loop already closed; the token keeps the watch silent.
                    pass
        logger.debug(f"Stopped polling {watch.permission_type.value}")

    def _discard(self, watch: _Watch) -> None:
        with self._lock:
            if self._watches.get(watch.permission_type) is watch:
                del self._watches[watch.permission_type]

    async def _run(self, watch: _Watch) -> None:
        watch.task = asyncio.current_task()
        granted = False
        try:
            while watch.attempts < watch.max_attempts:
                await asyncio.sleep(watch.interval)
                if watch.cancelled.is_set():
                    return
                watch.attempts += 1
                status = self._resolver.status_of(watch.permission_type)
                if status is PermissionStatus.AUTHORIZED:
                    granted = True
                    break
        finally:
            self._discard(watch)

        if watch.cancelled.is_set():
            return
        if granted:
            logger.info(
                f"{watch.permission_type.value} authorized after {watch.attempts} polls"
            )
        else:
            logger.info(
                f"Gave up polling {watch.permission_type.value} "
                f"after {watch.attempts} attempts"
            )
        try:
            self._on_finished(watch.permission_type, granted)
        except Exception:
            logger.exception(
                f"Polling callback failed for {watch.permission_type.value}"
            )


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
