"""Tests for the polling watcher."""

import asyncio

import pytest

from permscope.checkers import InMemoryPollingChecker, NativeStatus
from permscope.config import PollingConfig
from permscope.contracts import PermissionType
from permscope.errors import ConfigurationError, SessionStateError
from permscope.polling import PollingWatcher
from permscope.registry import CapabilityRegistry
from permscope.resolver import StatusResolver

NOTIFICATIONS = PermissionType.NOTIFICATIONS


class CountingPollingChecker(InMemoryPollingChecker):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.queries = 0

    def current_status(self):
        self.queries += 1
        return super().current_status()


def make_watcher(checker, interval=0.001, max_attempts=1000, loop=None):
    finished = []
    done = asyncio.Event()

    def on_finished(permission_type, granted):
        finished.append((permission_type, granted))
        done.set()

    resolver = StatusResolver(CapabilityRegistry.from_checkers({NOTIFICATIONS: checker}))
    watcher = PollingWatcher(
        resolver,
        on_finished,
        PollingConfig(interval=interval, max_attempts=max_attempts),
        loop=loop,
    )
    return watcher, finished, done


@pytest.mark.asyncio
async def test_watcher_reports_grant():
    checker = InMemoryPollingChecker()
    watcher, finished, done = make_watcher(checker)

    assert watcher.start(NOTIFICATIONS)
    assert watcher.is_active(NOTIFICATIONS)
    checker.set_status(NativeStatus.AUTHORIZED)

    await asyncio.wait_for(done.wait(), timeout=2)
    assert finished == [(NOTIFICATIONS, True)]
    assert watcher.active == ()


@pytest.mark.asyncio
async def test_watcher_gives_up_after_max_attempts():
    checker = CountingPollingChecker()
    watcher, finished, done = make_watcher(checker, max_attempts=3)

    watcher.start(NOTIFICATIONS)
    await asyncio.wait_for(done.wait(), timeout=2)
    await asyncio.sleep(0.02)

    assert finished == [(NOTIFICATIONS, False)]
    assert checker.queries == 3
    assert not watcher.is_active(NOTIFICATIONS)


@pytest.mark.asyncio
async def test_start_does_not_block_caller():
    checker = InMemoryPollingChecker()
    watcher, finished, _ = make_watcher(checker, interval=10, max_attempts=5)

    assert watcher.start(NOTIFICATIONS)
    assert finished == []

    watcher.stop_all()
    assert watcher.active == ()


@pytest.mark.asyncio
async def test_second_start_is_noop():
    checker = CountingPollingChecker()
    watcher, finished, done = make_watcher(checker, max_attempts=2)

    assert watcher.start(NOTIFICATIONS)
    assert not watcher.start(NOTIFICATIONS)

    await asyncio.wait_for(done.wait(), timeout=2)
    await asyncio.sleep(0.02)
    assert finished == [(NOTIFICATIONS, False)]
    assert checker.queries == 2


@pytest.mark.asyncio
async def test_stop_cancels_without_signal():
    checker = InMemoryPollingChecker()
    watcher, finished, _ = make_watcher(checker, interval=0.005)

    watcher.start(NOTIFICATIONS)
    assert watcher.stop(NOTIFICATIONS)
    assert not watcher.stop(NOTIFICATIONS)

    checker.set_status(NativeStatus.AUTHORIZED)
    await asyncio.sleep(0.05)
    assert finished == []


@pytest.mark.asyncio
async def test_restart_after_stop():
    checker = InMemoryPollingChecker()
    watcher, finished, done = make_watcher(checker)

    watcher.start(NOTIFICATIONS)
    watcher.stop(NOTIFICATIONS)
    assert watcher.start(NOTIFICATIONS)
    checker.set_status(NativeStatus.AUTHORIZED)

    await asyncio.wait_for(done.wait(), timeout=2)
    assert finished == [(NOTIFICATIONS, True)]


@pytest.mark.asyncio
async def test_start_and_stop_from_another_thread():
    checker = InMemoryPollingChecker()
    loop = asyncio.get_running_loop()
    watcher, finished, done = make_watcher(checker, loop=loop)

    assert await asyncio.to_thread(watcher.start, NOTIFICATIONS)
    assert watcher.is_active(NOTIFICATIONS)
    checker.set_status(NativeStatus.AUTHORIZED)
    await asyncio.wait_for(done.wait(), timeout=2)
    assert finished == [(NOTIFICATIONS, True)]

    checker.set_status(NativeStatus.NOT_DETERMINED)
    assert await asyncio.to_thread(watcher.start, NOTIFICATIONS)
    assert await asyncio.to_thread(watcher.stop, NOTIFICATIONS)
    checker.set_status(NativeStatus.AUTHORIZED)
    await asyncio.sleep(0.05)
    assert finished == [(NOTIFICATIONS, True)]


@pytest.mark.asyncio
async def test_invalid_policy_rejected():
    watcher, _, _ = make_watcher(InMemoryPollingChecker())

    with pytest.raises(ConfigurationError):
        watcher.start(NOTIFICATIONS, interval=0)
    with pytest.raises(ConfigurationError):
        watcher.start(NOTIFICATIONS, max_attempts=0)
    assert watcher.active == ()


def test_start_without_event_loop():
    resolver = StatusResolver(
        CapabilityRegistry.from_checkers({NOTIFICATIONS: InMemoryPollingChecker()})
    )
    watcher = PollingWatcher(resolver, lambda t, g: None)

    with pytest.raises(SessionStateError):
        watcher.start(NOTIFICATIONS)
    assert watcher.active == ()
