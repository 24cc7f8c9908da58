"""Tests for the request dispatcher."""

import asyncio

import pytest

from permscope.checkers import (
    InMemoryCompletionChecker,
    InMemoryPollingChecker,
    InMemoryPushChecker,
    NativeStatus,
)
from permscope.config import PollingConfig
from permscope.contracts import PermissionType
from permscope.dispatch import RequestDispatcher
from permscope.polling import PollingWatcher
from permscope.registry import CapabilityRegistry
from permscope.resolver import StatusResolver


class CapturingCompletionChecker(InMemoryCompletionChecker):
    """Keeps the completion so tests can call it more than once."""

    def request(self, permission_type, completion):
        super().request(permission_type, completion)
        self.captured = completion


class BrokenPushChecker(InMemoryPushChecker):
    def request(self, permission_type):
        raise RuntimeError("location services disabled")


def make_dispatcher(checkers, watcher_config=None):
    signals = []
    registry = CapabilityRegistry.from_checkers(checkers)
    resolver = StatusResolver(registry)
    watcher = None
    if watcher_config is not None:
        watcher = PollingWatcher(
            resolver,
            lambda t, g: dispatcher.poll_finished(t, g),
            watcher_config,
        )
    dispatcher = RequestDispatcher(
        registry, resolver, lambda: signals.append("signal"), watcher
    )
    return dispatcher, signals


def test_push_request_prompts_once_and_signals_on_change():
    location = InMemoryPushChecker()
    dispatcher, signals = make_dispatcher({PermissionType.LOCATION_IN_USE: location})

    assert dispatcher.request(PermissionType.LOCATION_IN_USE)
    assert not dispatcher.request(PermissionType.LOCATION_IN_USE)
    assert location.request_count == 1
    assert location.handler_count == 1
    assert dispatcher.outstanding == (PermissionType.LOCATION_IN_USE,)

    location.update(NativeStatus.AUTHORIZED_WHEN_IN_USE)

    assert signals == ["signal"]
    assert dispatcher.outstanding == ()


def test_push_handler_registered_once_per_type():
    location = InMemoryPushChecker()
    dispatcher, signals = make_dispatcher({PermissionType.LOCATION_IN_USE: location})

    dispatcher.request(PermissionType.LOCATION_IN_USE)
    location.update(NativeStatus.DENIED)
    dispatcher.request(PermissionType.LOCATION_IN_USE)

    assert location.request_count == 2
    assert location.handler_count == 1
    assert signals == ["signal"]


def test_shared_push_checker_signals_once_per_change():
    location = InMemoryPushChecker()
    dispatcher, signals = make_dispatcher(
        {
            PermissionType.LOCATION_ALWAYS: location,
            PermissionType.LOCATION_IN_USE: location,
        }
    )

    assert dispatcher.request(PermissionType.LOCATION_ALWAYS)
    assert dispatcher.request(PermissionType.LOCATION_IN_USE)
    assert location.request_count == 2
    assert location.handler_count == 1

    location.update(NativeStatus.AUTHORIZED_WHEN_IN_USE)

    assert signals == ["signal"]
    assert dispatcher.outstanding == ()

    dispatcher.close()
    assert location.handler_count == 0


def test_already_authorized_is_not_prompted():
    contacts = InMemoryCompletionChecker(status=NativeStatus.AUTHORIZED)
    dispatcher, signals = make_dispatcher({PermissionType.CONTACTS: contacts})

    assert not dispatcher.request(PermissionType.CONTACTS)
    assert contacts.request_count == 0
    assert dispatcher.outstanding == ()
    assert signals == []


def test_completion_request_signals_regardless_of_flag():
    contacts = InMemoryCompletionChecker()
    dispatcher, signals = make_dispatcher({PermissionType.CONTACTS: contacts})

    assert dispatcher.request(PermissionType.CONTACTS)
    assert not dispatcher.request(PermissionType.CONTACTS)
    assert contacts.pending_count == 1

    contacts.respond(False)

    assert signals == ["signal"]
    assert dispatcher.outstanding == ()


def test_completion_called_twice_signals_once():
    contacts = CapturingCompletionChecker()
    dispatcher, signals = make_dispatcher({PermissionType.CONTACTS: contacts})

    dispatcher.request(PermissionType.CONTACTS)
    contacts.captured(True)
    contacts.captured(True)

    assert signals == ["signal"]


def test_unregistered_type_is_not_requested():
    dispatcher, signals = make_dispatcher({})

    assert not dispatcher.request(PermissionType.CAMERA)
    assert dispatcher.outstanding == ()


def test_failed_request_releases_outstanding(caplog):
    dispatcher, signals = make_dispatcher(
        {PermissionType.LOCATION_ALWAYS: BrokenPushChecker()}
    )

    assert not dispatcher.request(PermissionType.LOCATION_ALWAYS)
    assert dispatcher.outstanding == ()
    assert signals == []
    assert "location_always" in caplog.text


def test_polling_without_watcher_is_not_prompted():
    notifications = InMemoryPollingChecker()
    dispatcher, signals = make_dispatcher({PermissionType.NOTIFICATIONS: notifications})

    assert not dispatcher.request(PermissionType.NOTIFICATIONS)
    assert notifications.request_count == 0
    assert dispatcher.outstanding == ()
    assert signals == ["signal"]


def test_polling_without_event_loop_is_not_prompted(caplog):
    notifications = InMemoryPollingChecker()
    dispatcher, signals = make_dispatcher(
        {PermissionType.NOTIFICATIONS: notifications},
        watcher_config=PollingConfig(interval=0.001, max_attempts=10),
    )

    assert not dispatcher.request(PermissionType.NOTIFICATIONS)
    assert notifications.request_count == 0
    assert dispatcher.outstanding == ()
    assert signals == ["signal"]
    assert "event loop" in caplog.text


def test_close_detaches_and_ignores_late_signals():
    location = InMemoryPushChecker()
    contacts = InMemoryCompletionChecker()
    dispatcher, signals = make_dispatcher(
        {PermissionType.LOCATION_IN_USE: location, PermissionType.CONTACTS: contacts}
    )

    dispatcher.request(PermissionType.LOCATION_IN_USE)
    dispatcher.request(PermissionType.CONTACTS)
    dispatcher.close()
    dispatcher.close()

    assert dispatcher.closed
    assert location.handler_count == 0
    contacts.respond(True)
    location.update(NativeStatus.AUTHORIZED_WHEN_IN_USE)
    assert signals == []
    assert not dispatcher.request(PermissionType.CAMERA)


@pytest.mark.asyncio
async def test_polling_request_starts_watcher():
    notifications = InMemoryPollingChecker()
    dispatcher, signals = make_dispatcher(
        {PermissionType.NOTIFICATIONS: notifications},
        watcher_config=PollingConfig(interval=0.001, max_attempts=1000),
    )

    assert dispatcher.request(PermissionType.NOTIFICATIONS)
    assert not dispatcher.request(PermissionType.NOTIFICATIONS)
    assert notifications.request_count == 1

    notifications.set_status(NativeStatus.AUTHORIZED)
    for _ in range(200):
        if signals:
            break
        await asyncio.sleep(0.005)

    assert signals == ["signal"]
    assert dispatcher.outstanding == ()
