from __future__ import annotations

import threading
import time
from concurrent.futures import CancelledError

import pytest

from pilaf import CorrelationTimeout, CorrelationWaiter, EventStream, LogEvent, glob_match
from pilaf.correlation import default_timeout, event_matches

# Wall-clock slack allowed on top of a timer deadline.
SLACK = 0.5


def test_glob_semantics() -> None:
    assert glob_match("Steve joined the game", "* joined the game")
    assert glob_match("Steve joined the game", "steve joined the gam?")
    assert not glob_match("Steve joined the game!", "* joined the game")
    assert glob_match("cost: $5 (x2)", "cost: $? (x2)")
    assert not glob_match(None, "*")


def test_event_matching_uses_kind_message_and_data() -> None:
    event = LogEvent("Steve joined the game", actor="Steve", kind="entity.join", data={"player": "Steve"})

    assert event_matches(event, "entity.*")
    assert event_matches(event, "Steve joined*")
    assert event_matches(event, '*"player": "Steve"*')
    assert event_matches(event, "entity.join", actor="steve")
    assert not event_matches(event, "entity.join", actor="Alex")


def test_default_timeouts() -> None:
    assert default_timeout("move_player") == 2000
    assert default_timeout("something_else") == 5000
    assert default_timeout(None) == 5000


def test_wait_resolves_with_matching_event() -> None:
    stream = EventStream()
    waiter = CorrelationWaiter(stream)

    pending = waiter.wait("* joined the game", 2.0)
    stream.publish(LogEvent("unrelated"))
    stream.publish(LogEvent("Steve joined the game"))

    event = pending.result(timeout=1)
    assert event is not None and event.message == "Steve joined the game"
    assert stream.subscriber_count == 0


def test_wait_times_out_no_earlier_than_deadline() -> None:
    stream = EventStream()
    waiter = CorrelationWaiter(stream)

    started = time.monotonic()
    pending = waiter.wait("never", 0.1)
    with pytest.raises(CorrelationTimeout) as info:
        pending.result(timeout=2)
    elapsed = time.monotonic() - started

    assert 0.1 <= elapsed < 0.1 + SLACK
    assert info.value.pattern == "never"
    assert str(info.value) == "Timed out after 100ms waiting for event matching 'never'"
    assert stream.subscriber_count == 0

    stream.publish(LogEvent("never"))
    with pytest.raises(CorrelationTimeout):
        pending.result(timeout=0)


def test_inverted_wait_succeeds_when_nothing_matches() -> None:
    stream = EventStream()
    pending = CorrelationWaiter(stream).wait("*error*", 0.1, invert=True)
    stream.publish(LogEvent("all good"))

    started = time.monotonic()
    assert pending.result(timeout=2) is None
    assert time.monotonic() - started < 0.1 + SLACK
    assert stream.subscriber_count == 0


def test_inverted_wait_reports_the_unwanted_event() -> None:
    stream = EventStream()
    pending = CorrelationWaiter(stream).wait("*error*", 2.0, invert=True)
    stream.publish(LogEvent("an error happened"))

    event = pending.result(timeout=1)
    assert event is not None and event.message == "an error happened"


def test_concurrent_waits_are_independent() -> None:
    stream = EventStream()
    waiter = CorrelationWaiter(stream)
    first = waiter.wait("alpha", 2.0)
    second = waiter.wait("beta", 2.0)

    stream.publish(LogEvent("beta"))
    assert second.done()
    assert not first.done()

    stream.publish(LogEvent("alpha"))
    assert first.result(timeout=1).message == "alpha"  # type: ignore[union-attr]


def test_cancel_releases_subscription_and_timer() -> None:
    stream = EventStream()
    pending = CorrelationWaiter(stream).wait("anything", 0.1)

    assert pending.cancel()
    assert not pending.cancel()
    assert pending.cancelled()
    assert stream.subscriber_count == 0
    with pytest.raises(CancelledError):
        pending.result(timeout=0)
    time.sleep(0.2)
    assert pending.cancelled()


def test_event_from_another_thread_settles_wait() -> None:
    stream = EventStream()
    pending = CorrelationWaiter(stream).wait("ping", 2.0)

    threading.Timer(0.05, stream.publish, args=(LogEvent("ping"),)).start()

    assert pending.result(timeout=1).message == "ping"  # type: ignore[union-attr]


def test_waiter_without_stream_only_times_out() -> None:
    pending = CorrelationWaiter().wait("*", 0.05)

    with pytest.raises(CorrelationTimeout):
        pending.result(timeout=2)


def test_non_positive_timeout_is_rejected() -> None:
    with pytest.raises(ValueError):
        CorrelationWaiter().wait("*", 0)
