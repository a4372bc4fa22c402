import asyncio
import http.client
import logging
import socket
import threading
import urllib.error
import urllib.request

import pytest

from client_gesture_led.actuator import ActuatorNotifier, post_form
from client_gesture_led.errors import ActuatorUnreachable
from client_gesture_led.finger_state import GestureLabel

URL = "http://led.test/led"


class FakeResponse:
    def __init__(self, body=b"LED is ON", status=200):
        self.body = body
        self.status = status

    def read(self):
        return self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


# ---------------------------------------------------------------------------
# post_form
# ---------------------------------------------------------------------------

def test_post_form_sends_form_request(monkeypatch):
    captured = {}

    def fake_urlopen(request, timeout):
        captured["request"] = request
        captured["timeout"] = timeout
        return FakeResponse(b"LED is ON")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    assert post_form(URL, b"state=ON", 1.5) == "LED is ON"

    request = captured["request"]
    assert request.get_method() == "POST"
    assert request.full_url == URL
    assert request.data == b"state=ON"
    assert request.get_header("Content-type") == "application/x-www-form-urlencoded"
    assert captured["timeout"] == 1.5


@pytest.mark.parametrize("error", [
    urllib.error.URLError(ConnectionRefusedError(111, "Connection refused")),
    urllib.error.HTTPError(URL, 500, "Internal Server Error", {}, None),
    socket.timeout("timed out"),
    ConnectionResetError(104, "Connection reset by peer"),
    http.client.BadStatusLine("garbage"),
    http.client.RemoteDisconnected("Remote end closed connection without response"),
])
def test_post_form_maps_failures(monkeypatch, error):
    def fake_urlopen(request, timeout):
        raise error

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(ActuatorUnreachable):
        post_form(URL, b"state=OFF", 0.1)


def test_post_form_maps_truncated_reply(monkeypatch):
    class TruncatedResponse(FakeResponse):
        def read(self):
            raise http.client.IncompleteRead(b"LED is", 3)

    monkeypatch.setattr(
        urllib.request, "urlopen", lambda request, timeout: TruncatedResponse()
    )
    with pytest.raises(ActuatorUnreachable, match="Bad reply"):
        post_form(URL, b"state=ON", 0.1)


def test_post_form_rejects_non_2xx_status(monkeypatch):
    monkeypatch.setattr(
        urllib.request, "urlopen", lambda request, timeout: FakeResponse(b"", status=302)
    )
    with pytest.raises(ActuatorUnreachable, match="HTTP 302"):
        post_form(URL, b"state=ON", 0.1)


# ---------------------------------------------------------------------------
# ActuatorNotifier
# ---------------------------------------------------------------------------

class RecordingSender:
    def __init__(self, fail=False):
        self.bodies = []
        self.fail = fail

    def __call__(self, url, body, timeout):
        self.bodies.append(body)
        if self.fail:
            raise ActuatorUnreachable("connection refused")
        return "LED is " + body.decode("ascii").split("=", 1)[1]


def test_notify_does_not_wait_for_the_request():
    release = threading.Event()

    def blocking_sender(url, body, timeout):
        release.wait(5)
        return "LED is ON"

    async def scenario():
        notifier = ActuatorNotifier(URL, sender=blocking_sender)
        notifier.notify(GestureLabel.OPEN)

        # notify() returned while the request is still blocked
        assert notifier.in_flight == 1
        assert notifier.stats.succeeded == 0

        release.set()
        await notifier.drain()
        assert notifier.in_flight == 0
        assert notifier.stats.succeeded == 1
        await notifier.aclose()

    try:
        asyncio.run(scenario())
    finally:
        release.set()


def test_requests_leave_in_transition_order():
    sender = RecordingSender()

    async def scenario():
        notifier = ActuatorNotifier(URL, sender=sender)
        for label in [GestureLabel.OPEN, GestureLabel.CLOSED, GestureLabel.OPEN, GestureLabel.CLOSED]:
            notifier.notify(label)
        await notifier.aclose()
        return notifier

    notifier = asyncio.run(scenario())

    assert sender.bodies == [b"state=ON", b"state=OFF", b"state=ON", b"state=OFF"]
    assert notifier.stats.dispatched == 4
    assert notifier.stats.last_state == "OFF"
    assert notifier.stats.last_reply == "LED is OFF"


def test_success_is_logged(caplog):
    caplog.set_level(logging.INFO, logger="client_gesture_led.actuator")

    async def scenario():
        notifier = ActuatorNotifier(URL, sender=RecordingSender())
        notifier.notify(GestureLabel.OPEN)
        await notifier.aclose()

    asyncio.run(scenario())
    assert "LED state: LED is ON" in caplog.text


def test_failure_is_counted_and_logged(caplog):
    async def scenario():
        notifier = ActuatorNotifier(URL, sender=RecordingSender(fail=True))
        notifier.notify(GestureLabel.OPEN)
        await notifier.drain()
        stats = notifier.get_stats()
        await notifier.aclose()
        return stats

    stats = asyncio.run(scenario())

    assert stats["failed"] == 1
    assert stats["succeeded"] == 0
    assert stats["last_error"] == "connection refused"
    assert "LED ON not delivered" in caplog.text


def test_unexpected_sender_error_is_contained(caplog):
    def broken_sender(url, body, timeout):
        raise RuntimeError("boom")

    async def scenario():
        notifier = ActuatorNotifier(URL, sender=broken_sender)
        notifier.notify(GestureLabel.CLOSED)
        await notifier.aclose()
        return notifier

    notifier = asyncio.run(scenario())
    assert notifier.stats.failed == 1
    assert "boom" in caplog.text


def test_notify_after_close_is_dropped():
    sender = RecordingSender()

    async def scenario():
        notifier = ActuatorNotifier(URL, sender=sender)
        await notifier.aclose()
        notifier.notify(GestureLabel.OPEN)
        return notifier

    notifier = asyncio.run(scenario())
    assert sender.bodies == []
    assert notifier.stats.dispatched == 0
