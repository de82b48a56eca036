from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
import threading
import time
from typing import Callable, Sequence

import pytest

from aprs2sondehub.connections.base import FrameSink
from aprs2sondehub.fleet import FleetSupervisor


class FakeStream(FrameSink):
    def __init__(self, hostname: str, blocking: bool = False, lines: Sequence[str] = ()):
        super().__init__(hostname)
        self.blocking = blocking
        self.lines = lines
        self.callback = None
        self.started = threading.Event()
        self.closed = threading.Event()

    def on_line(self, callback: Callable):
        self.callback = callback

    def connect(self, login_callsign: str, filter_callsigns: Sequence[str]):
        self.started.set()
        for line in self.lines:
            self.callback(line, self)
        if self.blocking:
            self.closed.wait(timeout=10)
        self.close()

    def send(self, frame: str) -> bool:
        return True

    def close(self):
        self.closed.set()


def wait_for(condition: Callable[[], bool], timeout: float = 5):
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            raise TimeoutError('condition not met')
        time.sleep(0.01)


def test_no_servers():
    with pytest.raises(ValueError):
        FleetSupervisor([], 'N0CALL', ['W3EAX-11'], lambda line, stream: None)


def test_all_sessions_rejected():
    fleet = FleetSupervisor(
        ['euro.aprs2.net', 'noam.aprs2.net'],
        'N0CALL',
        ['W3EAX-11'],
        lambda line, stream: None,
        stream_factory=FakeStream,
    )

    with ThreadPoolExecutor(max_workers=1) as executor:
        assert executor.submit(fleet.run).result(timeout=5) is False

    assert fleet.live == 0


def test_minority_rejected():
    streams = []

    def stream_factory(hostname: str) -> FakeStream:
        stream = FakeStream(hostname, blocking=hostname != 'asia.aprs2.net')
        streams.append(stream)
        return stream

    fleet = FleetSupervisor(
        ['euro.aprs2.net', 'noam.aprs2.net', 'asia.aprs2.net'],
        'N0CALL',
        ['W3EAX-11'],
        lambda line, stream: None,
        stream_factory=stream_factory,
    )

    with ThreadPoolExecutor(max_workers=1) as executor:
        result = executor.submit(fleet.run)
        wait_for(
            lambda: fleet.live == 2
            and len(streams) == 3
            and all(stream.started.is_set() for stream in streams)
        )
        assert not result.done()

        fleet.stop()
        assert result.result(timeout=5) is True

    wait_for(lambda: all(stream.closed.is_set() for stream in streams))


def test_dropped_sessions_reconnect():
    connections = []
    received = []

    def stream_factory(hostname: str) -> FakeStream:
        connections.append(hostname)
        if len(connections) == 3:
            fleet.stop()
        return FakeStream(hostname, lines=[f'line {len(connections)}'])

    fleet = FleetSupervisor(
        ['euro.aprs2.net'],
        'N0CALL',
        ['W3EAX-11'],
        lambda line, stream: received.append((line, stream.location)),
        stream_factory=stream_factory,
        minimum_session=timedelta(0),
        retry_delay=timedelta(0),
    )

    with ThreadPoolExecutor(max_workers=1) as executor:
        assert executor.submit(fleet.run).result(timeout=5) is True

    wait_for(lambda: len(received) == 3)

    assert connections == ['euro.aprs2.net'] * 3
    assert received == [(f'line {index}', 'euro.aprs2.net') for index in range(1, 4)]
    assert fleet.live == 1
