from datetime import timedelta
import threading
import time
from typing import Any, Callable, List, Sequence

import humanize

from aprs2sondehub.connections.aprs_is import APRSisStream
from aprs2sondehub.connections.base import FrameSink
from aprs2sondehub.utilities import get_logger

LOGGER = get_logger('aprs2sondehub.fleet')

MINIMUM_SESSION = timedelta(seconds=10)
RETRY_DELAY = timedelta(seconds=15)


class FleetSupervisor:
    """
    Keeps one APRS-IS session open per server, each on its own daemon thread, feeding every received line to the
    same handler.

    A session that ends sooner than `minimum_session` after it started counts as rejected, and its server is given
    up on. Any longer session is reopened after `retry_delay`. The fleet fails once fewer than half of the servers
    are still being served.
    """

    def __init__(
        self,
        servers: Sequence[str],
        login_callsign: str,
        filter_callsigns: Sequence[str],
        handler: Callable[[str, FrameSink], Any],
        stream_factory: Callable[[str], APRSisStream] = None,
        minimum_session: timedelta = None,
        retry_delay: timedelta = None,
    ):
        """
        :param servers: APRS-IS server hostnames
        :param login_callsign: callsign to log in with
        :param filter_callsigns: callsigns to receive packets from
        :param handler: callback receiving each line and the stream it arrived on
        :param stream_factory: constructor of a stream from a hostname
        :param minimum_session: sessions shorter than this count as rejected
        :param retry_delay: wait before reopening a dropped session
        """

        if len(servers) == 0:
            raise ValueError('no APRS-IS servers given')
        if stream_factory is None:
            stream_factory = APRSisStream
        if minimum_session is None:
            minimum_session = MINIMUM_SESSION
        if retry_delay is None:
            retry_delay = RETRY_DELAY

        self.servers = list(servers)
        self.login_callsign = login_callsign
        self.filter_callsigns = list(filter_callsigns)
        self.handler = handler
        self.stream_factory = stream_factory
        self.minimum_session = minimum_session
        self.retry_delay = retry_delay

        self.__streams: List[APRSisStream] = []
        self.__streams_lock = threading.Lock()
        self.__live = len(self.servers)
        self.__live_lock = threading.Lock()
        self.__shutdown = threading.Event()
        self.__failed = threading.Event()

    @property
    def live(self) -> int:
        """ number of servers not yet given up on """
        with self.__live_lock:
            return self.__live

    def run(self) -> bool:
        """
        Start a session thread per server and block until the fleet is stopped or fails.

        :return: whether the fleet was stopped cleanly
        """

        LOGGER.info(
            f'connecting to {len(self.servers)} APRS-IS server(s) as {self.login_callsign}'
            f' for {len(self.filter_callsigns)} balloon(s)'
        )

        for server in self.servers:
            threading.Thread(
                target=self.__maintain, args=(server,), name=f'aprs-is-{server}', daemon=True
            ).start()

        try:
            self.__shutdown.wait()
        finally:
            self.__close_streams()

        return not self.__failed.is_set()

    def stop(self):
        self.__shutdown.set()

    def __maintain(self, server: str):
        while not self.__shutdown.is_set():
            stream = self.stream_factory(server)
            stream.on_line(self.handler)
            with self.__streams_lock:
                self.__streams.append(stream)

            start_time = time.monotonic()
            try:
                stream.connect(self.login_callsign, self.filter_callsigns)
            except Exception as error:
                LOGGER.exception(f'{server} - {error.__class__.__name__} - {error}')
            finally:
                with self.__streams_lock:
                    self.__streams.remove(stream)
            duration = timedelta(seconds=time.monotonic() - start_time)

            if self.__shutdown.is_set():
                break

            if duration < self.minimum_session:
                LOGGER.error(
                    f'{server} closed the session after {humanize.precisedelta(duration)}; giving up on this server'
                )
                self.__retire(server)
                break

            LOGGER.warning(
                f'lost connection to {server} after {humanize.naturaldelta(duration)}'
                f'; reconnecting in {humanize.naturaldelta(self.retry_delay)}'
            )
            if self.__shutdown.wait(self.retry_delay / timedelta(seconds=1)):
                break

    def __retire(self, server: str):
        with self.__live_lock:
            self.__live -= 1
            live = self.__live

        if live < len(self.servers) / 2:
            LOGGER.critical(
                f'only {live} of {len(self.servers)} APRS-IS server(s) remain after losing {server}; shutting down'
            )
            self.__failed.set()
            self.__shutdown.set()

    def __close_streams(self):
        with self.__streams_lock:
            streams = list(self.__streams)
        for stream in streams:
            stream.close()
