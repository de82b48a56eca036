import threading
from typing import Callable, Sequence

import aprslib
from aprslib.exceptions import GenericError

from aprs2sondehub import SOFTWARE_NAME, __version__
from aprs2sondehub.connections.base import FrameSink
from aprs2sondehub.utilities import get_logger

LOGGER = get_logger('aprs2sondehub.connections')

APRS_IS_PORT = 14580
CALLSIGN_HASH_LENGTH = 10


def passcode(callsign: str) -> int:
    """
    APRS-IS passcode of the given callsign; the SSID is ignored

    :param callsign: login callsign, with or without `-SSID`
    :return: 15-bit passcode
    """

    callsign = callsign.split('-', 1)[0][:CALLSIGN_HASH_LENGTH].upper()
    return aprslib.passcode(callsign)


class APRSisStream(FrameSink):
    """
    session with a single APRS-IS server, receiving the packets of the given callsigns and accepting outbound frames
    """

    def __init__(self, hostname: str, port: int = None):
        """
        :param hostname: APRS-IS server hostname
        :param port: server port (filtered feed by default)
        """

        if port is None:
            port = APRS_IS_PORT

        self.hostname = hostname
        self.port = port
        super().__init__(f'{self.hostname}:{self.port}')

        self.__callback = None
        self.__connection = None
        self.__connected = False
        self.__send_lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self.__connected

    def on_line(self, callback: Callable[[str, 'APRSisStream'], None]):
        """ register the handler of received lines, replacing any previous one """
        self.__callback = callback

    @staticmethod
    def login_line(callsign: str, filter_callsigns: Sequence[str]) -> str:
        return (
            f'user {callsign} pass {passcode(callsign)} vers {SOFTWARE_NAME} {__version__}'
            f' filter b/{"/".join(filter_callsigns)}'
        )

    def connect(self, login_callsign: str, filter_callsigns: Sequence[str]):
        """
        Log in and dispatch received lines to the registered handler until the connection closes.

        :param login_callsign: callsign to log in with
        :param filter_callsigns: callsigns to receive packets from (budlist filter)
        """

        self.__connection = aprslib.IS(
            login_callsign,
            str(passcode(login_callsign)),
            host=self.hostname,
            port=self.port,
            skip_login=True,
        )

        try:
            self.__connection.connect(blocking=False)
            self.__connection.sendall(self.login_line(login_callsign, filter_callsigns))
            self.__connected = True
            LOGGER.info(f'connected to APRS-IS server {self.location} as {login_callsign}')

            self.__connection.consumer(self.__receive, blocking=True, raw=True)
        # a socket closed under the reader fails `select` with `ValueError`
        except (GenericError, OSError, ValueError) as error:
            LOGGER.warning(f'{self.location} - {error.__class__.__name__} - {error}')
        finally:
            self.close()
            LOGGER.info(f'disconnected from APRS-IS server {self.location}')

    def send(self, frame: str) -> bool:
        if not self.connected:
            LOGGER.warning(f'not connected to {self.location}; dropping frame: {frame}')
            return False

        try:
            with self.__send_lock:
                self.__connection.sendall(frame)
        except (GenericError, OSError) as error:
            LOGGER.warning(
                f'could not send frame to {self.location} - {error.__class__.__name__} - {error}'
            )
            # the library closes the socket on a failed write
            self.__connected = False
            return False

        LOGGER.debug(f'sent to {self.location}: {frame}')
        return True

    def close(self):
        self.__connected = False
        if self.__connection is not None:
            self.__connection.close()

    def __receive(self, line):
        if isinstance(line, bytes):
            line = line.decode('utf-8', errors='replace')
        line = line.strip()

        # server comments and keepalives
        if len(line) == 0 or line.startswith('#'):
            return
        if '\n' in line:
            LOGGER.debug(f'dropping merged line from {self.location}: {repr(line)}')
            return

        if self.__callback is not None:
            try:
                self.__callback(line, self)
            except Exception as error:
                LOGGER.exception(f'{error.__class__.__name__} - {error}')

        # stop consuming once the session was closed, e.g. by a failed send
        if not self.__connected:
            raise StopIteration
