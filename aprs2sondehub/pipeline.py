from datetime import datetime, timedelta
import math
import threading
from typing import Any, Callable, Dict, Optional

from dateutil.tz import UTC
import humanize
import numpy

from aprs2sondehub import SOFTWARE_NAME, __version__
from aprs2sondehub.configuration.run import BalloonConfiguration, DEFAULT_TRACKER_URL
from aprs2sondehub.connections.base import FrameSink, TelemetrySink
from aprs2sondehub.packets.parsing import (
    DiscardedPacketError,
    DiscardReason,
    Location,
    PacketParser,
    ParsedPacket,
)
from aprs2sondehub.packets.telemetry import initial_frames, status_frame, telemetry_frame
from aprs2sondehub.solar import solar_elevation
from aprs2sondehub.utilities import get_logger

LOGGER = get_logger('aprs2sondehub.pipeline')

RECEIVER_WINDOW = timedelta(seconds=30)
STATUS_WINDOW = timedelta(minutes=15)
TELEMETRY_WINDOW = timedelta(seconds=30)
SEQUENCE_MODULUS = 256

DEFAULT_MODULATION = 'APRS'

# frequency code: (frequency in MHz, modulation, LoRa symbol rate)
FREQUENCIES = {
    1: (433.775, 'LoRa APRS', 300),
    2: (434.855, 'LoRa APRS', 1200),
    3: (439.9125, 'LoRa APRS', 300),
    4: (144.8, 'AFSK APRS', None),
    5: (144.39, 'AFSK APRS', None),
    6: (145.57, 'AFSK APRS', None),
    7: (144.64, 'AFSK APRS', None),
    8: (144.66, 'AFSK APRS', None),
    9: (145.525, 'AFSK APRS', None),
    10: (144.575, 'AFSK APRS', None),
    11: (145.175, 'AFSK APRS', None),
}

# reasons that are routine on a busy feed
QUIET_DISCARD_REASONS = (
    DiscardReason.INTERNET_GATEWAY,
    DiscardReason.UNKNOWN_BALLOON,
    DiscardReason.DUPLICATE_RECEIVER,
)

TelemetryRecord = Dict[str, Any]


def days_aloft(launch_time: datetime, time: datetime) -> int:
    """ whole days (rounded up) between launch and the given time """
    return math.ceil(abs(time - launch_time) / timedelta(days=1))


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def isoformat(time: datetime) -> str:
    return time.astimezone(UTC).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'


class BalloonTelemetryPipeline:
    """
    Turns raw APRS-IS lines into SondeHub telemetry records and APRS status / telemetry frames.

    One instance is shared by every APRS-IS session, so that throttling and the last known location of each balloon
    hold across servers; every map of shared state is guarded by its own lock.
    """

    def __init__(
        self,
        parser: PacketParser,
        sink: TelemetrySink,
        tracker_url: str = None,
        clock: Callable[[], datetime] = None,
    ):
        """
        :param parser: packet parser holding the tracked balloons
        :param sink: destination of telemetry records
        :param tracker_url: base URL of the public tracker, advertised in status beacons
        :param clock: source of the current (timezone-aware) time
        """

        if tracker_url is None:
            tracker_url = DEFAULT_TRACKER_URL
        if clock is None:
            clock = utc_now

        self.parser = parser
        self.sink = sink
        self.tracker_url = tracker_url
        self.clock = clock

        self.__locations = {}
        self.__locations_lock = threading.Lock()

        self.__receivers = {}
        self.__receivers_lock = threading.Lock()

        self.__statuses = {}
        self.__statuses_lock = threading.Lock()

        self.__telemetry = {}
        self.__sequences = {}
        self.__initialized = set()
        self.__telemetry_lock = threading.Lock()

    def process(self, line: str, stream: FrameSink = None) -> Optional[TelemetryRecord]:
        """
        Process a single line from APRS-IS.

        :param line: raw APRS string
        :param stream: session the line arrived on, which receives any outbound frames
        :return: telemetry record sent to the sink, or `None` if the packet was discarded
        """

        time = self.clock()

        try:
            packet = self.parser.parse(line)
            self.__check_receiver(packet, time)
            location = self.__resolve_location(packet)
        except DiscardedPacketError as error:
            if error.reason in QUIET_DISCARD_REASONS:
                LOGGER.debug(f'skipping packet ({error.reason.value}): {error.line}')
            else:
                LOGGER.info(f'skipping packet ({error.reason.value}): {error.line}')
            return None

        record = self.telemetry_record(packet, location, time)
        LOGGER.info(
            f'{packet.balloon.payload:9} - frame {packet.frame} via {packet.receiver}'
            f' - ({record["lat"]:.4f}°, {record["lon"]:.4f}°, {record["alt"]:.0f}m)'
            f'{"" if packet.has_fix else " (last known location)"}'
        )

        try:
            self.sink.upload([record])
        except RuntimeError as error:
            LOGGER.error(f'could not queue telemetry upload - {error}')

        if stream is not None:
            self.__send_status(packet.balloon, stream, time)
            self.__send_telemetry(packet, record['solar_elevation'], stream, time)

        return record

    def last_location(self, callsign: str) -> Optional[Location]:
        with self.__locations_lock:
            return self.__locations.get(callsign)

    def telemetry_record(
        self, packet: ParsedPacket, location: Location, time: datetime
    ) -> TelemetryRecord:
        """
        SondeHub amateur telemetry record of the given packet

        :param packet: parsed packet
        :param location: location to report, either the packet's own fix or the last known location
        :param time: time the packet was received
        :return: telemetry record
        """

        balloon = packet.balloon
        altitude = location.altitude if location.altitude is not None else 0
        elevation = numpy.degrees(
            solar_elevation(time, location.latitude, location.longitude, altitude)
        )

        record = {
            'software_name': SOFTWARE_NAME,
            'software_version': __version__,
            'uploader_callsign': packet.receiver,
            'payload_callsign': balloon['payload'],
            'comment': balloon['comment'],
            'detail': balloon['detail'],
            'modulation': DEFAULT_MODULATION,
            'time_received': isoformat(time),
            'datetime': isoformat(time),
            'lat': location.latitude,
            'lon': location.longitude,
            'alt': altitude,
            'sats': packet.satellites if packet.satellites is not None else 0,
            'has_fix': '1' if packet.has_fix else '0',
            'power': packet.power,
            'solar_elevation': round(float(elevation), 2),
        }

        if balloon['device'] is not None:
            record['device'] = balloon['device']

        launch_time = balloon.launch_time
        if launch_time is not None:
            record['launch_date'] = balloon['launchDate']
            record['days_aloft'] = days_aloft(launch_time, time)

        if packet.frame is not None:
            record['frame'] = packet.frame
        if packet.flight_number is not None:
            record['flight_number'] = str(packet.flight_number)
        if packet.temperature is not None:
            record['temp'] = packet.temperature
        if packet.voltage:
            record['batt'] = packet.voltage / 100
        if packet.time_to_fix is not None:
            record['time_to_fix'] = packet.time_to_fix
        if packet.odometer is not None:
            record['distance_traveled'] = f'{packet.odometer} km'

        if packet.frequency in FREQUENCIES:
            frequency, modulation, speed = FREQUENCIES[packet.frequency]
            record['frequency'] = frequency
            record['modulation'] = modulation
            if speed is not None:
                record['lora_speed'] = speed

        return record

    def __check_receiver(self, packet: ParsedPacket, time: datetime):
        with self.__receivers_lock:
            last_time = self.__receivers.get(packet.receiver)
            if last_time is not None and time - last_time < RECEIVER_WINDOW:
                raise DiscardedPacketError(DiscardReason.DUPLICATE_RECEIVER, packet.raw)
            self.__receivers[packet.receiver] = time

    def __resolve_location(self, packet: ParsedPacket) -> Location:
        callsign = packet.balloon.callsign
        with self.__locations_lock:
            if packet.location is not None:
                self.__locations[callsign] = packet.location
                return packet.location
            location = self.__locations.get(callsign)

        if location is None:
            LOGGER.warning(f'{packet.balloon.payload} - no location received yet')
            raise DiscardedPacketError(DiscardReason.NO_LOCATION, packet.raw)
        return location

    def __send_status(self, balloon: BalloonConfiguration, stream: FrameSink, time: datetime):
        with self.__statuses_lock:
            last_time = self.__statuses.get(balloon.payload)
            if last_time is not None and time - last_time < STATUS_WINDOW:
                return
            self.__statuses[balloon.payload] = time

        if stream.send(status_frame(balloon.callsign, self.tracker_url + balloon.payload)):
            LOGGER.info(
                f'{balloon.payload:9} - status beacon sent to {stream.location}'
                f'; next in {humanize.naturaldelta(STATUS_WINDOW)}'
            )
        else:
            LOGGER.warning(f'{balloon.payload:9} - status beacon to {stream.location} failed')

    def __send_telemetry(
        self, packet: ParsedPacket, elevation: float, stream: FrameSink, time: datetime
    ):
        callsign = packet.balloon.callsign
        frames = []

        with self.__telemetry_lock:
            if callsign not in self.__initialized:
                self.__initialized.add(callsign)
                frames.extend(initial_frames(callsign))

            last_time = self.__telemetry.get(callsign)
            if last_time is None or time - last_time >= TELEMETRY_WINDOW:
                self.__telemetry[callsign] = time
                sequence = (self.__sequences.get(callsign, 0) + 1) % SEQUENCE_MODULUS
                self.__sequences[callsign] = sequence
                frames.append(
                    telemetry_frame(
                        callsign,
                        packet.temperature,
                        packet.voltage / 100 if packet.voltage is not None else None,
                        elevation,
                        sequence,
                    )
                )

        for frame in frames:
            if not stream.send(frame):
                LOGGER.warning(f'{callsign} - telemetry frame to {stream.location} failed: {frame}')
