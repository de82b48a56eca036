"""
parsing of the balloon telemetry dialect carried in APRS position comments, e.g.

    SP9UOB-11>APLIGA,WIDE2-1,NOHUB,qAR,SR9NSK-10:/123456h5012.34N/01956.78EO/A=039370/P123S9T-41V330N12F2O10FT8

Each numeric telemetry field is a letter prefix followed by digits in the comment (the text after the last `/`).
Fields that do not match are absent (`None`), except transmit power which defaults to 20.
"""

from enum import Enum
import re
from typing import List, Mapping, NamedTuple, Optional, Pattern, Sequence, Tuple

from aprs2sondehub.configuration.run import BalloonConfiguration
from aprs2sondehub.packets.coordinates import decode_latitude, decode_longitude

FEET_PER_METER = 3.281
DEFAULT_POWER = 20

INTERNET_GATEWAY_MARKER = 'TCPIP'
NOHUB_MARKER = 'NOHUB'
ANCHOR_MARKER = '/P'
NOISE_MARKERS = ('SNR', 'RSSI', 'snr', 'rssi', 'DP_RSSI', ' DS ')
NOISE_CUT_MARKERS = ('rssi:', 'DP_RSSI:', ' DS ', '  SNR=')

FRAME_PATTERN = re.compile(r'P([0-9]+)')
SATELLITES_PATTERN = re.compile(r'S([0-9]+)')
POWER_PATTERN = re.compile(r'O([0-9]+)')
FLIGHT_NUMBER_PATTERN = re.compile(r'N([0-9]+)')
TIME_TO_FIX_PATTERN = re.compile(r'FT(-?[0-9]+)')
TEMPERATURE_PATTERN = re.compile(r'(?<!F)T(-?[0-9]+)')
VOLTAGE_PATTERN = re.compile(r'V([0-9]{3})')
FREQUENCY_PATTERN = re.compile(r'F([0-9]+)')
ODOMETER_PATTERN = re.compile(r'ODO=([0-9]+)(k?)km')
ALTITUDE_PATTERN = re.compile(r'A=([0-9]+)/')
RECEIVER_PATTERN = re.compile(r',([a-zA-Z0-9-]+):.')
POSITION_SEPARATOR_PATTERN = re.compile(r':.')


class DiscardReason(Enum):
    MERGED = 'merged packet'
    INTERNET_GATEWAY = 'relayed by internet gateway'
    NOT_NOHUB = 'sender has not opted in with NOHUB'
    IGNORED_STATION = 'station is on the ignore list'
    NOISE = 'unremovable receiver diagnostics'
    NO_ANCHOR = 'no parse anchor'
    UNKNOWN_BALLOON = 'unrecognized balloon'
    INACTIVE_BALLOON = 'deactivated balloon'
    NO_RECEIVER = 'no receiver in path'
    DUPLICATE_RECEIVER = 'receiver already heard within window'
    NO_LOCATION = 'no location yet'


class DiscardedPacketError(Exception):
    def __init__(self, reason: DiscardReason, line: str = None):
        self.reason = reason
        self.line = line
        super().__init__(f'{reason.value}: {line}' if line is not None else reason.value)


class Location(NamedTuple):
    latitude: float
    longitude: float
    altitude: float = None


class ParsedPacket:
    """ telemetry fields of a single balloon packet """

    def __init__(
        self,
        source: str,
        receiver: str,
        comment: str,
        balloon: BalloonConfiguration = None,
        location: Location = None,
        altitude: float = None,
        frame: int = None,
        satellites: int = None,
        power: int = DEFAULT_POWER,
        flight_number: int = None,
        time_to_fix: int = None,
        temperature: int = None,
        voltage: int = None,
        frequency: int = None,
        odometer: int = None,
        raw: str = None,
    ):
        self.source = source
        self.receiver = receiver
        self.comment = comment
        self.balloon = balloon
        self.location = location
        self.altitude = altitude
        self.frame = frame
        self.satellites = satellites
        self.power = power
        self.flight_number = flight_number
        self.time_to_fix = time_to_fix
        self.temperature = temperature
        self.voltage = voltage
        self.frequency = frequency
        self.odometer = odometer
        self.raw = raw

    @property
    def has_fix(self) -> bool:
        return self.location is not None

    def __repr__(self) -> str:
        attributes = ', '.join(
            f'{key}={repr(value)}'
            for key, value in self.__dict__.items()
            if key not in ('balloon', 'raw') and value is not None
        )
        return f'{self.__class__.__name__}({attributes})'


class PacketParser:
    def __init__(
        self,
        balloons: Mapping[str, BalloonConfiguration],
        ignored_callsigns: Sequence[str] = None,
    ):
        """
        :param balloons: tracked balloons by APRS callsign
        :param ignored_callsigns: stations whose packets are always discarded
        """

        if ignored_callsigns is None:
            ignored_callsigns = []
        self.balloons = balloons
        self.ignored_callsigns = {callsign.strip().upper() for callsign in ignored_callsigns}

    def parse(self, line: str) -> ParsedPacket:
        """
        Parse balloon telemetry from a raw APRS-IS line.

        :param line: raw APRS string
        :return: parsed packet
        :raises DiscardedPacketError: if the packet should not be forwarded
        """

        line = line.strip()

        if is_merged(line):
            raise DiscardedPacketError(DiscardReason.MERGED, line)
        if via_internet_gateway(line):
            raise DiscardedPacketError(DiscardReason.INTERNET_GATEWAY, line)
        if not is_nohub(line):
            raise DiscardedPacketError(DiscardReason.NOT_NOHUB, line)
        if any(station.upper() in self.ignored_callsigns for station in path_stations(line)):
            raise DiscardedPacketError(DiscardReason.IGNORED_STATION, line)

        cleaned_line = strip_noise(line)
        if cleaned_line is None:
            raise DiscardedPacketError(DiscardReason.NOISE, line)
        line = cleaned_line

        if not has_anchor(line):
            raise DiscardedPacketError(DiscardReason.NO_ANCHOR, line)

        source = source_callsign(line)
        balloon = self.balloons.get(source)
        if balloon is None:
            raise DiscardedPacketError(DiscardReason.UNKNOWN_BALLOON, line)
        if not balloon.active:
            raise DiscardedPacketError(DiscardReason.INACTIVE_BALLOON, line)

        receiver = receiver_callsign(line)
        if receiver is None:
            raise DiscardedPacketError(DiscardReason.NO_RECEIVER, line)

        comment = packet_comment(line)
        coordinates = position(line)
        altitude = altitude_meters(line)

        return ParsedPacket(
            source=source,
            receiver=receiver,
            comment=comment,
            balloon=balloon,
            location=Location(*coordinates, altitude) if coordinates is not None else None,
            altitude=altitude,
            frame=frame(comment),
            satellites=satellites(comment),
            power=power(comment),
            flight_number=flight_number(comment),
            time_to_fix=time_to_fix(comment),
            temperature=temperature(comment),
            voltage=voltage(comment),
            frequency=frequency(comment),
            odometer=odometer(comment),
            raw=line,
        )


def is_merged(line: str) -> bool:
    """ two packets glued together by a broken receiver """
    return '\n' in line


def via_internet_gateway(line: str) -> bool:
    """ heard by an internet gateway rather than over RF """
    return INTERNET_GATEWAY_MARKER in line


def is_nohub(line: str) -> bool:
    return NOHUB_MARKER in line


def has_noise(line: str) -> bool:
    """ receiver appended signal diagnostics (SNR, RSSI, ...) to the packet """
    return any(marker in line for marker in NOISE_MARKERS)


def strip_noise(line: str) -> Optional[str]:
    """
    Remove receiver diagnostics appended to the packet, by truncating at the first of `rssi:`, `DP_RSSI:`, ` DS `
    or `  SNR=` (in that order of preference).

    :param line: raw APRS string
    :return: line without diagnostics, or `None` if diagnostics are present but cannot be cut off
    """

    if not has_noise(line):
        return line
    for marker in NOISE_CUT_MARKERS:
        index = line.find(marker)
        if index != -1:
            return line[:index].rstrip()
    return None


def has_anchor(line: str) -> bool:
    return ANCHOR_MARKER in line


def source_callsign(line: str) -> str:
    return line.split('>', 1)[0].strip()


def path_stations(line: str) -> List[str]:
    """ source callsign followed by every station of the path header """
    header = line.split(':', 1)[0]
    source, _, path = header.partition('>')
    return [source.strip()] + [
        station.strip().rstrip('*') for station in path.split(',') if len(station.strip()) > 0
    ]


def receiver_callsign(line: str) -> Optional[str]:
    """ last station of the path, i.e. the station that forwarded the packet to APRS-IS """
    match = RECEIVER_PATTERN.search(line)
    return match.group(1) if match is not None else None


def packet_comment(line: str) -> str:
    return line.rsplit('/', 1)[-1]


def _extract(text: str, pattern: Pattern) -> Optional[int]:
    match = pattern.search(text)
    return int(match.group(1)) if match is not None else None


def frame(comment: str) -> Optional[int]:
    """ frame counter, `P<n>` """
    return _extract(comment, FRAME_PATTERN)


def satellites(comment: str) -> Optional[int]:
    """ GPS satellites in view, `S<n>` """
    return _extract(comment, SATELLITES_PATTERN)


def power(comment: str) -> int:
    """ transmit power, `O<n>`, defaulting to 20 """
    value = _extract(comment, POWER_PATTERN)
    return value if value is not None else DEFAULT_POWER


def flight_number(comment: str) -> Optional[int]:
    """ flight number, `N<n>` """
    return _extract(comment, FLIGHT_NUMBER_PATTERN)


def time_to_fix(comment: str) -> Optional[int]:
    """ GPS time to fix, `FT<n>` (signed) """
    return _extract(comment, TIME_TO_FIX_PATTERN)


def temperature(comment: str) -> Optional[int]:
    """ temperature, `T<n>` (signed), not preceded by `F` """
    return _extract(comment, TEMPERATURE_PATTERN)


def voltage(comment: str) -> Optional[int]:
    """ voltage in hundredths of a volt, `V` followed by exactly three digits """
    return _extract(comment, VOLTAGE_PATTERN)


def frequency(comment: str) -> Optional[int]:
    """ frequency code, `F<n>` """
    return _extract(comment, FREQUENCY_PATTERN)


def odometer(comment: str) -> Optional[int]:
    """ distance traveled in kilometers, `ODO=<n>km` or `ODO=<n>kkm` (thousands of kilometers) """
    match = ODOMETER_PATTERN.search(comment)
    if match is None:
        return None
    distance = int(match.group(1))
    if match.group(2) == 'k':
        distance *= 1000
    return distance


def altitude_meters(line: str) -> Optional[float]:
    """ altitude from the `A=<feet>/` extension, converted to meters """
    feet = _extract(line, ALTITUDE_PATTERN)
    return feet / FEET_PER_METER if feet is not None else None


def position(line: str) -> Optional[Tuple[float, float]]:
    """
    Decode latitude and longitude from the position report.

    :param line: raw APRS string
    :return: latitude and longitude in decimal degrees, or `None` if the packet carries no fix
    """

    report = POSITION_SEPARATOR_PATTERN.split(line)[-1]
    report = report.split('h')[-1].split('O')[0]
    tokens = report.split('/')
    if len(tokens) < 2:
        return None

    try:
        latitude = decode_latitude(tokens[0])
        longitude = decode_longitude(tokens[1])
    except ValueError:
        return None

    if latitude == 0 or longitude == 0:
        return None
    return latitude, longitude
