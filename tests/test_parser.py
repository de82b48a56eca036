import pytest

from aprs2sondehub.configuration import BalloonConfiguration
from aprs2sondehub.packets import DiscardedPacketError, DiscardReason, PacketParser
from aprs2sondehub.packets.parsing import (
    odometer,
    path_stations,
    position,
    receiver_callsign,
    strip_noise,
    temperature,
    time_to_fix,
)

PACKET = 'SP9UOB-11>APLIGA,WIDE2-1,NOHUB,qAR,SR9NSK-10:/123456h5012.34N/01956.78EO/A=039370/P123S9T-41V330N12F2O10FT8'


@pytest.fixture
def parser() -> PacketParser:
    balloons = [
        BalloonConfiguration(payload='SP9UOB-11', hamCallsign='SP9UOB-11'),
        BalloonConfiguration(payload='OLD-1', hamCallsign='K3OLD-1', active=False),
    ]
    return PacketParser(
        {balloon.callsign: balloon for balloon in balloons}, ignored_callsigns=['n0bad-10']
    )


def assert_discarded(parser: PacketParser, line: str, reason: DiscardReason):
    with pytest.raises(DiscardedPacketError) as error:
        parser.parse(line)
    assert error.value.reason == reason


def test_parse(parser):
    packet = parser.parse(PACKET)

    assert packet.source == 'SP9UOB-11'
    assert packet.receiver == 'SR9NSK-10'
    assert packet.balloon.payload == 'SP9UOB-11'
    assert packet.comment == 'P123S9T-41V330N12F2O10FT8'

    assert packet.has_fix
    assert packet.location.latitude == pytest.approx(50.205667, abs=1e-6)
    assert packet.location.longitude == pytest.approx(19.946333, abs=1e-6)
    assert packet.altitude == pytest.approx(12000, abs=1)
    assert packet.location.altitude == packet.altitude

    assert packet.frame == 123
    assert packet.satellites == 9
    assert packet.temperature == -41
    assert packet.voltage == 330
    assert packet.flight_number == 12
    assert packet.frequency == 2
    assert packet.power == 10
    assert packet.time_to_fix == 8
    assert packet.odometer is None


def test_parse_defaults(parser):
    packet = parser.parse(
        'SP9UOB-11>APLIGA,NOHUB,qAR,SR9NSK-10:/123456h5012.34N/01956.78EO/A=001000/P7S4'
    )

    assert packet.frame == 7
    assert packet.satellites == 4
    assert packet.power == 20
    assert packet.temperature is None
    assert packet.voltage is None
    assert packet.flight_number is None
    assert packet.frequency is None
    assert packet.time_to_fix is None


def test_parse_without_fix(parser):
    packet = parser.parse(
        'SP9UOB-11>APLIGA,NOHUB,qAR,SR9NSK-10:/123456h0000.00N/00000.00EO/A=000000/P124S0T20V331'
    )

    assert not packet.has_fix
    assert packet.location is None
    assert packet.frame == 124


def test_strip_noise(parser):
    packet = parser.parse(f'{PACKET} rssi: -112dBm')

    assert packet.comment == 'P123S9T-41V330N12F2O10FT8'
    assert packet.time_to_fix == 8

    assert strip_noise(f'{PACKET}  SNR=7.5dB') == PACKET
    assert strip_noise(f'{PACKET} DS 12') == PACKET
    assert strip_noise(PACKET) == PACKET
    assert strip_noise(f'{PACKET} SNR:7') is None


@pytest.mark.parametrize(
    'line,reason',
    [
        (f'{PACKET}\n{PACKET}', DiscardReason.MERGED),
        (PACKET.replace('qAR,SR9NSK-10', 'TCPIP*,qAC,T2POLAND'), DiscardReason.INTERNET_GATEWAY),
        (PACKET.replace('NOHUB,', ''), DiscardReason.NOT_NOHUB),
        (PACKET.replace('SR9NSK-10', 'N0BAD-10'), DiscardReason.IGNORED_STATION),
        (f'{PACKET} SNR:7', DiscardReason.NOISE),
        (
            'SP9UOB-11>APLIGA,NOHUB,qAR,SR9NSK-10:>status text without position',
            DiscardReason.NO_ANCHOR,
        ),
        (PACKET.replace('SP9UOB-11>', 'SP9XXX-11>'), DiscardReason.UNKNOWN_BALLOON),
        (PACKET.replace('SP9UOB-11>', 'K3OLD-1>'), DiscardReason.INACTIVE_BALLOON),
    ],
)
def test_discard(parser, line, reason):
    assert_discarded(parser, line, reason)


def test_ignored_source(parser):
    ignoring_source = PacketParser(parser.balloons, ignored_callsigns=['SP9UOB-11'])
    assert_discarded(ignoring_source, PACKET, DiscardReason.IGNORED_STATION)


def test_path_stations():
    assert path_stations(PACKET) == ['SP9UOB-11', 'APLIGA', 'WIDE2-1', 'NOHUB', 'qAR', 'SR9NSK-10']


def test_receiver_callsign():
    assert receiver_callsign(PACKET) == 'SR9NSK-10'
    assert receiver_callsign('SP9UOB-11>APLIGA') is None


def test_position():
    assert position(PACKET) == pytest.approx((50.205667, 19.946333), abs=1e-6)
    assert position('SP9UOB-11>APLIGA,NOHUB,qAR,SR9NSK-10:/123456h5012.34N') is None
    assert position('SP9UOB-11>APLIGA,NOHUB,qAR,SR9NSK-10:/123456hgarbage/01956.78EO') is None


def test_comment_fields():
    assert temperature('P1S9FT-5') is None
    assert temperature('P1S9FT-5T-12') == -12
    assert time_to_fix('P1S9FT-5') == -5
    assert odometer('P1ODO=532km') == 532
    assert odometer('P1ODO=12kkm') == 12000
    assert odometer('P1S9') is None


def test_discard_reason_names():
    assert [reason.name for reason in DiscardReason] == [
        'MERGED',
        'INTERNET_GATEWAY',
        'NOT_NOHUB',
        'IGNORED_STATION',
        'NOISE',
        'NO_ANCHOR',
        'UNKNOWN_BALLOON',
        'INACTIVE_BALLOON',
        'NO_RECEIVER',
        'DUPLICATE_RECEIVER',
        'NO_LOCATION',
    ]
