"""
outbound APRS frames: status beacons and telemetry (`T#`) frames with their PARM / UNIT / EQNS / BITS metadata

APRS telemetry reference: http://www.aprs.org/doc/APRS101.PDF (chapter 13)
"""

import math
from typing import List

FRAME_HEADER = 'APZHUB,NOHUB,TCPIP,qAC'
ADDRESSEE_LENGTH = 9

TELEMETRY_PARAMETERS = 'Temp,Vsolar,SunElev'
TELEMETRY_UNITS = 'degC,Volts,deg'
TELEMETRY_EQUATIONS = '0,0.43,-80,0,0.1,0,0,0.3137,0'
TELEMETRY_BITS = '11110000,BALLOON'
DIGITAL_CHANNELS = '11100000'

MAXIMUM_ELEVATION = 80


def _clamp(value: float, minimum: float = 0, maximum: float = 255) -> float:
    return max(minimum, min(maximum, value))


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def scale_temperature(temperature: float) -> int:
    """ degrees Celsius to an analog channel value, inverse of `0.43 * x - 80` """
    if temperature is None:
        return 0
    return int(_clamp(_round_half_up((temperature + 80) / 0.43)))


def scale_voltage(voltage: float) -> int:
    """ volts to an analog channel value, inverse of `0.1 * x` """
    if voltage is None:
        return 0
    return int(_clamp(_round_half_up(voltage * 10)))


def scale_elevation(elevation: float) -> float:
    """ sun elevation in degrees (clipped to 0-80) to an analog channel value, inverse of `0.3137 * x` """
    if elevation is None:
        return 0
    elevation = _clamp(elevation, 0, MAXIMUM_ELEVATION)
    return _clamp(_round_half_up(elevation * (255 / MAXIMUM_ELEVATION) * 10) / 10)


def pad_callsign(callsign: str) -> str:
    """ right-pad callsign with spaces to the width of an APRS message addressee """
    return callsign.ljust(ADDRESSEE_LENGTH)


def status_frame(callsign: str, status: str) -> str:
    return f'{callsign}>{FRAME_HEADER}:>{status}'


def initial_frames(callsign: str) -> List[str]:
    """
    telemetry metadata frames, sent once per balloon, naming and scaling the analog channels of `telemetry_frame`

    :param callsign: balloon callsign
    :return: PARM, UNIT, EQNS and BITS frames
    """

    addressee = pad_callsign(callsign)
    return [
        f'{callsign}>{FRAME_HEADER}::{addressee}:{kind}.{body}'
        for kind, body in (
            ('PARM', TELEMETRY_PARAMETERS),
            ('UNIT', TELEMETRY_UNITS),
            ('EQNS', TELEMETRY_EQUATIONS),
            ('BITS', TELEMETRY_BITS),
        )
    ]


def telemetry_frame(
    callsign: str, temperature: float, voltage: float, elevation: float, sequence: int
) -> str:
    """
    APRS telemetry frame

    :param callsign: balloon callsign
    :param temperature: temperature in degrees Celsius
    :param voltage: solar panel voltage in volts
    :param elevation: sun elevation in degrees
    :param sequence: sequence number (0-255)
    :return: raw APRS frame
    """

    values = [
        str(scale_temperature(temperature)),
        str(scale_voltage(voltage)),
        f'{scale_elevation(elevation):g}',
    ]
    return f'{callsign}>{FRAME_HEADER}:T#{sequence:04d},{",".join(values)},000,000,{DIGITAL_CHANNELS}'
