"""
conversion between decimal degrees and the APRS uncompressed position format

APRS format reference: http://www.aprs.org/doc/APRS101.PDF (chapter 8)

>>> round(decode_latitude('4903.50N'), 4)
49.0583
>>> encode_longitude(-72.02916666666667)
'07201.75W'
"""

import math

LATITUDE_DEGREE_LENGTH = 2
LONGITUDE_DEGREE_LENGTH = 3


def decode_latitude(latitude: str) -> float:
    """
    Decode latitude string from APRS degrees / minutes format (`DDMM.MMN`) to a float.

    :param latitude: APRS latitude string, ending with hemisphere `N` or `S`
    :return: latitude in decimal degrees
    """

    return _decode_coordinate(latitude, LATITUDE_DEGREE_LENGTH, 'NS')


def decode_longitude(longitude: str) -> float:
    """
    Decode longitude string from APRS degrees / minutes format (`DDDMM.MME`) to a float.

    :param longitude: APRS longitude string, ending with hemisphere `E` or `W`
    :return: longitude in decimal degrees
    """

    return _decode_coordinate(longitude, LONGITUDE_DEGREE_LENGTH, 'EW')


def encode_latitude(latitude: float) -> str:
    """
    Encode latitude in decimal degrees to APRS degrees / minutes format (`DDMM.MMN`).

    :param latitude: latitude in decimal degrees
    :return: APRS latitude string
    """

    if abs(latitude) > 90:
        raise ValueError(f'latitude out of range: {latitude}')
    return _encode_coordinate(latitude, LATITUDE_DEGREE_LENGTH, 'NS')


def encode_longitude(longitude: float) -> str:
    """
    Encode longitude in decimal degrees to APRS degrees / minutes format (`DDDMM.MME`).

    :param longitude: longitude in decimal degrees
    :return: APRS longitude string
    """

    if abs(longitude) > 180:
        raise ValueError(f'longitude out of range: {longitude}')
    return _encode_coordinate(longitude, LONGITUDE_DEGREE_LENGTH, 'EW')


def _decode_coordinate(value: str, degree_length: int, hemispheres: str) -> float:
    value = value.strip()
    if len(value) < degree_length + 2:
        raise ValueError(f'coordinate too short: "{value}"')

    hemisphere = value[-1]
    if hemisphere not in hemispheres:
        raise ValueError(f'unknown hemisphere "{hemisphere}" in "{value}"')

    degrees = int(value[:degree_length])
    minutes = float(value[degree_length:-1])
    if not math.isfinite(minutes):
        raise ValueError(f'invalid minutes in "{value}"')

    decimal = degrees + minutes / 60
    if hemisphere == hemispheres[1]:
        decimal *= -1
    return decimal


def _encode_coordinate(value: float, degree_length: int, hemispheres: str) -> str:
    hemisphere = hemispheres[1] if value < 0 else hemispheres[0]
    value = abs(value)

    degrees = int(value)
    minutes = round((value - degrees) * 60, 2)
    # rounding can carry a whole minute into the degree field
    if minutes >= 60:
        degrees += 1
        minutes -= 60

    return f'{degrees:0{degree_length}d}{minutes:05.2f}{hemisphere}'
