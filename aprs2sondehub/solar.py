"""
position of the sun as seen from a balloon, after the algorithms used by SunCalc (https://github.com/mourner/suncalc)
and http://aa.quae.nl/en/reken/zonpositie.html
"""

from datetime import datetime

from dateutil.tz import UTC
import numpy

RADIANS_PER_DEGREE = numpy.pi / 180
EARTH_RADIUS = 6371008.8

SECONDS_PER_DAY = 60 * 60 * 24
JULIAN_1970 = 2440588
JULIAN_2000 = 2451545

# obliquity of the ecliptic
OBLIQUITY = RADIANS_PER_DEGREE * 23.4397
PERIHELION = RADIANS_PER_DEGREE * 102.9372


def julian_days(time: datetime) -> float:
    """ days since the J2000 epoch; naive times are taken to be UTC """
    if time.tzinfo is None or time.tzinfo.utcoffset(time) is None:
        time = time.replace(tzinfo=UTC)
    return time.timestamp() / SECONDS_PER_DAY - 0.5 + JULIAN_1970 - JULIAN_2000


def solar_mean_anomaly(days: float) -> float:
    return RADIANS_PER_DEGREE * (357.5291 + 0.98560028 * days)


def ecliptic_longitude(mean_anomaly: float) -> float:
    equation_of_center = RADIANS_PER_DEGREE * (
        1.9148 * numpy.sin(mean_anomaly)
        + 0.02 * numpy.sin(2 * mean_anomaly)
        + 0.0003 * numpy.sin(3 * mean_anomaly)
    )
    return mean_anomaly + equation_of_center + PERIHELION + numpy.pi


def declination(longitude: float, latitude: float = 0) -> float:
    return numpy.arcsin(
        numpy.sin(latitude) * numpy.cos(OBLIQUITY)
        + numpy.cos(latitude) * numpy.sin(OBLIQUITY) * numpy.sin(longitude)
    )


def right_ascension(longitude: float, latitude: float = 0) -> float:
    return numpy.arctan2(
        numpy.sin(longitude) * numpy.cos(OBLIQUITY) - numpy.tan(latitude) * numpy.sin(OBLIQUITY),
        numpy.cos(longitude),
    )


def sidereal_time(days: float, west_longitude: float) -> float:
    return RADIANS_PER_DEGREE * (280.16 + 360.9856235 * days) - west_longitude


def horizon_dip(height: float) -> float:
    """ angle (radians) by which the horizon drops for an observer `height` meters above the reference sphere """
    if height is None or height <= 0:
        return 0.0
    return numpy.arccos(EARTH_RADIUS / (EARTH_RADIUS + height))


def _hour_angle(time: datetime, longitude: float) -> (float, float):
    days = julian_days(time)
    sun_longitude = ecliptic_longitude(solar_mean_anomaly(days))
    sun_declination = declination(sun_longitude)
    hour_angle = sidereal_time(days, RADIANS_PER_DEGREE * -longitude) - right_ascension(
        sun_longitude
    )
    return hour_angle, sun_declination


def solar_elevation(time: datetime, latitude: float, longitude: float, height: float = 0) -> float:
    """
    elevation of the sun above the horizon of an observer at the given location

    :param time: time of observation
    :param latitude: observer latitude in decimal degrees
    :param longitude: observer longitude in decimal degrees
    :param height: observer height above the reference sphere in meters
    :return: elevation in radians
    """

    phi = RADIANS_PER_DEGREE * latitude
    hour_angle, sun_declination = _hour_angle(time, longitude)

    altitude = numpy.arcsin(
        numpy.sin(phi) * numpy.sin(sun_declination)
        + numpy.cos(phi) * numpy.cos(sun_declination) * numpy.cos(hour_angle)
    )
    return float(altitude + horizon_dip(height))
