from aprs2sondehub.connections.aprs_is import APRSisStream, passcode
from aprs2sondehub.connections.sondehub import SondeHubTelemetrySink

__all__ = ['APRSisStream', 'passcode', 'SondeHubTelemetrySink']
