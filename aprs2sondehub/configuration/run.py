from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from dateutil.parser import parse as parse_date
from dateutil.tz import UTC

from aprs2sondehub.configuration.base import ConfigurationYAML

DEFAULT_SERVER = 'euro.aprs2.net'
DEFAULT_SONDEHUB_URL = 'https://api.v2.sondehub.org'
DEFAULT_TRACKER_URL = 'https://amateur.sondehub.org/'


class BalloonConfiguration(ConfigurationYAML):
    """ a tracked balloon, keyed by the callsign it transmits APRS under """

    fields = {
        'payload': str,
        'hamCallsign': str,
        'comment': str,
        'detail': str,
        'device': str,
        'launchDate': str,
        'active': bool,
        'band': int,
    }
    defaults = {
        'comment': '',
        'detail': '',
        'active': True,
    }
    required = ['payload', 'hamCallsign']

    @property
    def callsign(self) -> str:
        return self['hamCallsign']

    @property
    def payload(self) -> str:
        return self['payload']

    @property
    def active(self) -> bool:
        return bool(self['active'])

    @property
    def launch_time(self) -> datetime:
        """ launch date as a timezone-aware datetime (UTC if the configured date has no offset) """
        if self['launchDate'] is None or len(self['launchDate']) == 0:
            return None
        launch_time = parse_date(self['launchDate'])
        if launch_time.tzinfo is None or launch_time.tzinfo.utcoffset(launch_time) is None:
            launch_time = launch_time.replace(tzinfo=UTC)
        return launch_time


class SondeHubConfiguration(ConfigurationYAML):
    fields = {
        'url': str,
        'tracker_url': str,
        'dev': bool,
    }
    defaults = {
        'url': DEFAULT_SONDEHUB_URL,
        'tracker_url': DEFAULT_TRACKER_URL,
        'dev': False,
    }


class RunConfiguration(ConfigurationYAML):
    fields = {
        'callsign': str,
        'balloons': [BalloonConfiguration],
        'servers': [str],
        'ignored_callsigns': [str],
        'sondehub': SondeHubConfiguration,
        'log': {'filename': Path},
    }
    defaults = {
        'balloons': [],
        'servers': [],
        'ignored_callsigns': [],
        'log': {'filename': None},
    }
    required = ['callsign']

    def __init__(self, **configuration):
        super().__init__(**configuration)
        if self['sondehub'] is None:
            self['sondehub'] = SondeHubConfiguration()

    def __setitem__(self, key: str, value: Any):
        if key == 'callsign' and value is not None:
            value = str(value).strip().upper()

        if key == 'servers' and isinstance(value, (list, tuple)):
            value = [server.strip() for server in value if len(server.strip()) > 0]

        super().__setitem__(key, value)

    @property
    def balloons(self) -> Dict[str, BalloonConfiguration]:
        """ configured balloons by APRS callsign """
        return {balloon.callsign: balloon for balloon in self['balloons']}
