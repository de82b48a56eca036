from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List

import requests

from aprs2sondehub import SOFTWARE_NAME, __version__
from aprs2sondehub.configuration.run import DEFAULT_SONDEHUB_URL
from aprs2sondehub.connections.base import TelemetrySink
from aprs2sondehub.utilities import get_logger

LOGGER = get_logger('aprs2sondehub.connections')

SUCCESS_RESPONSE = '^v^ telm logged'
DEFAULT_UPLOAD_WORKERS = 4


class SondeHubTelemetrySink(TelemetrySink):
    """
    connection to the SondeHub amateur telemetry API (https://github.com/projecthorus/sondehub-infra/wiki/API-(Beta))
    """

    def __init__(self, url: str = None, dev: bool = False, workers: int = None):
        """
        :param url: base URL of the SondeHub API
        :param dev: mark uploaded records as development data
        :param workers: number of concurrent uploads
        """

        if url is None:
            url = DEFAULT_SONDEHUB_URL
        if workers is None:
            workers = DEFAULT_UPLOAD_WORKERS

        super().__init__(f'{url.rstrip("/")}/amateur/telemetry')
        self.dev = dev
        self.__executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix='sondehub')

    def send(self, records: List[Dict[str, Any]]) -> bool:
        if self.dev:
            records = [{**record, 'dev': True} for record in records]

        try:
            response = requests.put(
                self.location,
                json=records,
                headers={'Accept': 'text/plain', 'User-Agent': f'{SOFTWARE_NAME}-{__version__}'},
            )
        except requests.RequestException as error:
            LOGGER.error(f'sending telemetry to {self.location} failed - {error.__class__.__name__} - {error}')
            return False

        if not response.ok or response.text != SUCCESS_RESPONSE:
            LOGGER.error(
                f'sending telemetry to {self.location} failed ({response.status_code}): {response.text}'
            )
            return False

        LOGGER.debug(f'sent {len(records)} record(s) to {self.location}')
        return True

    def upload(self, records: List[Dict[str, Any]]) -> Future:
        return self.__executor.submit(self.send, records)

    def close(self):
        self.__executor.shutdown(wait=False)
