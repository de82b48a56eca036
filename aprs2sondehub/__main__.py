from datetime import datetime
from pathlib import Path
import sys

import humanize
import typer

from aprs2sondehub import SOFTWARE_NAME, __version__
from aprs2sondehub.configuration.run import DEFAULT_SERVER, RunConfiguration
from aprs2sondehub.connections.sondehub import SondeHubTelemetrySink
from aprs2sondehub.fleet import FleetSupervisor
from aprs2sondehub.packets.parsing import PacketParser
from aprs2sondehub.pipeline import BalloonTelemetryPipeline
from aprs2sondehub.utilities import get_logger, read_servers

LOGGER = get_logger(SOFTWARE_NAME)


def aprs2sondehub_command(configuration_filename: str, servers: str = None):
    """
    forward balloon telemetry from APRS-IS to SondeHub

    :param configuration_filename: configuration file in YAML (or JSON) format - see `examples` directory for examples
    :param servers: text file listing APRS-IS server hostnames, one per line
    """

    program_start_time = datetime.now()

    try:
        configuration = RunConfiguration.from_file(configuration_filename)
        if servers is not None:
            server_hostnames = read_servers(servers)
        elif len(configuration['servers']) > 0:
            server_hostnames = configuration['servers']
        else:
            server_hostnames = [DEFAULT_SERVER]
    except (OSError, ValueError) as error:
        LOGGER.error(f'{error.__class__.__name__} - {error}')
        sys.exit(1)

    log_filename = configuration['log']['filename']
    if log_filename is not None:
        if not isinstance(log_filename, Path):
            log_filename = Path(log_filename)
        if log_filename.is_dir():
            log_filename /= f'{SOFTWARE_NAME}_log_{program_start_time:%Y%m%dT%H%M%S}.txt'
        get_logger(SOFTWARE_NAME, log_filename=log_filename)
        LOGGER.info(f'logging to {log_filename}')

    balloons = configuration.balloons
    active_callsigns = [callsign for callsign, balloon in balloons.items() if balloon.active]
    if len(active_callsigns) == 0:
        LOGGER.error(f'no active balloons configured in {configuration_filename}')
        sys.exit(1)

    LOGGER.info(
        f'{SOFTWARE_NAME} {__version__} tracking {len(active_callsigns)} balloon(s): {active_callsigns}'
    )

    sondehub = configuration['sondehub']
    sink = SondeHubTelemetrySink(url=sondehub['url'], dev=sondehub['dev'])
    if sondehub['dev']:
        LOGGER.info(f'uploading to {sink.location} as development data')

    pipeline = BalloonTelemetryPipeline(
        PacketParser(balloons, configuration['ignored_callsigns']),
        sink,
        tracker_url=sondehub['tracker_url'],
    )
    fleet = FleetSupervisor(
        server_hostnames, configuration['callsign'], active_callsigns, pipeline.process,
    )

    try:
        succeeded = fleet.run()
    except KeyboardInterrupt:
        succeeded = True
    finally:
        sink.close()

    LOGGER.info(f'ran for {humanize.naturaldelta(datetime.now() - program_start_time)}')

    if not succeeded:
        LOGGER.error('too few APRS-IS servers remain')
        sys.exit(1)


def main():
    typer.run(aprs2sondehub_command)


if __name__ == '__main__':
    main()
