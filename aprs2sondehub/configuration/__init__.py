from aprs2sondehub.configuration.run import (
    BalloonConfiguration,
    RunConfiguration,
    SondeHubConfiguration,
)

__all__ = ['BalloonConfiguration', 'RunConfiguration', 'SondeHubConfiguration']
