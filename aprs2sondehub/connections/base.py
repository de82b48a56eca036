from abc import ABC, abstractmethod
from typing import Any, Dict, List


class Connection(ABC):
    """
    abstraction of a generic connection
    """

    def __init__(self, location: str):
        self.location = location

    @abstractmethod
    def close(self):
        raise NotImplementedError

    def __repr__(self):
        return f'{self.__class__.__name__}("{self.location}")'


class FrameSink(Connection, ABC):
    """
    abstraction of a connection that accepts raw APRS frames
    """

    @abstractmethod
    def send(self, frame: str) -> bool:
        """ send given frame to remote, returning whether it was written """
        raise NotImplementedError


class TelemetrySink(Connection, ABC):
    """
    abstraction of a connection that accepts telemetry records (upload)
    """

    @abstractmethod
    def send(self, records: List[Dict[str, Any]]) -> bool:
        """ send given records to remote, returning whether they were accepted """
        raise NotImplementedError

    def upload(self, records: List[Dict[str, Any]]):
        """ send given records without waiting for the result """
        self.send(records)
