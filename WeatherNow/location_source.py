"""Device location abstraction - the single coordinate a fetch cycle needs."""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from weather_data import Coordinate


class PermissionStatus(Enum):
    GRANTED = "granted"
    DENIED = "denied"


class LocationPermissionError(PermissionError):
    """Raised when the location permission has not been granted."""
    pass


class LocationSource(ABC):
    """Abstract base class for location sources."""

    @abstractmethod
    async def request_permission(self) -> PermissionStatus:
        """Ask for (or report) permission to read the device position."""
        pass

    @abstractmethod
    async def get_current_coordinate(self) -> Coordinate:
        """
        Read the current device position.

        Raises:
            LocationPermissionError: If permission was not granted
        """
        pass


class StaticLocationSource(LocationSource):
    """
    Location source backed by a configured coordinate.

    Without a coordinate it behaves like a device whose user refused the
    location permission.
    """

    def __init__(self, coordinate: Optional[Coordinate] = None):
        self.coordinate = coordinate

    async def request_permission(self) -> PermissionStatus:
        status = PermissionStatus.GRANTED if self.coordinate is not None else PermissionStatus.DENIED
        logging.debug(f"Location permission: {status.value}")
        return status

    async def get_current_coordinate(self) -> Coordinate:
        if self.coordinate is None:
            raise LocationPermissionError("No location configured")
        return self.coordinate
