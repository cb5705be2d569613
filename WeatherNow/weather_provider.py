"""Weather provider abstraction - allows swapping different weather APIs."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from weather_data import CanonicalWeather, Coordinate

_MISSING = object()


class WeatherProviderError(Exception):
    """Exception raised when a weather provider fails."""
    pass


class UpstreamHttpError(WeatherProviderError):
    """The upstream service answered with a non-2xx status."""

    def __init__(self, status: int):
        super().__init__(f"Upstream returned HTTP {status}")
        self.status = status


class MalformedResponseError(WeatherProviderError):
    """The upstream body is missing a field or has the wrong shape."""

    def __init__(self, field: str, detail: str = "missing or malformed"):
        super().__init__(f"Malformed response field '{field}': {detail}")
        self.field = field


class NetworkFailure(WeatherProviderError):
    """The request never produced an HTTP response."""
    pass


class UnknownProviderError(LookupError):
    """Raised when a provider identifier is not registered."""

    def __init__(self, provider_id: str):
        super().__init__(f"Unknown weather provider: {provider_id!r}")
        self.provider_id = provider_id


class WeatherProviderBase(ABC):
    """Abstract base class for weather data providers."""

    provider_id: str = ""
    display_name: str = ""
    BASE_URL: str = ""

    def __init__(self, api_key: str, lang: str = "es", timeout: Optional[float] = None):
        """
        Initialize provider.

        Args:
            api_key: Static API key for the upstream service
            lang: Language code for condition descriptions (e.g., "es", "en")
            timeout: HTTP timeout in seconds; None leaves it to the transport
        """
        self.api_key = api_key
        self.lang = lang
        self.timeout = timeout

    @abstractmethod
    def build_params(self, coordinate: Coordinate) -> Dict[str, Any]:
        """Query parameters for one current-weather request."""
        pass

    @abstractmethod
    def normalize(self, payload: Dict[str, Any]) -> CanonicalWeather:
        """
        Map a decoded upstream body onto the canonical model.

        Raises:
            MalformedResponseError: If a required field is missing or mistyped
        """
        pass

    async def fetch_weather(self, coordinate: Coordinate) -> CanonicalWeather:
        """
        Fetch current weather for a coordinate.

        Returns:
            CanonicalWeather: Normalized current conditions

        Raises:
            UpstreamHttpError: If the service answers with a non-2xx status
            MalformedResponseError: If the body cannot be normalized
            NetworkFailure: If the request fails at the transport level
        """
        params = self.build_params(coordinate)
        logging.info(f"Making {self.display_name} API request: {self.BASE_URL}")
        logging.debug(
            f"Request parameters: lat={coordinate.latitude}, lon={coordinate.longitude}, lang={self.lang}"
        )

        try:
            response = await asyncio.to_thread(
                requests.get, self.BASE_URL, params=params, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during {self.display_name} request: {e}")
            raise NetworkFailure(f"Network error: {e}") from e

        logging.info(f"API response status: {response.status_code}")
        if not 200 <= response.status_code < 300:
            logging.error(f"API request failed with status {response.status_code}")
            raise UpstreamHttpError(response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError("body", "not valid JSON") from e
        if not isinstance(payload, dict):
            raise MalformedResponseError("body", "expected a JSON object")
        logging.debug(f"API response (truncated): {str(payload)[:500]}...")

        weather = self.normalize(payload)
        logging.info(
            f"Successfully parsed weather data: {weather.temperature_c}°C, {weather.condition.value}"
        )
        return weather


def field(payload: Dict[str, Any], path: str, default: Any = _MISSING) -> Any:
    """
    Walk a dotted path (``current.condition.text``, ``weather.0.icon``).

    Missing keys, short lists and nulls raise MalformedResponseError unless a
    default is given.
    """
    value: Any = payload
    for part in path.split("."):
        try:
            if isinstance(value, list):
                value = value[int(part)]
            elif isinstance(value, dict):
                value = value[part]
            else:
                raise KeyError(part)
        except (KeyError, IndexError, ValueError):
            if default is not _MISSING:
                return default
            raise MalformedResponseError(path) from None
    if value is None:
        if default is not _MISSING:
            return default
        raise MalformedResponseError(path, "null")
    return value


def number(payload: Dict[str, Any], path: str, default: Any = _MISSING) -> float:
    """Read a numeric field as float."""
    value = field(payload, path, default)
    if default is not _MISSING and value is default:
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponseError(path, f"expected a number, got {value!r}")
    return float(value)


def text(payload: Dict[str, Any], path: str) -> str:
    """Read a string field."""
    value = field(payload, path)
    if not isinstance(value, str):
        raise MalformedResponseError(path, f"expected a string, got {value!r}")
    return value


def percent(payload: Dict[str, Any], path: str) -> int:
    """Read an integer percentage in [0, 100]."""
    value = number(payload, path)
    if not 0 <= value <= 100:
        raise MalformedResponseError(path, f"out of range: {value}")
    return int(round(value))
