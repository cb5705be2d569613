"""Registry of the weather providers a session can switch between."""
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Optional, Tuple

from openweather_provider import OpenWeatherProvider
from weather_provider import UnknownProviderError, WeatherProviderBase
from weatherapi_provider import WeatherApiProvider


@dataclass(frozen=True)
class ProviderSettings:
    """Static configuration injected at startup."""
    weatherapi_key: str = ""
    openweathermap_key: str = ""
    lang: str = "es"
    timeout: Optional[float] = None


class ProviderRegistry:
    """
    Immutable mapping from provider identifier to adapter.

    The registry is the only source of selectable identifiers; declaration
    order is kept so UIs list providers in a stable order.
    """

    def __init__(self, providers: Iterable[WeatherProviderBase]):
        entries = {}
        for provider in providers:
            if provider.provider_id in entries:
                raise ValueError(f"Duplicate provider id: {provider.provider_id!r}")
            entries[provider.provider_id] = provider
        self._providers = MappingProxyType(entries)

    def list_providers(self) -> Tuple[str, ...]:
        return tuple(self._providers)

    def resolve(self, provider_id: str) -> WeatherProviderBase:
        """
        Look up the adapter for an identifier.

        Raises:
            UnknownProviderError: If the identifier is not registered
        """
        try:
            return self._providers[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id) from None

    def display_name(self, provider_id: str) -> str:
        return self.resolve(provider_id).display_name

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __len__(self) -> int:
        return len(self._providers)


def build_registry(settings: ProviderSettings) -> ProviderRegistry:
    """Compose the default registry: WeatherAPI first, then OpenWeather."""
    registry = ProviderRegistry([
        WeatherApiProvider(settings.weatherapi_key, lang=settings.lang, timeout=settings.timeout),
        OpenWeatherProvider(settings.openweathermap_key, lang=settings.lang, timeout=settings.timeout),
    ])
    for provider_id in registry.list_providers():
        if not registry.resolve(provider_id).api_key:
            logging.warning(f"No API key configured for provider '{provider_id}'")
    logging.info(f"Provider registry ready: {', '.join(registry.list_providers())}")
    return registry
