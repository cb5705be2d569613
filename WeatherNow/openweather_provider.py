"""OpenWeather Current Weather API provider implementation."""
from typing import Any, Dict

from weather_data import CanonicalWeather, Coordinate, WeatherCondition
from weather_provider import WeatherProviderBase, number, percent, text

ICON_URL_TEMPLATE = "https://openweathermap.org/img/wn/{icon}@2x.png"
DEFAULT_VISIBILITY_KM = 10.0


class OpenWeatherProvider(WeatherProviderBase):
    """
    Weather provider using OpenWeather Current Weather API.

    Uses the free Current Weather API: https://openweathermap.org/current
    Wind comes back in m/s and visibility in meters; both are converted.
    """

    provider_id = "openweathermap"
    display_name = "OpenWeather"
    BASE_URL = "https://api.openweathermap.org/data/2.5/weather"

    def build_params(self, coordinate: Coordinate) -> Dict[str, Any]:
        return {
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
            "appid": self.api_key,
            "units": "metric",
            "lang": self.lang,
        }

    def normalize(self, payload: Dict[str, Any]) -> CanonicalWeather:
        # Current Weather API returns data directly (not nested in "current")
        visibility_m = number(payload, "visibility", default=None)
        return CanonicalWeather(
            location_name=f"{text(payload, 'name')}, {text(payload, 'sys.country')}",
            temperature_c=number(payload, "main.temp"),
            feels_like_c=number(payload, "main.feels_like"),
            humidity_percent=percent(payload, "main.humidity"),
            pressure_hpa=number(payload, "main.pressure"),
            condition=WeatherCondition.parse(text(payload, "weather.0.main")),
            condition_description=text(payload, "weather.0.description").lower(),
            condition_icon_ref=ICON_URL_TEMPLATE.format(icon=text(payload, "weather.0.icon")),
            wind_speed_kmh=ms_to_kmh(number(payload, "wind.speed")),
            visibility_km=DEFAULT_VISIBILITY_KM if visibility_m is None else visibility_m / 1000,
        )


def ms_to_kmh(speed_ms: float) -> float:
    """Convert m/s to km/h, rounded to one decimal."""
    return round(speed_ms * 3.6, 1)
