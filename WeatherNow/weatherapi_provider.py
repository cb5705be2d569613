"""WeatherAPI.com current conditions provider implementation."""
from typing import Any, Dict, Tuple

from weather_data import CanonicalWeather, Coordinate, WeatherCondition
from weather_provider import WeatherProviderBase, number, percent, text

# Checked in order; the first keyword found in the description wins.
CONDITION_KEYWORDS: Tuple[Tuple[Tuple[str, ...], WeatherCondition], ...] = (
    (("sun", "clear"), WeatherCondition.CLEAR),
    (("cloud", "overcast"), WeatherCondition.CLOUDS),
    (("rain", "drizzle"), WeatherCondition.RAIN),
    (("snow", "blizzard"), WeatherCondition.SNOW),
    (("thunder", "storm"), WeatherCondition.THUNDERSTORM),
)


def classify_condition(description: str) -> WeatherCondition:
    """Map WeatherAPI free-text condition (e.g. "Patchy rain possible") to a category."""
    lowered = description.lower()
    for keywords, condition in CONDITION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return condition
    return WeatherCondition.CLOUDS


class WeatherApiProvider(WeatherProviderBase):
    """
    Weather provider using the WeatherAPI.com realtime endpoint.

    Docs: https://www.weatherapi.com/docs/
    Wind (kph) and visibility (km) are already metric and pass through.
    """

    provider_id = "weatherapi"
    display_name = "WeatherAPI"
    BASE_URL = "https://api.weatherapi.com/v1/current.json"

    def build_params(self, coordinate: Coordinate) -> Dict[str, Any]:
        return {
            "key": self.api_key,
            "q": f"{coordinate.latitude},{coordinate.longitude}",
            "lang": self.lang,
        }

    def normalize(self, payload: Dict[str, Any]) -> CanonicalWeather:
        description = text(payload, "current.condition.text")
        return CanonicalWeather(
            location_name=f"{text(payload, 'location.name')}, {text(payload, 'location.country')}",
            temperature_c=number(payload, "current.temp_c"),
            feels_like_c=number(payload, "current.feelslike_c"),
            humidity_percent=percent(payload, "current.humidity"),
            pressure_hpa=number(payload, "current.pressure_mb"),
            condition=classify_condition(description),
            condition_description=description.lower(),
            condition_icon_ref=text(payload, "current.condition.icon"),
            wind_speed_kmh=number(payload, "current.wind_kph"),
            visibility_km=number(payload, "current.vis_km"),
        )
