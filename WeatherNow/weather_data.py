"""Weather domain model - pure data structures independent of any API."""
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Coordinate:
    """A single device position, obtained once per fetch cycle."""
    latitude: float
    longitude: float


class WeatherCondition(str, Enum):
    """Canonical weather categories shared by every provider."""
    CLEAR = "Clear"
    CLOUDS = "Clouds"
    RAIN = "Rain"
    SNOW = "Snow"
    THUNDERSTORM = "Thunderstorm"

    @classmethod
    def parse(cls, value: str) -> "WeatherCondition":
        """Return the matching category, falling back to Clouds."""
        try:
            return cls(value)
        except ValueError:
            return cls.CLOUDS


@dataclass(frozen=True)
class CanonicalWeather:
    """Domain model for current weather, independent of any specific API."""
    location_name: str  # e.g., "Madrid, Spain"
    temperature_c: float
    feels_like_c: float
    humidity_percent: int  # 0-100
    pressure_hpa: float
    condition: WeatherCondition
    condition_description: str  # lowercase, e.g., "light rain"
    condition_icon_ref: str  # URI or URI fragment of the icon asset
    wind_speed_kmh: float
    visibility_km: float
