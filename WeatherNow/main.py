"""Terminal weather display with switchable providers."""
import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from location_source import StaticLocationSource
from provider_registry import ProviderRegistry, ProviderSettings, build_registry
from weather_data import CanonicalWeather, Coordinate, WeatherCondition
from weather_session import SessionState, SessionStatus, WeatherSession

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_LOG_FILE = os.path.join(BASE_DIR, "weather-now.log")
DEFAULT_PROVIDER = "weatherapi"

CONDITION_ICONS = {
    WeatherCondition.CLEAR: "☀️",
    WeatherCondition.CLOUDS: "☁️",
    WeatherCondition.RAIN: "🌧️",
    WeatherCondition.SNOW: "❄️",
    WeatherCondition.THUNDERSTORM: "⛈️",
}
FALLBACK_ICON = "🌤️"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("Current weather for your location")
    parser.add_argument("--provider", default=None, help="Provider id (default: WEATHER_PROVIDER or weatherapi)")
    parser.add_argument("--lat", type=float, default=None)
    parser.add_argument("--lon", type=float, default=None)
    parser.add_argument("--lang", default=None, help="Description language (default: WEATHER_LANG or es)")
    parser.add_argument("--timeout", type=float, default=None, help="HTTP timeout in seconds")
    parser.add_argument("--log-file", default=DEFAULT_LOG_FILE)
    parser.add_argument("--list-providers", action="store_true")
    parser.add_argument("--interactive", action="store_true", help="Keep running: r=retry, s <id>=switch, q=quit")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def setup_logging(log_file: str, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file)
        ]
    )


def load_config(args: argparse.Namespace) -> Tuple[ProviderSettings, Optional[Coordinate], str]:
    load_dotenv()
    lat = args.lat if args.lat is not None else os.getenv("WEATHER_LAT")
    lon = args.lon if args.lon is not None else os.getenv("WEATHER_LON")
    provider = args.provider or os.getenv("WEATHER_PROVIDER", DEFAULT_PROVIDER)

    settings = ProviderSettings(
        weatherapi_key=os.getenv("WEATHERAPI_KEY", ""),
        openweathermap_key=os.getenv("OPENWEATHERMAP_KEY", ""),
        lang=args.lang or os.getenv("WEATHER_LANG", "es"),
        timeout=args.timeout,
    )

    coordinate = None
    if lat is not None and lon is not None:
        try:
            coordinate = Coordinate(float(lat), float(lon))
        except ValueError as exc:
            raise SystemExit(f"Invalid coordinates: {exc}") from exc
    else:
        logging.warning("WEATHER_LAT/WEATHER_LON not set; location will be unavailable")

    logging.info("Configuration loaded: coordinate=%s provider=%s lang=%s", coordinate, provider, settings.lang)
    return settings, coordinate, provider


def format_weather_lines(weather: CanonicalWeather) -> Tuple[str, str, str, str]:
    icon = CONDITION_ICONS.get(weather.condition, FALLBACK_ICON)
    headline = f"{icon}  {round(weather.temperature_c)}°  {weather.condition_description}"
    feels = f"Feels like {round(weather.feels_like_c)}°"
    details = f"Humidity {weather.humidity_percent}%  Wind {weather.wind_speed_kmh} km/h"
    extra = f"Pressure {weather.pressure_hpa:g} hPa  Visibility {weather.visibility_km:g} km"
    return headline, feels, details, extra


def render(state: SessionState, registry: ProviderRegistry, active_provider: str) -> str:
    if state.status is SessionStatus.LOADING:
        return "Fetching weather data..."
    if state.status is SessionStatus.IDLE:
        return ""
    if state.status is SessionStatus.ERROR:
        return f"❌ {state.error} (r to retry)"

    weather = state.weather
    labels = [
        f"[{pid}]" if pid == active_provider else pid
        for pid in registry.list_providers()
    ]
    lines = [
        "Providers: " + " ".join(labels),
        weather.location_name,
        f"📡 {registry.display_name(active_provider)}",
        *format_weather_lines(weather),
    ]
    return "\n".join(lines)


async def interactive_loop(session: WeatherSession) -> None:
    while True:
        command = (await asyncio.to_thread(input, "> ")).strip()
        if command in ("q", "quit"):
            return
        if command in ("r", "retry", ""):
            await session.retry()
            continue
        target = command[2:].strip() if command.startswith("s ") else command
        if target in session.registry:
            await session.switch_provider(target)
        else:
            print(f"Unknown command or provider: {command!r}. Providers: {', '.join(session.list_providers())}")


async def run(args: argparse.Namespace) -> int:
    settings, coordinate, provider = load_config(args)
    registry = build_registry(settings)

    if args.list_providers:
        for pid in registry.list_providers():
            print(f"{pid}\t{registry.display_name(pid)}")
        return 0
    if provider not in registry:
        raise SystemExit(f"Unknown provider {provider!r}; choose from {', '.join(registry.list_providers())}")

    def show(state: SessionState) -> None:
        output = render(state, registry, session.active_provider)
        if output:
            print(output, flush=True)

    session = WeatherSession(StaticLocationSource(coordinate), registry, provider, on_state_change=show)
    state = await session.start()

    if args.interactive:
        await interactive_loop(session)
        return 0
    return 0 if state.status is SessionStatus.SUCCESS else 1


def main() -> None:
    args = parse_args()
    setup_logging(args.log_file, args.verbose)
    try:
        sys.exit(asyncio.run(run(args)))
    except (KeyboardInterrupt, EOFError):
        logging.info("Stopping")


if __name__ == "__main__":
    main()
