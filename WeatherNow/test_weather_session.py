"""Tests for the weather session controller."""
import asyncio
import logging
from unittest.mock import Mock, patch

import pytest

from location_source import LocationPermissionError, LocationSource, PermissionStatus, StaticLocationSource
from provider_registry import ProviderRegistry, ProviderSettings, build_registry
from weather_data import CanonicalWeather, Coordinate, WeatherCondition
from weather_provider import MalformedResponseError, UnknownProviderError, UpstreamHttpError, WeatherProviderBase
from weather_session import SessionStatus, WeatherSession

MADRID = Coordinate(40.4, -3.7)


def make_weather(location_name="Madrid, Spain", temperature_c=21.0):
    return CanonicalWeather(
        location_name=location_name,
        temperature_c=temperature_c,
        feels_like_c=20.0,
        humidity_percent=40,
        pressure_hpa=1016.0,
        condition=WeatherCondition.CLEAR,
        condition_description="sunny",
        condition_icon_ref="//cdn.weatherapi.com/weather/64x64/day/113.png",
        wind_speed_kmh=13.0,
        visibility_km=10.0,
    )


class MockProvider(WeatherProviderBase):
    """Mock weather provider that can be held until released."""

    def __init__(self, provider_id, return_data=None, raise_error=None, gated=False):
        super().__init__(api_key="test_key")
        self.provider_id = provider_id
        self.display_name = provider_id.title()
        self.return_data = return_data
        self.raise_error = raise_error
        self.gated = gated
        self.release = None
        self.call_count = 0

    def build_params(self, coordinate):
        return {}

    def normalize(self, payload):
        raise NotImplementedError

    async def fetch_weather(self, coordinate):
        self.call_count += 1
        if self.gated:
            self.release = asyncio.Event()
            await self.release.wait()
        if self.raise_error:
            raise self.raise_error
        return self.return_data


class FailingLocationSource(LocationSource):
    """Grants permission but cannot produce a position."""

    async def request_permission(self):
        return PermissionStatus.GRANTED

    async def get_current_coordinate(self):
        raise LocationPermissionError("revoked")


async def wait_for(predicate):
    for _ in range(100):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def test_session_starts_idle_with_default_provider():
    provider = MockProvider("weatherapi", return_data=make_weather())
    session = WeatherSession(StaticLocationSource(MADRID), ProviderRegistry([provider]), "weatherapi")

    assert session.state.status is SessionStatus.IDLE
    assert session.active_provider == "weatherapi"
    assert session.last_coordinate is None
    assert session.list_providers() == ("weatherapi",)


def test_session_success():
    weather = make_weather()
    provider = MockProvider("weatherapi", return_data=weather)
    seen = []
    session = WeatherSession(
        StaticLocationSource(MADRID), ProviderRegistry([provider]), "weatherapi",
        on_state_change=lambda state: seen.append(state.status),
    )

    state = asyncio.run(session.start())

    assert state.status is SessionStatus.SUCCESS
    assert state.weather is weather
    assert state.error is None
    assert session.last_coordinate == MADRID
    assert seen == [SessionStatus.LOADING, SessionStatus.SUCCESS]


def test_launch_is_loading_immediately():
    provider = MockProvider("weatherapi", return_data=make_weather())

    async def scenario():
        session = WeatherSession.launch(StaticLocationSource(MADRID), ProviderRegistry([provider]), "weatherapi")
        assert session.state.status is SessionStatus.LOADING
        await session.pending
        return session

    session = asyncio.run(scenario())

    assert session.state.status is SessionStatus.SUCCESS
    assert provider.call_count == 1


def test_permission_denied_issues_no_network_call():
    """Default provider weatherapi, location denied: error without HTTP."""
    registry = build_registry(ProviderSettings(weatherapi_key="test_key"))

    async def scenario():
        session = WeatherSession.launch(StaticLocationSource(None), registry, "weatherapi")
        await session.pending
        return session

    with patch("weather_provider.requests.get") as mock_get:
        session = asyncio.run(scenario())

        mock_get.assert_not_called()

    assert session.state.status is SessionStatus.ERROR
    assert session.state.error == "location permission denied"
    assert isinstance(session.state.cause, LocationPermissionError)


def test_coordinate_failure_is_permission_error():
    provider = MockProvider("weatherapi", return_data=make_weather())
    session = WeatherSession(FailingLocationSource(), ProviderRegistry([provider]), "weatherapi")

    state = asyncio.run(session.start())

    assert state.error == "location permission denied"
    assert provider.call_count == 0


def test_upstream_500_collapses_to_generic_error():
    registry = build_registry(ProviderSettings(weatherapi_key="test_key"))
    session = WeatherSession(StaticLocationSource(MADRID), registry, "weatherapi")

    with patch("weather_provider.requests.get") as mock_get:
        mock_response = Mock()
        mock_response.ok = False
        mock_response.status_code = 500
        mock_get.return_value = mock_response

        state = asyncio.run(session.start())

        mock_response.json.assert_not_called()

    assert state.status is SessionStatus.ERROR
    assert state.error == "failed to fetch weather data"
    assert isinstance(state.cause, UpstreamHttpError)
    assert state.cause.status == 500
    assert "500" not in state.error


def test_malformed_response_collapses_to_generic_error():
    provider = MockProvider("weatherapi", raise_error=MalformedResponseError("current.temp_c"))
    session = WeatherSession(StaticLocationSource(MADRID), ProviderRegistry([provider]), "weatherapi")

    state = asyncio.run(session.start())

    assert state.error == "failed to fetch weather data"
    assert state.cause.field == "current.temp_c"


def test_retry_after_error():
    provider = MockProvider("weatherapi", raise_error=UpstreamHttpError(503))
    session = WeatherSession(StaticLocationSource(MADRID), ProviderRegistry([provider]), "weatherapi")

    assert asyncio.run(session.start()).status is SessionStatus.ERROR

    provider.raise_error = None
    provider.return_data = make_weather()
    state = asyncio.run(session.retry())

    assert state.status is SessionStatus.SUCCESS
    assert session.active_provider == "weatherapi"
    assert provider.call_count == 2


def test_switch_provider():
    first = MockProvider("weatherapi", return_data=make_weather("Madrid, Spain"))
    second = MockProvider("openweathermap", return_data=make_weather("Madrid, ES"))
    session = WeatherSession(StaticLocationSource(MADRID), ProviderRegistry([first, second]), "weatherapi")

    asyncio.run(session.start())
    state = asyncio.run(session.switch_provider("openweathermap"))

    assert session.active_provider == "openweathermap"
    assert state.weather.location_name == "Madrid, ES"
    assert second.call_count == 1


def test_switch_to_unknown_provider_is_fatal():
    provider = MockProvider("weatherapi", return_data=make_weather())
    session = WeatherSession(StaticLocationSource(MADRID), ProviderRegistry([provider]), "weatherapi")
    asyncio.run(session.start())

    with pytest.raises(UnknownProviderError):
        asyncio.run(session.switch_provider("accuweather"))

    assert session.active_provider == "weatherapi"
    assert session.state.status is SessionStatus.SUCCESS


def test_unknown_default_provider_is_fatal():
    with pytest.raises(UnknownProviderError):
        WeatherSession(StaticLocationSource(MADRID), ProviderRegistry([]), "weatherapi")


def test_stale_result_is_discarded():
    """A slow fetch finishing after a provider switch must not win."""
    slow = MockProvider("weatherapi", return_data=make_weather("Slow, A"), gated=True)
    fast = MockProvider("openweathermap", return_data=make_weather("Fast, B"), gated=True)
    session = WeatherSession(StaticLocationSource(MADRID), ProviderRegistry([slow, fast]), "weatherapi")

    async def scenario():
        task_a = asyncio.create_task(session.start())
        await wait_for(lambda: slow.call_count == 1)

        task_b = asyncio.create_task(session.switch_provider("openweathermap"))
        await wait_for(lambda: fast.call_count == 1)
        assert session.state.status is SessionStatus.LOADING

        fast.release.set()
        await task_b
        slow.release.set()
        await task_a

    asyncio.run(scenario())

    assert session.state.status is SessionStatus.SUCCESS
    assert session.state.weather.location_name == "Fast, B"


def test_stale_result_does_not_replace_loading():
    slow = MockProvider("weatherapi", return_data=make_weather("Slow, A"), gated=True)
    pending = MockProvider("openweathermap", return_data=make_weather("Pending, B"), gated=True)
    seen = []
    session = WeatherSession(
        StaticLocationSource(MADRID), ProviderRegistry([slow, pending]), "weatherapi",
        on_state_change=lambda state: seen.append(state.status),
    )

    async def scenario():
        task_a = asyncio.create_task(session.start())
        await wait_for(lambda: slow.call_count == 1)
        task_b = asyncio.create_task(session.switch_provider("openweathermap"))
        await wait_for(lambda: pending.call_count == 1)

        slow.release.set()
        await task_a
        assert session.state.status is SessionStatus.LOADING

        pending.release.set()
        await task_b

    asyncio.run(scenario())

    assert session.state.weather.location_name == "Pending, B"
    assert seen == [SessionStatus.LOADING, SessionStatus.LOADING, SessionStatus.SUCCESS]


class TimeoutLocationSource(LocationSource):
    """Grants permission but positioning times out."""

    async def request_permission(self):
        return PermissionStatus.GRANTED

    async def get_current_coordinate(self):
        raise TimeoutError("positioning timed out")


def test_location_timeout_is_recoverable():
    provider = MockProvider("weatherapi", return_data=make_weather())
    session = WeatherSession(TimeoutLocationSource(), ProviderRegistry([provider]), "weatherapi")

    state = asyncio.run(session.start())

    assert state.status is SessionStatus.ERROR
    assert state.error == "failed to fetch weather data"
    assert isinstance(state.cause, TimeoutError)
    assert provider.call_count == 0

    session.location_source = StaticLocationSource(MADRID)
    assert asyncio.run(session.retry()).status is SessionStatus.SUCCESS


def test_launch_logs_background_failure(caplog):
    provider = MockProvider("weatherapi", return_data=make_weather())

    def broken_view(state):
        if state.status is SessionStatus.SUCCESS:
            raise RuntimeError("render failed")

    async def scenario():
        session = WeatherSession.launch(
            StaticLocationSource(MADRID), ProviderRegistry([provider]), "weatherapi", on_state_change=broken_view,
        )
        await asyncio.wait([session.pending])
        await asyncio.sleep(0)
        return session

    with caplog.at_level(logging.ERROR):
        session = asyncio.run(scenario())

    assert session.pending.done()
    assert "Background fetch cycle failed" in caplog.text
    assert "render failed" in caplog.text
