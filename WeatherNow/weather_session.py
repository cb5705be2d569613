"""Weather session controller - one fetch cycle at a time, latest one wins."""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from location_source import LocationPermissionError, LocationSource, PermissionStatus
from provider_registry import ProviderRegistry
from weather_data import CanonicalWeather, Coordinate
from weather_provider import WeatherProviderError

PERMISSION_DENIED_MESSAGE = "location permission denied"
FETCH_FAILED_MESSAGE = "failed to fetch weather data"


class SessionStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class SessionState:
    """What the presentation layer renders."""
    status: SessionStatus
    weather: Optional[CanonicalWeather] = None
    error: Optional[str] = None  # user-facing message
    cause: Optional[BaseException] = None  # diagnostics only

    @classmethod
    def idle(cls) -> "SessionState":
        return cls(SessionStatus.IDLE)

    @classmethod
    def loading(cls) -> "SessionState":
        return cls(SessionStatus.LOADING)

    @classmethod
    def success(cls, weather: CanonicalWeather) -> "SessionState":
        return cls(SessionStatus.SUCCESS, weather=weather)

    @classmethod
    def failure(cls, message: str, cause: Optional[BaseException] = None) -> "SessionState":
        return cls(SessionStatus.ERROR, error=message, cause=cause)


class WeatherSession:
    """
    Orchestrates fetch cycles: location -> provider -> canonical weather.

    Every cycle is tagged with a generation number. A cycle only applies its
    result while its generation is still the current one, so the state always
    reflects the most recently started cycle even if an older request
    finishes later.
    """

    def __init__(
        self,
        location_source: LocationSource,
        registry: ProviderRegistry,
        default_provider: str,
        on_state_change: Optional[Callable[[SessionState], None]] = None,
    ):
        registry.resolve(default_provider)
        self.location_source = location_source
        self.registry = registry
        self.active_provider = default_provider
        self.last_coordinate: Optional[Coordinate] = None
        self.on_state_change = on_state_change
        self.pending: Optional[asyncio.Task] = None
        self._state = SessionState.idle()
        self._generation = 0

    @classmethod
    def launch(
        cls,
        location_source: LocationSource,
        registry: ProviderRegistry,
        default_provider: str,
        on_state_change: Optional[Callable[[SessionState], None]] = None,
    ) -> "WeatherSession":
        """Create a session and immediately start its first fetch (needs a running loop)."""
        session = cls(location_source, registry, default_provider, on_state_change)
        generation = session._begin()
        session.pending = asyncio.get_running_loop().create_task(session._run_cycle(generation))
        session.pending.add_done_callback(_log_task_failure)
        return session

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def list_providers(self) -> Tuple[str, ...]:
        return self.registry.list_providers()

    async def start(self) -> SessionState:
        """Run one fetch cycle with the active provider."""
        return await self._run_cycle(self._begin())

    async def retry(self) -> SessionState:
        return await self.start()

    async def switch_provider(self, provider_id: str) -> SessionState:
        """
        Make another registered provider active and fetch with it.

        Raises:
            UnknownProviderError: If the identifier is not registered
        """
        self.registry.resolve(provider_id)
        logging.info(f"Switching provider: {self.active_provider} -> {provider_id}")
        self.active_provider = provider_id
        return await self.start()

    def _begin(self) -> int:
        self._generation += 1
        self._apply(self._generation, SessionState.loading())
        return self._generation

    async def _run_cycle(self, generation: int) -> SessionState:
        provider_id = self.active_provider
        logging.info(f"Fetch cycle {generation} started (provider={provider_id})")

        try:
            permission = await self.location_source.request_permission()
            if permission is not PermissionStatus.GRANTED:
                raise LocationPermissionError("Location permission not granted")
            coordinate = await self.location_source.get_current_coordinate()
        except LocationPermissionError as e:
            logging.warning(f"Fetch cycle {generation}: {e}")
            return self._apply(generation, SessionState.failure(PERMISSION_DENIED_MESSAGE, e))
        except Exception as e:
            # Positioning failures other than a refused permission
            logging.error(f"Fetch cycle {generation}: location unavailable: {e!r}", exc_info=True)
            return self._apply(generation, SessionState.failure(FETCH_FAILED_MESSAGE, e))

        if generation == self._generation:
            self.last_coordinate = coordinate
        provider = self.registry.resolve(provider_id)

        try:
            weather = await provider.fetch_weather(coordinate)
        except WeatherProviderError as e:
            logging.error(f"Fetch cycle {generation} failed ({provider_id}): {e!r}", exc_info=True)
            return self._apply(generation, SessionState.failure(FETCH_FAILED_MESSAGE, e))

        logging.info(
            f"Fetch cycle {generation} succeeded: {weather.location_name} "
            f"{weather.temperature_c}°C {weather.condition.value}"
        )
        return self._apply(generation, SessionState.success(weather))

    def _apply(self, generation: int, state: SessionState) -> SessionState:
        """Publish a state unless a newer cycle has started; return the current state."""
        if generation != self._generation:
            logging.info(f"Discarding {state.status.value} result of stale fetch cycle {generation}")
            return self._state
        self._state = state
        if self.on_state_change is not None:
            self.on_state_change(state)
        return state


def _log_task_failure(task: asyncio.Task) -> None:
    """Report an exception from a background fetch nobody awaited."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logging.error(f"Background fetch cycle failed: {exc!r}", exc_info=exc)
