"""Directory of completion providers and their per-provider settings."""

from typing import Any, Dict, List, Mapping, Optional, Protocol, Type

import httpx

from deep_synthesis.core.exceptions import ConfigError
from deep_synthesis.core.model_catalog import PROVIDER_ORDER
from deep_synthesis.core.providers import PROVIDER_CLASSES, BaseProvider
from deep_synthesis.schemas.llm import ProviderSettings
from deep_synthesis.utils.logging import get_logger

LOGGER = get_logger(__name__)


class SettingsStore(Protocol):
    """Durable home for provider settings (see ``ProviderSettingsStore``)."""

    async def load_all(self) -> Dict[str, ProviderSettings]: ...

    async def save(self, provider: str, settings: ProviderSettings) -> None: ...


class ProviderRegistry:
    """Holds one live provider instance per vendor.

    Settings changes never mutate a provider in place: a new instance is built
    from the new settings and swapped in, so calls already holding the old
    instance finish with the credentials they started with.

    Construct one registry at startup and pass it to the services that need
    it. When a ``settings_store`` is given, settings updates are written
    through to it after the swap, and the swap is undone if the write fails.
    """

    def __init__(
        self,
        settings: Optional[Mapping[str, ProviderSettings]] = None,
        timeout: float = 60,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
        provider_options: Optional[Dict[str, Dict[str, Any]]] = None,
        provider_classes: Optional[Mapping[str, Type[BaseProvider]]] = None,
        settings_store: Optional[SettingsStore] = None,
    ):
        """Initialize the registry and register every known provider.

        Args:
            settings: Initial per-provider settings keyed by provider name
            timeout: Request timeout handed to every provider
            max_retries: Retry bound handed to every provider
            retry_delay: Backoff base handed to every provider
            http_client: Optional shared httpx client
            provider_options: Extra constructor kwargs per provider name
            provider_classes: Override the provider implementations
            settings_store: Optional durable store for write-through updates
        """
        self._client_options: Dict[str, Any] = {
            "timeout": timeout,
            "max_retries": max_retries,
            "retry_delay": retry_delay,
            "http_client": http_client,
        }
        self._provider_options = {
            name.lower(): dict(options) for name, options in (provider_options or {}).items()
        }
        self._classes: Dict[str, Type[BaseProvider]] = {
            name.lower(): cls for name, cls in (provider_classes or PROVIDER_CLASSES).items()
        }
        self._settings_store = settings_store
        self._settings: Dict[str, ProviderSettings] = {}
        self._providers: Dict[str, BaseProvider] = {}

        initial = {name.lower(): value for name, value in (settings or {}).items()}
        for name in self._classes:
            self._install(name, initial.get(name, ProviderSettings()))

        LOGGER.info(
            "Provider registry initialized",
            extra={"providers": self.get_available_provider_names()},
        )

    def _normalize(self, name: str) -> str:
        key = (name or "").strip().lower()
        if key not in self._classes:
            raise ConfigError(f'Provider "{name}" not found')
        return key

    def _build(self, name: str, settings: ProviderSettings) -> BaseProvider:
        options = {**self._client_options, **self._provider_options.get(name, {})}
        return self._classes[name](settings=settings, **options)

    def _install(self, name: str, settings: ProviderSettings) -> BaseProvider:
        provider = self._build(name, settings)
        self._settings[name] = settings
        self._providers[name] = provider
        return provider

    def get_provider(self, name: str) -> BaseProvider:
        """Look a provider up by name, case-insensitively.

        Raises:
            ConfigError: If no provider is registered under ``name``
        """
        return self._providers[self._normalize(name)]

    def get_provider_settings(self, name: str) -> ProviderSettings:
        return self._settings[self._normalize(name)].model_copy(deep=True)

    def get_all_settings(self) -> Dict[str, ProviderSettings]:
        return {name: value.model_copy(deep=True) for name, value in self._settings.items()}

    def get_available_provider_names(self) -> List[str]:
        ordered = [name for name in PROVIDER_ORDER if name in self._classes]
        return ordered + sorted(name for name in self._classes if name not in PROVIDER_ORDER)

    def get_all_providers(self) -> List[BaseProvider]:
        return [self._providers[name] for name in self.get_available_provider_names()]

    async def update_provider_settings(self, name: str, settings: ProviderSettings) -> BaseProvider:
        """Swap in a provider built from ``settings`` and write it through.

        When the store rejects the write, the previous provider and settings
        are restored before the error propagates, so the registry never holds
        settings that the store does not.
        """
        key = self._normalize(name)
        previous_settings = self._settings[key]
        previous_provider = self._providers[key]
        provider = self._install(key, settings)
        if self._settings_store is not None:
            try:
                await self._settings_store.save(key, settings)
            except Exception:
                self._settings[key] = previous_settings
                self._providers[key] = previous_provider
                LOGGER.error(
                    f"Failed to persist settings for provider {key}; kept previous settings",
                    exc_info=True,
                    extra={"provider": key, "selected_model": settings.selected_model},
                )
                raise
        LOGGER.info(
            f"Updated settings for provider {key}",
            extra={
                "provider": key,
                "api_key_present": bool(settings.api_key),
                "selected_model": settings.selected_model,
            },
        )
        return provider

    async def update_settings(self, settings: Mapping[str, ProviderSettings]) -> None:
        for name, value in settings.items():
            await self.update_provider_settings(name, value)

    def create_provider_with_key(self, name: str, api_key: str) -> BaseProvider:
        """Build a throwaway provider for key validation.

        The registered instance and its credentials are left untouched.
        """
        key = self._normalize(name)
        return self._build(key, ProviderSettings(api_key=api_key, selected_model=""))

    async def load_from_store(self) -> int:
        """Hydrate providers from the settings store; returns how many were loaded."""
        if self._settings_store is None:
            return 0
        stored = await self._settings_store.load_all()
        loaded = 0
        for name, value in stored.items():
            key = name.lower()
            if key not in self._classes:
                LOGGER.warning(f"Ignoring stored settings for unknown provider {name}")
                continue
            self._install(key, value)
            loaded += 1
        LOGGER.info(f"Loaded settings for {loaded} providers from store")
        return loaded
