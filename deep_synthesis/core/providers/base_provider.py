import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

import httpx

from deep_synthesis.core.exceptions import AuthError, ConfigError, RequestError
from deep_synthesis.schemas.llm import (
    LLMRequest,
    LLMResponse,
    ModelInfo,
    ProviderConfig,
    ProviderSettings,
)
from deep_synthesis.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Statuses worth retrying; every other 4xx is a caller or credential problem.
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class BaseProvider(ABC):
    """Base class for LLM completion providers.

    Handles the common HTTP plumbing: auth headers, retries with exponential
    backoff, mapping vendor failures onto the shared error taxonomy and
    logging. Subclasses supply the vendor payload and response shapes.
    """

    config: ProviderConfig

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        timeout: float = 60,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the provider.

        Args:
            settings: User credentials and preferences
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per request
            retry_delay: Base delay for exponential backoff
            http_client: Optional shared client; one is created per call otherwise
        """
        self.settings = settings or ProviderSettings()
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._http_client = http_client
        self.logger = LOGGER

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def api_key(self) -> str:
        return self.settings.api_key

    @property
    def chat_endpoint(self) -> str:
        return self.settings.custom_endpoint or self.config.chat_endpoint

    # ------------------------------------------------------------------
    # Vendor hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        """Translate a provider-agnostic request into the vendor body."""

    @abstractmethod
    def parse_response(self, data: Dict[str, Any], request: LLMRequest) -> LLMResponse:
        """Translate the vendor body into a normalized response."""

    def auth_headers(self, key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {key}"}

    def validation_payload(self) -> Dict[str, Any]:
        return {
            "model": self.config.default_model,
            "messages": [{"role": "user", "content": "test"}],
            "max_tokens": 1,
        }

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def get_models(self) -> List[ModelInfo]:
        return list(self.config.models)

    async def list_available_models(self) -> List[ModelInfo]:
        """Return models the configured key can use.

        Providers without a listing endpoint validate the key and return the
        full catalog.
        """
        if self.config.requires_key and not self.api_key:
            return []
        try:
            if await self.validate_key(self.api_key):
                return self.get_models()
        except (AuthError, RequestError, ConfigError) as e:
            self.logger.warning(
                f"Could not confirm {self.name} key while listing models",
                extra={"provider": self.name, "error": str(e)},
            )
        return []

    async def is_configured(self) -> bool:
        if not self.config.requires_key:
            return True
        if not self.api_key:
            return False
        try:
            return await self.validate_key(self.api_key)
        except (AuthError, RequestError, ConfigError):
            return False

    async def validate_key(self, key: str) -> bool:
        """Validate ``key`` with a minimal chat request.

        Raises:
            AuthError: Immediately, when the vendor answers 401
            RequestError: When the vendor keeps failing after retries
            ConfigError: When the vendor cannot be reached after retries
        """
        self.logger.info(
            f"Validating {self.name} API key",
            extra={"provider": self.name, "endpoint": self.chat_endpoint},
        )
        headers = {"Content-Type": "application/json", **self.auth_headers(key)}

        async with self._client() as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(
                        self.chat_endpoint, headers=headers, json=self.validation_payload()
                    )
                    if response.status_code == 401:
                        raise AuthError("Invalid API key (401: Unauthorized)")
                    if not response.is_success:
                        raise RequestError(
                            self._error_message(response) or "Failed to validate API key",
                            status_code=response.status_code,
                        )
                    self.logger.info(f"{self.name} API key validation successful")
                    return True

                except AuthError:
                    self.logger.error(f"{self.name} rejected the API key")
                    raise

                except RequestError as e:
                    self.logger.warning(
                        f"{self.name} validation failed (Attempt {attempt + 1}/{self.max_retries})",
                        extra={"provider": self.name, "status_code": e.status_code},
                    )
                    if attempt == self.max_retries - 1:
                        raise

                except httpx.HTTPError as e:
                    self.logger.warning(
                        f"{self.name} unreachable during validation (Attempt {attempt + 1}/{self.max_retries})",
                        extra={"provider": self.name, "error": str(e)},
                    )
                    if attempt == self.max_retries - 1:
                        raise ConfigError("Failed to connect to provider", original_error=e) from e

                await self._wait_before_retry(attempt)

        return False

    async def chat(self, request: LLMRequest) -> LLMResponse:
        """Run one completion.

        Raises:
            ConfigError: If a key is required but missing (no I/O happens)
            AuthError: If the vendor rejects the key
            RequestError: If the vendor fails after retries
        """
        if self.config.requires_key and not self.api_key:
            raise ConfigError(f"{self.name} API key is required but not provided")

        if not request.model:
            request = request.model_copy(update={"model": self.settings.selected_model or self.config.default_model})

        payload = self.build_payload(request)
        headers = {"Content-Type": "application/json", **self.auth_headers(self.api_key)}

        self.logger.debug(
            f"Calling {self.name} chat endpoint",
            extra={"provider": self.name, "model": request.model, "timeout": self.timeout},
        )
        data = await self._post_json(self.chat_endpoint, payload, headers)
        return self.parse_response(data, request)

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def _post_json(
        self, url: str, payload: Dict[str, Any], headers: Dict[str, str]
    ) -> Dict[str, Any]:
        async with self._client() as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(url, headers=headers, json=payload)
                except httpx.HTTPError as e:
                    self.logger.warning(
                        f"{self.name} transport error (Attempt {attempt + 1}/{self.max_retries})",
                        extra={"provider": self.name, "url": url, "error": str(e)},
                    )
                    if attempt == self.max_retries - 1:
                        raise RequestError(
                            f"{self.name} request failed: {e}", original_error=e
                        ) from e
                    await self._wait_before_retry(attempt)
                    continue

                if response.is_success:
                    return response.json()

                if response.status_code == 401:
                    raise AuthError("Invalid API key")

                message = self._error_message(response) or "Request failed"
                self.logger.warning(
                    f"{self.name} HTTP error (Attempt {attempt + 1}/{self.max_retries})",
                    extra={
                        "provider": self.name,
                        "status_code": response.status_code,
                        "error_body": response.text[:500],
                    },
                )
                if (
                    response.status_code not in RETRYABLE_STATUS_CODES
                    or attempt == self.max_retries - 1
                ):
                    raise RequestError(message, status_code=response.status_code)
                await self._wait_before_retry(attempt)

        raise RequestError(f"Failed to call {url} after {self.max_retries} attempts")

    async def _get_json(self, url: str, headers: Dict[str, str]) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise RequestError(f"{self.name} request failed: {e}", original_error=e) from e
        if response.status_code == 401:
            raise AuthError("Invalid API key")
        if not response.is_success:
            raise RequestError(
                self._error_message(response) or "Request failed",
                status_code=response.status_code,
            )
        return response.json()

    def _filter_catalog(self, available_ids: Iterable[str]) -> List[ModelInfo]:
        """Keep catalog models the vendor reports as available, in catalog order."""
        ids = {model_id.lower() for model_id in available_ids if model_id}
        return [model for model in self.get_models() if model.id.lower() in ids]

    @staticmethod
    def _error_message(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return response.text or None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
            if isinstance(error, str):
                return error
            if body.get("message"):
                return body["message"]
        return None

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        wait_time = self.retry_delay * (2 ** attempt)
        await asyncio.sleep(wait_time)
