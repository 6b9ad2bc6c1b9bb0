"""HTTP transport client for the Scell API."""

import asyncio
import copy
from typing import Awaitable, Callable, Dict, Optional

import httpx

from . import __version__
from .config import DEFAULT_BASE_URL, DEFAULT_LOCAL_BASE_URL, ScellSettings
from .errors import ApiConnectionError, error_from_response, parse_json_body
from .logging import get_logger, request_context
from .models import ApiRequest, Credential, HttpMethod, JsonObject, QueryParams
from .retry import RetryPolicy, send_with_retry

logger = get_logger(__name__)

USER_AGENT = f"Scell-Python-SDK/{__version__}"


class ScellHttpClient:
    """Async HTTP client for the Scell API with retries and error mapping.

    Credentials are immutable: ``with_bearer_token``, ``with_api_key`` and
    ``with_tenant_key`` return a new client carrying only that credential.
    Derived clients share the connection pool of the client they were
    created from, so close only the root client (or use it as an async
    context manager).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        connect_timeout: float = 10.0,
        retry_attempts: int = 3,
        retry_delay: int = 100,
        verify_ssl: bool = True,
        credential: Optional[Credential] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL, trailing slash ignored
            timeout: Total request timeout in seconds
            connect_timeout: Connection timeout in seconds
            retry_attempts: Maximum number of retries after the first attempt
            retry_delay: Backoff base delay in milliseconds
            verify_ssl: Verify TLS certificates. Only disable for local development.
            credential: Active credential, if any
            sleep: Awaitable used between retries
            http_client: Existing connection pool to reuse
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.verify_ssl = verify_ssl
        self.retry_policy = RetryPolicy(max_retries=retry_attempts, base_delay_ms=retry_delay)
        self._credential = credential
        self._sleep = sleep

        if not verify_ssl:
            logger.warning("TLS certificate verification disabled", base_url=self.base_url)

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            verify=verify_ssl,
        )

    @classmethod
    def from_settings(cls, settings: ScellSettings, **kwargs) -> "ScellHttpClient":
        """Build a client from ``ScellSettings``, including its credential."""
        return cls(
            base_url=settings.base_url,
            timeout=settings.timeout,
            connect_timeout=settings.connect_timeout,
            retry_attempts=settings.retry_attempts,
            retry_delay=settings.retry_delay,
            verify_ssl=settings.verify_ssl,
            credential=settings.active_credential(),
            **kwargs,
        )

    @classmethod
    def sandbox(cls, api_key: str, **kwargs) -> "ScellHttpClient":
        """Client for the sandbox environment, authenticated by API key."""
        return cls.from_settings(ScellSettings.sandbox(api_key=api_key), **kwargs)

    @classmethod
    def local(cls, api_key: str, base_url: str = DEFAULT_LOCAL_BASE_URL, **kwargs) -> "ScellHttpClient":
        """Client for a local development API. TLS verification is disabled."""
        return cls.from_settings(ScellSettings.local(base_url, api_key=api_key), **kwargs)

    async def __aenter__(self) -> "ScellHttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the connection pool if this client created it."""
        if self._owns_http:
            await self._http.aclose()

    # Credentials

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    def has_credentials(self) -> bool:
        return self._credential is not None

    def with_credential(self, credential: Optional[Credential]) -> "ScellHttpClient":
        """Return a copy of this client using ``credential``.

        The copy shares the connection pool and retry policy and never
        closes the pool.
        """
        clone = copy.copy(self)
        clone._credential = credential
        clone._owns_http = False
        return clone

    def with_bearer_token(self, token: str) -> "ScellHttpClient":
        return self.with_credential(Credential.bearer(token))

    def with_api_key(self, api_key: str) -> "ScellHttpClient":
        return self.with_credential(Credential.api_key(api_key))

    def with_tenant_key(self, tenant_key: str) -> "ScellHttpClient":
        return self.with_credential(Credential.tenant_key(tenant_key))

    # Requests

    async def get(
        self,
        path: str,
        query: Optional[QueryParams] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> JsonObject:
        """Send a GET request and return the decoded JSON object."""
        return await self.request(
            ApiRequest(method=HttpMethod.GET, path=path, query=query or {}, headers=headers or {})
        )

    async def post(
        self,
        path: str,
        body: Optional[JsonObject] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> JsonObject:
        """Send a POST request with a JSON body."""
        return await self.request(
            ApiRequest(method=HttpMethod.POST, path=path, body=body, headers=headers or {})
        )

    async def put(
        self,
        path: str,
        body: Optional[JsonObject] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> JsonObject:
        """Send a PUT request with a JSON body."""
        return await self.request(
            ApiRequest(method=HttpMethod.PUT, path=path, body=body, headers=headers or {})
        )

    async def delete(
        self,
        path: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> JsonObject:
        """Send a DELETE request."""
        return await self.request(
            ApiRequest(method=HttpMethod.DELETE, path=path, headers=headers or {})
        )

    async def get_raw(
        self,
        path: str,
        query: Optional[QueryParams] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> bytes:
        """Download a binary payload (PDF, XML...) without JSON decoding."""
        response = await self._execute(
            ApiRequest(
                method=HttpMethod.GET,
                path=path,
                query=query or {},
                headers=headers or {},
                raw=True,
            )
        )
        return response.content

    async def request(self, request: ApiRequest) -> JsonObject:
        """
        Execute a request descriptor and decode its JSON response.

        Args:
            request: Request to send

        Returns:
            Decoded JSON object; empty when the body is empty or not an object

        Raises:
            ScellError: Classified error for non-2xx responses
            ApiConnectionError: If no response could be obtained
        """
        response = await self._execute(request)
        return self._decode(response, request)

    def build_url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def build_headers(self, request: ApiRequest) -> Dict[str, str]:
        """Default headers, then the credential, then per-call overrides."""
        headers = {
            "Accept": "*/*" if request.raw else "application/json",
            "User-Agent": USER_AGENT,
        }
        if not request.raw:
            headers["Content-Type"] = "application/json"
        if self._credential is not None:
            name, value = self._credential.header()
            headers[name] = value
        headers.update(request.headers)
        return headers

    async def _send_once(self, request: ApiRequest) -> httpx.Response:
        return await self._http.request(
            request.method.value,
            self.build_url(request.path),
            params=request.query or None,
            json=request.body,
            headers=self.build_headers(request),
        )

    async def _execute(self, request: ApiRequest) -> httpx.Response:
        auth = self._credential.kind.value if self._credential is not None else None
        with request_context(request.method.value, request.path, auth=auth):
            try:
                response = await send_with_retry(
                    self._send_once, request, self.retry_policy, sleep=self._sleep
                )
            except httpx.TransportError as e:
                logger.error("Request failed without response", error=str(e))
                raise ApiConnectionError(f"Connection error: {e}") from e

            if response.is_success:
                return response

            error = error_from_response(response)
            logger.info(
                "Request failed",
                status_code=response.status_code,
                error_type=type(error).__name__,
                code=error.code,
            )
            raise error

    def _decode(self, response: httpx.Response, request: ApiRequest) -> JsonObject:
        if not response.content:
            return {}
        body = parse_json_body(response)
        if not body:
            logger.debug("Response body decoded to an empty object", path=request.path)
        return body
