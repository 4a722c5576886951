"""
HTTP Backend
============
Delegates decisions to a remote HTTP service.

Each check POSTs to its own URI:

    http_getuser_uri    username, password
    http_superuser_uri  username
    http_aclcheck_uri   username, topic, clientid, acc

Response modes:
    status  2xx allows, 4xx denies
    json    2xx with {"ok": true} allows
    text    2xx with body "ok" allows

5xx responses, timeouts and connection errors are retried, then surface as
BackendUnavailable.
"""

from typing import Any, Dict, Mapping, Optional

import httpx
import structlog
from pydantic import BaseModel, StrictBool
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from mqauth_core.config import option_bool, option_float, option_int, option_str, require_options
from mqauth_core.errors import BackendUnavailable, ConfigError
from mqauth_core.topics import Access
from .base import BackendKind

logger = structlog.get_logger(__name__)

RESPONSE_MODES = ("status", "json", "text")
PARAMS_MODES = ("json", "form")


class HTTPAuthResponse(BaseModel):
    """Body of a JSON-mode response."""
    ok: StrictBool = False
    error: Optional[str] = None


class TransientHTTPError(BackendUnavailable):
    """A failure worth retrying (5xx, timeout, connection error)."""
    pass


class HTTPBackend:
    """Remote HTTP authorization service."""

    kind = BackendKind.HTTP

    def __init__(
        self,
        options: Mapping[str, Any],
        name: str = "http",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        require_options(
            options,
            ["http_host", "http_port", "http_getuser_uri", "http_aclcheck_uri"],
            backend=name,
        )

        self.name = name
        self.getuser_uri = option_str(options, "http_getuser_uri")
        self.superuser_uri = option_str(options, "http_superuser_uri")
        self.aclcheck_uri = option_str(options, "http_aclcheck_uri")

        self.response_mode = option_str(options, "http_response_mode", "status").lower()
        if self.response_mode not in RESPONSE_MODES:
            raise ConfigError(
                f"http_response_mode must be one of {RESPONSE_MODES}",
                backend=name,
                option="http_response_mode",
            )
        self.params_mode = option_str(options, "http_params_mode", "json").lower()
        if self.params_mode not in PARAMS_MODES:
            raise ConfigError(
                f"http_params_mode must be one of {PARAMS_MODES}",
                backend=name,
                option="http_params_mode",
            )

        scheme = "https" if option_bool(options, "http_with_tls") else "http"
        host = option_str(options, "http_host")
        port = option_int(options, "http_port", 80, backend=name)
        self.retries = max(1, option_int(options, "http_retries", 3, backend=name))
        self.retry_wait = option_float(options, "http_retry_wait", 0.5, backend=name)

        self.client = httpx.AsyncClient(
            base_url=f"{scheme}://{host}:{port}",
            timeout=option_float(options, "http_timeout", 5.0, backend=name),
            verify=option_bool(options, "http_verify_peer", True),
            headers={"User-Agent": "mqauth-core", "Accept": "application/json"},
            transport=transport,
        )
        self._closed = False

    async def _post_once(self, uri: str, params: Dict[str, Any]) -> httpx.Response:
        body = {"json": params} if self.params_mode == "json" else {"data": params}
        try:
            response = await self.client.post(uri, **body)
        except httpx.TimeoutException:
            raise TransientHTTPError("request timed out", backend=self.name)
        except httpx.TransportError as e:
            raise TransientHTTPError(f"failed to connect: {e}", backend=self.name)

        if response.status_code >= 500:
            raise TransientHTTPError(f"server error {response.status_code}", backend=self.name)
        return response

    async def _post(self, uri: str, params: Dict[str, Any]) -> httpx.Response:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientHTTPError),
            stop=stop_after_attempt(self.retries),
            wait=wait_exponential(multiplier=self.retry_wait, max=5),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._post_once(uri, params)
        except TransientHTTPError as e:
            logger.warning("http_backend_unavailable", backend=self.name, uri=uri, error=e.message)
            raise

    def _interpret(self, response: httpx.Response) -> bool:
        if not response.is_success:
            return False

        if self.response_mode == "status":
            return True
        if self.response_mode == "text":
            return response.text.strip().lower() == "ok"

        try:
            body = HTTPAuthResponse.model_validate(response.json())
        except ValueError:
            raise BackendUnavailable("response is not a valid JSON decision", backend=self.name)
        if body.error:
            logger.info("http_backend_denied", backend=self.name, reason=body.error[:200])
        return body.ok

    async def _check(self, uri: str, params: Dict[str, Any]) -> bool:
        return self._interpret(await self._post(uri, params))

    async def authenticate(self, username: str, password: str) -> bool:
        return await self._check(self.getuser_uri, {"username": username, "password": password})

    async def is_superuser(self, username: str) -> bool:
        if not self.superuser_uri:
            return False
        return await self._check(self.superuser_uri, {"username": username})

    async def check_acl(self, username: str, topic: str, client_id: str, access: Access) -> bool:
        return await self._check(
            self.aclcheck_uri,
            {"username": username, "topic": topic, "clientid": client_id, "acc": int(access)},
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.client.aclose()
