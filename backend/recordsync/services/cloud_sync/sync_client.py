"""
Sync Client
HTTP client for the push/pull sync API
"""

import os
import logging
from typing import Optional, Dict, Any, List

import httpx

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Base exception for sync operations"""

    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(SyncError):
    """Missing, invalid or expired bearer token"""
    pass


class RequestRejectedError(SyncError):
    """The server refused the request as malformed; resending it unchanged cannot succeed"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[Dict[str, str]]] = None,
    ):
        super().__init__(message, status_code=status_code)
        self.errors = errors or []


class EndpointError(SyncError):
    """No such route on the server (404/405): a wrong base URL or deployment, not a bad item"""
    pass


class ServerError(SyncError):
    """Server-side failure (5xx)"""
    retryable = True


class NetworkError(SyncError):
    """Network communication error (timeout, connection refused, offline)"""
    retryable = True


REJECTED_STATUS_CODES = (400, 409, 413, 422)
ENDPOINT_STATUS_CODES = (404, 405)


class SyncClient:
    """HTTP client for the sync API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize sync client

        Args:
            base_url: Sync API base URL (defaults to SYNC_SERVER_URL env var)
            token: Bearer token (defaults to SYNC_AUTH_TOKEN env var)
            timeout: Per-request timeout in seconds (defaults to SYNC_TIMEOUT_SECONDS, 30)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url or os.getenv("SYNC_SERVER_URL", "")
        self.token = token or os.getenv("SYNC_AUTH_TOKEN", "")
        self.timeout = timeout if timeout is not None else float(os.getenv("SYNC_TIMEOUT_SECONDS", "30"))
        self.transport = transport

        if not self.base_url:
            logger.warning("SYNC_SERVER_URL not configured, sync features will be disabled")
        if not self.token:
            logger.warning("SYNC_AUTH_TOKEN not configured, sync features will be disabled")

    def is_configured(self) -> bool:
        """Check if client is properly configured"""
        return bool(self.base_url and self.token)

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for requests"""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    @staticmethod
    def _error_body(response: httpx.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {"error": response.text[:200]}
        return body if isinstance(body, dict) else {}

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Dict[str, Any]:
        """
        Make one HTTP request

        Returns:
            Response JSON data

        Raises:
            AuthenticationError: 401
            EndpointError: 404/405, the endpoint itself is missing
            RequestRejectedError: 400-class rejection of the request itself
            ServerError: 5xx, or a 200 whose body is not a JSON object
            NetworkError: timeout or transport failure
        """
        if authenticated and not self.is_configured():
            raise NetworkError("Sync client not configured")

        headers = self._get_headers() if authenticated else {"Accept": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    method=method,
                    url=self._url(endpoint),
                    headers=headers,
                    json=data,
                )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timeout after {self.timeout:g}s: {e}")
        except httpx.TransportError as e:
            raise NetworkError(f"Network error: {e}")

        if response.status_code == 200:
            try:
                body = response.json()
            except ValueError:
                raise ServerError("Invalid JSON response", status_code=200)
            if not isinstance(body, dict):
                raise ServerError("Invalid JSON response", status_code=200)
            return body

        error_data = self._error_body(response)
        error_msg = error_data.get("error") or f"API request failed: {response.status_code}"

        if response.status_code == 401:
            raise AuthenticationError(error_msg, status_code=401)
        if response.status_code in ENDPOINT_STATUS_CODES:
            raise EndpointError(error_msg, status_code=response.status_code)
        if response.status_code in REJECTED_STATUS_CODES:
            raise RequestRejectedError(
                error_msg,
                status_code=response.status_code,
                errors=error_data.get("errors"),
            )
        if response.status_code >= 500:
            raise ServerError(error_msg, status_code=response.status_code)
        raise NetworkError(error_msg, status_code=response.status_code)

    async def push(self, envelope: Dict[str, Any]) -> Dict[str, Any]:
        """Send one ``{entityType, entityId, operation, data?}`` envelope"""
        return await self._request("POST", "/sync", data=envelope)

    async def push_batch(self, envelopes: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Send up to 100 envelopes in one request"""
        return await self._request("POST", "/sync/batch", data={"items": envelopes})

    async def pull(self) -> Dict[str, Any]:
        """Fetch the full live snapshot"""
        return await self._request("GET", "/sync/pull")

    async def debug(self) -> Dict[str, Any]:
        """Fetch per-kind counts and latest update timestamps"""
        return await self._request("GET", "/sync/debug")

    async def health(self) -> bool:
        """True when the server answers its health probe"""
        try:
            await self._request("GET", "/health", authenticated=False)
        except SyncError as e:
            logger.debug(f"Health check failed: {e}")
            return False
        return True
