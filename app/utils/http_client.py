"""HTTP helper shared by the service clients: timeouts, error mapping and logging."""
import httpx
from typing import Optional, Dict, Any
import structlog

from app.core.errors import RequestFailed

logger = structlog.get_logger(__name__)


class ServiceHTTPClient:
    """Single-shot JSON requests against one external service.

    Every call opens its own ``httpx.AsyncClient``. Non-2xx answers and
    transport errors are logged and raised as ``RequestFailed``; nothing is
    retried or cached.
    """

    def __init__(
        self,
        service_name: str,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.service_name = service_name
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.params = params or {}
        self.timeout = timeout
        self.transport = transport

    def url(self, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Absolute URL for `path`, including the default query parameters."""
        merged = {**self.params, **(params or {})}
        return str(httpx.URL(f"{self.base_url}{path}", params=merged))

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        allow_not_found: bool = False,
    ) -> Any:
        """Send one request and return the decoded JSON body (or None)."""
        merged = {**self.params, **(params or {})}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=self.headers,
                    params=merged,
                    json=json,
                )
                if allow_not_found and response.status_code == 404:
                    logger.info("http_not_found", service=self.service_name, method=method, path=path)
                    return None
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(
                "http_request_failed",
                service=self.service_name,
                method=method,
                path=path,
                status=status,
            )
            raise RequestFailed(self.service_name, e.response.reason_phrase or "HTTP error", status) from e
        except httpx.HTTPError as e:
            logger.error(
                "http_request_failed",
                service=self.service_name,
                method=method,
                path=path,
                error=str(e),
            )
            raise RequestFailed(self.service_name, str(e) or e.__class__.__name__) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error("http_invalid_json", service=self.service_name, method=method, path=path)
            raise RequestFailed(self.service_name, "Invalid JSON response", response.status_code) from e

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, allow_not_found: bool = False) -> Any:
        return await self.request("GET", path, params=params, allow_not_found=allow_not_found)

    async def post(self, path: str, json: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("PUT", path, params=params, json=json)
