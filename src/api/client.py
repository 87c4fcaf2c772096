# owns the http connection to the backend, used by api.endpoints
from typing import Any, Optional

import httpx

from api.errors import error_from_response
from utils.config import settings
from utils.logger import get_logger

_logger = get_logger(__name__)


class ApiClient:
    """
    Thin wrapper around one httpx.AsyncClient.

    A single client is kept for the whole app run because the backend
    identifies the user by a session cookie, which lives in the client's
    cookie jar. All paths are relative to ``base_url``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url or settings.API_BASE_URL
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.REQUEST_TIMEOUT,
            transport=transport,
            headers={"Accept": "application/json", "Cache-Control": "no-cache"},
        )

    @property
    def cookies(self) -> httpx.Cookies:
        return self._http.cookies

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        """
        Send a request and return the decoded JSON body (None for empty bodies).
        Raises ApiError subclasses for non-2xx answers and httpx.RequestError
        for transport failures, after logging them.
        """
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            response = await self._http.request(method, path, json=json, params=params)
        except httpx.RequestError as e:
            _logger.error(f"{method} {path} failed: {e!r}")
            raise

        if response.status_code >= 400:
            err = error_from_response(response)
            # 401 on /api/user is the normal anonymous answer
            log = _logger.debug if response.status_code == 401 else _logger.warning
            log(f"{method} {path} -> {response.status_code}: {err.message}")
            raise err

        _logger.debug(f"{method} {path} -> {response.status_code}")
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            _logger.warning(f"{method} {path} returned a non-JSON body")
            return None

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def aclose(self) -> None:
        await self._http.aclose()
