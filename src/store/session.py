from __future__ import annotations

from typing import Optional

import api.endpoints as endpoints
from api.client import ApiClient
from api.models import OtpResult, User
from store.cache import QueryCache, QueryState
from utils.logger import get_logger

_logger = get_logger(__name__)

USER_KEY = ("/api/user",)


class SessionReader:
    """
    Resolves the logged in user through the cache, so every screen and guard
    reading it shares one request.
    """

    def __init__(self, client: ApiClient, cache: QueryCache) -> None:
        self._client = client
        self._cache = cache

    async def _fetch_user(self) -> Optional[User]:
        return await endpoints.get_current_user(self._client)

    async def state(self) -> QueryState:
        return await self._cache.query(USER_KEY, self._fetch_user)

    async def current_user(self) -> Optional[User]:
        """
        The logged in User, or None when anonymous. When the backend cannot be
        reached, the last known user is kept.
        """
        return (await self.state()).data

    async def role(self) -> Optional[str]:
        user = await self.current_user()
        return user.role if user else None

    # ---------------------------
    # Login / logout
    # ---------------------------

    async def request_otp(self, email: str) -> None:
        await endpoints.request_otp(self._client, email)

    async def verify_otp(self, email: str, otp: str) -> OtpResult:
        result = await endpoints.verify_otp(self._client, email, otp)
        if result.user:
            await self._cache.set_data(USER_KEY, result.user)
            _logger.info(f"User {result.user.id} logged in as {result.user.role}")
        return result

    async def register(
        self, username: str, email: str, name: Optional[str] = None, role: str = "buyer"
    ) -> User:
        user = await endpoints.register(self._client, username, email, name, role)
        await self._cache.set_data(USER_KEY, user)
        _logger.info(f"Registered user {user.id} as {user.role}")
        return user

    async def logout(self) -> None:
        """
        End the server session. Cached data belongs to the old user, so it is
        dropped even if the backend call fails.
        """
        try:
            await endpoints.logout(self._client)
        finally:
            self._client.cookies.clear()
            self._cache.clear()
